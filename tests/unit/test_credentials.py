"""Unit tests for secure credential store helpers and key resolution."""

from __future__ import annotations

import pytest
from keyring.backends import fail
from keyring.errors import KeyringError

from audiobookmaker import credentials
from audiobookmaker.credentials import (
    CredentialStore,
    KeyringCredentialStore,
    MissingCredentialError,
    resolve_credential,
)


class FakeKeyringModule:
    """In-memory keyring stub for deterministic credential store tests."""

    def __init__(self, backend: object | None = None) -> None:
        """Initialize fake storage dictionary."""

        self._storage: dict[tuple[str, str], str] = {}
        self._backend = backend if backend is not None else object()

    def get_keyring(self) -> object:
        return self._backend

    def get_password(self, service_name: str, account_name: str) -> str | None:
        """Return previously stored password if present."""

        return self._storage.get((service_name, account_name))

    def set_password(self, service_name: str, account_name: str, value: str) -> None:
        """Store password value for the service/account key."""

        self._storage[(service_name, account_name)] = value

    def delete_password(self, service_name: str, account_name: str) -> None:
        """Delete password value for the service/account key."""

        self._storage.pop((service_name, account_name), None)


class MemoryCredentialStore(CredentialStore):
    def __init__(self, keys: dict[str, str] | None = None) -> None:
        self.keys = dict(keys or {})

    def is_available(self) -> bool:
        return True

    def get_api_key(self, provider_id: str) -> str | None:
        return self.keys.get(provider_id)

    def set_api_key(self, provider_id: str, api_key: str) -> None:
        self.keys[provider_id] = api_key

    def clear_api_key(self, provider_id: str) -> bool:
        return self.keys.pop(provider_id, None) is not None


def test_keyring_store_roundtrip_set_get_clear(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keyring store should set/get/clear API key values per provider account."""

    fake_keyring = FakeKeyringModule()
    monkeypatch.setattr(credentials, "keyring", fake_keyring)
    store = KeyringCredentialStore()

    assert store.is_available() is True
    assert store.get_api_key("openai") is None

    store.set_api_key("openai", "  sk-abc123  ")
    assert store.get_api_key("openai") == "sk-abc123"
    assert fake_keyring.get_password("audiobookmaker", "openai_api_key") == "sk-abc123"

    assert store.clear_api_key("openai") is True
    assert store.get_api_key("openai") is None
    assert store.clear_api_key("openai") is False


def test_keyring_store_reports_fail_backend_as_unavailable(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """The no-op fail backend should make the store degrade safely."""

    monkeypatch.setattr(credentials, "keyring", FakeKeyringModule(backend=fail.Keyring()))
    store = KeyringCredentialStore()

    assert store.is_available() is False
    assert store.get_api_key("openai") is None
    assert store.clear_api_key("openai") is False
    with pytest.raises(RuntimeError, match="unavailable"):
        store.set_api_key("openai", "sk-abc123")


def test_keyring_store_treats_backend_errors_as_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    class _BrokenKeyring(FakeKeyringModule):
        def get_password(self, service_name: str, account_name: str) -> str | None:
            raise KeyringError("locked")

    monkeypatch.setattr(credentials, "keyring", _BrokenKeyring())

    assert KeyringCredentialStore().get_api_key("openai") is None


def test_keyring_store_rejects_blank_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(credentials, "keyring", FakeKeyringModule())

    with pytest.raises(ValueError):
        KeyringCredentialStore().set_api_key("openai", "   ")


def test_resolve_credential_prefers_environment_then_store_then_prompt() -> None:
    store = MemoryCredentialStore({"openai": "sk-from-store"})
    prompted: list[str] = []

    def _prompt() -> str:
        prompted.append("asked")
        return "sk-from-prompt"

    assert (
        resolve_credential(
            "openai", env={"OPENAI_API_KEY": " sk-from-env "}, store=store, prompt=_prompt
        )
        == "sk-from-env"
    )
    assert resolve_credential("openai", env={}, store=store, prompt=_prompt) == "sk-from-store"
    assert (
        resolve_credential("openai", env={}, store=MemoryCredentialStore(), prompt=_prompt)
        == "sk-from-prompt"
    )
    assert prompted == ["asked"]


def test_resolve_credential_raises_when_no_source_has_a_key() -> None:
    with pytest.raises(MissingCredentialError) as exc_info:
        resolve_credential(
            "openai", env={"OPENAI_API_KEY": "  "}, store=MemoryCredentialStore(), prompt=lambda: ""
        )

    assert exc_info.value.stage == "credentials"
    assert "OPENAI_API_KEY" in (exc_info.value.hint or "")
