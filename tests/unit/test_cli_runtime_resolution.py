"""Unit tests for CLI provider runtime resolution helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from audiobookmaker import cli_runtime
from audiobookmaker.cli_runtime import build_backend_factory, create_backend, resolve_api_key
from audiobookmaker.config import AppConfig
from audiobookmaker.credentials import CredentialStore, MissingCredentialError
from audiobookmaker.errors import PipelineStageError
from audiobookmaker.models.datatypes import ConversionOptions
from audiobookmaker.tts.openai_backend import OpenAISpeechBackend
from audiobookmaker.tts.thorsten_backend import ThorstenSpeechBackend


class InMemoryCredentialStore(CredentialStore):
    """In-memory credential store implementation for runtime-resolution tests."""

    def __init__(self, initial_api_key: str | None = None) -> None:
        """Initialize the store with an optional initial API key."""

        self._api_key = initial_api_key
        self.stored_values: list[str] = []

    def is_available(self) -> bool:
        return True

    def get_api_key(self, provider_id: str) -> str | None:
        return self._api_key

    def set_api_key(self, provider_id: str, api_key: str) -> None:
        """Persist API key value and keep a history for assertions."""

        self._api_key = api_key
        self.stored_values.append(api_key)

    def clear_api_key(self, provider_id: str) -> bool:
        return False


class FailingCredentialStore(InMemoryCredentialStore):
    """Credential store that raises when persisting API key values."""

    def set_api_key(self, provider_id: str, api_key: str) -> None:
        raise RuntimeError("no keyring backend")


def test_resolve_api_key_prefers_explicit_option(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")

    resolved = resolve_api_key(
        "openai",
        " sk-explicit ",
        interactive=False,
        store_api_key=False,
        credential_store_factory=lambda: InMemoryCredentialStore("sk-stored"),
    )

    assert resolved == "sk-explicit"


def test_resolve_api_key_uses_secure_store_before_prompt(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setattr(
        cli_runtime, "prompt_for_api_key", lambda provider_id: pytest.fail("prompted")
    )

    resolved = resolve_api_key(
        "openai",
        None,
        interactive=True,
        store_api_key=True,
        credential_store_factory=lambda: InMemoryCredentialStore("sk-stored"),
    )

    assert resolved == "sk-stored"


def test_resolve_api_key_stores_prompted_key(monkeypatch: pytest.MonkeyPatch) -> None:
    """A key typed at the prompt should be saved when storing is enabled."""

    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setattr(cli_runtime, "prompt_for_api_key", lambda provider_id: "sk-typed")
    store = InMemoryCredentialStore()

    resolved = resolve_api_key(
        "openai", None, interactive=True, store_api_key=True, credential_store_factory=lambda: store
    )

    assert resolved == "sk-typed"
    assert store.stored_values == ["sk-typed"]


def test_resolve_api_key_reports_storage_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setattr(cli_runtime, "prompt_for_api_key", lambda provider_id: "sk-typed")

    with pytest.raises(PipelineStageError) as exc_info:
        resolve_api_key(
            "openai",
            None,
            interactive=True,
            store_api_key=True,
            credential_store_factory=FailingCredentialStore,
        )

    assert exc_info.value.stage == "credentials"
    assert "--no-store-api-key" in (exc_info.value.hint or "")


def test_resolve_api_key_without_any_source_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(MissingCredentialError):
        resolve_api_key(
            "openai",
            None,
            interactive=False,
            store_api_key=False,
            credential_store_factory=InMemoryCredentialStore,
        )


def test_backend_factory_skips_credentials_for_local_provider(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr(
        cli_runtime, "resolve_api_key", lambda *args, **kwargs: pytest.fail("resolved key")
    )
    factory = build_backend_factory(AppConfig(config_dir=tmp_path), interactive=False)

    backend = factory(ConversionOptions(provider="thorsten", voice="thorsten-male"))

    assert isinstance(backend, ThorstenSpeechBackend)
    assert backend.install_dir == tmp_path / "thorsten-voice"


def test_assembly_only_backend_factory_never_resolves_a_key(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr(
        cli_runtime, "resolve_api_key", lambda *args, **kwargs: pytest.fail("resolved key")
    )
    factory = build_backend_factory(
        AppConfig(config_dir=tmp_path), interactive=False, require_key=False
    )

    backend = factory(ConversionOptions(provider="openai", voice="alloy"))

    assert isinstance(backend, OpenAISpeechBackend)
    assert backend.api_key == ""


def test_create_backend_maps_unknown_provider_to_config_stage(tmp_path: Path) -> None:
    with pytest.raises(PipelineStageError) as exc_info:
        create_backend(AppConfig(config_dir=tmp_path), "azure")

    assert exc_info.value.stage == "config"
