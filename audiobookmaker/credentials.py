"""Secure credential storage and resolution.

Responsibilities:
- Persist provider API keys in the OS-backed keyring, one account per provider.
- Resolve a provider key from the environment, then keyring, then a prompt.
- Avoid logging or exposing secret values in diagnostics.

Key types:
- `CredentialStore`: interface for provider credential persistence.
- `KeyringCredentialStore`: keyring-backed secure credential storage.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Callable, Mapping

import keyring
from keyring.backends import fail
from keyring.errors import KeyringError

from .errors import PipelineStageError
from .parsing import normalize_optional_string

_DEFAULT_SERVICE_NAME = "audiobookmaker"
_PROVIDER_ENV_VARS = {"openai": "OPENAI_API_KEY"}


class MissingCredentialError(PipelineStageError):
    """Raised when no API key is available from any source."""

    def __init__(self, provider_id: str) -> None:
        env_var = _PROVIDER_ENV_VARS.get(provider_id, "the provider key variable")
        super().__init__(
            stage="credentials",
            detail=f"No API key configured for provider `{provider_id}`.",
            hint=f"Set `{env_var}` or run `audiobookmaker credentials --provider {provider_id}`.",
        )
        self.provider_id = provider_id


class CredentialStore:
    """Interface for secure provider credential operations."""

    def is_available(self) -> bool:
        raise NotImplementedError

    def get_api_key(self, provider_id: str) -> str | None:
        raise NotImplementedError

    def set_api_key(self, provider_id: str, api_key: str) -> None:
        raise NotImplementedError

    def clear_api_key(self, provider_id: str) -> bool:
        raise NotImplementedError


@dataclass(slots=True)
class KeyringCredentialStore(CredentialStore):
    """Secure credential store backed by the `keyring` package."""

    service_name: str = _DEFAULT_SERVICE_NAME

    @staticmethod
    def account_name(provider_id: str) -> str:
        return f"{provider_id}_api_key"

    def is_available(self) -> bool:
        """Return `False` when keyring resolved to its no-op fail backend."""

        return not isinstance(keyring.get_keyring(), fail.Keyring)

    def get_api_key(self, provider_id: str) -> str | None:
        """Get a normalized API key from keyring, returning `None` when missing."""

        if not self.is_available():
            return None
        try:
            value = keyring.get_password(self.service_name, self.account_name(provider_id))
        except KeyringError:
            return None
        return normalize_optional_string(value)

    def set_api_key(self, provider_id: str, api_key: str) -> None:
        """Persist a normalized API key in keyring or raise when unavailable."""

        normalized = normalize_optional_string(api_key)
        if normalized is None:
            raise ValueError("API key must be a non-empty string.")
        if not self.is_available():
            raise RuntimeError(
                "Secure credential storage is unavailable because no keyring "
                "backend is configured."
            )
        keyring.set_password(self.service_name, self.account_name(provider_id), normalized)

    def clear_api_key(self, provider_id: str) -> bool:
        """Remove the stored API key and report whether one was present."""

        if self.get_api_key(provider_id) is None:
            return False
        keyring.delete_password(self.service_name, self.account_name(provider_id))
        return True


def create_credential_store() -> CredentialStore:
    """Create the default secure credential store implementation."""

    return KeyringCredentialStore()


def resolve_credential(
    provider_id: str,
    *,
    env: Mapping[str, str] | None = None,
    store: CredentialStore | None = None,
    prompt: Callable[[], str | None] | None = None,
) -> str:
    """Return the API key for `provider_id`.

    Sources are tried in order: environment variable, keyring, `prompt`.

    Raises:
        MissingCredentialError: If no source yields a key.
    """

    source = os.environ if env is None else env
    env_var = _PROVIDER_ENV_VARS.get(provider_id)
    if env_var is not None:
        from_env = normalize_optional_string(source.get(env_var))
        if from_env is not None:
            return from_env

    credential_store = store or create_credential_store()
    stored = credential_store.get_api_key(provider_id)
    if stored is not None:
        return stored

    if prompt is not None:
        entered = normalize_optional_string(prompt())
        if entered is not None:
            return entered
    raise MissingCredentialError(provider_id)
