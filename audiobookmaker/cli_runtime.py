"""CLI runtime resolution helpers.

This module isolates interactive prompts, API-key resolution, and backend
construction from the command wiring layer.
"""

from __future__ import annotations

from typing import Callable

import typer

from .config import AppConfig
from .credentials import CredentialStore, create_credential_store, resolve_credential
from .errors import PipelineStageError
from .models.datatypes import ConversionOptions, Session
from .parsing import normalize_optional_string
from .provider_factory import ProviderFactory
from .tts.backend import SpeechBackend


def prompt_for_api_key(provider_id: str) -> str | None:
    """Prompt for an API key with hidden input; blank input returns `None`."""

    return normalize_optional_string(
        typer.prompt(
            f"{provider_id} API key (hidden; leave blank to skip)",
            default="",
            hide_input=True,
            show_default=False,
        )
    )


def resolve_api_key(
    provider_id: str,
    api_key: str | None,
    interactive: bool,
    store_api_key: bool,
    credential_store_factory: Callable[[], CredentialStore] = create_credential_store,
) -> str:
    """Resolve an API key: explicit option, env, keyring, then an optional prompt.

    A key entered at the prompt is saved to keyring when `store_api_key` is set.
    """

    explicit = normalize_optional_string(api_key)
    if explicit is not None:
        return explicit

    credential_store = credential_store_factory()
    entered: list[str] = []

    def prompt() -> str | None:
        value = prompt_for_api_key(provider_id)
        if value is not None:
            entered.append(value)
        return value

    resolved = resolve_credential(
        provider_id,
        store=credential_store,
        prompt=prompt if interactive else None,
    )
    if entered and store_api_key:
        try:
            credential_store.set_api_key(provider_id, resolved)
            typer.echo("Stored API key in secure credential storage.")
        except (RuntimeError, ValueError) as exc:
            raise PipelineStageError(
                stage="credentials",
                detail=f"Failed to store API key securely: {exc}",
                hint=(
                    "Install and configure a keyring backend, or rerun with "
                    "`--no-store-api-key` for one-off usage."
                ),
            ) from exc
    return resolved


def build_backend_factory(
    config: AppConfig,
    api_key: str | None = None,
    interactive: bool = True,
    store_api_key: bool = True,
    require_key: bool = True,
) -> Callable[[ConversionOptions], SpeechBackend]:
    """Return a factory that builds the backend for a session's provider.

    The API key is resolved lazily, so sessions on local providers never ask for one.
    With `require_key=False` no key is resolved at all, which suits backends used
    only for assembly.
    """

    def factory(options: ConversionOptions) -> SpeechBackend:
        return create_backend(
            config,
            options.provider,
            api_key=api_key,
            interactive=interactive,
            store_api_key=store_api_key,
            require_key=require_key,
        )

    return factory


def create_backend(
    config: AppConfig,
    provider_id: str,
    api_key: str | None = None,
    interactive: bool = True,
    store_api_key: bool = True,
    require_key: bool = True,
) -> SpeechBackend:
    """Create one backend, resolving credentials when the provider needs them."""

    resolved_key: str | None = None
    if ProviderFactory.requires_api_key(provider_id) and require_key:
        resolved_key = resolve_api_key(provider_id, api_key, interactive, store_api_key)
    try:
        return ProviderFactory.create_backend(
            provider_id,
            api_key=resolved_key,
            thorsten_install_dir=config.resolved_thorsten_install_dir(),
        )
    except ValueError as exc:
        raise PipelineStageError(
            stage="config",
            detail=str(exc),
            hint="Use `--provider openai` or `--provider thorsten`.",
        ) from exc


def confirm_resume_prompt(session: Session) -> bool:
    """Ask whether to continue an interrupted session for the same document."""

    progress = session.progress
    return typer.confirm(
        f"Found unfinished session {session.id} "
        f"({progress.completed_chunks}/{progress.total_chunks} chunks, "
        f"status {session.status}). Resume it?",
        default=True,
    )
