"""Command-line interface for Audiobook Maker.

Responsibilities:
- Expose user-facing commands for analysis, conversion, resume, and session history.
- Convert CLI arguments into `ConversionOptions` and run the orchestrator.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from .cli_rendering import (
    ChunkProgressIndicator,
    echo_analysis,
    echo_session_detail,
    echo_session_result,
    echo_session_rows,
    echo_session_stats,
    echo_voices,
    exit_with_command_error,
)
from .cli_runtime import (
    build_backend_factory,
    confirm_resume_prompt,
    create_backend,
    prompt_for_api_key,
)
from .config import AppConfig, ConfigLoader
from .credentials import MissingCredentialError, create_credential_store, resolve_credential
from .errors import PipelineStageError
from .io.session_store import SessionStore
from .pipeline.orchestrator import ConversionOrchestrator
from .provider_factory import SUPPORTED_PROVIDERS, ProviderFactory
from .telemetry.logger import RunLogger

app = typer.Typer(
    name="audiobookmaker",
    no_args_is_help=True,
    help="Convert text and PDF documents into audiobooks, resumably.",
)
sessions_app = typer.Typer(no_args_is_help=True, help="Inspect and manage conversion sessions.")
app.add_typer(sessions_app, name="sessions")


@app.callback()
def main_callback(
    ctx: typer.Context,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to YAML config file with defaults."),
    ] = None,
) -> None:
    """Audiobook Maker CLI."""

    ctx.obj = {"config_file": config_file}


def _load_config(ctx: typer.Context) -> AppConfig:
    """Load the app config and map failures to stage errors."""

    config_file = (ctx.obj or {}).get("config_file")
    try:
        return ConfigLoader.load(config_file)
    except FileNotFoundError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Config file not found: `{config_file}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Invalid configuration: {exc}",
            hint="Fix config values or `AUDIOBOOKMAKER_*` variables and rerun.",
        ) from exc


def _build_orchestrator(
    config: AppConfig,
    command_name: str,
    api_key: str | None = None,
    interactive: bool = True,
    store_api_key: bool = True,
    require_key: bool = True,
) -> ConversionOrchestrator:
    progress = ChunkProgressIndicator(command_name)
    return ConversionOrchestrator(
        store=SessionStore(config.progress_dir),
        backend_factory=build_backend_factory(
            config,
            api_key=api_key,
            interactive=interactive,
            store_api_key=store_api_key,
            require_key=require_key,
        ),
        run_logger=RunLogger(),
        progress_callback=progress.on_chunk_complete,
    )


def _session_orchestrator(config: AppConfig) -> ConversionOrchestrator:
    """Build an orchestrator for commands that never synthesize."""

    return ConversionOrchestrator(
        store=SessionStore(config.progress_dir),
        backend_factory=build_backend_factory(config, interactive=False, require_key=False),
        run_logger=RunLogger(),
    )


@app.command("analyze")
def analyze_command(
    ctx: typer.Context,
    source: Annotated[Path, typer.Argument(help="Path to a `.txt` or `.pdf` document.")],
    chunk_size: Annotated[
        int | None, typer.Option("--chunk-size", help="Maximum characters per chunk.")
    ] = None,
    provider: Annotated[
        str | None, typer.Option("--provider", help="Provider used for estimates.")
    ] = None,
    model: Annotated[str | None, typer.Option("--model", help="Model used for estimates.")] = None,
) -> None:
    """Show document statistics, chunk count, and cost estimates."""

    try:
        config = _load_config(ctx)
        options = config.conversion_options(
            {"provider": provider, "model": model, "max_chunk_size": chunk_size}
        )
        analysis = _session_orchestrator(config).analyze(
            source, options.max_chunk_size, options.provider, options.model
        )
    except (PipelineStageError, ValueError) as exc:
        exit_with_command_error("analyze", exc)
    echo_analysis(analysis)


@app.command("convert")
def convert_command(
    ctx: typer.Context,
    source: Annotated[Path, typer.Argument(help="Path to a `.txt` or `.pdf` document.")],
    provider: Annotated[
        str | None,
        typer.Option("--provider", help=f"Speech provider ({', '.join(SUPPORTED_PROVIDERS)})."),
    ] = None,
    voice: Annotated[str | None, typer.Option("--voice", help="Provider voice id.")] = None,
    speed: Annotated[float | None, typer.Option("--speed", help="Speaking rate.")] = None,
    model: Annotated[
        str | None, typer.Option("--model", help="Provider model or quality tier.")
    ] = None,
    layout: Annotated[
        str | None,
        typer.Option("--layout", help="Output layout: `single`, `separate`, or `both`."),
    ] = None,
    output_dir: Annotated[
        Path | None, typer.Option("--output-dir", help="Base output directory.")
    ] = None,
    chunk_size: Annotated[
        int | None, typer.Option("--chunk-size", help="Maximum characters per chunk.")
    ] = None,
    api_key: Annotated[
        str | None,
        typer.Option("--api-key", help="Provider API key override. Prefer env or keyring."),
    ] = None,
    resume: Annotated[
        bool | None,
        typer.Option(
            "--resume/--restart",
            help="Resume or restart a matching unfinished session without asking.",
        ),
    ] = None,
    interactive: Annotated[
        bool,
        typer.Option("--interactive/--no-interactive", help="Allow prompts."),
    ] = True,
    store_api_key: Annotated[
        bool,
        typer.Option("--store-api-key/--no-store-api-key", help="Save a prompted key to keyring."),
    ] = True,
) -> None:
    """Convert a document into audio, resuming unfinished work when possible."""

    if resume is not None:
        decision = resume

        def confirm(_session: object) -> bool:
            return decision

    elif interactive:
        confirm = confirm_resume_prompt
    else:
        confirm = None

    try:
        config = _load_config(ctx)
        options = config.conversion_options(
            {
                "provider": provider,
                "voice": voice,
                "speed": speed,
                "model": model,
                "output_layout": layout,
                "output_directory": output_dir,
                "max_chunk_size": chunk_size,
            }
        )
        orchestrator = _build_orchestrator(
            config, "convert", api_key=api_key, interactive=interactive, store_api_key=store_api_key
        )
        session = orchestrator.convert(source, options, confirm_resume=confirm)
    except (PipelineStageError, ValueError) as exc:
        exit_with_command_error("convert", exc)
    echo_session_result(session)


@app.command("resume")
def resume_command(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session id from `sessions list`.")],
    relocate: Annotated[
        Path | None,
        typer.Option("--relocate", help="New location of a moved source document."),
    ] = None,
    api_key: Annotated[
        str | None, typer.Option("--api-key", help="Provider API key override.")
    ] = None,
    interactive: Annotated[
        bool, typer.Option("--interactive/--no-interactive", help="Allow prompts.")
    ] = True,
) -> None:
    """Resume an interrupted or failed session from its first unfinished chunk."""

    try:
        config = _load_config(ctx)
        orchestrator = _build_orchestrator(
            config, "resume", api_key=api_key, interactive=interactive
        )
        session = orchestrator.resume(session_id, relocated_path=relocate)
    except PipelineStageError as exc:
        exit_with_command_error("resume", exc)
    echo_session_result(session)


@app.command("assemble")
def assemble_command(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session id from `sessions list`.")],
) -> None:
    """Retry combining the chunk files of a fully synthesized session."""

    try:
        config = _load_config(ctx)
        orchestrator = _build_orchestrator(
            config, "assemble", interactive=False, require_key=False
        )
        session = orchestrator.assemble(session_id)
    except PipelineStageError as exc:
        exit_with_command_error("assemble", exc)
    echo_session_result(session)


@app.command("voices")
def voices_command(
    ctx: typer.Context,
    provider: Annotated[
        str | None, typer.Option("--provider", help="Limit listing to one provider.")
    ] = None,
) -> None:
    """List voices and availability for each speech provider."""

    try:
        config = _load_config(ctx)
        provider_ids = [provider] if provider else list(SUPPORTED_PROVIDERS)
        for provider_id in provider_ids:
            backend = create_backend(config, provider_id, require_key=False)
            echo_voices(provider_id, backend.list_voices())
            if ProviderFactory.requires_api_key(provider_id):
                try:
                    resolve_credential(provider_id)
                    available = True
                except MissingCredentialError:
                    available = False
            else:
                available = backend.is_available()
            typer.echo(f"{provider_id} available: {'yes' if available else 'no'}")
    except PipelineStageError as exc:
        exit_with_command_error("voices", exc)


@app.command("preview")
def preview_command(
    ctx: typer.Context,
    provider: Annotated[
        str | None, typer.Option("--provider", help="Speech provider id.")
    ] = None,
    voice: Annotated[
        list[str] | None,
        typer.Option("--voice", help="Voice to preview; repeat for several. Default: all."),
    ] = None,
    api_key: Annotated[
        str | None, typer.Option("--api-key", help="Provider API key override.")
    ] = None,
) -> None:
    """Generate cached preview clips for one or more voices."""

    try:
        config = _load_config(ctx)
        provider_id = provider or config.provider
        backend = create_backend(config, provider_id, api_key=api_key)
        batch = backend.preview_voices(config.cache_dir / "previews", voices=voice or None)
    except PipelineStageError as exc:
        exit_with_command_error("preview", exc)

    for voice_id, path in batch.previews.items():
        typer.echo(f"{voice_id}: {path}")
    for voice_id, message in batch.errors.items():
        typer.secho(f"{voice_id}: failed: {message}", fg=typer.colors.RED, err=True)
    if not batch.previews and batch.errors:
        raise typer.Exit(code=1)


@app.command("credentials")
def credentials_command(
    provider: Annotated[
        str, typer.Option("--provider", help="Provider whose key to manage.")
    ] = "openai",
    set_api_key: Annotated[
        bool,
        typer.Option("--set-api-key", help="Prompt for API key with hidden input and store it."),
    ] = False,
    clear_api_key: Annotated[
        bool,
        typer.Option("--clear-api-key", help="Clear the stored API key."),
    ] = False,
) -> None:
    """Manage securely stored provider credentials."""

    if set_api_key and clear_api_key:
        exit_with_command_error(
            "credentials",
            PipelineStageError(
                stage="credentials",
                detail="`--set-api-key` and `--clear-api-key` cannot be used together.",
                hint="Run one credentials action per command invocation.",
            ),
        )

    credential_store = create_credential_store()
    if set_api_key:
        prompted_api_key = prompt_for_api_key(provider)
        if prompted_api_key is None:
            exit_with_command_error(
                "credentials",
                PipelineStageError(
                    stage="credentials",
                    detail="No API key entered.",
                    hint="Provide a non-empty API key when using `--set-api-key`.",
                ),
            )
        try:
            credential_store.set_api_key(provider, prompted_api_key)
        except (RuntimeError, ValueError) as exc:
            exit_with_command_error(
                "credentials",
                PipelineStageError(
                    stage="credentials",
                    detail=f"Failed to store API key securely: {exc}",
                    hint="Install and configure a keyring backend and retry.",
                ),
            )
        typer.echo("API key stored in secure credential storage.")
        return

    if clear_api_key:
        if credential_store.clear_api_key(provider):
            typer.echo("Stored API key cleared from secure credential storage.")
        else:
            typer.echo("No stored API key found in secure credential storage.")
        return

    availability = "available" if credential_store.is_available() else "unavailable"
    status = "present" if credential_store.get_api_key(provider) is not None else "not set"
    typer.echo(f"Secure credential storage: {availability}")
    typer.echo(f"Stored {provider} API key: {status}")


@sessions_app.command("list")
def sessions_list_command(
    ctx: typer.Context,
    limit: Annotated[
        int | None, typer.Option("--limit", help="Show at most this many sessions.")
    ] = None,
) -> None:
    """List sessions, most recently updated first."""

    try:
        config = _load_config(ctx)
        sessions = _session_orchestrator(config).list_sessions(limit=limit)
    except PipelineStageError as exc:
        exit_with_command_error("sessions list", exc)
    echo_session_rows(sessions)


@sessions_app.command("show")
def sessions_show_command(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session id.")],
) -> None:
    """Show one session in detail."""

    try:
        config = _load_config(ctx)
        session = SessionStore(config.progress_dir).require(session_id)
    except PipelineStageError as exc:
        exit_with_command_error("sessions show", exc)
    echo_session_detail(session)


@sessions_app.command("delete")
def sessions_delete_command(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session id.")],
    keep_outputs: Annotated[
        bool, typer.Option("--keep-outputs", help="Keep the session's output directory.")
    ] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation.")] = False,
) -> None:
    """Delete one session record and its outputs."""

    if not yes and not typer.confirm(f"Delete session {session_id}?", default=False):
        raise typer.Exit(code=0)
    try:
        config = _load_config(ctx)
        _session_orchestrator(config).delete_session(session_id, remove_outputs=not keep_outputs)
    except PipelineStageError as exc:
        exit_with_command_error("sessions delete", exc)
    typer.echo(f"Deleted session {session_id}.")


@sessions_app.command("clear")
def sessions_clear_command(
    ctx: typer.Context,
    keep_outputs: Annotated[
        bool, typer.Option("--keep-outputs", help="Keep session output directories.")
    ] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation.")] = False,
) -> None:
    """Delete every stored session."""

    if not yes and not typer.confirm("Delete all sessions?", default=False):
        raise typer.Exit(code=0)
    try:
        config = _load_config(ctx)
        removed = _session_orchestrator(config).clear_sessions(remove_outputs=not keep_outputs)
    except PipelineStageError as exc:
        exit_with_command_error("sessions clear", exc)
    typer.echo(f"Deleted {removed} session(s).")


@sessions_app.command("stats")
def sessions_stats_command(ctx: typer.Context) -> None:
    """Show aggregate session statistics."""

    try:
        config = _load_config(ctx)
        stats = _session_orchestrator(config).session_stats()
    except PipelineStageError as exc:
        exit_with_command_error("sessions stats", exc)
    echo_session_stats(stats)


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()
