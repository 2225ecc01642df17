"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
analysis summaries, chunk progress lines, and session history rows.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import NoReturn

import typer

from .errors import PipelineStageError
from .models.datatypes import ChunkProgress, DocumentAnalysis, Session, SessionStats, VoiceDescriptor
from .parsing import format_time_ago
from .telemetry.cost_tracker import format_duration


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, PipelineStageError):
        typer.secho(
            f"{command_name} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


class ChunkProgressIndicator:
    """Render one deterministic progress line per finished chunk."""

    def __init__(self, command_name: str) -> None:
        self._command_name = command_name

    def on_chunk_complete(self, event: ChunkProgress) -> None:
        typer.echo(
            f"[progress] command={self._command_name} "
            f"chunk={event.current}/{event.total} percent={event.percentage} "
            f"file={event.file_path.name}"
        )


def echo_analysis(analysis: DocumentAnalysis) -> None:
    """Print document statistics, chunking, and cost estimates."""

    document = analysis.document
    typer.echo(f"Source: {analysis.source_path}")
    typer.echo(f"Type: {document.type}")
    if document.page_count is not None:
        typer.echo(f"Pages: {document.page_count}")
    typer.echo(f"Characters: {document.character_count:,}")
    typer.echo(f"Words: {document.word_count:,}")
    typer.echo(f"Chunks: {analysis.total_chunks} (max {analysis.max_chunk_size} chars)")
    typer.echo(f"Estimated cost (USD): {analysis.estimated_cost_usd:.4f}")
    typer.echo(f"Estimated time: {format_duration(analysis.estimated_seconds)}")
    if analysis.resumable_session is not None:
        session = analysis.resumable_session
        typer.echo(
            f"Resumable session: {session.id} "
            f"({session.progress.completed_chunks}/{session.progress.total_chunks} chunks)"
        )


def echo_session_result(session: Session) -> None:
    """Print the outcome of a convert, resume, or assemble command."""

    progress = session.progress
    typer.echo(f"Session id: {session.id}")
    typer.echo(f"Status: {session.status}")
    typer.echo(f"Chunks: {progress.completed_chunks}/{progress.total_chunks}")
    if session.output_dir is not None:
        typer.echo(f"Output directory: {session.output_dir}")
    if session.final_output_path is not None:
        typer.echo(f"Audiobook: {session.final_output_path}")


def _time_ago(timestamp: str, now: datetime | None = None) -> str:
    moment = datetime.fromisoformat(timestamp)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    reference = now or datetime.now(timezone.utc)
    return format_time_ago(max(0.0, (reference - moment).total_seconds()))


def echo_session_rows(sessions: list[Session], now: datetime | None = None) -> None:
    """Print one compact row per session, newest first."""

    if not sessions:
        typer.echo("No sessions found.")
        return
    for session in sessions:
        progress = session.progress
        typer.echo(
            f"{session.id}  {session.status:<10} "
            f"{progress.completed_chunks}/{progress.total_chunks} ({progress.percentage}%)  "
            f"{session.source_name}  updated {_time_ago(session.updated_at, now)}"
        )


def echo_session_detail(session: Session) -> None:
    """Print all stored fields of one session."""

    progress = session.progress
    options = session.options
    typer.echo(f"Session id: {session.id}")
    typer.echo(f"Source: {session.source_path}")
    typer.echo(f"Status: {session.status}")
    typer.echo(
        f"Progress: {progress.completed_chunks}/{progress.total_chunks} ({progress.percentage}%)"
    )
    typer.echo(
        f"Provider: {options.provider}  voice={options.voice}  speed={options.speed}  "
        f"model={options.model or '-'}  layout={options.output_layout}"
    )
    typer.echo(f"Output directory: {session.output_dir or '(not set)'}")
    typer.echo(f"Audiobook: {session.final_output_path or '(not written)'}")
    typer.echo(f"Created: {session.created_at}")
    typer.echo(f"Updated: {session.updated_at}")
    for error in progress.errors:
        chunk = "assembly" if error.chunk_number is None else f"chunk {error.chunk_number}"
        typer.echo(f"Error ({chunk}, {error.timestamp}): {error.error}")


def echo_session_stats(stats: SessionStats) -> None:
    typer.echo(f"Total sessions: {stats.total}")
    typer.echo(f"Completed: {stats.completed}")
    typer.echo(f"In progress: {stats.in_progress}")
    typer.echo(f"Failed: {stats.failed}")
    typer.echo(f"Processed chunks: {stats.total_processed_chunks}")


def echo_voices(provider_id: str, voices: list[VoiceDescriptor]) -> None:
    for voice in voices:
        language = voice.language or "?"
        description = f" - {voice.description}" if voice.description else ""
        typer.echo(f"{provider_id}:{voice.id} [{language}] {voice.label}{description}")
