"""Unit tests for CLI output and error rendering helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest
import typer

from audiobookmaker.cli_rendering import (
    ChunkProgressIndicator,
    echo_session_rows,
    echo_session_stats,
    exit_with_command_error,
)
from audiobookmaker.errors import BackendError, PipelineStageError
from audiobookmaker.models.datatypes import (
    ChunkProgress,
    ConversionOptions,
    Session,
    SessionProgress,
    SessionStats,
)


def test_exit_with_command_error_renders_stage_error_with_hint(
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Renderer should print stage diagnostics and hint before exiting with code 1."""

    error = BackendError(
        detail="Chunk 3 failed: Rate limit exceeded (HTTP 429).",
        hint="Wait a moment, then run `audiobookmaker resume <session-id>`.",
        failure_kind="rate_limited",
        chunk_index=3,
    )

    with pytest.raises(typer.Exit) as exc_info:
        exit_with_command_error("convert", error)

    captured = capsys.readouterr()
    assert exc_info.value.exit_code == 1
    assert "convert failed at stage `synthesize`: Chunk 3 failed" in captured.err
    assert "Hint: Wait a moment" in captured.err


def test_exit_with_command_error_renders_stage_error_without_hint(
    capsys: pytest.CaptureFixture[str],
) -> None:
    error = PipelineStageError(stage="session", detail="Session `abc` not found.")

    with pytest.raises(typer.Exit):
        exit_with_command_error("sessions show", error)

    captured = capsys.readouterr()
    assert "sessions show failed at stage `session`" in captured.err
    assert "Hint:" not in captured.err


def test_exit_with_command_error_renders_non_stage_fallback(
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Renderer should print fallback exception text for non-stage failures."""

    with pytest.raises(typer.Exit) as exc_info:
        exit_with_command_error("resume", RuntimeError("unexpected session error"))

    captured = capsys.readouterr()
    assert exc_info.value.exit_code == 1
    assert "resume failed: unexpected session error" in captured.err


def test_chunk_progress_indicator_prints_deterministic_line(
    capsys: pytest.CaptureFixture[str],
) -> None:
    ChunkProgressIndicator("convert").on_chunk_complete(
        ChunkProgress(current=2, total=3, file_path=Path("/tmp/out/chunk_002.mp3"))
    )

    assert capsys.readouterr().out == (
        "[progress] command=convert chunk=2/3 percent=67 file=chunk_002.mp3\n"
    )


def test_echo_session_rows_shows_progress_and_relative_update(
    capsys: pytest.CaptureFixture[str],
) -> None:
    session = Session(
        id="abc123def456",
        source_path=Path("/books/novel.txt"),
        source_name="novel.txt",
        source_size=10,
        source_modified_at="2026-01-01T10:00:00.000+00:00",
        options=ConversionOptions(provider="openai", voice="alloy"),
        status="failed",
        progress=SessionProgress(total_chunks=3, completed_chunks=2, percentage=67),
        created_at="2026-01-01T10:00:00.000+00:00",
        updated_at="2026-01-01T10:00:00.000+00:00",
    )

    echo_session_rows([session], now=datetime(2026, 1, 1, 12, 30, tzinfo=timezone.utc))

    line = capsys.readouterr().out.strip()
    assert line.startswith("abc123def456  failed")
    assert "2/3 (67%)" in line
    assert line.endswith("novel.txt  updated 2h ago")


def test_echo_session_rows_reports_empty_history(capsys: pytest.CaptureFixture[str]) -> None:
    echo_session_rows([])

    assert capsys.readouterr().out == "No sessions found.\n"


def test_echo_session_stats(capsys: pytest.CaptureFixture[str]) -> None:
    echo_session_stats(SessionStats(total=4, completed=1, in_progress=2, failed=1, total_processed_chunks=9))

    assert capsys.readouterr().out.splitlines() == [
        "Total sessions: 4",
        "Completed: 1",
        "In progress: 2",
        "Failed: 1",
        "Processed chunks: 9",
    ]
