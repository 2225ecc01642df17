"""Unit tests for resume preflight checks."""

from __future__ import annotations

from pathlib import Path

import pytest

from audiobookmaker.errors import ResourceError, ResumeError
from audiobookmaker.models.datatypes import (
    ConversionOptions,
    ProcessedFile,
    Session,
    SessionProgress,
)
from audiobookmaker.pipeline.resume import (
    NEXT_STEP_ASSEMBLE,
    NEXT_STEP_NONE,
    NEXT_STEP_SYNTHESIZE,
    assess_resume,
    check_chunk_count,
    require_chunk_files,
    require_relocation_match,
    require_source,
)


def _session(
    source: Path,
    *,
    total: int,
    files: list[Path],
    status: str = "processing",
    size: int | None = None,
) -> Session:
    return Session(
        id="abc123def456",
        source_path=source,
        source_name=source.name,
        source_size=size if size is not None else len("Source text."),
        source_modified_at="2026-01-01T00:00:00.000+00:00",
        options=ConversionOptions(provider="openai", voice="alloy"),
        status=status,
        progress=SessionProgress(
            total_chunks=total,
            completed_chunks=len(files),
            current_chunk=len(files),
            processed_files=tuple(
                ProcessedFile(index, path, "2026-01-01T00:00:00.000+00:00")
                for index, path in enumerate(files, start=1)
            ),
        ),
        created_at="2026-01-01T00:00:00.000+00:00",
        updated_at="2026-01-01T00:00:00.000+00:00",
    )


@pytest.fixture
def source(tmp_path: Path) -> Path:
    path = tmp_path / "book.txt"
    path.write_text("Source text.", encoding="utf-8")
    return path


def test_assess_partial_session_needs_synthesis(source: Path, tmp_path: Path) -> None:
    chunk = tmp_path / "chunk_001.mp3"
    chunk.write_bytes(b"a")

    assessment = assess_resume(_session(source, total=3, files=[chunk]))

    assert assessment.next_step == NEXT_STEP_SYNTHESIZE
    assert assessment.remaining_chunks == 2
    assert assessment.needs_relocation is False
    assert assessment.existing_files == (chunk,)
    assert assessment.missing_files == ()


def test_assess_fully_synthesized_session_needs_assembly(source: Path, tmp_path: Path) -> None:
    """All chunks done but not completed means only the combine step is left."""

    files = [tmp_path / "chunk_001.mp3", tmp_path / "chunk_002.mp3"]

    assessment = assess_resume(_session(source, total=2, files=files, status="failed"))

    assert assessment.next_step == NEXT_STEP_ASSEMBLE
    assert assessment.missing_files == tuple(files)
    with pytest.raises(ResumeError, match="2 previously produced chunk file"):
        require_chunk_files(assessment)


def test_assess_completed_session_has_nothing_to_do(source: Path) -> None:
    assessment = assess_resume(_session(source, total=0, files=[], status="completed"))

    assert assessment.next_step == NEXT_STEP_NONE


def test_missing_source_requires_relocation(source: Path) -> None:
    session = _session(source, total=3, files=[])
    source.unlink()

    assert assess_resume(session).needs_relocation is True
    with pytest.raises(ResourceError, match="no longer exists") as exc_info:
        require_source(session)
    assert "--relocate" in (exc_info.value.hint or "")


def test_relocation_requires_same_name_and_size(source: Path, tmp_path: Path) -> None:
    session = _session(source, total=3, files=[])
    moved_dir = tmp_path / "moved"
    moved_dir.mkdir()
    moved = moved_dir / "book.txt"
    moved.write_text("Source text.", encoding="utf-8")

    assert require_relocation_match(session, moved) == moved.resolve()

    moved.write_text("Edited source text.", encoding="utf-8")
    with pytest.raises(ResourceError, match="does not match"):
        require_relocation_match(session, moved)

    renamed = moved_dir / "other.txt"
    renamed.write_text("Source text.", encoding="utf-8")
    with pytest.raises(ResourceError):
        require_relocation_match(session, renamed)


def test_check_chunk_count_rejects_changed_segmentation(source: Path) -> None:
    session = _session(source, total=3, files=[])

    check_chunk_count(session, 3)
    with pytest.raises(ResumeError, match="splits into 4 chunks"):
        check_chunk_count(session, 4)
