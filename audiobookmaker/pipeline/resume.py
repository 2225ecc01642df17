"""Resume assessment helpers.

Responsibilities:
- Classify what a stored session still needs (nothing, assembly, synthesis).
- Detect moved sources and validate relocation candidates by size and name.
- Reject resumes whose source or prior outputs no longer match the session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from ..errors import ResourceError, ResumeError
from ..io.session_store import source_modified_at
from ..models.datatypes import STATUS_COMPLETED, Session

NEXT_STEP_NONE = "none"
NEXT_STEP_ASSEMBLE = "assemble"
NEXT_STEP_SYNTHESIZE = "synthesize"


@dataclass(frozen=True, slots=True)
class ResumeAssessment:
    """Preflight view of one stored session."""

    session_id: str
    source_path: Path
    needs_relocation: bool
    completed_chunks: int
    total_chunks: int
    next_step: str
    existing_files: tuple[Path, ...] = field(default_factory=tuple)
    missing_files: tuple[Path, ...] = field(default_factory=tuple)

    @property
    def remaining_chunks(self) -> int:
        return max(0, self.total_chunks - self.completed_chunks)


def assess_resume(session: Session) -> ResumeAssessment:
    """Inspect a session and the filesystem without modifying either."""

    progress = session.progress
    expected = progress.ordered_files()
    existing = tuple(path for path in expected if path.is_file())
    missing = tuple(path for path in expected if not path.is_file())

    if session.status == STATUS_COMPLETED:
        next_step = NEXT_STEP_NONE
    elif progress.total_chunks > 0 and progress.completed_chunks == progress.total_chunks:
        next_step = NEXT_STEP_ASSEMBLE
    else:
        next_step = NEXT_STEP_SYNTHESIZE

    return ResumeAssessment(
        session_id=session.id,
        source_path=session.source_path,
        needs_relocation=not session.source_path.is_file(),
        completed_chunks=progress.completed_chunks,
        total_chunks=progress.total_chunks,
        next_step=next_step,
        existing_files=existing,
        missing_files=missing,
    )


def relocation_matches(session: Session, candidate: Path) -> bool:
    """Return whether `candidate` is the same document moved elsewhere."""

    return (
        candidate.is_file()
        and candidate.name == session.source_name
        and candidate.stat().st_size == session.source_size
    )


def require_relocation_match(session: Session, candidate: Path) -> Path:
    """Return the resolved candidate or raise when it does not match the session."""

    resolved = candidate.expanduser().resolve()
    if not resolved.is_file():
        raise ResourceError(
            stage="resume",
            detail=f"Relocated file not found: {resolved}",
            hint="Pass the path of the moved source document.",
        )
    if not relocation_matches(session, resolved):
        raise ResourceError(
            stage="resume",
            detail=(
                f"`{resolved.name}` ({resolved.stat().st_size} bytes) does not match the "
                f"session source `{session.source_name}` ({session.source_size} bytes)."
            ),
            hint="Relocation requires the same file name and size.",
        )
    return resolved


def require_source(session: Session) -> Path:
    """Return the session source path or raise when it has gone missing."""

    if not session.source_path.is_file():
        raise ResourceError(
            stage="resume",
            detail=f"Source file no longer exists: {session.source_path}",
            hint=(
                f"Run `audiobookmaker resume {session.id} --relocate <new-path>` "
                "if the file was moved."
            ),
        )
    return session.source_path


def check_chunk_count(session: Session, recomputed: int) -> None:
    """Refuse to resume when the source no longer yields the stored chunk count."""

    expected = session.progress.total_chunks
    if recomputed != expected:
        raise ResumeError(
            stage="resume",
            detail=(
                f"Source now splits into {recomputed} chunks but session `{session.id}` "
                f"was started with {expected}."
            ),
            hint="The source changed since conversion started; start a new conversion.",
        )


def require_chunk_files(assessment: ResumeAssessment) -> None:
    """Refuse to resume when previously produced chunk files are missing."""

    if assessment.missing_files:
        names = ", ".join(path.name for path in assessment.missing_files[:5])
        raise ResumeError(
            stage="resume",
            detail=(
                f"{len(assessment.missing_files)} previously produced chunk file(s) are "
                f"missing for session `{assessment.session_id}`: {names}"
            ),
            hint="Restore the output directory or start a new conversion.",
        )


def require_unchanged_source(session: Session, source: Path) -> None:
    """Refuse to resume when the source differs from the session snapshot.

    Size and modification time are compared with the values recorded when the
    session was created or last relocated.
    """

    size = source.stat().st_size
    modified_at = source_modified_at(source)
    if size != session.source_size or modified_at != session.source_modified_at:
        raise ResumeError(
            stage="resume",
            detail=(
                f"Source `{session.source_name}` changed since session `{session.id}` "
                f"started (now {size} bytes, modified {modified_at}; "
                f"recorded {session.source_size} bytes, modified {session.source_modified_at})."
            ),
            hint=(
                "Start a new conversion, or pass the unchanged document with "
                f"`audiobookmaker resume {session.id} --relocate <path>`."
            ),
        )
