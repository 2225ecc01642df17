"""Durable conversion session storage.

Responsibilities:
- Persist every session record in one JSON document under the progress directory.
- Merge progress updates while enforcing chunk-ordering invariants.
- Provide listing, statistics, deletion, and bulk clearing for session history.

Notes:
- Each mutation is a full read-modify-write of the document, written to a
  temporary file and moved into place with `os.replace`.
- Single-process access is assumed; there is no cross-process locking.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
import hashlib
import json
import os
from pathlib import Path
import shutil
from typing import Callable

from ..errors import ResourceError, SessionNotFoundError, SessionUpdateError
from ..models.datatypes import (
    LAYOUT_SEPARATE,
    SESSION_STATUSES,
    STATUS_COMPLETED,
    STATUS_CREATED,
    STATUS_FAILED,
    STATUS_PROCESSING,
    ChunkError,
    ConversionOptions,
    ProcessedFile,
    Session,
    SessionProgress,
    SessionStats,
    percentage_of,
)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _format_timestamp(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds")


def source_modified_at(source_path: Path) -> str:
    """Return the modification time of `source_path` as stored on sessions."""

    return _format_timestamp(
        datetime.fromtimestamp(source_path.stat().st_mtime, tz=timezone.utc)
    )


def compute_session_id(source_path: Path) -> str:
    """Return the session id for a source file at its current modification time.

    The id is the first 12 hex characters of `md5("<resolved path>-<mtime ms>")`,
    so editing the file yields a different session.
    """

    resolved = source_path.expanduser().resolve()
    stat = resolved.stat()
    mtime_ms = stat.st_mtime_ns // 1_000_000
    digest = hashlib.md5(f"{resolved}-{mtime_ms}".encode("utf-8")).hexdigest()
    return digest[:12]


class SessionStore:
    """JSON-document store of conversion sessions keyed by session id."""

    def __init__(self, progress_dir: Path, clock: Clock | None = None) -> None:
        """Initialize the store rooted at `progress_dir`."""

        self.progress_dir = progress_dir
        self.sessions_file = progress_dir / "sessions.json"
        self._clock = clock or _utc_now

    def create(self, source_path: Path, options: ConversionOptions) -> Session:
        """Create (or overwrite) the session for `source_path` and persist it."""

        resolved = source_path.expanduser().resolve()
        if not resolved.is_file():
            raise ResourceError(
                stage="session",
                detail=f"Source file not found: {resolved}",
                hint="Pass an existing `.txt` or `.pdf` file.",
            )
        stat = resolved.stat()
        now = self._timestamp()
        session = Session(
            id=compute_session_id(resolved),
            source_path=resolved,
            source_name=resolved.name,
            source_size=stat.st_size,
            source_modified_at=source_modified_at(resolved),
            options=options,
            status=STATUS_CREATED,
            progress=SessionProgress(),
            created_at=now,
            updated_at=now,
        )
        payload = self._load()
        payload[session.id] = session.to_payload()
        self._save(payload)
        return session

    def get(self, session_id: str) -> Session | None:
        """Return one session, or `None` when the id is unknown."""

        raw = self._load().get(session_id)
        if raw is None:
            return None
        return Session.from_payload(raw)

    def require(self, session_id: str) -> Session:
        """Return one session or raise `SessionNotFoundError`."""

        session = self.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def find_by_path(self, source_path: Path) -> Session | None:
        """Return the session matching the file's current identity, if any."""

        resolved = source_path.expanduser()
        if not resolved.is_file():
            return None
        return self.get(compute_session_id(resolved))

    def update(
        self,
        session_id: str,
        *,
        total_chunks: int | None = None,
        current_chunk: int | None = None,
        file_path: Path | None = None,
        error: str | None = None,
        error_chunk: int | None = None,
        status: str | None = None,
        output_dir: Path | None = None,
        final_output_path: Path | None = None,
        source_path: Path | None = None,
    ) -> Session:
        """Merge a partial update into one session and persist the document.

        Args:
            session_id: Session to update.
            total_chunks: Total chunk count for the derived chunk list.
            current_chunk: Chunk index that just completed; sets
                `completed_chunks` and the rounded percentage.
            file_path: Output file of `current_chunk`, appended to the
                processed-files log.
            error: Error message appended to the error log.
            error_chunk: Chunk number attached to `error`.
            status: New session status.
            output_dir: Session output directory.
            final_output_path: Combined audio artifact path.
            source_path: Replacement source path after relocation; the stored
                modification time is refreshed from the new file.

        Returns:
            The updated session.

        Raises:
            SessionNotFoundError: If the id is unknown.
            SessionUpdateError: If the update would break progress invariants.
        """

        payload = self._load()
        raw = payload.get(session_id)
        if raw is None:
            raise SessionNotFoundError(session_id)
        session = Session.from_payload(raw)
        progress = session.progress

        if total_chunks is not None:
            if total_chunks < 0 or total_chunks < progress.completed_chunks:
                raise SessionUpdateError(
                    stage="session",
                    detail=(
                        f"Session `{session_id}` cannot have {total_chunks} total chunks "
                        f"with {progress.completed_chunks} already completed."
                    ),
                )
            progress = replace(
                progress,
                total_chunks=total_chunks,
                percentage=percentage_of(progress.completed_chunks, total_chunks),
            )

        if file_path is not None and current_chunk is None:
            raise SessionUpdateError(
                stage="session",
                detail="A processed file must be recorded together with its chunk number.",
            )

        if current_chunk is not None:
            progress = self._advance(session_id, progress, current_chunk, file_path)

        if error is not None:
            progress = replace(
                progress,
                errors=progress.errors
                + (
                    ChunkError(
                        chunk_number=error_chunk,
                        error=error,
                        timestamp=self._timestamp(),
                    ),
                ),
            )

        changes: dict[str, object] = {"progress": progress}
        if output_dir is not None:
            changes["output_dir"] = output_dir
        if final_output_path is not None:
            changes["final_output_path"] = final_output_path
        if source_path is not None:
            changes["source_path"] = source_path
            changes["source_modified_at"] = source_modified_at(source_path)
        if status is not None:
            if status not in SESSION_STATUSES:
                raise SessionUpdateError(
                    stage="session",
                    detail=f"Unsupported session status `{status}`.",
                )
            changes["status"] = status

        updated = replace(session, updated_at=self._timestamp(), **changes)
        self._check_completion(updated)
        payload[session_id] = updated.to_payload()
        self._save(payload)
        return updated

    def list(self, sort_by_updated_desc: bool = True, limit: int | None = None) -> list[Session]:
        """Return stored sessions, most recently updated first by default."""

        sessions = [Session.from_payload(raw) for raw in self._load().values()]
        if sort_by_updated_desc:
            sessions.sort(key=lambda item: item.updated_at, reverse=True)
        if limit is not None:
            sessions = sessions[:limit]
        return sessions

    def resumable(self) -> list[Session]:
        """Return sessions that are incomplete but have produced chunk output."""

        return [session for session in self.list() if session.is_resumable]

    def delete(self, session_id: str, remove_outputs: bool = True) -> bool:
        """Delete one session record and its session-scoped directories.

        Returns:
            `True` when a record existed and was removed.
        """

        payload = self._load()
        raw = payload.pop(session_id, None)
        if raw is None:
            return False
        self._save(payload)

        workspace = self.progress_dir / session_id
        if workspace.is_dir():
            shutil.rmtree(workspace)
        if remove_outputs:
            output_dir = Session.from_payload(raw).output_dir
            if (
                output_dir is not None
                and output_dir.name.endswith(f"_{session_id}")
                and output_dir.is_dir()
            ):
                shutil.rmtree(output_dir)
        return True

    def clear(self, remove_outputs: bool = True) -> int:
        """Delete every session and return how many were removed."""

        session_ids = list(self._load().keys())
        removed = 0
        for session_id in session_ids:
            if self.delete(session_id, remove_outputs=remove_outputs):
                removed += 1
        return removed

    def stats(self) -> SessionStats:
        """Aggregate status counters across all stored sessions."""

        sessions = self.list(sort_by_updated_desc=False)
        completed = 0
        in_progress = 0
        failed = 0
        processed = 0
        for session in sessions:
            progress = session.progress
            processed += progress.completed_chunks
            if session.status == STATUS_COMPLETED:
                completed += 1
            elif session.status == STATUS_PROCESSING or progress.completed_chunks > 0:
                in_progress += 1
            if session.status == STATUS_FAILED or progress.errors:
                failed += 1
        return SessionStats(
            total=len(sessions),
            completed=completed,
            in_progress=in_progress,
            failed=failed,
            total_processed_chunks=processed,
        )

    def _advance(
        self,
        session_id: str,
        progress: SessionProgress,
        current_chunk: int,
        file_path: Path | None,
    ) -> SessionProgress:
        """Apply a chunk-completion update to progress counters."""

        completed = progress.completed_chunks
        if current_chunk < completed:
            raise SessionUpdateError(
                stage="session",
                detail=(
                    f"Session `{session_id}` progress cannot move back from chunk "
                    f"{completed} to {current_chunk}."
                ),
            )
        if current_chunk > progress.total_chunks:
            raise SessionUpdateError(
                stage="session",
                detail=(
                    f"Session `{session_id}` chunk {current_chunk} exceeds "
                    f"total of {progress.total_chunks}."
                ),
            )
        if current_chunk == completed and file_path is None:
            return progress
        if current_chunk != completed + 1 or file_path is None:
            raise SessionUpdateError(
                stage="session",
                detail=(
                    f"Session `{session_id}` expects the output of chunk {completed + 1} "
                    f"next, got chunk {current_chunk}."
                ),
            )
        entry = ProcessedFile(
            chunk_number=current_chunk,
            file_path=file_path,
            completed_at=self._timestamp(),
        )
        return replace(
            progress,
            current_chunk=current_chunk,
            completed_chunks=current_chunk,
            percentage=percentage_of(current_chunk, progress.total_chunks),
            processed_files=progress.processed_files + (entry,),
        )

    def _check_completion(self, session: Session) -> None:
        """Reject a `completed` status that the progress does not support."""

        if session.status != STATUS_COMPLETED:
            return
        progress = session.progress
        if progress.completed_chunks != progress.total_chunks:
            raise SessionUpdateError(
                stage="session",
                detail=(
                    f"Session `{session.id}` cannot complete with "
                    f"{progress.completed_chunks}/{progress.total_chunks} chunks."
                ),
            )
        if session.options.output_layout != LAYOUT_SEPARATE and session.final_output_path is None:
            raise SessionUpdateError(
                stage="session",
                detail=f"Session `{session.id}` cannot complete without a combined audio file.",
            )

    def _timestamp(self) -> str:
        return _format_timestamp(self._clock())

    def _load(self) -> dict[str, dict[str, object]]:
        """Read the session document, returning an empty mapping when absent."""

        if not self.sessions_file.exists():
            return {}
        try:
            payload = json.loads(self.sessions_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ResourceError(
                stage="session",
                detail=f"Session store is not valid JSON: {self.sessions_file}",
                hint="Repair the file or move it aside to start a fresh session history.",
            ) from exc
        if not isinstance(payload, dict):
            raise ResourceError(
                stage="session",
                detail=f"Session store root must be a JSON object: {self.sessions_file}",
                hint="Repair the file or move it aside to start a fresh session history.",
            )
        return payload

    def _save(self, payload: dict[str, dict[str, object]]) -> None:
        """Write the document to a temp file and atomically move it into place."""

        self.progress_dir.mkdir(parents=True, exist_ok=True)
        temp_path = self.sessions_file.with_name(f"{self.sessions_file.name}.tmp")
        temp_path.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True),
            encoding="utf-8",
        )
        os.replace(temp_path, self.sessions_file)


