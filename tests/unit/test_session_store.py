"""Unit tests for the JSON-document session store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import json
import os
from pathlib import Path

import pytest

from audiobookmaker.errors import ResourceError, SessionNotFoundError, SessionUpdateError
from audiobookmaker.io.session_store import SessionStore, compute_session_id
from audiobookmaker.models.datatypes import ConversionOptions


class SteppingClock:
    """Clock returning strictly increasing UTC times, one second apart."""

    def __init__(self) -> None:
        self._current = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self._current += timedelta(seconds=1)
        return self._current


def _options(tmp_path: Path, layout: str = "single") -> ConversionOptions:
    return ConversionOptions(
        provider="openai",
        voice="alloy",
        model="tts-1",
        output_layout=layout,
        output_directory=tmp_path / "out",
    )


def _source(tmp_path: Path, name: str = "book.txt", content: str = "Some text.") -> Path:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def store(tmp_path: Path) -> SessionStore:
    return SessionStore(tmp_path / "config" / "progress", clock=SteppingClock())


def test_session_id_depends_on_path_and_modification_time(tmp_path: Path) -> None:
    """Same file and mtime give the same id; a new mtime gives a new id."""

    source = _source(tmp_path)
    first = compute_session_id(source)

    assert len(first) == 12
    assert compute_session_id(source) == first

    stat = source.stat()
    os.utime(source, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))
    assert compute_session_id(source) != first


def test_create_persists_session_document(store: SessionStore, tmp_path: Path) -> None:
    source = _source(tmp_path)

    session = store.create(source, _options(tmp_path))

    assert session.status == "created"
    assert session.source_name == "book.txt"
    assert session.source_size == len("Some text.")
    payload = json.loads(store.sessions_file.read_text(encoding="utf-8"))
    assert list(payload) == [session.id]
    assert payload[session.id]["options"]["voice"] == "alloy"
    assert store.get(session.id) == session
    assert not store.sessions_file.with_name("sessions.json.tmp").exists()


def test_create_missing_source_raises_resource_error(store: SessionStore, tmp_path: Path) -> None:
    with pytest.raises(ResourceError):
        store.create(tmp_path / "missing.txt", _options(tmp_path))


def test_update_tracks_chunk_progress_and_logs(store: SessionStore, tmp_path: Path) -> None:
    """Chunk updates advance counters, append files, and round the percentage."""

    session = store.create(_source(tmp_path), _options(tmp_path))
    store.update(session.id, total_chunks=3, status="processing")

    first = store.update(session.id, current_chunk=1, file_path=tmp_path / "chunk_001.mp3")
    second = store.update(session.id, current_chunk=2, file_path=tmp_path / "chunk_002.mp3")

    assert first.progress.percentage == 33
    assert second.progress.completed_chunks == 2
    assert second.progress.percentage == 67
    assert [item.chunk_number for item in second.progress.processed_files] == [1, 2]
    assert second.updated_at > first.updated_at


def test_update_rejects_out_of_order_chunks(store: SessionStore, tmp_path: Path) -> None:
    session = store.create(_source(tmp_path), _options(tmp_path))
    store.update(session.id, total_chunks=3)
    store.update(session.id, current_chunk=1, file_path=tmp_path / "chunk_001.mp3")

    with pytest.raises(SessionUpdateError):
        store.update(session.id, current_chunk=3, file_path=tmp_path / "chunk_003.mp3")
    with pytest.raises(SessionUpdateError):
        store.update(session.id, current_chunk=0)
    with pytest.raises(SessionUpdateError):
        store.update(session.id, current_chunk=1, file_path=tmp_path / "chunk_001.mp3")
    with pytest.raises(SessionUpdateError):
        store.update(session.id, total_chunks=0)

    assert store.require(session.id).progress.completed_chunks == 1


def test_update_rejects_premature_completion(store: SessionStore, tmp_path: Path) -> None:
    session = store.create(_source(tmp_path), _options(tmp_path))
    store.update(session.id, total_chunks=1)

    with pytest.raises(SessionUpdateError):
        store.update(session.id, status="completed")

    store.update(session.id, current_chunk=1, file_path=tmp_path / "chunk_001.mp3")
    with pytest.raises(SessionUpdateError):
        store.update(session.id, status="completed")

    done = store.update(
        session.id, status="completed", final_output_path=tmp_path / "book_audiobook.mp3"
    )
    assert done.status == "completed"


def test_update_records_errors_with_chunk_numbers(store: SessionStore, tmp_path: Path) -> None:
    session = store.create(_source(tmp_path), _options(tmp_path))
    store.update(session.id, total_chunks=3)

    failed = store.update(session.id, error="Rate limit exceeded", error_chunk=1, status="failed")

    assert failed.status == "failed"
    assert failed.progress.last_error is not None
    assert failed.progress.last_error.chunk_number == 1
    assert failed.progress.last_error.error == "Rate limit exceeded"


def test_update_unknown_session_raises(store: SessionStore) -> None:
    with pytest.raises(SessionNotFoundError):
        store.update("000000000000", status="failed")
    with pytest.raises(SessionNotFoundError):
        store.require("000000000000")
    assert store.get("000000000000") is None


def test_list_sorts_by_most_recent_update(store: SessionStore, tmp_path: Path) -> None:
    older = store.create(_source(tmp_path, "a.txt"), _options(tmp_path))
    newer = store.create(_source(tmp_path, "b.txt"), _options(tmp_path))
    store.update(older.id, status="processing")

    assert [session.id for session in store.list()] == [older.id, newer.id]
    assert [session.id for session in store.list(limit=1)] == [older.id]


def test_find_by_path_and_resumable(store: SessionStore, tmp_path: Path) -> None:
    source = _source(tmp_path)
    session = store.create(source, _options(tmp_path))
    store.update(session.id, total_chunks=2)

    assert store.find_by_path(source) is not None
    assert store.resumable() == []

    store.update(session.id, current_chunk=1, file_path=tmp_path / "chunk_001.mp3")
    assert [item.id for item in store.resumable()] == [session.id]


def test_delete_removes_record_and_session_directories(
    store: SessionStore, tmp_path: Path
) -> None:
    session = store.create(_source(tmp_path), _options(tmp_path))
    output_dir = tmp_path / "out" / f"book_{session.id}"
    output_dir.mkdir(parents=True)
    (output_dir / "chunk_001.mp3").write_bytes(b"audio")
    workspace = store.progress_dir / session.id
    workspace.mkdir(parents=True)
    store.update(session.id, output_dir=output_dir)

    assert store.delete(session.id) is True

    assert store.get(session.id) is None
    assert not output_dir.exists()
    assert not workspace.exists()
    assert store.delete(session.id) is False


def test_delete_keeps_outputs_on_request(store: SessionStore, tmp_path: Path) -> None:
    session = store.create(_source(tmp_path), _options(tmp_path))
    output_dir = tmp_path / "out" / f"book_{session.id}"
    output_dir.mkdir(parents=True)
    store.update(session.id, output_dir=output_dir)

    store.delete(session.id, remove_outputs=False)

    assert output_dir.exists()


def test_clear_and_stats(store: SessionStore, tmp_path: Path) -> None:
    """Stats classify completed, in-progress, and failed sessions."""

    done = store.create(_source(tmp_path, "done.txt"), _options(tmp_path, "separate"))
    store.update(done.id, total_chunks=1)
    store.update(done.id, current_chunk=1, file_path=tmp_path / "d1.mp3")
    store.update(done.id, status="completed")

    partial = store.create(_source(tmp_path, "partial.txt"), _options(tmp_path))
    store.update(partial.id, total_chunks=3)
    store.update(partial.id, current_chunk=1, file_path=tmp_path / "p1.mp3")
    store.update(partial.id, error="boom", error_chunk=2, status="failed")

    store.create(_source(tmp_path, "fresh.txt"), _options(tmp_path))

    stats = store.stats()
    assert stats.total == 3
    assert stats.completed == 1
    assert stats.in_progress == 1
    assert stats.failed == 1
    assert stats.total_processed_chunks == 2

    assert store.clear() == 3
    assert store.list() == []


def test_corrupt_document_raises_resource_error(store: SessionStore) -> None:
    store.progress_dir.mkdir(parents=True)
    store.sessions_file.write_text("{not json", encoding="utf-8")

    with pytest.raises(ResourceError):
        store.list()
