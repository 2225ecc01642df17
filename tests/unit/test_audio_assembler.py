from __future__ import annotations

from pathlib import Path
import subprocess

import pytest

from audiobookmaker.audio.assembler import AudioAssembler
from audiobookmaker.errors import AssemblyError


def _chunks(tmp_path: Path, count: int) -> list[Path]:
    paths = []
    for index in range(1, count + 1):
        path = tmp_path / f"chunk_{index:03d}.mp3"
        path.write_bytes(f"chunk-{index}".encode("utf-8"))
        paths.append(path)
    return paths


def test_concatenate_uses_concat_demuxer_with_stream_copy(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    """ffmpeg should receive a concat list in chunk order and copy streams as-is."""

    captured: dict[str, object] = {}

    def _fake_run(self: AudioAssembler, command: list[str]) -> None:
        captured["command"] = command
        list_path = Path(command[command.index("-i") + 1])
        captured["list"] = list_path.read_text(encoding="utf-8")
        Path(command[-2]).write_bytes(b"combined")

    monkeypatch.setattr(AudioAssembler, "_run_ffmpeg", _fake_run)
    chunks = _chunks(tmp_path, 3)
    output = tmp_path / "book_audiobook.mp3"

    result = AudioAssembler().concatenate(chunks, output)

    command = captured["command"]
    assert result == output
    assert command[command.index("-f") + 1] == "concat"
    assert command[command.index("-c") + 1] == "copy"
    assert captured["list"].splitlines() == [
        f"file '{path.resolve()}'" for path in chunks
    ]
    assert not output.with_suffix(".mp3.concat.txt").exists()


def test_concatenate_escapes_single_quotes_in_paths(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    captured: dict[str, str] = {}

    def _fake_run(self: AudioAssembler, command: list[str]) -> None:
        captured["list"] = Path(command[command.index("-i") + 1]).read_text(encoding="utf-8")
        Path(command[-2]).write_bytes(b"combined")

    monkeypatch.setattr(AudioAssembler, "_run_ffmpeg", _fake_run)
    quoted_dir = tmp_path / "Rick's Book"
    quoted_dir.mkdir()

    AudioAssembler().concatenate(_chunks(quoted_dir, 1), tmp_path / "out.mp3")

    assert "Rick'\\''s Book" in captured["list"]


def test_missing_ffmpeg_maps_to_assembly_error(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    def _missing(self: AudioAssembler, command: list[str]) -> None:
        raise FileNotFoundError(command[0])

    monkeypatch.setattr(AudioAssembler, "_run_ffmpeg", _missing)
    output = tmp_path / "book_audiobook.mp3"

    with pytest.raises(AssemblyError) as exc_info:
        AudioAssembler().concatenate(_chunks(tmp_path, 2), output)

    assert exc_info.value.failure_kind == "muxer_missing"
    assert exc_info.value.stage == "assemble"
    assert not output.with_suffix(".mp3.concat.txt").exists()


def test_ffmpeg_failure_reports_stderr(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def _failing(self: AudioAssembler, command: list[str]) -> None:
        raise subprocess.CalledProcessError(1, command, stderr="Invalid data found\n")

    monkeypatch.setattr(AudioAssembler, "_run_ffmpeg", _failing)

    with pytest.raises(AssemblyError, match="Invalid data found") as exc_info:
        AudioAssembler().concatenate(_chunks(tmp_path, 2), tmp_path / "out.mp3")

    assert exc_info.value.failure_kind == "muxer_failed"


def test_missing_or_empty_input_is_rejected_before_ffmpeg(tmp_path: Path) -> None:
    chunks = _chunks(tmp_path, 2)
    chunks[1].write_bytes(b"")

    with pytest.raises(AssemblyError) as exc_info:
        AudioAssembler().concatenate(chunks, tmp_path / "out.mp3")
    assert exc_info.value.failure_kind == "missing_input"

    with pytest.raises(AssemblyError):
        AudioAssembler().concatenate([], tmp_path / "out.mp3")


def test_cleanup_segments_counts_removed_files(tmp_path: Path) -> None:
    chunks = _chunks(tmp_path, 3)
    chunks[0].unlink()

    assert AudioAssembler().cleanup_segments(chunks) == 2
    assert not any(path.exists() for path in chunks)
