"""Integration-test fixtures for deterministic provider and muxer behavior."""

from __future__ import annotations

from pathlib import Path

import pytest

from audiobookmaker.audio.assembler import AudioAssembler
from audiobookmaker.tts.openai_backend import OpenAISpeechBackend
from audiobookmaker.tts.openai_client import OpenAISpeechClient


def _read_concat_list(list_path: Path) -> list[Path]:
    """Parse `file '<path>'` lines written for the ffmpeg concat demuxer."""

    paths = []
    for line in list_path.read_text(encoding="utf-8").splitlines():
        quoted = line.removeprefix("file ").strip()
        paths.append(Path(quoted[1:-1].replace("'\\''", "'")))
    return paths


@pytest.fixture(autouse=True)
def _mock_ffmpeg(monkeypatch: pytest.MonkeyPatch) -> None:
    """Replace ffmpeg with byte concatenation of the listed inputs."""

    def _fake_run_ffmpeg(self: AudioAssembler, command: list[str]) -> None:
        _ = self
        list_path = Path(command[command.index("-i") + 1])
        output_path = Path(command[-2])
        output_path.write_bytes(
            b"".join(path.read_bytes() for path in _read_concat_list(list_path))
        )

    monkeypatch.setattr(AudioAssembler, "_run_ffmpeg", _fake_run_ffmpeg)


@pytest.fixture(autouse=True)
def _mock_openai_speech_calls(monkeypatch: pytest.MonkeyPatch) -> None:
    """Mock OpenAI speech calls in integration tests to avoid network/key requirements."""

    def _mock_synthesize_speech(self: OpenAISpeechClient, **kwargs: object) -> bytes:
        """Return a deterministic placeholder payload tagged with voice and text length."""

        _ = self
        return f"[{kwargs['voice']}:{len(str(kwargs['text']))}]".encode("utf-8")

    monkeypatch.setattr(OpenAISpeechClient, "synthesize_speech", _mock_synthesize_speech)
    monkeypatch.setattr(OpenAISpeechBackend, "chunk_delay_seconds", 0.0)
