"""OpenAI cloud speech backend.

Responsibilities:
- Expose OpenAI voices, models, and speed limits as backend capabilities.
- Synthesize chunks to MP3 through `OpenAISpeechClient`.
- Map provider failures to `BackendError` with actionable hints.
"""

from __future__ import annotations

from pathlib import Path
import re
import time
from typing import Callable

from ..audio.assembler import AudioAssembler
from ..errors import BackendError
from ..models.datatypes import SynthesisOptions, VoiceDescriptor
from .backend import SpeechBackend
from .openai_client import OpenAIProviderError, OpenAISpeechClient

_API_KEY_PATTERN = re.compile(r"^sk-[A-Za-z0-9\-_]{32,}$")

OPENAI_VOICES = (
    VoiceDescriptor("alloy", "Alloy", "en", "Neutral, balanced voice"),
    VoiceDescriptor("echo", "Echo", "en", "Clear male voice"),
    VoiceDescriptor("fable", "Fable", "en", "Expressive British voice"),
    VoiceDescriptor("onyx", "Onyx", "en", "Deep male voice"),
    VoiceDescriptor("nova", "Nova", "en", "Bright female voice"),
    VoiceDescriptor("shimmer", "Shimmer", "en", "Soft female voice"),
)

_FAILURE_HINTS = {
    "invalid_api_key": "Check the key with `audiobookmaker credentials` or `OPENAI_API_KEY`.",
    "insufficient_quota": "Check OpenAI billing and quota, then resume the session.",
    "rate_limited": "Wait a moment, then run `audiobookmaker resume <session-id>`.",
    "payload_too_large": "Convert again with a smaller `--chunk-size`.",
    "timeout": "Check network connectivity, then resume the session.",
    "transport": "Check network connectivity, then resume the session.",
}


def is_valid_api_key(api_key: str | None) -> bool:
    """Return whether `api_key` looks like an OpenAI secret key."""

    return bool(api_key) and _API_KEY_PATTERN.match(api_key.strip()) is not None


class OpenAISpeechBackend(SpeechBackend):
    """Speech backend for OpenAI `/audio/speech`."""

    provider_id = "openai"
    audio_extension = "mp3"
    quality_tiers = ("tts-1", "tts-1-hd")
    speed_range = (0.25, 4.0)
    chunk_delay_seconds = 0.5

    def __init__(
        self,
        api_key: str | None,
        client: OpenAISpeechClient | None = None,
        assembler: AudioAssembler | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(assembler=assembler, sleep=sleep)
        self.api_key = api_key.strip() if isinstance(api_key, str) else ""
        self.client = client or OpenAISpeechClient(api_key=self.api_key)

    def list_voices(self) -> list[VoiceDescriptor]:
        return list(OPENAI_VOICES)

    def is_available(self) -> bool:
        return is_valid_api_key(self.api_key)

    def _render(self, text: str, options: SynthesisOptions, output_path: Path) -> None:
        try:
            audio = self.client.synthesize_speech(
                model=options.quality_tier or self.quality_tiers[0],
                voice=options.voice,
                text=text,
                response_format=self.audio_extension,
                speed=options.speed,
            )
        except OpenAIProviderError as exc:
            raise BackendError(
                detail=str(exc),
                hint=_FAILURE_HINTS.get(exc.failure_kind),
                failure_kind=exc.failure_kind,
            ) from exc
        output_path.write_bytes(audio)
