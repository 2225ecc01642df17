"""Speech backend base class.

Responsibilities:
- Define the capability surface shared by every speech provider.
- Validate synthesis options before any network or subprocess work.
- Drive sequential chunk synthesis as a progress stream.
- Generate and cache voice previews with bounded parallelism.

Key types:
- `SpeechBackend`: provider base class; subclasses implement `_render`.
- `PreviewBatch`: result of a multi-voice preview run.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
import time
from typing import Callable, Iterator, Sequence

from ..audio.assembler import AudioAssembler
from ..errors import BackendError, PipelineStageError, ValidationError
from ..models.datatypes import ChunkProgress, SynthesisOptions, TextChunk, VoiceDescriptor
from .preview_texts import detect_voice_language, get_preview_text, preview_cache_filename

PREVIEW_MAX_WORKERS = 3


@dataclass(frozen=True, slots=True)
class PreviewBatch:
    """Preview files by voice id, plus failure messages by voice id."""

    previews: dict[str, Path] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)


class SpeechBackend:
    """Base class for speech providers.

    Subclasses set the class attributes and implement `list_voices`,
    `is_available`, and `_render`.
    """

    provider_id: str = ""
    audio_extension: str = "mp3"
    quality_tiers: tuple[str, ...] = ()
    speed_range: tuple[float, float] = (0.25, 4.0)
    chunk_delay_seconds: float = 0.0

    def __init__(
        self,
        assembler: AudioAssembler | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.assembler = assembler or AudioAssembler()
        self._sleep = sleep

    @property
    def default_quality_tier(self) -> str | None:
        return self.quality_tiers[0] if self.quality_tiers else None

    def list_voices(self) -> list[VoiceDescriptor]:
        """Return voices offered by this provider."""

        raise NotImplementedError

    def is_available(self) -> bool:
        """Return whether the provider can synthesize right now."""

        raise NotImplementedError

    def _render(self, text: str, options: SynthesisOptions, output_path: Path) -> None:
        """Write synthesized audio for `text` to `output_path`."""

        raise NotImplementedError

    def validate_options(self, options: SynthesisOptions) -> None:
        """Reject unknown voices, out-of-range speeds, and unknown quality tiers."""

        voice_ids = [voice.id for voice in self.list_voices()]
        if options.voice not in voice_ids:
            raise ValidationError(
                stage="configure",
                detail=f"Voice `{options.voice}` is not offered by `{self.provider_id}`.",
                hint=f"Choose one of: {', '.join(voice_ids)}.",
            )
        low, high = self.speed_range
        if not low <= options.speed <= high:
            raise ValidationError(
                stage="configure",
                detail=(
                    f"Speed {options.speed} is outside the `{self.provider_id}` "
                    f"range {low}-{high}."
                ),
                hint=f"Use `--speed` between {low} and {high}.",
            )
        if options.quality_tier is not None and options.quality_tier not in self.quality_tiers:
            raise ValidationError(
                stage="configure",
                detail=(
                    f"Model `{options.quality_tier}` is not offered by `{self.provider_id}`."
                ),
                hint=f"Choose one of: {', '.join(self.quality_tiers)}.",
            )

    def synthesize(self, text: str, options: SynthesisOptions, output_path: Path) -> Path:
        """Synthesize `text` into `output_path` and return the written path."""

        self.validate_options(options)
        if not text.strip():
            raise ValidationError(
                stage="synthesize",
                detail="Cannot synthesize empty text.",
            )
        output_path.parent.mkdir(parents=True, exist_ok=True)
        self._render(text, options, output_path)
        return output_path

    def chunk_path(self, chunk: TextChunk, output_dir: Path) -> Path:
        """Return the deterministic output path for one chunk."""

        return output_dir / f"{chunk.output_stem()}.{self.audio_extension}"

    def iter_chunks(
        self,
        chunks: Sequence[TextChunk],
        options: SynthesisOptions,
        output_dir: Path,
        total: int | None = None,
    ) -> Iterator[ChunkProgress]:
        """Synthesize chunks in order, yielding one event per finished chunk.

        `total` defaults to the index of the last chunk given. The first failure
        raises `BackendError` carrying the failing chunk index and ends the stream.
        """

        self.validate_options(options)
        if not chunks:
            return
        last_index = total if total is not None else chunks[-1].index
        for position, chunk in enumerate(chunks):
            if position > 0 and self.chunk_delay_seconds > 0:
                self._sleep(self.chunk_delay_seconds)
            path = self.chunk_path(chunk, output_dir)
            try:
                self.synthesize(chunk.text, options, path)
            except BackendError as exc:
                raise BackendError(
                    detail=f"Chunk {chunk.index} failed: {exc.detail}",
                    hint=exc.hint,
                    failure_kind=exc.failure_kind,
                    chunk_index=chunk.index,
                ) from exc
            except OSError as exc:
                raise BackendError(
                    detail=f"Chunk {chunk.index} could not be written: {exc}",
                    hint="Check free disk space and output directory permissions.",
                    failure_kind="io",
                    chunk_index=chunk.index,
                ) from exc
            yield ChunkProgress(current=chunk.index, total=last_index, file_path=path)

    def process_chunks(
        self,
        chunks: Sequence[TextChunk],
        options: SynthesisOptions,
        output_dir: Path,
        on_progress: Callable[[ChunkProgress], None] | None = None,
        total: int | None = None,
    ) -> list[Path]:
        """Synthesize all chunks and return their paths, reporting each completion."""

        paths: list[Path] = []
        for event in self.iter_chunks(chunks, options, output_dir, total=total):
            paths.append(event.file_path)
            if on_progress is not None:
                on_progress(event)
        return paths

    def concatenate(self, ordered_paths: Sequence[Path], output_path: Path) -> Path:
        """Combine chunk files into one artifact."""

        return self.assembler.concatenate(ordered_paths, output_path)

    def voice_language(self, voice: str) -> str:
        """Return the language of `voice`, from the voice list or its identifier."""

        for descriptor in self.list_voices():
            if descriptor.id == voice and descriptor.language:
                return descriptor.language
        return detect_voice_language(voice)

    def preview_voice(self, voice: str, cache_dir: Path, speed: float = 1.0) -> Path:
        """Return a cached preview for `voice`, synthesizing it when absent."""

        language = self.voice_language(voice)
        path = cache_dir / preview_cache_filename(
            self.provider_id, voice, language, self.audio_extension
        )
        if path.is_file() and path.stat().st_size > 0:
            return path
        options = SynthesisOptions(
            voice=voice, speed=speed, quality_tier=self.default_quality_tier
        )
        return self.synthesize(get_preview_text(language), options, path)

    def preview_voices(
        self,
        cache_dir: Path,
        voices: Sequence[str] | None = None,
        max_workers: int = PREVIEW_MAX_WORKERS,
    ) -> PreviewBatch:
        """Generate previews for several voices, at most `max_workers` at a time."""

        selected = list(voices) if voices is not None else [v.id for v in self.list_voices()]
        batch = PreviewBatch()
        workers = max(1, min(max_workers, PREVIEW_MAX_WORKERS))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                voice: executor.submit(self.preview_voice, voice, cache_dir)
                for voice in selected
            }
            for voice, future in futures.items():
                try:
                    batch.previews[voice] = future.result()
                except (PipelineStageError, OSError) as exc:
                    batch.errors[voice] = getattr(exc, "detail", None) or str(exc)
        return batch
