"""Core datatypes shared across Audiobook Maker modules.

Responsibilities:
- Represent immutable records exchanged between segmenter, store, backends,
  and the orchestrator.
- Provide explicit JSON payload conversion for the persisted session document.

Key types:
- `Session`, `SessionProgress`, `ProcessedFile`, `ChunkError`: durable
  conversion state.
- `ConversionOptions`, `SynthesisOptions`: settings chosen for a session.
- `TextChunk`, `ChunkProgress`, `ExtractedDocument`, `DocumentAnalysis`,
  `VoiceDescriptor`, `SessionStats`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

STATUS_CREATED = "created"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
SESSION_STATUSES = frozenset(
    {STATUS_CREATED, STATUS_PROCESSING, STATUS_COMPLETED, STATUS_FAILED}
)

LAYOUT_SINGLE = "single"
LAYOUT_SEPARATE = "separate"
LAYOUT_BOTH = "both"
OUTPUT_LAYOUTS = (LAYOUT_SINGLE, LAYOUT_SEPARATE, LAYOUT_BOTH)


def _optional_path(value: object) -> Path | None:
    if value is None or value == "":
        return None
    return Path(str(value))


def _optional_text(value: Path | None) -> str | None:
    return None if value is None else str(value)


@dataclass(frozen=True, slots=True)
class TextChunk:
    """One bounded text segment.

    Attributes:
        index: 1-based position in the document; keys the output filename.
        text: Chunk text content.
    """

    index: int
    text: str

    def output_stem(self) -> str:
        """Return the deterministic output filename stem for this chunk."""

        return f"chunk_{self.index:03d}"


@dataclass(frozen=True, slots=True)
class ExtractedDocument:
    """Text extracted from a source document plus basic statistics."""

    text: str
    character_count: int
    word_count: int
    type: str
    page_count: int | None = None


@dataclass(frozen=True, slots=True)
class VoiceDescriptor:
    """Provider voice listing entry.

    Attributes:
        id: Provider-native voice identifier.
        label: Human-readable label.
        language: Optional short language code (`en`, `de`, ...).
        description: Optional one-line description.
    """

    id: str
    label: str
    language: str | None = None
    description: str | None = None


@dataclass(frozen=True, slots=True)
class SynthesisOptions:
    """Per-call synthesis parameters handed to a speech backend."""

    voice: str
    speed: float = 1.0
    quality_tier: str | None = None


@dataclass(frozen=True, slots=True)
class ChunkProgress:
    """Progress event emitted after one chunk has been written to disk.

    Attributes:
        current: 1-based index of the chunk that just completed.
        total: Index of the last chunk in the document.
        file_path: Output audio file for the completed chunk.
    """

    current: int
    total: int
    file_path: Path

    @property
    def percentage(self) -> int:
        """Return rounded completion percentage."""

        return percentage_of(self.current, self.total)


def percentage_of(completed: int, total: int) -> int:
    """Return `completed / total` as a half-up rounded integer percentage."""

    if total <= 0:
        return 0
    return int(completed * 100 / total + 0.5)


@dataclass(frozen=True, slots=True)
class ConversionOptions:
    """Settings chosen for one session; immutable for the session lifetime.

    Attributes:
        provider: Speech backend identifier (`openai`, `thorsten`).
        voice: Provider voice identifier.
        speed: Speaking rate multiplier.
        model: Provider model / quality tier.
        output_layout: `single`, `separate`, or `both`.
        output_directory: Base directory receiving per-session output folders.
        max_chunk_size: Segmenter bound used to derive chunks.
    """

    provider: str
    voice: str
    speed: float = 1.0
    model: str | None = None
    output_layout: str = LAYOUT_SINGLE
    output_directory: Path = Path("audiobook_output")
    max_chunk_size: int = 4000

    def synthesis_options(self) -> SynthesisOptions:
        """Return backend call parameters derived from these settings."""

        return SynthesisOptions(voice=self.voice, speed=self.speed, quality_tier=self.model)

    def requires_assembly(self) -> bool:
        """Return whether this layout produces a combined artifact."""

        return self.output_layout in {LAYOUT_SINGLE, LAYOUT_BOTH}

    def to_payload(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "voice": self.voice,
            "speed": self.speed,
            "model": self.model,
            "output_layout": self.output_layout,
            "output_directory": str(self.output_directory),
            "max_chunk_size": self.max_chunk_size,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ConversionOptions:
        return cls(
            provider=str(payload["provider"]),
            voice=str(payload["voice"]),
            speed=float(payload.get("speed", 1.0)),
            model=payload.get("model"),
            output_layout=str(payload.get("output_layout", LAYOUT_SINGLE)),
            output_directory=Path(str(payload.get("output_directory", "audiobook_output"))),
            max_chunk_size=int(payload.get("max_chunk_size", 4000)),
        )


@dataclass(frozen=True, slots=True)
class ProcessedFile:
    """Log entry for one completed chunk output."""

    chunk_number: int
    file_path: Path
    completed_at: str


@dataclass(frozen=True, slots=True)
class ChunkError:
    """Log entry for one failed chunk or assembly attempt."""

    chunk_number: int | None
    error: str
    timestamp: str


@dataclass(frozen=True, slots=True)
class SessionProgress:
    """Chunk-level progress counters and append-only logs."""

    total_chunks: int = 0
    completed_chunks: int = 0
    current_chunk: int = 0
    percentage: int = 0
    processed_files: tuple[ProcessedFile, ...] = field(default_factory=tuple)
    errors: tuple[ChunkError, ...] = field(default_factory=tuple)

    def ordered_files(self) -> list[Path]:
        """Return processed chunk files sorted by chunk number."""

        return [
            item.file_path
            for item in sorted(self.processed_files, key=lambda entry: entry.chunk_number)
        ]

    @property
    def last_error(self) -> ChunkError | None:
        return self.errors[-1] if self.errors else None


@dataclass(frozen=True, slots=True)
class Session:
    """Durable record of one document's conversion attempt."""

    id: str
    source_path: Path
    source_name: str
    source_size: int
    source_modified_at: str
    options: ConversionOptions
    status: str
    progress: SessionProgress
    created_at: str
    updated_at: str
    output_dir: Path | None = None
    final_output_path: Path | None = None

    @property
    def is_resumable(self) -> bool:
        """Return whether an offer to resume this session makes sense."""

        return self.status != STATUS_COMPLETED and self.progress.completed_chunks > 0

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the JSON shape stored in the session document."""

        progress = self.progress
        return {
            "id": self.id,
            "source_path": str(self.source_path),
            "source_name": self.source_name,
            "source_size": self.source_size,
            "source_modified_at": self.source_modified_at,
            "options": self.options.to_payload(),
            "status": self.status,
            "progress": {
                "total_chunks": progress.total_chunks,
                "completed_chunks": progress.completed_chunks,
                "current_chunk": progress.current_chunk,
                "percentage": progress.percentage,
                "processed_files": [
                    {
                        "chunk_number": item.chunk_number,
                        "file_path": str(item.file_path),
                        "completed_at": item.completed_at,
                    }
                    for item in progress.processed_files
                ],
                "errors": [
                    {
                        "chunk_number": item.chunk_number,
                        "error": item.error,
                        "timestamp": item.timestamp,
                    }
                    for item in progress.errors
                ],
            },
            "output_dir": _optional_text(self.output_dir),
            "final_output_path": _optional_text(self.final_output_path),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Session:
        """Build a session from one stored JSON object."""

        progress_payload = payload.get("progress") or {}
        progress = SessionProgress(
            total_chunks=int(progress_payload.get("total_chunks", 0)),
            completed_chunks=int(progress_payload.get("completed_chunks", 0)),
            current_chunk=int(progress_payload.get("current_chunk", 0)),
            percentage=int(progress_payload.get("percentage", 0)),
            processed_files=tuple(
                ProcessedFile(
                    chunk_number=int(item["chunk_number"]),
                    file_path=Path(str(item["file_path"])),
                    completed_at=str(item["completed_at"]),
                )
                for item in progress_payload.get("processed_files", [])
            ),
            errors=tuple(
                ChunkError(
                    chunk_number=(
                        None if item.get("chunk_number") is None else int(item["chunk_number"])
                    ),
                    error=str(item["error"]),
                    timestamp=str(item["timestamp"]),
                )
                for item in progress_payload.get("errors", [])
            ),
        )
        return cls(
            id=str(payload["id"]),
            source_path=Path(str(payload["source_path"])),
            source_name=str(payload["source_name"]),
            source_size=int(payload["source_size"]),
            source_modified_at=str(payload["source_modified_at"]),
            options=ConversionOptions.from_payload(payload["options"]),
            status=str(payload["status"]),
            progress=progress,
            created_at=str(payload["created_at"]),
            updated_at=str(payload["updated_at"]),
            output_dir=_optional_path(payload.get("output_dir")),
            final_output_path=_optional_path(payload.get("final_output_path")),
        )


@dataclass(frozen=True, slots=True)
class SessionStats:
    """Aggregate counters over every stored session."""

    total: int
    completed: int
    in_progress: int
    failed: int
    total_processed_chunks: int


@dataclass(frozen=True, slots=True)
class DocumentAnalysis:
    """Result of the analyze stage for one source file."""

    source_path: Path
    document: ExtractedDocument
    chunks: tuple[TextChunk, ...]
    max_chunk_size: int
    estimated_cost_usd: float
    estimated_seconds: int
    resumable_session: Session | None = None

    @property
    def total_chunks(self) -> int:
        return len(self.chunks)
