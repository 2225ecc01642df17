"""Sentence-greedy text segmentation.

Responsibilities:
- Split document text into ordered chunks no longer than a character budget.
- Stay deterministic so that resume re-derives the exact same chunk list.

Notes:
- Sentence candidates are split on runs of `.`, `!`, `?` and each gets a `.`
  re-appended, so original terminal punctuation is not preserved exactly.
"""

from __future__ import annotations

import re

from ..errors import ValidationError
from ..models.datatypes import TextChunk

DEFAULT_MAX_CHUNK_SIZE = 4000
MIN_CHUNK_SIZE_FLOOR = 1000
MAX_CHUNK_SIZE_CEILING = 10000

_SENTENCE_BOUNDARY = re.compile(r"[.!?]+")


class TextSegmenter:
    """Split text into bounded chunks along sentence, then word, boundaries."""

    def __init__(self, max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE) -> None:
        """Validate and store the per-chunk character budget."""

        self.max_chunk_size = validate_chunk_size(max_chunk_size)

    def segment(self, text: str) -> list[str]:
        """Return ordered non-empty chunks, each at most `max_chunk_size` long."""

        if not isinstance(text, str) or not text.strip():
            raise ValidationError(
                stage="segment",
                detail="Text must be a non-empty string.",
                hint="Check that the source document contains readable text.",
            )

        limit = self.max_chunk_size
        if len(text) <= limit:
            return [text.strip()]

        chunks: list[str] = []
        current = ""
        for candidate in _SENTENCE_BOUNDARY.split(text):
            sentence = candidate.strip()
            if not sentence:
                continue
            sentence += "."

            if len(current) + len(sentence) + 1 <= limit:
                current = f"{current} {sentence}" if current else sentence
                continue

            if current:
                chunks.append(current.strip())
                current = ""
            if len(sentence) <= limit:
                current = sentence
                continue

            packed, current = self._pack_words(sentence)
            chunks.extend(packed)

        if current:
            chunks.append(current.strip())
        chunks = [chunk for chunk in chunks if chunk]
        if not chunks:
            raise ValidationError(
                stage="segment",
                detail="Text contains only sentence punctuation and no speakable words.",
                hint="Check that the source document contains readable text.",
            )
        return chunks

    def to_chunks(self, text: str) -> list[TextChunk]:
        """Return segmented text as 1-based indexed chunk records."""

        return [
            TextChunk(index=index, text=chunk)
            for index, chunk in enumerate(self.segment(text), start=1)
        ]

    def _pack_words(self, sentence: str) -> tuple[list[str], str]:
        """Greedily pack one oversized sentence word by word.

        Returns:
            Closed chunks plus the trailing partial chunk, which stays open so
            following sentences can still be appended to it.
        """

        limit = self.max_chunk_size
        closed: list[str] = []
        current = ""
        for word in sentence.split(" "):
            if not word:
                continue
            for piece in _hard_split(word, limit):
                if len(current) + len(piece) + 1 <= limit:
                    current = f"{current} {piece}" if current else piece
                else:
                    if current:
                        closed.append(current.strip())
                    current = piece
        return closed, current


def _hard_split(word: str, limit: int) -> list[str]:
    """Split a single word longer than `limit` into fixed-size slices."""

    if len(word) <= limit:
        return [word]
    return [word[offset : offset + limit] for offset in range(0, len(word), limit)]


def validate_chunk_size(max_chunk_size: int) -> int:
    """Return `max_chunk_size` when inside the supported range."""

    if (
        isinstance(max_chunk_size, bool)
        or not isinstance(max_chunk_size, int)
        or not MIN_CHUNK_SIZE_FLOOR <= max_chunk_size <= MAX_CHUNK_SIZE_CEILING
    ):
        raise ValidationError(
            stage="config",
            detail=(
                "`max_chunk_size` must be an integer between "
                f"{MIN_CHUNK_SIZE_FLOOR} and {MAX_CHUNK_SIZE_CEILING}."
            ),
            hint="Use `--chunk-size` with a value such as 4000.",
        )
    return max_chunk_size


def segment_text(text: str, max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE) -> list[str]:
    """Segment text with a one-off `TextSegmenter`."""

    return TextSegmenter(max_chunk_size).segment(text)
