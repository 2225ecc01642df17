"""Text segmentation for chunk-level synthesis."""

from .segmenter import (
    DEFAULT_MAX_CHUNK_SIZE,
    MAX_CHUNK_SIZE_CEILING,
    MIN_CHUNK_SIZE_FLOOR,
    TextSegmenter,
    segment_text,
)

__all__ = [
    "DEFAULT_MAX_CHUNK_SIZE",
    "MAX_CHUNK_SIZE_CEILING",
    "MIN_CHUNK_SIZE_FLOOR",
    "TextSegmenter",
    "segment_text",
]
