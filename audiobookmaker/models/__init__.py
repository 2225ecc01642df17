"""Typed records shared across conversion modules."""

from .datatypes import (
    ChunkError,
    ChunkProgress,
    ConversionOptions,
    DocumentAnalysis,
    ExtractedDocument,
    ProcessedFile,
    Session,
    SessionProgress,
    SessionStats,
    SynthesisOptions,
    TextChunk,
    VoiceDescriptor,
)

__all__ = [
    "ChunkError",
    "ChunkProgress",
    "ConversionOptions",
    "DocumentAnalysis",
    "ExtractedDocument",
    "ProcessedFile",
    "Session",
    "SessionProgress",
    "SessionStats",
    "SynthesisOptions",
    "TextChunk",
    "VoiceDescriptor",
]
