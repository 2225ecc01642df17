"""Top-level package for Audiobook Maker.

This package converts plain-text and text-based PDF documents into
synthesized speech, chunk by chunk, with durable progress so interrupted
conversions resume exactly. The main orchestration entry point is
`ConversionOrchestrator`.
"""

from .pipeline.orchestrator import ConversionOrchestrator

__all__ = ["ConversionOrchestrator", "__version__"]

__version__ = "0.1.0"
