"""Audio assembly components."""

from .assembler import AudioAssembler

__all__ = ["AudioAssembler"]
