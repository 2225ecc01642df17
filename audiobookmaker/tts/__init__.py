"""Speech backends and voice preview helpers."""

from .backend import PreviewBatch, SpeechBackend
from .openai_backend import OpenAISpeechBackend, is_valid_api_key
from .thorsten_backend import ThorstenSpeechBackend

__all__ = [
    "OpenAISpeechBackend",
    "PreviewBatch",
    "SpeechBackend",
    "ThorstenSpeechBackend",
    "is_valid_api_key",
]
