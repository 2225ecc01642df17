"""Input/output components for Audiobook Maker.

This package contains source document extraction and the durable session
store used by the conversion orchestrator.
"""

from .document_extractor import DocumentExtractor, EmptyDocumentError, UnsupportedDocumentError
from .session_store import SessionStore, compute_session_id

__all__ = [
    "DocumentExtractor",
    "EmptyDocumentError",
    "UnsupportedDocumentError",
    "SessionStore",
    "compute_session_id",
]
