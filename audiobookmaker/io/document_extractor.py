"""Source document text extraction.

Responsibilities:
- Validate source files by extension and size before reading them.
- Extract plain text from `.txt` and text-based `.pdf` files.
- Report character, word, and page statistics for analysis output.
"""

from __future__ import annotations

from pathlib import Path

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from ..errors import ResourceError, ValidationError
from ..models.datatypes import ExtractedDocument

SUPPORTED_EXTENSIONS = (".txt", ".pdf")
MAX_PDF_BYTES = 50 * 1024 * 1024
MAX_TEXT_CHARACTERS = 1_000_000


class UnsupportedDocumentError(ValidationError):
    """Raised when a source file type or size is not supported."""


class EmptyDocumentError(ValidationError):
    """Raised when a source file contains no extractable text."""


def clean_source_path(raw: str) -> Path:
    """Normalize a path typed or dragged into a terminal.

    Strips surrounding quotes and unescapes backslash-escaped spaces.
    """

    text = raw.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in {"'", '"'}:
        text = text[1:-1]
    return Path(text.replace("\\ ", " ")).expanduser()


def count_words(text: str) -> int:
    """Return the number of whitespace-separated words."""

    return len(text.split())


class DocumentExtractor:
    """Extractor for plain-text and text-based PDF sources."""

    def extract(self, path: Path) -> ExtractedDocument:
        """Validate `path` and return its text with basic statistics."""

        suffix = self.validate(path)
        if suffix == ".pdf":
            text, page_count = self._read_pdf(path)
        else:
            text, page_count = self._read_text(path), None

        if not text.strip():
            raise EmptyDocumentError(
                stage="extract",
                detail=f"No extractable text found in {path.name}.",
                hint=(
                    "Scanned PDFs need OCR first; only text-based PDFs are supported."
                    if suffix == ".pdf"
                    else "Add text content to the file and try again."
                ),
            )
        return ExtractedDocument(
            text=text,
            character_count=len(text),
            word_count=count_words(text),
            type=suffix.lstrip("."),
            page_count=page_count,
        )

    def validate(self, path: Path) -> str:
        """Check existence, extension, and size limits; return the lowered suffix."""

        if not path.is_file():
            raise ResourceError(
                stage="extract",
                detail=f"Source file not found: {path}",
                hint="Check the path, or relocate the session if the file was moved.",
            )
        suffix = path.suffix.lower()
        if suffix not in SUPPORTED_EXTENSIONS:
            raise UnsupportedDocumentError(
                stage="extract",
                detail=f"Unsupported file type `{suffix or path.name}`.",
                hint=f"Supported formats: {', '.join(SUPPORTED_EXTENSIONS)}.",
            )
        if suffix == ".pdf" and path.stat().st_size > MAX_PDF_BYTES:
            raise UnsupportedDocumentError(
                stage="extract",
                detail=f"PDF `{path.name}` exceeds the 50 MB limit.",
                hint="Split the PDF into smaller parts and convert them separately.",
            )
        return suffix

    def _read_text(self, path: Path) -> str:
        text = path.read_text(encoding="utf-8")
        if len(text) > MAX_TEXT_CHARACTERS:
            raise UnsupportedDocumentError(
                stage="extract",
                detail=(
                    f"Text file `{path.name}` has {len(text):,} characters; "
                    f"the limit is {MAX_TEXT_CHARACTERS:,}."
                ),
                hint="Split the text into smaller files and convert them separately.",
            )
        return text

    def _read_pdf(self, path: Path) -> tuple[str, int]:
        """Extract page text with `pypdf`, joined by newlines."""

        try:
            reader = PdfReader(str(path))
            pages = [
                (page.extract_text() or "").replace("\f", "\n").strip()
                for page in reader.pages
            ]
        except PdfReadError as exc:
            raise UnsupportedDocumentError(
                stage="extract",
                detail=f"Could not read PDF `{path.name}`: {exc}",
                hint="Check that the file is a valid, unencrypted PDF.",
            ) from exc
        return "\n".join(pages).strip(), len(pages)
