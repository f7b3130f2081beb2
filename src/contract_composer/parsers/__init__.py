"""Text extraction from uploaded contract documents."""

from .document_reader import SUPPORTED_FORMATS, read_docx, read_pdf, read_text
from .exceptions import DocumentCorruptedError, DocumentReadError, UnsupportedFormatError

__all__ = [
    "SUPPORTED_FORMATS",
    "read_docx",
    "read_pdf",
    "read_text",
    "DocumentCorruptedError",
    "DocumentReadError",
    "UnsupportedFormatError",
]
