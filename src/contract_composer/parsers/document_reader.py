"""Plain-text extraction from uploaded .docx, .pdf and .txt contracts."""

import logging
from pathlib import Path
from zipfile import BadZipFile

import pdfplumber
from docx import Document
from docx.opc.exceptions import PackageNotFoundError

from .exceptions import DocumentCorruptedError, DocumentReadError, UnsupportedFormatError

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = (".docx", ".pdf", ".txt")


def read_docx(file_path: str) -> str:
    """Paragraph text of a Word document, one paragraph per line."""
    try:
        doc = Document(file_path)
    except (BadZipFile, PackageNotFoundError) as e:
        raise DocumentCorruptedError(
            message="Document is corrupted or not a valid Word file",
            file_path=file_path,
            location="file header",
            details={"original_error": str(e)},
        ) from e

    lines = [p.text.strip() for p in doc.paragraphs if p.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                lines.append(" ".join(cells))
    return "\n".join(lines)


def read_pdf(file_path: str) -> str:
    """Text of all pages of a PDF, pages separated by blank lines."""
    try:
        with pdfplumber.open(file_path) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except Exception as e:
        raise DocumentCorruptedError(
            message=f"Failed to read PDF content: {e}",
            file_path=file_path,
            details={"original_error": str(e)},
        ) from e
    return "\n\n".join(text for text in pages if text.strip())


def read_text(file_path: str) -> str:
    """
    Read an uploaded contract as plain text.

    Args:
        file_path: Path to a .docx, .pdf or .txt file.

    Returns:
        Extracted text.

    Raises:
        FileNotFoundError: If the file does not exist.
        UnsupportedFormatError: If the extension is not supported.
        DocumentCorruptedError: If the file cannot be read.
        DocumentReadError: If no text could be extracted.
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_FORMATS:
        raise UnsupportedFormatError(
            message=f"Unsupported file format: {suffix or '(none)'}",
            file_path=file_path,
            location="file extension",
            details={"supported_formats": list(SUPPORTED_FORMATS)},
        )

    if suffix == ".docx":
        text = read_docx(file_path)
    elif suffix == ".pdf":
        text = read_pdf(file_path)
    else:
        text = path.read_text(encoding="utf-8")

    if not text.strip():
        raise DocumentReadError(message="No text could be extracted", file_path=file_path)

    logger.info(f"Read {len(text)} characters from {path.name}")
    return text
