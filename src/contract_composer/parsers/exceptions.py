"""Exceptions raised while reading uploaded contract documents."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class DocumentReadError(Exception):
    """
    Base exception for document reading errors.

    Attributes:
        message: Human-readable error description.
        file_path: Path to the file that caused the error.
        location: Where in the file reading failed (page, header).
        details: Additional error details.
    """
    message: str
    file_path: Optional[str] = None
    location: Optional[str] = None
    details: Optional[dict] = field(default_factory=dict)

    def __post_init__(self):
        if self.details is None:
            self.details = {}
        super().__init__(str(self))

    def __str__(self) -> str:
        parts = [self.message]
        if self.file_path:
            parts.append(f"File: {self.file_path}")
        if self.location:
            parts.append(f"Location: {self.location}")
        return " | ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "file_path": self.file_path,
            "location": self.location,
            "details": self.details,
        }


@dataclass
class DocumentCorruptedError(DocumentReadError):
    """The file exists but is corrupted, encrypted or not of its claimed type."""


@dataclass
class UnsupportedFormatError(DocumentReadError):
    """The file extension is not one of the readable formats."""

    def get_supported_formats(self) -> List[str]:
        return self.details.get("supported_formats", [".docx", ".pdf", ".txt"])
