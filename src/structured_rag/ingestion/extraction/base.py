"""Abstract base class for format extractors and file-type resolution.

Adding a new format only requires subclassing :class:`BaseExtractor`,
implementing :meth:`BaseExtractor.extract`, and registering the class
in :mod:`structured_rag.ingestion.extraction`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import PurePath

from structured_rag.exceptions import EmptyContentError, UnsupportedTypeError
from structured_rag.ingestion.models import ExtractionOutput, FileType

GENERIC_MIME_TYPES = frozenset({"", "application/octet-stream"})

MIME_TYPES: dict[str, FileType] = {
    "text/plain": FileType.TEXT,
    "text/markdown": FileType.TEXT,
    "text/csv": FileType.CSV,
    "application/csv": FileType.CSV,
    "application/json": FileType.JSON,
    "application/pdf": FileType.PDF,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": FileType.DOCX,
    "application/msword": FileType.DOCX,
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": FileType.XLSX,
    "application/vnd.ms-excel": FileType.XLSX,
}

EXTENSIONS: dict[str, FileType] = {
    ".txt": FileType.TEXT,
    ".csv": FileType.CSV,
    ".json": FileType.JSON,
    ".pdf": FileType.PDF,
    ".docx": FileType.DOCX,
    ".doc": FileType.DOCX,
    ".xlsx": FileType.XLSX,
    ".xls": FileType.XLSX,
}


def resolve_file_type(declared_mime_type: str | None, filename: str) -> FileType:
    """Map a declared MIME type (or, failing that, the extension) to a :class:`FileType`.

    Absent or generic MIME types fall back to extension sniffing.  Raises
    :class:`UnsupportedTypeError` when neither identifies a known format.
    """
    mime = (declared_mime_type or "").split(";")[0].strip().lower()
    if mime not in GENERIC_MIME_TYPES:
        file_type = MIME_TYPES.get(mime)
        if file_type is None:
            raise UnsupportedTypeError(declared_mime_type, filename)
        return file_type

    file_type = EXTENSIONS.get(PurePath(filename).suffix.lower())
    if file_type is None:
        raise UnsupportedTypeError(declared_mime_type, filename)
    return file_type


def decode_text(data: bytes) -> str:
    """Decode UTF-8 (with or without BOM), replacing undecodable bytes."""
    return data.decode("utf-8-sig", errors="replace")


class BaseExtractor(ABC):
    """Turns raw bytes of one format into an :class:`ExtractionOutput`.

    Implementations raise an :class:`~structured_rag.exceptions.ExtractionError`
    subclass on failure and never return partial output.
    """

    file_type: FileType

    @abstractmethod
    def extract(self, data: bytes, filename: str) -> ExtractionOutput:
        """Extract text and structural metadata from *data*."""
        ...

    @staticmethod
    def require_text(text: str, filename: str) -> str:
        """Return *text* stripped, raising :class:`EmptyContentError` if nothing is left."""
        stripped = text.strip()
        if not stripped:
            raise EmptyContentError(filename)
        return stripped
