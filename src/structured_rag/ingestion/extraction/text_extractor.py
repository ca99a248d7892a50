"""Plain-text and JSON extractors (no structural metadata)."""

from __future__ import annotations

import json

from structured_rag.exceptions import MalformedInputError
from structured_rag.ingestion.extraction.base import BaseExtractor, decode_text
from structured_rag.ingestion.models import ExtractionOutput, FileType
from structured_rag.ingestion.structure import count_words


class TextExtractor(BaseExtractor):
    file_type = FileType.TEXT

    def extract(self, data: bytes, filename: str) -> ExtractionOutput:
        text = self.require_text(decode_text(data), filename)
        return ExtractionOutput(text=text, word_count=count_words(text), file_type=self.file_type)


class JsonExtractor(BaseExtractor):
    """Parses JSON and re-renders it with two-space indentation."""

    file_type = FileType.JSON

    def extract(self, data: bytes, filename: str) -> ExtractionOutput:
        raw = self.require_text(decode_text(data), filename)
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise MalformedInputError(f"Invalid JSON in {filename}: {exc}") from exc
        text = self.require_text(json.dumps(parsed, indent=2, ensure_ascii=False), filename)
        return ExtractionOutput(text=text, word_count=count_words(text), file_type=self.file_type)
