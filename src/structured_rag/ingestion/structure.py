"""Structure detection and content analysis over extracted plain text.

Two seams live here:

* :class:`StructureDetector` finds headings, paragraphs, tables, lists
  and form fields in text.  :class:`HeuristicStructureDetector` is the
  default, pattern-based implementation; a parser that walks a real
  DOCX/PDF object model can replace it by subclassing the ABC, and the
  chunking contracts stay unchanged.
* :class:`StructureAnalyzer` does document-type classification, language
  guess, readability estimate and topic keywords.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field

from langdetect import DetectorFactory, detect
from langdetect.lang_detect_exception import LangDetectException

from structured_rag.ingestion.models import (
    ContentAnalysis,
    DocumentList,
    FormField,
    Heading,
    Paragraph,
    Table,
)

logger = logging.getLogger(__name__)

# langdetect is non-deterministic unless seeded.
DetectorFactory.seed = 0

_BLOCK_SPLIT = re.compile(r"\n\s*\n")
_MARKDOWN_HEADING = re.compile(r"^(#{1,6})\s+(.+)$")
_NUMBERED_HEADING = re.compile(r"^(\d+(?:\.\d+)*)[.)]?\s+([A-Z].*)$")
_BULLET_ITEM = re.compile(r"^(?:[-*•▪◦‣])\s+(.+)$")
_ORDERED_ITEM = re.compile(r"^(?:\d+|[a-zA-Z])[.)]\s+(.+)$")
_FORM_FIELD = re.compile(r"^([A-Za-z][\w /()#'-]{0,40}?)\s*:\s*(?:_{3,}|\.{4,}|\[\s?\]|☐)")
_CHECKBOX = re.compile(r"^(?:\[\s?\]|☐)\s+(.{1,60})$")
_SPACE_COLUMNS = re.compile(r"\s{2,}")


@dataclass
class DetectedStructure:
    """Everything a detector found in one run of text."""

    headings: list[Heading] = field(default_factory=list)
    paragraphs: list[Paragraph] = field(default_factory=list)
    tables: list[Table] = field(default_factory=list)
    lists: list[DocumentList] = field(default_factory=list)
    form_fields: list[FormField] = field(default_factory=list)
    next_position: int = 0


class StructureDetector(ABC):
    """Finds document structure in extracted text."""

    @abstractmethod
    def detect(self, text: str, *, page: int | None = None, start_position: int = 0) -> DetectedStructure:
        """Detect structure in *text*.

        Parameters
        ----------
        text:
            Plain text of a whole document or of a single page.
        page:
            1-based page number stamped on everything found, if paginated.
        start_position:
            First block position to assign; lets callers number blocks
            continuously across pages.
        """
        ...

    @abstractmethod
    def heading_level(self, line: str) -> int | None:
        """Return the heading level of *line*, or ``None`` for body text."""
        ...


class HeuristicStructureDetector(StructureDetector):
    """Pattern-based detection: approximate by nature.

    Headings are short lines that are ALL CAPS, carry a numbered prefix
    (``1.``, ``2.3``), use Markdown ``#`` markers, or are in Title Case.
    Tables are blocks whose lines split consistently on ``|``, tabs or
    runs of spaces.  Lists are blocks made only of bullet or enumerated
    lines.
    """

    max_heading_chars = 80
    max_heading_words = 10

    def detect(self, text: str, *, page: int | None = None, start_position: int = 0) -> DetectedStructure:
        found = DetectedStructure(next_position=start_position)
        for block in _BLOCK_SPLIT.split(text or ""):
            lines = [ln.strip() for ln in block.splitlines() if ln.strip()]
            if not lines:
                continue

            for line in lines:
                form_field = self._form_field(line)
                if form_field is not None:
                    found.form_fields.append(FormField(name=form_field[0], field_type=form_field[1], page=page))

            rows = self._table_rows(lines)
            if rows is not None:
                found.tables.append(Table(rows=rows, page=page))
                found.next_position += 1
                continue

            items = self._list_items(lines)
            if items is not None:
                found.lists.append(
                    DocumentList(items=items[0], ordered=items[1], position=found.next_position)
                )
                found.next_position += 1
                continue

            self._split_headings(lines, page, found)
        return found

    def heading_level(self, line: str) -> int | None:
        line = line.strip()
        if not line or len(line) > self.max_heading_chars:
            return None

        md = _MARKDOWN_HEADING.match(line)
        if md:
            return len(md.group(1))

        if "_" in line or line.endswith((".", ",", ";", "?", "!")):
            return None
        words = line.split()
        if len(words) > self.max_heading_words:
            return None

        numbered = _NUMBERED_HEADING.match(line)
        if numbered:
            return numbered.group(1).count(".") + 1

        letters = [c for c in line if c.isalpha()]
        if len(letters) < 2 or len(words) > 8:
            return None
        if line.upper() == line:
            return 1
        if line.endswith(":"):
            return None
        if len(words) == 1:
            # single words only count when they look like a section name
            return 2 if line.isalpha() and line[0].isupper() and len(line) >= 6 else None
        significant = [w for w in words if len(w) > 3 and w[0].isalpha()]
        if significant and all(w[0].isupper() for w in significant) and words[0][0].isupper():
            return 2
        return None

    # -- internals ------------------------------------------------------------

    def _split_headings(self, lines: list[str], page: int | None, found: DetectedStructure) -> None:
        buffer: list[str] = []

        def flush() -> None:
            if buffer:
                found.paragraphs.append(
                    Paragraph(text=" ".join(buffer), position=found.next_position, page=page)
                )
                found.next_position += 1
                buffer.clear()

        for line in lines:
            level = self.heading_level(line)
            if level is None:
                buffer.append(line)
                continue
            flush()
            md = _MARKDOWN_HEADING.match(line)
            heading_text = md.group(2).strip() if md else line
            found.headings.append(
                Heading(text=heading_text, level=level, position=found.next_position, page=page)
            )
            found.next_position += 1
        flush()

    @staticmethod
    def _split_row(line: str) -> list[str]:
        if "|" in line:
            cells = [c.strip() for c in line.strip().strip("|").split("|")]
        elif "\t" in line:
            cells = [c.strip() for c in line.split("\t")]
        else:
            cells = [c.strip() for c in _SPACE_COLUMNS.split(line.strip())]
        return [c for c in cells if c]

    def _table_rows(self, lines: list[str]) -> list[list[str]] | None:
        if len(lines) < 2:
            return None
        delimited = all("|" in ln or "\t" in ln for ln in lines)
        if not delimited and len(lines) < 3:
            return None
        rows = [self._split_row(ln) for ln in lines if not re.fullmatch(r"[|:\-\s+]+", ln)]
        widths = {len(r) for r in rows}
        if not rows or min(widths) < 2 or max(widths) - min(widths) > 1:
            return None
        return rows

    @staticmethod
    def _list_items(lines: list[str]) -> tuple[list[str], bool] | None:
        bullets = [_BULLET_ITEM.match(ln) for ln in lines]
        if len(lines) >= 2 and all(bullets):
            return [m.group(1).strip() for m in bullets if m], False
        ordered = [_ORDERED_ITEM.match(ln) for ln in lines]
        if len(lines) >= 2 and all(ordered):
            return [m.group(1).strip() for m in ordered if m], True
        return None

    @staticmethod
    def _form_field(line: str) -> tuple[str, str] | None:
        m = _FORM_FIELD.match(line)
        if m:
            kind = "checkbox" if ("[" in line or "☐" in line) else "text"
            return m.group(1).strip(), kind
        m = _CHECKBOX.match(line)
        if m:
            return m.group(1).strip(), "checkbox"
        return None


# ---------------------------------------------------------------------------
# Content analysis
# ---------------------------------------------------------------------------

_STOP_WORDS = frozenset(
    """
    a about above after again against all also although among an and any are as at be because been
    before being below between both but by can could did does doing down during each either else
    ever every few for from further had has have having here hers herself him himself his how however
    into itself just many more most much must near neither nor not now off once only other ought our
    ours ourselves out over own same shall should since some such than that their theirs them themselves
    then there these they this those through thus till too under until upon very was were what when
    where whether which while whom whose will with within without would your yours yourself yourselves
    """.split()
)

_DOCUMENT_TYPE_RULES: dict[str, tuple[str, ...]] = {
    "invoice": ("invoice", "amount due", "bill to", "subtotal", "payment terms", "total due"),
    "contract": ("agreement", "hereinafter", "party", "parties", "terms and conditions", "shall", "whereas"),
    "resume": ("experience", "education", "skills", "curriculum vitae", "resume", "employment history"),
    "academic": ("abstract", "introduction", "methodology", "references", "conclusion", "et al"),
    "report": ("executive summary", "findings", "recommendations", "analysis", "quarterly", "report"),
    "manual": ("step", "instructions", "installation", "troubleshooting", "warning", "user guide"),
    "letter": ("dear", "sincerely", "regards", "yours truly", "to whom it may concern"),
}

_SENTENCE_END = re.compile(r"[.!?]+(?:\s|$)")
_WORD = re.compile(r"[A-Za-zÀ-ÿ][A-Za-zÀ-ÿ'-]*")
_VOWEL_GROUPS = re.compile(r"[aeiouy]+")


def count_words(text: str) -> int:
    return len(text.split())


def _syllables(word: str) -> int:
    word = word.lower()
    groups = len(_VOWEL_GROUPS.findall(word))
    if word.endswith("e") and groups > 1 and not word.endswith("le"):
        groups -= 1
    return max(groups, 1)


class StructureAnalyzer:
    """Derives document-level signals from plain text."""

    def __init__(self, max_keywords: int = 10, language_sample_chars: int = 1000) -> None:
        self.max_keywords = max_keywords
        self.language_sample_chars = language_sample_chars

    def analyze(self, text: str) -> ContentAnalysis:
        words = _WORD.findall(text or "")
        sentences = max(len(_SENTENCE_END.findall(text or "")), 1 if words else 0)
        readability = self.readability(words, sentences)
        return ContentAnalysis(
            document_type=self.classify(text),
            language=self.detect_language(text),
            readability=readability,
            reading_level=self.reading_level(readability) if words else "unknown",
            complexity=self.complexity(readability) if words else "unknown",
            keywords=self.keywords(words),
            word_count=count_words(text or ""),
            sentence_count=sentences,
        )

    @staticmethod
    def classify(text: str) -> str:
        lowered = (text or "").lower()
        best, best_hits = "general", 1
        for doc_type, markers in _DOCUMENT_TYPE_RULES.items():
            hits = sum(1 for marker in markers if marker in lowered)
            if hits > best_hits:
                best, best_hits = doc_type, hits
        return best

    def detect_language(self, text: str) -> str:
        sample = (text or "")[: self.language_sample_chars]
        if not any(c.isalpha() for c in sample):
            return "unknown"
        try:
            return detect(sample)
        except LangDetectException:
            logger.debug("Language detection failed for %d-char sample", len(sample))
            return "unknown"

    @staticmethod
    def readability(words: list[str], sentences: int) -> float:
        """Flesch reading-ease, clamped to ``[0, 100]``."""
        if not words or not sentences:
            return 0.0
        syllables = sum(_syllables(w) for w in words)
        score = 206.835 - 1.015 * (len(words) / sentences) - 84.6 * (syllables / len(words))
        return round(min(max(score, 0.0), 100.0), 1)

    @staticmethod
    def reading_level(score: float) -> str:
        if score >= 90:
            return "very easy"
        if score >= 70:
            return "easy"
        if score >= 60:
            return "standard"
        if score >= 50:
            return "fairly difficult"
        if score >= 30:
            return "difficult"
        return "very difficult"

    @staticmethod
    def complexity(score: float) -> str:
        if score >= 60:
            return "simple"
        if score >= 30:
            return "moderate"
        return "complex"

    def keywords(self, words: list[str]) -> list[str]:
        counts = Counter(
            w.lower() for w in words if len(w) >= 4 and w.lower() not in _STOP_WORDS
        )
        return [word for word, _ in counts.most_common(self.max_keywords)]
