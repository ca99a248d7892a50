"""Delimited-text parsing and column type inference for tabular sources."""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any, Iterable

from structured_rag.exceptions import MalformedInputError

CSV_TYPE_SAMPLE = 100
XLSX_TYPE_SAMPLE = 10

INT32_MIN, INT32_MAX = -(2**31), 2**31 - 1

_BOOLEAN_TOKENS = frozenset({"true", "false", "1", "0", "yes", "no", "y", "n"})
_DATE_FORMATS = (
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m-%d-%Y",
    "%Y/%m/%d",
    "%d/%m/%Y",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%b %d, %Y",
    "%d %b %Y",
    "%B %d, %Y",
)
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_URL = re.compile(r"^https?://.+\..+")
_PHONE = re.compile(r"^\+?[1-9]\d{0,15}$")
_PHONE_NOISE = re.compile(r"[\s\-()]")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_delimited(text: str, delimiter: str = ",", quote: str = '"') -> list[list[str]]:
    """Parse delimited text into rows of fields.

    Handles quoted fields containing the delimiter or line breaks, and
    doubled quotes (``""``) as an escaped quote inside a quoted field.
    Unquoted fields are whitespace-trimmed; quoted fields are kept
    verbatim.  Blank lines are skipped.

    Raises
    ------
    MalformedInputError
        When a quoted field is never closed.
    """
    rows: list[list[str]] = []
    row: list[str] = []
    field: list[str] = []
    in_quotes = False
    was_quoted = False
    i, n = 0, len(text)

    def end_field() -> None:
        nonlocal was_quoted
        value = "".join(field)
        row.append(value if was_quoted else value.strip())
        field.clear()
        was_quoted = False

    def end_row() -> None:
        end_field()
        if any(v != "" for v in row) or len(row) > 1:
            rows.append(list(row))
        row.clear()

    while i < n:
        char = text[i]
        if in_quotes:
            if char == quote:
                if i + 1 < n and text[i + 1] == quote:
                    field.append(quote)
                    i += 1
                else:
                    in_quotes = False
            else:
                field.append(char)
        elif char == quote and not "".join(field).strip():
            field.clear()
            in_quotes = True
            was_quoted = True
        elif char == delimiter:
            end_field()
        elif char in "\r\n":
            if char == "\r" and i + 1 < n and text[i + 1] == "\n":
                i += 1
            end_row()
        elif not was_quoted:
            field.append(char)
        i += 1

    if in_quotes:
        raise MalformedInputError("Unterminated quoted field in delimited text")
    if field or row:
        end_row()
    return rows


# ---------------------------------------------------------------------------
# Type inference
# ---------------------------------------------------------------------------


def _is_integer(value: str) -> bool:
    try:
        number = int(value.strip())
    except ValueError:
        try:
            as_float = float(value)
        except ValueError:
            return False
        if not math.isfinite(as_float) or not as_float.is_integer():
            return False
        number = int(as_float)
    return INT32_MIN <= number <= INT32_MAX


def to_number(value: Any) -> float | None:
    """Return *value* as a finite float, or ``None``."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _is_date(value: str) -> bool:
    value = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            datetime.strptime(value, fmt)
            return True
        except ValueError:
            continue
    try:
        datetime.fromisoformat(value)
    except ValueError:
        return False
    return True


_CSV_RULES = (
    ("integer", _is_integer),
    ("number", lambda v: to_number(v) is not None),
    ("boolean", lambda v: v.strip().lower() in _BOOLEAN_TOKENS),
    ("date", _is_date),
    ("email", lambda v: bool(_EMAIL.match(v))),
    ("url", lambda v: bool(_URL.match(v))),
    ("phone", lambda v: bool(_PHONE.match(_PHONE_NOISE.sub("", v)))),
)


def unique_headers(headers: list[str]) -> list[str]:
    """Suffix repeated names (``score``, ``score_2``, ...) so every column has its own key."""
    seen: set[str] = set()
    unique = []
    for header in headers:
        name, n = header, 1
        while name in seen:
            n += 1
            name = f"{header}_{n}"
        seen.add(name)
        unique.append(name)
    return unique


def infer_column_type(values: Iterable[str], sample_size: int = CSV_TYPE_SAMPLE) -> str:
    """Infer a column type from up to *sample_size* non-empty string values.

    Rules are tried in priority order and the first one matching every
    sampled value wins; ``"string"`` otherwise, ``"empty"`` with no values.
    """
    sample = [v for v in values if v is not None and str(v).strip() != ""][:sample_size]
    if not sample:
        return "empty"
    for name, rule in _CSV_RULES:
        if all(rule(str(v)) for v in sample):
            return name
    return "string"


def infer_cell_type(values: Iterable[Any], sample_size: int = XLSX_TYPE_SAMPLE) -> str:
    """Infer a spreadsheet column type from typed cell values.

    Spreadsheet cells arrive typed (numbers, dates, booleans), so the
    rule order differs from :func:`infer_column_type`.
    """
    sample = [v for v in values if v is not None and v != ""][:sample_size]
    if not sample:
        return "empty"

    def is_number(v: Any) -> bool:
        return isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)

    if all(is_number(v) and float(v).is_integer() and INT32_MIN <= v <= INT32_MAX for v in sample):
        return "integer"
    if all(is_number(v) for v in sample):
        return "number"
    if all(isinstance(v, (datetime, date)) or (isinstance(v, str) and _is_date(v)) for v in sample):
        return "date"
    if all(isinstance(v, bool) or v in (0, 1, "TRUE", "FALSE", "true", "false") for v in sample):
        return "boolean"
    if all(isinstance(v, str) and v.startswith("=") for v in sample):
        return "formula"
    return "string"


def is_numeric_type(column_type: str) -> bool:
    return column_type in ("integer", "number")
