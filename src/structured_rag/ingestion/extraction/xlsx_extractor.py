"""XLSX extractor built on openpyxl.

The workbook is opened twice: once with ``data_only=True`` for cached
cell values and once as written, to see formulas.  Cells whose cached
value is missing (never recalculated) fall back to the formula text.
"""

from __future__ import annotations

import logging
import zipfile
from datetime import date, datetime, time
from io import BytesIO
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from structured_rag.exceptions import EmptyContentError, ParserFailureError
from structured_rag.ingestion.extraction.base import BaseExtractor
from structured_rag.ingestion.extraction.tabular import (
    XLSX_TYPE_SAMPLE,
    infer_cell_type,
    is_numeric_type,
    to_number,
    unique_headers,
)
from structured_rag.ingestion.models import (
    CellValue,
    ExtractionOutput,
    FileType,
    MergedCell,
    XlsxMetadata,
    XlsxSheet,
)
from structured_rag.ingestion.structure import count_words

logger = logging.getLogger(__name__)

VBA_PART = "xl/vbaProject.bin"
RENDERED_ROWS = 10


def _plain(value: Any) -> CellValue:
    """Convert an openpyxl cell value to a JSON-safe scalar."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


class XlsxExtractor(BaseExtractor):
    file_type = FileType.XLSX

    def extract(self, data: bytes, filename: str) -> ExtractionOutput:
        if not zipfile.is_zipfile(BytesIO(data)):
            raise ParserFailureError(filename, "not an OOXML workbook (legacy binary .xls is not supported)")

        try:
            with zipfile.ZipFile(BytesIO(data)) as archive:
                has_macros = VBA_PART in archive.namelist()
            values_wb = load_workbook(BytesIO(data), data_only=True)
            formulas_wb = load_workbook(BytesIO(data), data_only=False)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as exc:
            raise ParserFailureError(filename, exc) from exc

        # chartsheets carry no cells; they only count towards has_charts
        sheets = [self._read_sheet(ws, formulas_wb[ws.title]) for ws in values_wb.worksheets]
        if not any(s.headers for s in sheets):
            raise EmptyContentError(filename)

        metadata = XlsxMetadata(
            sheets=sheets,
            total_sheets=len(sheets),
            has_formulas=any(s.has_formulas for s in sheets),
            has_charts=any(s.has_charts for s in sheets) or bool(values_wb.chartsheets),
            has_macros=has_macros,
        )
        logger.info(
            "Parsed workbook %s: %d sheets (formulas=%s, charts=%s, macros=%s)",
            filename, metadata.total_sheets, metadata.has_formulas, metadata.has_charts, has_macros,
        )
        text = self.require_text(render_workbook(metadata), filename)
        return ExtractionOutput(
            text=text,
            word_count=count_words(text),
            file_type=self.file_type,
            structural_metadata=metadata,
        )

    @staticmethod
    def _read_sheet(values_ws: Any, formulas_ws: Any) -> XlsxSheet:
        raw_rows = [list(r) for r in values_ws.iter_rows(values_only=True)]
        formula_rows = [list(r) for r in formulas_ws.iter_rows(values_only=True)]
        has_formulas = any(
            cell.data_type == "f" for row in formulas_ws.iter_rows() for cell in row
        )

        # fall back to formula text where no cached value exists
        for r, row in enumerate(raw_rows):
            for c, value in enumerate(row):
                if value is None and r < len(formula_rows) and c < len(formula_rows[r]):
                    row[c] = formula_rows[r][c]

        row_count = values_ws.max_row if raw_rows else 0
        column_count = values_ws.max_column if raw_rows else 0
        header_row = raw_rows[0] if raw_rows else []
        headers = [
            str(header_row[c]) if c < len(header_row) and header_row[c] not in (None, "") else f"Column_{c + 1}"
            for c in range(column_count)
        ]
        headers = unique_headers(headers)
        if not any(v not in (None, "") for row in raw_rows for v in row):
            headers = []

        body = raw_rows[1:]
        column_types = {
            header: infer_cell_type(
                (row[c] if c < len(row) else None for row in body[:XLSX_TYPE_SAMPLE]),
            )
            for c, header in enumerate(headers)
        }

        merged = []
        for rng in values_ws.merged_cells.ranges:
            anchor = values_ws.cell(row=rng.min_row, column=rng.min_col).value
            merged.append(MergedCell(range=rng.coord, value=_plain(anchor)))

        return XlsxSheet(
            name=values_ws.title,
            row_count=row_count,
            column_count=column_count,
            headers=headers,
            column_types=column_types,
            rows=[[_plain(v) for v in row] for row in body],
            has_formulas=has_formulas,
            has_charts=bool(getattr(formulas_ws, "_charts", None) or getattr(values_ws, "_charts", None)),
            merged_cells=merged,
        )


def render_workbook(metadata: XlsxMetadata) -> str:
    """Per-sheet overview: dimensions, headers, types, sample rows, statistics."""
    lines: list[str] = []
    for sheet in metadata.sheets:
        lines += [
            f"=== Sheet: {sheet.name} ===",
            f"Dimensions: {sheet.row_count} rows x {sheet.column_count} columns",
            f"Headers: {' | '.join(sheet.headers)}",
        ]
        if sheet.has_formulas:
            lines.append("Contains formulas")
        if sheet.has_charts:
            lines.append("Contains charts")
        if sheet.merged_cells:
            lines.append(f"Contains {len(sheet.merged_cells)} merged cells")

        lines += ["", "Data Types:"]
        lines += [f"- {h}: {sheet.column_types.get(h, 'unknown')}" for h in sheet.headers]
        lines += ["", "Sample Data:"]
        for n, row in enumerate(sheet.rows[: RENDERED_ROWS - 1], 1):
            lines.append(f"Row {n}: {' | '.join('' if v is None else str(v) for v in row)}")
        if sheet.row_count > RENDERED_ROWS:
            lines.append(f"... and {sheet.row_count - RENDERED_ROWS} more rows")

        numeric = [h for h in sheet.headers if is_numeric_type(sheet.column_types.get(h, ""))]
        if numeric:
            lines += ["", "Statistical Analysis:"]
            for header in numeric:
                col = sheet.headers.index(header)
                values = [
                    v for v in (to_number(r[col]) for r in sheet.rows if col < len(r)) if v is not None
                ]
                if values:
                    lines.append(
                        f"{header}: Min={min(values):g}, Max={max(values):g}, "
                        f"Avg={sum(values) / len(values):.2f}, Count={len(values)}"
                    )
        lines.append("")
    return "\n".join(lines)
