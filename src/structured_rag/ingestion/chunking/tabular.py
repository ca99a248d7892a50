"""CSV and XLSX chunking strategies."""

from __future__ import annotations

from structured_rag.ingestion.chunking.builder import ChunkBuilder
from structured_rag.ingestion.chunking.stats import ColumnStats
from structured_rag.ingestion.extraction.tabular import is_numeric_type, to_number
from structured_rag.ingestion.models import CellValue, CsvMetadata, Priority, XlsxMetadata, XlsxSheet

ROW_BATCH = 20
SUMMARY_SAMPLE_ROWS = 3


def _cell(value: CellValue) -> str:
    return "" if value is None else str(value)


def _row_line(row: list) -> str:
    return " | ".join(_cell(v) for v in row)


def _column(rows: list[list], index: int) -> list:
    return [row[index] if index < len(row) else None for row in rows]


def _numeric_stats(headers: list[str], column_types: dict[str, str], rows: list[list]) -> dict[str, str]:
    """Statistics line per numeric column, keyed by header."""
    lines = {}
    for i, header in enumerate(headers):
        if not is_numeric_type(column_types.get(header, "")):
            continue
        stats = ColumnStats.of(n for n in (to_number(v) for v in _column(rows, i)) if n is not None)
        if stats is not None:
            lines[header] = stats.describe(header)
    return lines


# -- CSV ----------------------------------------------------------------------


def chunk_csv(text: str, metadata: CsvMetadata, builder: ChunkBuilder) -> None:
    """Summary, one chunk per column, 20-row batches, then numeric statistics."""
    headers, rows, types = metadata.headers, metadata.rows, metadata.column_types

    summary = [
        f"CSV summary: {len(headers)} columns, {metadata.row_count} rows",
        "Columns: " + ", ".join(f"{h} ({types.get(h, 'unknown')})" for h in headers),
    ]
    sample = rows[:SUMMARY_SAMPLE_ROWS]
    if sample:
        summary.append("Sample rows:")
        summary += [", ".join(f"{h}: {v}" for h, v in zip(headers, row)) for row in sample]
    builder.add("\n".join(summary), "csv_summary", Priority.HIGH, headers=headers, row_count=metadata.row_count)

    for i, header in enumerate(headers):
        values = [_cell(v) for v in _column(rows, i)]
        builder.add(
            f"Column: {header} ({types.get(header, 'unknown')})\n" + "\n".join(values),
            "csv_column",
            Priority.MEDIUM,
            column=header,
            column_type=types.get(header, "unknown"),
        )

    for start in range(0, len(rows), ROW_BATCH):
        batch = rows[start : start + ROW_BATCH]
        lines = [_row_line(headers)] if start == 0 else []
        lines += [_row_line(r) for r in batch]
        builder.add(
            "\n".join(lines), "csv_rows", Priority.LOW, row_start=start + 1, row_end=start + len(batch)
        )

    stats = _numeric_stats(headers, types, rows)
    if stats:
        builder.add(
            "Column statistics:\n" + "\n".join(stats.values()),
            "csv_statistics",
            Priority.MEDIUM,
            numeric_columns=list(stats),
        )


# -- XLSX ---------------------------------------------------------------------


def _sheet_overview(sheet: XlsxSheet) -> str:
    lines = [
        f"Sheet: {sheet.name}",
        f"Dimensions: {sheet.row_count} rows x {sheet.column_count} columns",
        f"Headers: {' | '.join(sheet.headers)}",
    ]
    flags = [name for name, on in (("formulas", sheet.has_formulas), ("charts", sheet.has_charts)) if on]
    if sheet.merged_cells:
        flags.append(f"{len(sheet.merged_cells)} merged ranges")
    if flags:
        lines.append("Contains: " + ", ".join(flags))
    if sheet.rows:
        lines.append("Sample rows:")
        lines += [_row_line(r) for r in sheet.rows[:SUMMARY_SAMPLE_ROWS]]
    return "\n".join(lines)


def _relationships(metadata: XlsxMetadata) -> str:
    lines = [f"Cross-sheet relationships across {metadata.total_sheets} sheets"]
    shared = []
    sheets = metadata.sheets
    for a in range(len(sheets)):
        for b in range(a + 1, len(sheets)):
            common = [h for h in sheets[a].headers if h in set(sheets[b].headers)]
            if common:
                shared.append(f"{sheets[a].name} <-> {sheets[b].name}: {', '.join(common)}")
    if shared:
        lines.append("Shared columns:")
        lines += shared
    else:
        lines.append("No shared columns between sheets")
    return "\n".join(lines)


def chunk_xlsx(text: str, metadata: XlsxMetadata, builder: ChunkBuilder) -> None:
    """Workbook summary, per-sheet chunks, then cross-sheet relationships."""
    summary = [f"Workbook summary: {metadata.total_sheets} sheets"]
    summary += [f"- {s.name}: {s.row_count} rows x {s.column_count} columns" for s in metadata.sheets]
    summary.append(
        f"Formulas: {'yes' if metadata.has_formulas else 'no'}, "
        f"Charts: {'yes' if metadata.has_charts else 'no'}, "
        f"Macros: {'yes' if metadata.has_macros else 'no'}"
    )
    builder.add(
        "\n".join(summary),
        "xlsx_summary",
        Priority.HIGH,
        sheets=[s.name for s in metadata.sheets],
        has_formulas=metadata.has_formulas,
        has_charts=metadata.has_charts,
        has_macros=metadata.has_macros,
    )

    for sheet in metadata.sheets:
        builder.add(_sheet_overview(sheet), "xlsx_sheet_overview", Priority.HIGH, sheet=sheet.name)

        for i, header in enumerate(sheet.headers):
            column_type = sheet.column_types.get(header, "unknown")
            values = [_cell(v) for v in _column(sheet.rows, i)]
            builder.add(
                f"Sheet: {sheet.name}\nColumn: {header} ({column_type})\n" + "\n".join(values),
                "xlsx_column",
                Priority.MEDIUM,
                sheet=sheet.name,
                column=header,
                column_type=column_type,
            )

        stats = _numeric_stats(sheet.headers, sheet.column_types, sheet.rows)
        if stats:
            builder.add(
                f"Statistics for sheet {sheet.name}:\n" + "\n".join(stats.values()),
                "xlsx_statistics",
                Priority.MEDIUM,
                sheet=sheet.name,
            )

        if sheet.merged_cells:
            builder.add(
                f"Merged cells in sheet {sheet.name}:\n"
                + "\n".join(f"{m.range}: {_cell(m.value)}" for m in sheet.merged_cells),
                "xlsx_merged_cells",
                Priority.LOW,
                sheet=sheet.name,
            )

    if metadata.total_sheets > 1:
        builder.add(_relationships(metadata), "xlsx_relationships", Priority.MEDIUM)
