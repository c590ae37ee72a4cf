"""Pricing pipeline — pure functions, no side effects.

raw grid → normalise → locate header row → detect cost column → prune empty
columns → append markup columns.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from pricelist_markup import MAX_ROWS_PER_SHEET
from pricelist_markup.detection import detect_cost_column
from pricelist_markup.errors import CostColumnNotFoundError, StructuralError
from pricelist_markup.headers import locate_header_row
from pricelist_markup.markup import apply_markup
from pricelist_markup.models import (
    DetectionMethod,
    DetectionOptions,
    DetectionResult,
    Grid,
    MarkupConfig,
    ProcessingReport,
)
from pricelist_markup.numeric import coerce_cell
from pricelist_markup.pruning import prune_columns, reindex_column
from pricelist_markup.utils import cell_text, is_blank

# ── Grid preparation ─────────────────────────────────────────────


def normalize_grid(grid: Sequence[Sequence[Any]]) -> Grid:
    """Trim text, turn blank cells into ``None`` and numeric text into numbers."""
    return [[coerce_cell(cell) for cell in row] for row in grid]


def _header_label(headers: Sequence[Any], index: int) -> str:
    if index < len(headers) and not is_blank(headers[index]):
        return str(headers[index]).strip()
    return f"Column {index + 1}"


def _select_column(headers: Sequence[Any], selection: int | str) -> DetectionResult:
    """Resolve a user-chosen cost column given as an index or header text."""
    index: int | None = None
    if isinstance(selection, str):
        wanted = selection.strip().lower()
        texts = [cell_text(h) for h in headers]
        if wanted in texts:
            index = texts.index(wanted)
        elif wanted.isdigit():
            index = int(wanted)
        else:
            raise StructuralError(
                "INVALID_COST_COLUMN_INDEX", f"No column named {selection!r} in the header row"
            )
    elif isinstance(selection, int) and not isinstance(selection, bool):
        index = selection
    else:
        raise TypeError("cost_column must be an int or a header name")

    if not 0 <= index < len(headers):
        raise StructuralError(
            "INVALID_COST_COLUMN_INDEX",
            f"Cost column index {index} is out of range (0-{len(headers) - 1})",
        )
    return DetectionResult(
        column_index=index, confidence=1.0, method=DetectionMethod.USER_SELECTED
    )


def prepare_sheet(grid: Sequence[Sequence[Any]]) -> tuple[int, Grid]:
    """Normalise *grid* and slice it so row 0 is the header row.

    Returns ``(header_row_index, sheet)``.

    Raises
    ------
    StructuralError
        Empty or oversized grid, no header row found, or no data rows below it.
    """
    if not grid:
        raise StructuralError("EMPTY_DATA", "No data found in the sheet")
    if len(grid) > MAX_ROWS_PER_SHEET:
        raise StructuralError(
            "TOO_MANY_ROWS",
            f"Sheet contains {len(grid)} rows, maximum allowed is {MAX_ROWS_PER_SHEET}",
        )

    normalized = normalize_grid(grid)
    header_row = locate_header_row(normalized)
    if header_row is None:
        raise StructuralError("NO_HEADERS_FOUND", "Could not identify column headers in the sheet")
    sheet = normalized[header_row:]
    if len(sheet) < 2:
        raise StructuralError(
            "INSUFFICIENT_DATA", "Sheet must contain at least a header row and one data row"
        )
    return header_row, sheet


# ── Main entry point ─────────────────────────────────────────────


def process_sheet(
    grid: Sequence[Sequence[Any]],
    *,
    config: MarkupConfig | None = None,
    options: DetectionOptions | None = None,
    cost_column: int | str | None = None,
    sheet_name: str = "Sheet1",
) -> tuple[Grid, ProcessingReport]:
    """Price one decoded sheet.

    Returns ``(priced_grid, report)`` where row 0 of ``priced_grid`` is the
    header row with the markup headers appended.

    Raises
    ------
    StructuralError
        Empty or oversized grid, no header row, no data rows, bad cost column
        or invalid configuration.
    CostColumnNotFoundError
        If no detection strategy found a cost column.
    """
    if config is None:
        config = MarkupConfig()
    if options is None:
        options = DetectionOptions()

    # 1. Header row
    header_row, sheet = prepare_sheet(grid)
    original_headers = sheet[0]
    data_rows = sheet[1:]

    # 2. Cost column
    if cost_column is None:
        detection = detect_cost_column(original_headers, data_rows, options)
        if not detection.found:
            raise CostColumnNotFoundError(detection)
    else:
        detection = _select_column(original_headers, cost_column)

    # 3. Prune
    cleaned, kept = prune_columns(sheet)
    if detection.method is DetectionMethod.USER_SELECTED:
        if detection.column_index not in kept:
            raise StructuralError("INVALID_COST_COLUMN", "Selected cost column is empty")
        new_index = kept.index(detection.column_index)
    else:
        new_index = reindex_column(original_headers, cleaned[0], detection.column_index)

    # 4. Markup
    priced, summary = apply_markup(cleaned, new_index, config)

    warnings: list[str] = []
    detected_label = _header_label(original_headers, detection.column_index)
    cost_label = _header_label(cleaned[0], new_index)
    if kept[new_index] != detection.column_index:
        warnings.append(
            f"Detected column {detected_label!r} does not look like a price column; "
            f"using {cost_label!r}"
        )
    if detection.confidence < options.min_confidence:
        warnings.append(
            f"Low detection confidence ({detection.confidence:.0%}) via {detection.method.value}"
        )
    if summary.skipped_rows:
        count = len(summary.skipped_rows)
        suffix = "" if count == 1 else "s"
        warnings.append(f"{count} row{suffix} without a usable cost; markup cells left empty")
    for error in summary.errors:
        warnings.append(f"Row {error['row']}: {error['message']}")

    width = max(len(row) for row in sheet)
    dropped = [_header_label(original_headers, i) for i in range(width) if i not in kept]

    report = ProcessingReport(
        sheet=sheet_name,
        rows_in=summary.rows_in,
        rows_priced=summary.rows_priced,
        rows_skipped=summary.rows_in - summary.rows_priced,
        header_row=header_row,
        cost_column=new_index,
        cost_header=cost_label,
        confidence=detection.confidence,
        method=detection.method.value,
        alternatives=list(detection.alternatives),
        dropped_columns=dropped,
        markup_headers=[column.header for column in summary.columns],
        warnings=warnings,
    )
    return priced, report
