"""Excel workbook writer — produces Priced_Pricelists.xlsx."""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from pricelist_markup.models import Grid, ProcessingReport
from pricelist_markup.utils import format_confidence

# ── Style constants ──────────────────────────────────────────────

HEADER_FONT = Font(name="Calibri", bold=True, size=11, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="2F5496", end_color="2F5496", fill_type="solid")
MARKUP_HEADER_FILL = PatternFill(start_color="548235", end_color="548235", fill_type="solid")
HEADER_ALIGN = Alignment(horizontal="center", vertical="center", wrap_text=True)

TITLE_FONT = Font(name="Calibri", bold=True, size=14, color="2F5496")
SUBTITLE_FONT = Font(name="Calibri", bold=False, size=10, color="808080")
VALUE_FONT = Font(name="Calibri", size=11)
WARN_FONT = Font(name="Calibri", italic=True, size=10, color="CC6600")

FAILED_FILL = PatternFill(start_color="F8CBAD", end_color="F8CBAD", fill_type="solid")

WORKBOOK_NAME = "Priced_Pricelists.xlsx"
SUMMARY_SHEET = "Summary"
MAX_SHEET_NAME = 25

_AUTO_WIDTH_SAMPLE_ROWS = 300
_EXCEL_FORMULA_PREFIXES = ("=", "+", "-", "@")
_INVALID_SHEET_CHARS_RE = re.compile(r"[\\/*?\[\]:]")

_SUMMARY_COLUMNS = (
    "Sheet", "Status", "Rows", "Priced", "Skipped",
    "Cost Column", "Confidence", "Method", "Notes",
)


def money_format(decimal_places: int) -> str:
    """Excel number format with thousands separators and *decimal_places*."""
    return "#,##0" + ("." + "0" * decimal_places if decimal_places else "")


def sheet_title(filename: str, index: int) -> str:
    """Worksheet name for a source file: no extension or invalid characters, 25 chars max."""
    name = re.sub(r"\.[^/.]+$", "", Path(filename).name)
    name = _INVALID_SHEET_CHARS_RE.sub("_", name)[:MAX_SHEET_NAME]
    return name or f"Sheet{index + 1}"


# ── Helpers ──────────────────────────────────────────────────────


def _unique_title(wb: Workbook, base: str) -> str:
    existing = {ws.title.lower() for ws in wb.worksheets} | {SUMMARY_SHEET.lower()}
    if base.lower() not in existing:
        return base
    suffix = 2
    while True:
        candidate = f"{base[: MAX_SHEET_NAME]}_{suffix}"
        if candidate.lower() not in existing:
            return candidate
        suffix += 1


def _style_header(ws: Worksheet, ncols: int, markup_from: int | None = None) -> None:
    for c in range(1, ncols + 1):
        cell = ws.cell(row=1, column=c)
        cell.font = HEADER_FONT
        cell.fill = MARKUP_HEADER_FILL if markup_from and c >= markup_from else HEADER_FILL
        cell.alignment = HEADER_ALIGN


def _auto_width(ws: Worksheet) -> None:
    max_row = min(ws.max_row, _AUTO_WIDTH_SAMPLE_ROWS + 1)  # include header row
    for c_idx in range(1, ws.max_column + 1):
        letter = get_column_letter(c_idx)
        width = 0
        for row in ws.iter_rows(min_row=1, max_row=max_row, min_col=c_idx, max_col=c_idx):
            cell = row[0]
            width = max(width, len(str(cell.value or "")))
        width += 4
        ws.column_dimensions[letter].width = min(width, 30)


def _excel_value(val: Any) -> Any:
    if val is None:
        return None

    if isinstance(val, pd.Timestamp):
        dt = val.to_pydatetime()
        return dt.replace(tzinfo=None) if dt.tzinfo else dt

    if isinstance(val, datetime) and val.tzinfo:
        return val.replace(tzinfo=None)

    if isinstance(val, str):
        if val.startswith("'"):
            return val
        stripped = val.lstrip()
        if stripped and stripped[0] in _EXCEL_FORMULA_PREFIXES:
            return f"'{val}"

    return val


def _grid_to_sheet(
    ws: Worksheet, grid: Grid, report: ProcessingReport, decimal_places: int
) -> None:
    if not grid:
        ws.cell(row=1, column=1, value="No data").font = VALUE_FONT
        ws.column_dimensions["A"].width = 18
        return

    for r_idx, row in enumerate(grid, 1):
        for c_idx, val in enumerate(row, 1):
            ws.cell(row=r_idx, column=c_idx, value=_excel_value(val))

    ncols = len(grid[0])
    markup_count = len(report.markup_headers)
    markup_from = ncols - markup_count + 1 if markup_count else None
    _style_header(ws, ncols, markup_from)

    fmt = money_format(decimal_places)
    price_columns = [report.cost_column + 1] if report.cost_column >= 0 else []
    if markup_from:
        price_columns.extend(range(markup_from, ncols + 1))
    for c_idx in price_columns:
        for cells in ws.iter_rows(min_row=2, max_row=ws.max_row, min_col=c_idx, max_col=c_idx):
            for cell in cells:
                cell.number_format = fmt

    ws.freeze_panes = "A2"
    if len(grid) > 1:
        ws.auto_filter.ref = ws.dimensions
    _auto_width(ws)


def _write_summary(wb: Workbook, reports: Sequence[ProcessingReport]) -> None:
    ws = wb.create_sheet(title=SUMMARY_SHEET, index=0)

    ws.cell(row=1, column=1, value="pricelist-markup — Summary").font = TITLE_FONT
    ws.merge_cells("A1:D1")
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    ws.cell(row=2, column=1, value=f"Generated {generated}").font = SUBTITLE_FONT
    ws.merge_cells("A2:D2")

    header_row = 4
    for c_idx, label in enumerate(_SUMMARY_COLUMNS, 1):
        cell = ws.cell(row=header_row, column=c_idx, value=label)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGN

    row = header_row + 1
    for report in reports:
        failed = report.status != "success"
        notes = report.error_message if failed else "; ".join(report.warnings)
        values = (
            report.sheet,
            report.status,
            report.rows_in,
            report.rows_priced,
            report.rows_skipped,
            "" if failed else report.cost_header,
            "" if failed else format_confidence(report.confidence),
            "" if failed else report.method,
            notes,
        )
        for c_idx, value in enumerate(values, 1):
            cell = ws.cell(row=row, column=c_idx, value=_excel_value(value))
            cell.font = WARN_FONT if (c_idx == len(values) and value) else VALUE_FONT
            if failed:
                cell.fill = FAILED_FILL
        row += 1

    if not reports:
        ws.cell(row=row, column=1, value="No sheets processed").font = VALUE_FONT

    widths = (26, 10, 8, 8, 8, 22, 12, 20, 60)
    for c_idx, width in enumerate(widths, 1):
        ws.column_dimensions[get_column_letter(c_idx)].width = width


# ── Public API ───────────────────────────────────────────────────


def write_workbook(
    out_dir: Path,
    sheets: Sequence[tuple[Grid, ProcessingReport]],
    *,
    decimal_places: int = 2,
    failures: Sequence[ProcessingReport] = (),
) -> Path:
    """Write ``Priced_Pricelists.xlsx`` with one worksheet per priced sheet.

    ``report.sheet`` of each priced sheet is replaced by the worksheet name
    actually used. Failed sheets only appear on the Summary sheet.
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    workbook_path = out_dir / WORKBOOK_NAME

    wb = Workbook()
    active_sheet = wb.active
    if active_sheet is not None:
        wb.remove(active_sheet)  # remove default sheet

    for index, (grid, report) in enumerate(sheets):
        title = _unique_title(wb, sheet_title(report.sheet, index))
        report.sheet = title
        ws = wb.create_sheet(title=title)
        _grid_to_sheet(ws, grid, report, decimal_places)

    _write_summary(wb, [report for _grid, report in sheets] + list(failures))

    tmp_path = out_dir / "Priced_Pricelists.tmp.xlsx"
    wb.save(tmp_path)
    tmp_path.replace(workbook_path)
    return workbook_path
