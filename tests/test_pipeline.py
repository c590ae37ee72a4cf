from __future__ import annotations

from decimal import Decimal

import pytest

from pricelist_markup.errors import CostColumnNotFoundError, StructuralError
from pricelist_markup.models import DetectionMethod, DetectionOptions, MarkupConfig
from pricelist_markup.pipeline import normalize_grid, prepare_sheet, process_sheet

LOW_ROWS = DetectionOptions(required_data_rows=2)


def test_process_sheet_end_to_end() -> None:
    grid = [["Item", "Cost", "Qty"], ["A", 10, 5], ["B", 20, 3]]

    priced, report = process_sheet(
        grid, config=MarkupConfig(percentages=(10, 20)), options=LOW_ROWS
    )

    assert priced[0] == ["Item", "Cost", "Qty", "10% Markup", "20% Markup"]
    assert priced[1] == ["A", 10, 5, Decimal("11.00"), Decimal("12.00")]
    assert priced[2] == ["B", 20, 3, Decimal("22.00"), Decimal("24.00")]
    assert report.cost_column == 1
    assert report.confidence >= 0.95
    assert report.method == DetectionMethod.EXACT_HEADER.value
    assert report.rows_in == 2
    assert report.rows_priced == 2
    assert report.header_row == 0
    assert report.warnings == []


def test_process_sheet_malformed_cost_only_affects_its_row() -> None:
    grid = [["Item", "Cost", "Qty"], ["A", 10, 5], ["B", "TBC", 3], ["C", "4.00", 1]]

    priced, report = process_sheet(
        grid, config=MarkupConfig(percentages=(10,)), options=LOW_ROWS
    )

    assert priced[1][-1] == Decimal("11.00")
    assert priced[2] == ["B", "TBC", 3, None]
    assert priced[3][-1] == Decimal("4.40")
    assert report.rows_skipped == 1
    assert any("without a usable cost" in w for w in report.warnings)


def test_process_sheet_finds_header_below_title_and_drops_empty_columns() -> None:
    grid = [
        ["Spring Catalogue"],
        [],
        ["Code", None, "Description", "Unit Price"],
        ["A1", None, "Widget", "$10.50"],
        ["A2", None, "Gadget", "$3.25"],
    ]

    priced, report = process_sheet(
        grid, config=MarkupConfig(percentages=(10,)), options=LOW_ROWS
    )

    assert report.header_row == 2
    assert report.cost_column == 2
    assert report.cost_header == "Unit Price"
    assert report.dropped_columns == ["Column 2"]
    assert priced[0] == ["Code", "Description", "Unit Price", "10% Markup"]
    assert priced[1] == ["A1", "Widget", 10.5, Decimal("11.55")]


def test_process_sheet_remaps_non_price_header_and_warns() -> None:
    grid = [
        ["Code", "Qty", "Unit Cost"],
        ["AB", 10, "on request"],
        ["CD", 20, 7],
    ]

    priced, report = process_sheet(
        grid,
        config=MarkupConfig(percentages=(10,)),
        options=DetectionOptions(required_data_rows=2, custom_keywords=()),
    )

    assert report.method == DetectionMethod.EXACT_HEADER.value
    assert report.cost_column == 2
    assert priced[2][-1] == Decimal("7.70")
    assert any("does not look like a price column" in w for w in report.warnings)


def test_process_sheet_user_selected_column_is_remapped_by_position() -> None:
    grid = [
        ["Code", None, "Net", "RRP"],
        ["A1", None, 10, 20],
        ["A2", None, 5, 9],
    ]

    priced, report = process_sheet(
        grid, config=MarkupConfig(percentages=(50,)), cost_column=2
    )

    assert report.method == DetectionMethod.USER_SELECTED.value
    assert report.confidence == 1.0
    assert report.cost_column == 1
    assert priced[1][-1] == Decimal("15.00")


def test_process_sheet_user_selected_by_header_name() -> None:
    grid = [["Code", "Net", "RRP"], ["A1", 10, 20], ["A2", 5, 9]]

    _priced, report = process_sheet(grid, cost_column="rrp")

    assert report.cost_column == 2
    assert report.cost_header == "RRP"


def test_process_sheet_user_selected_unknown_column() -> None:
    grid = [["Code", "Net"], ["A1", 10]]

    with pytest.raises(StructuralError) as excinfo:
        process_sheet(grid, cost_column="Wholesale")
    assert excinfo.value.code == "INVALID_COST_COLUMN_INDEX"

    with pytest.raises(StructuralError):
        process_sheet(grid, cost_column=7)


def test_process_sheet_raises_when_no_cost_column() -> None:
    grid = [["Code", "Name"], ["AB", "Widget"], ["CD", "Gadget"]]

    with pytest.raises(CostColumnNotFoundError) as excinfo:
        process_sheet(grid, options=LOW_ROWS)

    assert excinfo.value.code == "COST_COLUMN_NOT_FOUND"
    assert excinfo.value.detection.column_index == -1


def test_process_sheet_default_options_need_five_rows() -> None:
    grid = [["Item", "Cost", "Qty"], ["A", 10, 5], ["B", 20, 3]]

    with pytest.raises(CostColumnNotFoundError):
        process_sheet(grid)


@pytest.mark.parametrize(
    ("grid", "code"),
    [
        ([], "EMPTY_DATA"),
        ([["foo", "bar"], [1, 2]], "NO_HEADERS_FOUND"),
        ([["Item", "Cost", "Qty"]], "INSUFFICIENT_DATA"),
    ],
)
def test_prepare_sheet_structural_errors(grid: list[list[object]], code: str) -> None:
    with pytest.raises(StructuralError) as excinfo:
        prepare_sheet(grid)

    assert excinfo.value.code == code


def test_prepare_sheet_row_limit(monkeypatch: pytest.MonkeyPatch) -> None:
    import pricelist_markup.pipeline as pipeline_mod

    monkeypatch.setattr(pipeline_mod, "MAX_ROWS_PER_SHEET", 3)

    with pytest.raises(StructuralError) as excinfo:
        prepare_sheet([["Item", "Cost"], ["A", 1], ["B", 2], ["C", 3]])

    assert excinfo.value.code == "TOO_MANY_ROWS"


def test_normalize_grid() -> None:
    grid = [[" Code ", "  ", "Price"], ["007", None, "12.50"]]

    assert normalize_grid(grid) == [["Code", None, "Price"], ["007", None, 12.5]]
