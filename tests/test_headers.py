from __future__ import annotations

from pricelist_markup.headers import locate_header_row, score_header_row


def test_locate_header_row_skips_title_block() -> None:
    grid = [
        ["ACME Trading"],
        ["Tel 555 0101"],
        ["Code", "Description", "Unit Price", "Qty"],
        ["A1", "Widget", 10.5, 4],
        ["A2", "Gadget", 3.25, 10],
    ]

    assert locate_header_row(grid) == 2


def test_locate_header_row_first_row() -> None:
    grid = [["Item", "Cost", "Qty"], ["A", 10, 5], ["B", 20, 3]]

    assert locate_header_row(grid) == 0


def test_locate_header_row_returns_none_without_keywords() -> None:
    grid = [["foo", "bar"], [1, 2], [3, 4]]

    assert locate_header_row(grid) is None


def test_locate_header_row_only_scans_first_rows() -> None:
    grid = [["x"]] * 3 + [["Code", "Price", "Qty"]]

    assert locate_header_row(grid, max_rows=3) is None
    assert locate_header_row(grid, max_rows=4) == 3


def test_locate_header_row_ties_keep_earliest_row() -> None:
    grid = [["Code", "Price"], ["Code", "Price"]]

    assert locate_header_row(grid) == 0


def test_locate_header_row_tolerates_empty_rows() -> None:
    grid = [[], [None, ""], ["Product", "Cost", "Stock"]]

    assert locate_header_row(grid) == 2


def test_score_header_row_rewards_unit_price() -> None:
    assert score_header_row(["Unit Price"]) > score_header_row(["Price"])
    assert score_header_row(["Price"]) > score_header_row(["Code"])


def test_score_header_row_penalises_numbers_and_dates() -> None:
    assert score_header_row(["12.5", "01/02/2024", "7"]) < 0
