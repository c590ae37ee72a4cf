"""Markup engine — append sell-price columns computed with exact decimals."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from numbers import Integral
from typing import Any

from pricelist_markup.errors import ComputationError, StructuralError
from pricelist_markup.models import (
    Grid,
    MarkupColumn,
    MarkupConfig,
    MarkupSummary,
    percentage_label,
)
from pricelist_markup.numeric import is_valid_cost, to_decimal

logger = logging.getLogger(__name__)

MIN_VALID_COST_RATIO = 0.005

_HUNDRED = Decimal(100)
_ONE = Decimal(1)


def _as_decimal(number: float | int | Decimal) -> Decimal:
    if isinstance(number, Decimal):
        return number
    if isinstance(number, Integral):
        return Decimal(int(number))
    return Decimal(repr(float(number)))


def markup_header(percentage: float | int | Decimal, currency_symbol: str = "") -> str:
    """Column label such as ``"10% Markup"`` or ``"£12.5% Markup"``."""
    return f"{currency_symbol or ''}{percentage_label(percentage)}% Markup"


def build_markup_columns(header_length: int, config: MarkupConfig) -> list[MarkupColumn]:
    """One column per percentage, placed after the existing *header_length* columns."""
    return [
        MarkupColumn(
            percentage=pct,
            column_index=header_length + offset,
            header=markup_header(pct, config.currency_symbol),
        )
        for offset, pct in enumerate(config.percentages)
    ]


def calculate_markup(
    cost: Any, percentage: float | int | Decimal, decimal_places: int
) -> Decimal | None:
    """Return ``cost * (1 + percentage / 100)`` rounded half-up, or ``None``.

    ``None`` means the cost cell holds no usable cost. Zero cost gives zero.

    Raises
    ------
    ComputationError
        If the decimal arithmetic itself fails (e.g. precision overflow).
    """
    amount = to_decimal(cost)
    if amount is None or amount < 0:
        return None

    quantum = _ONE.scaleb(-decimal_places)
    try:
        if amount == 0:
            return Decimal(0).quantize(quantum)
        multiplier = _ONE + _as_decimal(percentage) / _HUNDRED
        return (amount * multiplier).quantize(quantum, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ComputationError(
            f"Failed to calculate {percentage}% markup for cost {cost!r}"
        ) from exc


def validate_cost_column(data_rows: Sequence[Sequence[Any]], cost_column: int) -> None:
    """Raise unless enough rows hold a valid cost in *cost_column*."""
    if not data_rows:
        raise StructuralError(
            "INVALID_COST_COLUMN", "No data rows available for cost column validation"
        )

    total = 0
    valid = 0
    for row in data_rows:
        if len(row) > cost_column:
            total += 1
            if is_valid_cost(row[cost_column]):
                valid += 1

    if total == 0:
        raise StructuralError("INVALID_COST_COLUMN", "Cost column contains no data")

    ratio = valid / total
    if ratio < MIN_VALID_COST_RATIO:
        raise StructuralError(
            "INVALID_COST_COLUMN",
            "Cost column contains too few valid numeric values "
            f"({round(ratio * 100)}% valid, minimum 0.5% required)",
        )


def _check_inputs(grid: Sequence[Sequence[Any]], cost_column: int, config: MarkupConfig) -> None:
    if not grid:
        raise StructuralError("EMPTY_DATA", "Cannot calculate markup for an empty dataset")
    headers = grid[0]
    if len(headers) == 0:
        raise StructuralError("INVALID_HEADERS", "First row must contain column headers")
    if (
        isinstance(cost_column, bool)
        or not isinstance(cost_column, Integral)
        or not 0 <= cost_column < len(headers)
    ):
        raise StructuralError(
            "INVALID_COST_COLUMN_INDEX",
            f"Cost column index {cost_column} is out of range (0-{len(headers) - 1})",
        )
    if not isinstance(config, MarkupConfig):
        raise TypeError("config must be a MarkupConfig")


def apply_markup(
    grid: Sequence[Sequence[Any]],
    cost_column: int,
    config: MarkupConfig | None = None,
) -> tuple[Grid, MarkupSummary]:
    """Append one markup column per configured percentage to *grid*.

    Row 0 is the header row. All structural checks run before any data row is
    read; rows whose cost does not parse get empty markup cells instead.
    Data rows are padded or cut to the header width so every markup cell
    sits at its column's ``column_index``.

    Raises
    ------
    StructuralError
        If the grid, cost column index or cost column contents are unusable.
    """
    if config is None:
        config = MarkupConfig()
    _check_inputs(grid, cost_column, config)

    headers = list(grid[0])
    data_rows = grid[1:]
    validate_cost_column(data_rows, cost_column)

    width = len(headers)
    columns = build_markup_columns(width, config)
    summary = MarkupSummary(columns=columns, rows_in=len(data_rows))
    out: Grid = [headers + [column.header for column in columns]]

    for row_number, row in enumerate(data_rows, start=1):
        base = list(row[:width]) + [None] * (width - len(row))
        if len(row) > width:
            logger.debug(
                "row %d: dropping %d cells past the header row", row_number, len(row) - width
            )
        cost = row[cost_column] if cost_column < len(row) else None
        try:
            prices: list[Any] = [
                calculate_markup(cost, column.percentage, config.decimal_places)
                for column in columns
            ]
        except ComputationError as exc:
            logger.warning("row %d: %s", row_number, exc.message)
            summary.errors.append({"row": row_number, **exc.to_dict()})
            prices = [None] * len(columns)

        if prices and prices[0] is not None:
            summary.rows_priced += 1
        else:
            summary.skipped_rows.append(row_number)
        out.append(base + prices)

    return out, summary
