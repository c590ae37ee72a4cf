"""Column pruning — drop structurally empty columns and re-find the cost column."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from pricelist_markup.models import Grid
from pricelist_markup.utils import cell_text, is_blank

logger = logging.getLogger(__name__)

# Headers that keep a column alive even when every cell below is empty.
IMPORTANT_HEADER_KEYWORDS: tuple[str, ...] = (
    "price", "cost", "unit", "amount", "value", "carton",
)

PRICE_HEADER_KEYWORDS: tuple[str, ...] = ("price", "cost", "unit")

# Most specific first.
BEST_PRICE_PHRASES: tuple[str, ...] = (
    "unit price",
    "price for carton",
    "unit cost",
    "selling price",
    "list price",
    "price",
    "cost",
    "amount",
    "value",
)

NON_PRICE_KEYWORDS: tuple[str, ...] = (
    "code", "description", "size", "colour", "availability", "effective", "remark",
)


def _has_any(text: str, keywords: Sequence[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def prune_columns(grid: Sequence[Sequence[Any]]) -> tuple[Grid, list[int]]:
    """Remove columns with no values anywhere, unless the header marks them as prices.

    Returns ``(cleaned_grid, kept_indices)``. The cleaned grid is rectangular;
    missing cells are ``None``.
    """
    if not grid:
        return [], []

    width = max((len(row) for row in grid), default=0)
    header = grid[0]
    kept: list[int] = []
    for index in range(width):
        has_data = any(index < len(row) and not is_blank(row[index]) for row in grid)
        header_text = cell_text(header[index]) if index < len(header) else ""
        if has_data or _has_any(header_text, IMPORTANT_HEADER_KEYWORDS):
            kept.append(index)
        else:
            logger.debug("dropping empty column %d (%r)", index, header_text)

    cleaned: Grid = [
        [row[index] if index < len(row) else None for index in kept] for row in grid
    ]
    return cleaned, kept


def find_best_price_column(headers: Sequence[Any]) -> int:
    """Best guess at the price column from header text alone."""
    texts = [cell_text(h) for h in headers]
    for phrase in BEST_PRICE_PHRASES:
        for index, text in enumerate(texts):
            if phrase in text:
                return index

    for index, text in enumerate(texts):
        if not _has_any(text, NON_PRICE_KEYWORDS):
            return index

    logger.warning("no plausible price column in headers %r, using column 0", texts)
    return 0


def reindex_column(
    original_headers: Sequence[Any],
    cleaned_headers: Sequence[Any],
    original_index: int,
) -> int:
    """Map *original_index* onto the pruned header row by matching header text.

    Falls back to :func:`find_best_price_column` when the header is gone or
    does not read like a price header.
    """
    if not 0 <= original_index < len(original_headers):
        return find_best_price_column(cleaned_headers)

    original = original_headers[original_index]
    try:
        new_index = list(cleaned_headers).index(original)
    except ValueError:
        return find_best_price_column(cleaned_headers)

    if not _has_any(cell_text(cleaned_headers[new_index]), PRICE_HEADER_KEYWORDS):
        logger.debug(
            "column %r does not look like a price column, searching headers",
            cleaned_headers[new_index],
        )
        return find_best_price_column(cleaned_headers)

    logger.debug("cost column %d -> %d after pruning", original_index, new_index)
    return new_index
