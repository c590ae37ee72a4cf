"""Header-row location — score the top of a raw grid to find the column labels."""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Sequence
from typing import Any

from pricelist_markup.utils import cell_text

logger = logging.getLogger(__name__)

HEADER_KEYWORDS: tuple[str, ...] = (
    # Generic columns
    "name", "code", "id", "description", "item", "product", "style",
    # Price related
    "price", "cost", "unit", "amount", "value", "rate", "total",
    # Quantity related
    "qty", "quantity", "stock", "availability", "carton", "pack",
    # Attributes
    "size", "colour", "color", "brand", "category", "type", "model",
    # Sourcing
    "supplier", "vendor", "manufacturer", "sku", "barcode", "ref",
)

MAX_HEADER_SCAN_ROWS = 10

_DATE_LIKE_RE = re.compile(r"^\d{1,2}/\d{1,2}/\d{2,4}$")


def _looks_like_number(text: str) -> bool:
    try:
        return math.isfinite(float(text))
    except (ValueError, OverflowError):
        return False


def _score_cell(text: str) -> tuple[int, bool]:
    score = 0
    matched = any(keyword in text for keyword in HEADER_KEYWORDS)
    if matched:
        score += 10
    if "price" in text or "cost" in text:
        score += 15
        if "unit" in text:
            score += 20
    if _looks_like_number(text) or _DATE_LIKE_RE.match(text):
        score -= 5
    return score, matched


def score_header_row(row: Sequence[Any]) -> int:
    """How header-like *row* is; higher is better, 0 or less is not a header."""
    score = 0
    non_blank = 0
    keyword_cells = 0
    for cell in row:
        text = cell_text(cell)
        if not text:
            continue
        non_blank += 1
        cell_score, matched = _score_cell(text)
        score += cell_score
        if matched:
            keyword_cells += 1

    if non_blank >= 3:
        score += non_blank * 2
    if keyword_cells >= 2:
        score += keyword_cells * 5
    return score


def locate_header_row(
    grid: Sequence[Sequence[Any]], max_rows: int = MAX_HEADER_SCAN_ROWS
) -> int | None:
    """Return the index of the header row within the first *max_rows* rows.

    Only a strictly higher score replaces the current best, so the earliest
    row wins ties. Returns ``None`` when no row scores above zero.
    """
    best_row: int | None = None
    best_score = 0
    for index, row in enumerate(grid[:max_rows]):
        if not row:
            continue
        score = score_header_row(row)
        logger.debug("header row %d scored %d", index, score)
        if score > best_score:
            best_score = score
            best_row = index

    logger.debug("best header row: %s (score %d)", best_row, best_score)
    return best_row
