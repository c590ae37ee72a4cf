"""Cost-price column detection.

Four independent strategies each propose a column with a confidence score.
They run as an ordered cascade:

1. primary pass over every strategy, keeping results with
   ``confidence >= min_confidence``;
2. fallback pass over the header-partial, data-pattern and position
   strategies, keeping results with ``confidence > 0.1``;
3. forced pick of the column with the best numeric score.

Within a pass only a strictly higher confidence replaces the current best,
so earlier strategies win ties and the result is deterministic.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import cached_property
from typing import Any

from pricelist_markup.models import DetectionMethod, DetectionOptions, DetectionResult
from pricelist_markup.numeric import decimal_places, parse_numeric
from pricelist_markup.utils import cell_text, is_blank

logger = logging.getLogger(__name__)

COST_PRICE_KEYWORDS: tuple[str, ...] = (
    "cost",
    "price",
    "wholesale",
    "buy",
    "supplier",
    "purchase",
    "unit cost",
    "base price",
    "price for carton qty",
    "price for carton",
    "carton price",
    "price per carton",
    "unit price",
    "selling price",
    "list price",
    "carton",
    "qty",
    "amount",
    "value",
    "rate",
)

EXACT_MATCH_CONFIDENCE = 0.95
POSITION_CONFIDENCE = 0.4
FALLBACK_THRESHOLD = 0.1
MIN_NUMERIC_RATIO = 0.005
CANDIDATE_PRICE_POSITIONS: tuple[int, ...] = (1, 2, 3, 4, 5)


# ── Column analysis ──────────────────────────────────────────────


@dataclass(frozen=True)
class ColumnAnalysis:
    is_numeric: bool
    score: float


_NOT_NUMERIC = ColumnAnalysis(is_numeric=False, score=0.0)


def _has_reasonable_price_range(values: Sequence[float]) -> bool:
    if not values:
        return False
    low = min(values)
    high = max(values)
    return low >= 0.01 and high <= 1_000_000 and high / max(low, 0.01) <= 10_000


def _has_consistent_precision(values: Sequence[float]) -> bool:
    if not values:
        return False
    reasonable = sum(1 for v in values if 0 <= decimal_places(v) <= 3)
    return reasonable / len(values) >= 0.8


def analyze_numeric_column(values: Sequence[Any]) -> ColumnAnalysis:
    """Score how much *values* look like a column of unit prices (0..1)."""
    present = [v for v in values if not is_blank(v)]
    numbers = [n for n in (parse_numeric(v) for v in present) if n is not None]
    if not numbers:
        return _NOT_NUMERIC

    numeric_ratio = len(numbers) / max(len(present), 1)
    if numeric_ratio < MIN_NUMERIC_RATIO:
        return _NOT_NUMERIC

    positives = [n for n in numbers if n > 0]
    score = numeric_ratio * 0.4
    if _has_reasonable_price_range(positives):
        score += 0.3
    if _has_consistent_precision(positives):
        score += 0.2
    if positives and len(positives) == len(numbers):
        score += 0.1
    return ColumnAnalysis(is_numeric=True, score=min(score, 1.0))


# ── Strategy context ─────────────────────────────────────────────


class _DetectionContext:
    """Inputs shared by every strategy of one detection run."""

    def __init__(
        self,
        headers: Sequence[Any],
        rows: Sequence[Sequence[Any]],
        options: DetectionOptions,
    ) -> None:
        self.headers = [cell_text(h) for h in headers]
        self.rows = rows
        self.options = options
        self.keywords = COST_PRICE_KEYWORDS + tuple(
            k for k in options.custom_keywords if k not in COST_PRICE_KEYWORDS
        )

    def column(self, index: int) -> list[Any]:
        return [row[index] if index < len(row) else None for row in self.rows]

    @cached_property
    def analyses(self) -> list[ColumnAnalysis]:
        return [analyze_numeric_column(self.column(i)) for i in range(len(self.headers))]

    def header_has_keyword(self, index: int) -> bool:
        header = self.headers[index]
        return bool(header) and any(keyword in header for keyword in self.keywords)


Strategy = Callable[[_DetectionContext], DetectionResult]


# ── Strategies ───────────────────────────────────────────────────


def _exact_header_match(ctx: _DetectionContext) -> DetectionResult:
    keywords = set(ctx.keywords)
    for index, header in enumerate(ctx.headers):
        if header in keywords:
            return DetectionResult(
                column_index=index,
                confidence=EXACT_MATCH_CONFIDENCE,
                method=DetectionMethod.EXACT_HEADER,
            )
    return DetectionResult.failed(DetectionMethod.EXACT_HEADER)


def _partial_match_score(header: str, keywords: Sequence[str]) -> float:
    score = 0.0
    for keyword in keywords:
        position = header.find(keyword)
        if position < 0:
            continue
        bonus = 0.2 if position == 0 else 0.0
        score = max(score, len(keyword) / len(header) + bonus)
    return score


def _partial_header_match(ctx: _DetectionContext) -> DetectionResult:
    matches: list[tuple[int, float]] = []
    for index, header in enumerate(ctx.headers):
        if not header:
            continue
        score = _partial_match_score(header, ctx.keywords)
        if score > 0:
            matches.append((index, score))

    if not matches:
        return DetectionResult.failed(DetectionMethod.PARTIAL_HEADER)

    matches.sort(key=lambda m: m[1], reverse=True)
    best_index, best_score = matches[0]
    confidence = min(best_score * 0.8, 0.85)
    if len(matches) > 1:
        confidence -= 0.1
    return DetectionResult(
        column_index=best_index,
        confidence=max(confidence, 0.1),
        method=DetectionMethod.PARTIAL_HEADER,
        alternatives=tuple(index for index, _ in matches[1:3]),
    )


def _data_pattern_match(ctx: _DetectionContext) -> DetectionResult:
    candidates: list[tuple[int, float]] = []
    for index, analysis in enumerate(ctx.analyses):
        if not analysis.is_numeric or analysis.score <= 0.5:
            continue
        bonus = 0.3 if ctx.header_has_keyword(index) else 0.0
        candidates.append((index, analysis.score + bonus))

    if not candidates:
        return DetectionResult.failed(DetectionMethod.DATA_PATTERN)

    candidates.sort(key=lambda c: c[1], reverse=True)
    best_index, best_score = candidates[0]
    return DetectionResult(
        column_index=best_index,
        confidence=min(best_score * 0.75, 0.8),
        method=DetectionMethod.DATA_PATTERN,
        alternatives=tuple(index for index, _ in candidates[1:3]),
    )


def _position_heuristic(ctx: _DetectionContext) -> DetectionResult:
    for position in CANDIDATE_PRICE_POSITIONS:
        if position >= len(ctx.headers):
            break
        analysis = ctx.analyses[position]
        if analysis.is_numeric and analysis.score > 0.01:
            return DetectionResult(
                column_index=position,
                confidence=POSITION_CONFIDENCE,
                method=DetectionMethod.POSITION_HEURISTIC,
            )
    return DetectionResult.failed(DetectionMethod.POSITION_HEURISTIC)


def _forced_numeric(ctx: _DetectionContext) -> DetectionResult:
    best_index = -1
    best_score = 0.0
    for index, analysis in enumerate(ctx.analyses):
        if analysis.is_numeric and analysis.score > best_score:
            best_index = index
            best_score = analysis.score

    if best_index < 0:
        return DetectionResult.failed(DetectionMethod.FORCED_NUMERIC)
    return DetectionResult(
        column_index=best_index,
        confidence=min(best_score * 0.5, 0.4),
        method=DetectionMethod.FORCED_NUMERIC,
    )


PRIMARY_STRATEGIES: tuple[Strategy, ...] = (
    _exact_header_match,
    _partial_header_match,
    _data_pattern_match,
    _position_heuristic,
)

FALLBACK_STRATEGIES: tuple[Strategy, ...] = (
    _partial_header_match,
    _data_pattern_match,
    _position_heuristic,
)


def _best_result(
    strategies: Sequence[Strategy],
    ctx: _DetectionContext,
    threshold: float,
    *,
    inclusive: bool,
) -> DetectionResult | None:
    best: DetectionResult | None = None
    for strategy in strategies:
        result = strategy(ctx)
        logger.debug(
            "%s -> column %d (confidence %.3f)",
            result.method.value, result.column_index, result.confidence,
        )
        if not result.found:
            continue
        passes = result.confidence >= threshold if inclusive else result.confidence > threshold
        if passes and (best is None or result.confidence > best.confidence):
            best = result
    return best


# ── Public API ───────────────────────────────────────────────────


def detect_cost_column(
    headers: Sequence[Any],
    data_rows: Sequence[Sequence[Any]],
    options: DetectionOptions | None = None,
) -> DetectionResult:
    """Pick the column of *data_rows* most likely to hold the unit cost price.

    A failed detection is returned as ``column_index == -1`` with zero
    confidence, never raised.
    """
    if options is None:
        options = DetectionOptions()

    if len(headers) == 0 or len(data_rows) < options.required_data_rows:
        return DetectionResult.failed()

    ctx = _DetectionContext(headers, data_rows, options)

    best = _best_result(PRIMARY_STRATEGIES, ctx, options.min_confidence, inclusive=True)
    if best is None:
        best = _best_result(FALLBACK_STRATEGIES, ctx, FALLBACK_THRESHOLD, inclusive=False)
    if best is None:
        forced = _forced_numeric(ctx)
        if forced.found:
            best = forced

    return best or DetectionResult.failed()
