"""Data models shared by the detection, pruning and markup stages."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from numbers import Integral, Real
from typing import Any, Union

from pricelist_markup import DEFAULT_MARKUP_PERCENTAGES
from pricelist_markup.errors import StructuralError

Cell = Union[str, int, float, Decimal, bool, datetime, date, None]
Row = list[Cell]
Grid = list[Row]


def _to_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return result


def _to_string_list(values: Sequence[Any] | None, field_name: str) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        raise TypeError(f"{field_name} must be a sequence of strings")
    normalized: list[str] = []
    for item in values:
        if not isinstance(item, str):
            raise TypeError(f"{field_name} items must be strings")
        normalized.append(item)
    return normalized


# ── Detection ────────────────────────────────────────────────────


class DetectionMethod(str, Enum):
    EXACT_HEADER = "exact-header"
    PARTIAL_HEADER = "partial-header"
    DATA_PATTERN = "data-pattern"
    POSITION_HEURISTIC = "position-heuristic"
    FORCED_NUMERIC = "forced-numeric"
    USER_SELECTED = "user-selected"


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of cost-column detection.

    Contract invariant: ``column_index == -1`` exactly when ``confidence == 0``.
    """

    column_index: int
    confidence: float
    method: DetectionMethod
    alternatives: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        if isinstance(self.column_index, bool) or not isinstance(self.column_index, Integral):
            raise TypeError("column_index must be an integer")
        if self.column_index < -1:
            raise ValueError("column_index must be >= -1")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("confidence must be within [0, 1]")
        if (self.column_index == -1) != (self.confidence == 0):
            raise ValueError("column_index is -1 if and only if confidence is 0")
        object.__setattr__(self, "method", DetectionMethod(self.method))
        object.__setattr__(self, "alternatives", tuple(self.alternatives))

    @classmethod
    def failed(cls, method: DetectionMethod = DetectionMethod.EXACT_HEADER) -> DetectionResult:
        return cls(column_index=-1, confidence=0.0, method=method)

    @property
    def found(self) -> bool:
        return self.column_index >= 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "column_index": self.column_index,
            "confidence": self.confidence,
            "method": self.method.value,
            "alternatives": list(self.alternatives),
        }


@dataclass(frozen=True)
class DetectionOptions:
    """Tuning knobs for :func:`pricelist_markup.detection.detect_cost_column`."""

    min_confidence: float = 0.3
    required_data_rows: int = 5
    custom_keywords: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if isinstance(self.min_confidence, bool) or not isinstance(self.min_confidence, Real):
            raise StructuralError(
                "INVALID_DETECTION_OPTIONS", "min_confidence must be a number"
            )
        if not 0.0 <= float(self.min_confidence) <= 1.0:
            raise StructuralError(
                "INVALID_DETECTION_OPTIONS", "min_confidence must be between 0 and 1"
            )
        try:
            required = _to_non_negative_int(self.required_data_rows, "required_data_rows")
            keywords = _to_string_list(self.custom_keywords, "custom_keywords")
        except (TypeError, ValueError) as exc:
            raise StructuralError("INVALID_DETECTION_OPTIONS", str(exc)) from exc
        object.__setattr__(self, "min_confidence", float(self.min_confidence))
        object.__setattr__(self, "required_data_rows", required)
        object.__setattr__(
            self,
            "custom_keywords",
            tuple(k.strip().lower() for k in keywords if k.strip()),
        )


# ── Markup ───────────────────────────────────────────────────────


def percentage_label(percentage: float | int | Decimal) -> str:
    """Percentage as shown in column headers: whole, or rounded to one decimal."""
    if isinstance(percentage, Decimal):
        pct = percentage
    elif isinstance(percentage, Integral):
        pct = Decimal(int(percentage))
    else:
        pct = Decimal(repr(float(percentage)))
    if pct == pct.to_integral_value():
        return str(int(pct))
    return str(pct.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _validate_percentages(values: Any) -> tuple[float | int, ...]:
    if isinstance(values, (str, bytes)) or not isinstance(values, (Sequence, set, frozenset)):
        raise StructuralError(
            "INVALID_MARKUP_PERCENTAGES", "Markup percentages must be a non-empty sequence"
        )
    if len(values) == 0:
        raise StructuralError(
            "INVALID_MARKUP_PERCENTAGES", "Markup percentages must be a non-empty sequence"
        )
    ordered = sorted(values) if isinstance(values, (set, frozenset)) else list(values)
    seen: list[float | int] = []
    for pct in ordered:
        if (
            isinstance(pct, bool)
            or not isinstance(pct, (Real, Decimal))
            or not math.isfinite(pct)
            or pct < 0
        ):
            raise StructuralError(
                "INVALID_MARKUP_PERCENTAGE",
                f"Invalid markup percentage: {pct!r}. Must be a non-negative number",
            )
        if pct not in seen:
            seen.append(pct)

    labels: dict[str, float | int] = {}
    for pct in seen:
        label = percentage_label(pct)
        if label in labels:
            raise StructuralError(
                "INVALID_MARKUP_PERCENTAGES",
                f"Markup percentages {labels[label]!r} and {pct!r} share the label {label}%",
            )
        labels[label] = pct
    return tuple(seen)


@dataclass(frozen=True)
class MarkupConfig:
    """Markup percentages and output formatting, validated on construction."""

    percentages: tuple[float | int, ...] = DEFAULT_MARKUP_PERCENTAGES
    decimal_places: int = 2
    currency_symbol: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "percentages", _validate_percentages(self.percentages))
        places = self.decimal_places
        if isinstance(places, bool) or not isinstance(places, Integral) or not 0 <= places <= 10:
            raise StructuralError(
                "INVALID_DECIMAL_PLACES", "Decimal places must be an integer between 0 and 10"
            )
        object.__setattr__(self, "decimal_places", int(places))
        if self.currency_symbol is None:
            object.__setattr__(self, "currency_symbol", "")
        elif not isinstance(self.currency_symbol, str):
            raise TypeError("currency_symbol must be a string")

    def to_dict(self) -> dict[str, Any]:
        return {
            "percentages": list(self.percentages),
            "decimal_places": self.decimal_places,
            "currency_symbol": self.currency_symbol,
        }


@dataclass(frozen=True)
class MarkupColumn:
    percentage: float | int
    column_index: int
    header: str


@dataclass
class MarkupSummary:
    """Per-grid bookkeeping returned alongside the marked-up grid."""

    columns: list[MarkupColumn] = field(default_factory=list)
    rows_in: int = 0
    rows_priced: int = 0
    skipped_rows: list[int] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)


# ── Reports ──────────────────────────────────────────────────────


@dataclass
class ProcessingReport:
    """Quality-control report emitted for every processed sheet.

    Contract invariant: ``rows_skipped == rows_in - rows_priced``.
    """

    sheet: str = ""
    rows_in: int = 0
    rows_priced: int = 0
    rows_skipped: int = 0
    header_row: int | None = None
    cost_column: int = -1
    cost_header: str = ""
    confidence: float = 0.0
    method: str = ""
    alternatives: list[int] = field(default_factory=list)
    dropped_columns: list[str] = field(default_factory=list)
    markup_headers: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    status: str = "success"
    error_code: str | None = None
    error_message: str = ""

    def __post_init__(self) -> None:
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.rows_priced = _to_non_negative_int(self.rows_priced, "rows_priced")
        self.rows_skipped = _to_non_negative_int(self.rows_skipped, "rows_skipped")
        self.dropped_columns = _to_string_list(self.dropped_columns, "dropped_columns")
        self.markup_headers = _to_string_list(self.markup_headers, "markup_headers")
        self.warnings = _to_string_list(self.warnings, "warnings")
        self.alternatives = list(self.alternatives or [])
        if self.rows_priced > self.rows_in:
            raise ValueError("rows_priced must be <= rows_in")
        if self.rows_skipped != self.rows_in - self.rows_priced:
            raise ValueError("rows_skipped must equal rows_in - rows_priced")

    @classmethod
    def failure(cls, sheet: str, code: str, message: str) -> ProcessingReport:
        return cls(
            sheet=sheet,
            status="failed",
            error_code=code,
            error_message=message,
            warnings=[message],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "sheet": self.sheet,
            "status": self.status,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "rows_in": self.rows_in,
            "rows_priced": self.rows_priced,
            "rows_skipped": self.rows_skipped,
            "header_row": self.header_row,
            "cost_column": self.cost_column,
            "cost_header": self.cost_header,
            "confidence": self.confidence,
            "method": self.method,
            "alternatives": list(self.alternatives),
            "dropped_columns": list(self.dropped_columns),
            "markup_headers": list(self.markup_headers),
            "warnings": list(self.warnings),
        }


@dataclass
class RunManifest:
    """Audit-trail manifest for a single CLI run."""

    tool: str = "pricelist-markup"
    version: str = ""
    output_dir: str = ""
    created_at_utc: str = ""
    inputs: list[dict[str, str]] = field(default_factory=list)
    sheets_ok: int = 0
    sheets_failed: int = 0
    markup: dict[str, Any] = field(default_factory=dict)
    status: str = "success"

    def __post_init__(self) -> None:
        self.sheets_ok = _to_non_negative_int(self.sheets_ok, "sheets_ok")
        self.sheets_failed = _to_non_negative_int(self.sheets_failed, "sheets_failed")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "version": self.version,
            "output_dir": self.output_dir,
            "created_at_utc": self.created_at_utc,
            "inputs": [dict(item) for item in self.inputs],
            "sheets_ok": self.sheets_ok,
            "sheets_failed": self.sheets_failed,
            "markup": dict(self.markup),
            "status": self.status,
        }
