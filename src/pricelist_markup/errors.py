"""Error types raised by the pricing core.

Every error carries a machine-readable ``code`` next to the human-readable
message so the CLI and QC artifacts can report both.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pricelist_markup.models import DetectionResult


class PricelistError(Exception):
    """Base class for all pricelist processing failures."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class StructuralError(PricelistError, ValueError):
    """Empty grids, missing headers, bad indices or invalid configuration.

    Always raised before any data row is touched.
    """


class CostColumnNotFoundError(PricelistError):
    """No detection strategy produced a usable cost column."""

    def __init__(self, detection: DetectionResult, message: str | None = None) -> None:
        super().__init__(
            "COST_COLUMN_NOT_FOUND",
            message or "Could not identify a cost price column",
        )
        self.detection = detection


class ComputationError(PricelistError, ArithmeticError):
    """Unexpected arithmetic failure while pricing a single row."""

    def __init__(self, message: str) -> None:
        super().__init__("MARKUP_CALCULATION_ERROR", message)
