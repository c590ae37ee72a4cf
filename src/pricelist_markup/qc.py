"""QC report persistence."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from pricelist_markup.io import write_json
from pricelist_markup.models import ProcessingReport


def write_qc_report(out_dir: Path, reports: Sequence[ProcessingReport]) -> Path:
    """Write ``qc_report.json`` (one entry per sheet) into *out_dir* and return the path."""
    payload = {
        "sheets": [report.to_dict() for report in reports],
        "sheets_ok": sum(1 for report in reports if report.status == "success"),
        "sheets_failed": sum(1 for report in reports if report.status != "success"),
    }
    return write_json(out_dir / "qc_report.json", payload)
