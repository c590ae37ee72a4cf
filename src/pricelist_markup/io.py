"""I/O helpers — decode input files into grids, write JSON artifacts."""

from __future__ import annotations

import csv
import json
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, cast

import pandas as pd

from pricelist_markup.models import Grid
from pricelist_markup.utils import is_blank

MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB

_EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xltx", ".xltm")

# ── Loading ──────────────────────────────────────────────────────


def _plain_cell(value: Any) -> Any:
    if value is None or value is pd.NA or value is pd.NaT:
        return None
    if isinstance(value, float) and value != value:
        return None
    item = getattr(value, "item", None)
    if callable(item) and not isinstance(value, (str, datetime, date)):
        return item()
    return value


def _frame_to_grid(df: pd.DataFrame) -> Grid:
    grid: Grid = []
    for row in df.itertuples(index=False, name=None):
        cells = [_plain_cell(v) for v in row]
        while cells and is_blank(cells[-1]):
            cells.pop()
        if cells:
            grid.append(cells)
    return grid


def _sniff_csv(path: Path, encoding: str, delimiter: str | None) -> tuple[str, int]:
    """Return ``(delimiter, widest row)`` so ragged rows load without errors."""
    with open(path, newline="", encoding=encoding) as fh:
        sample = fh.read(64 * 1024)
        if delimiter is None:
            try:
                delimiter = csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
            except csv.Error:
                delimiter = ","
        fh.seek(0)
        width = max((len(row) for row in csv.reader(fh, delimiter=delimiter)), default=0)
    return delimiter, width


def _read_csv(path: Path, delimiter: str | None) -> pd.DataFrame:
    last_exc: Exception | None = None
    for encoding in ("utf-8-sig", "utf-8", "latin-1"):
        try:
            sep, width = _sniff_csv(path, encoding, delimiter)
            if width == 0:
                return pd.DataFrame()
            return pd.read_csv(
                path,
                header=None,
                names=list(range(width)),
                dtype="string",
                sep=sep,
                engine="python",
                encoding=encoding,
                encoding_errors="strict",
                skip_blank_lines=True,
            )
        except (UnicodeDecodeError, csv.Error, pd.errors.ParserError) as exc:
            last_exc = exc
    raise ValueError(f"Could not read CSV {path} (decode or parse failed)") from last_exc


def load_grid(path: Path, delimiter: str | None = None) -> Grid:
    """Decode the first worksheet of *path* into a grid of plain Python cells.

    No header inference happens here; blank rows and trailing blank cells are
    dropped.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If the file is empty, too large, of an unsupported type, or fails to
        decode.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    if path.is_dir():
        raise ValueError(f"Input path is a directory, not a file: {path}")

    size = path.stat().st_size
    if size == 0:
        raise ValueError(f"File is empty: {path}")
    if size > MAX_FILE_SIZE:
        size_mb = round(size / (1024 * 1024))
        raise ValueError(
            f"File size ({size_mb}MB) exceeds maximum limit of {MAX_FILE_SIZE // (1024 * 1024)}MB"
        )

    suffix = path.suffix.lower()
    read_excel = cast(Callable[..., pd.DataFrame], getattr(pd, "read_excel"))
    if suffix == ".csv":
        df = _read_csv(path, delimiter)
    elif suffix in _EXCEL_SUFFIXES:
        df = read_excel(path, sheet_name=0, header=None, engine="openpyxl")
    elif suffix == ".xls":
        try:
            df = read_excel(path, sheet_name=0, header=None, engine="xlrd")
        except ImportError as exc:
            raise ValueError(
                "Unsupported .xls input unless 'xlrd' is installed. "
                "Either convert to .xlsx or add dependency: pip install xlrd"
            ) from exc
    else:
        raise ValueError(f"Unsupported file type: {suffix!r}. Use .csv, .xlsx, or .xls")

    return _frame_to_grid(df.astype(object))


# ── Writing ──────────────────────────────────────────────────────


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    item = getattr(obj, "item", None)
    if callable(item):
        converted = item()
        if isinstance(converted, (str, int, float, bool)) or converted is None:
            return converted
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def write_json(path: Path, data: Any) -> Path:
    """Write *data* as pretty-printed JSON to *path* (atomic + deterministic)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = json.dumps(
        data,
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
        default=_json_default,
    ) + "\n"
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    tmp_path.replace(path)
    return path
