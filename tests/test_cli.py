"""CLI integration smoke tests for pricelist-markup."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
import typer
from openpyxl import load_workbook
from rich.logging import RichHandler
from typer.testing import CliRunner

import pricelist_markup.cli as cli_mod
from pricelist_markup import __version__
from pricelist_markup.cli import app

runner = CliRunner()

PRICES_CSV = "Item,Cost,Qty\nA,10,5\nB,20,3\n"
NO_COST_CSV = "Code,Name\nAB,Widget\nCD,Gadget\n"


def _write_csv(tmp_path: Path, name: str, rows: str) -> Path:
    path = tmp_path / name
    path.write_text(rows, encoding="utf-8")
    return path


def _read_json(path: Path) -> dict[str, object]:
    return json.loads(path.read_text(encoding="utf-8"))


def test_run_success_generates_workbook_and_artifacts(tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path, "acme.csv", PRICES_CSV)
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        [
            "run", "--input", str(csv_path), "--out-dir", str(out_dir),
            "--markup", "10", "--markup", "20", "--required-rows", "2", "--quiet",
        ],
    )

    assert result.exit_code == 0, result.output
    wb = load_workbook(out_dir / "Priced_Pricelists.xlsx")
    assert wb.sheetnames == ["Summary", "acme"]
    ws = wb["acme"]
    assert [c.value for c in ws[1]] == ["Item", "Cost", "Qty", "10% Markup", "20% Markup"]
    assert [c.value for c in ws[2]] == ["A", 10, 5, 11, 12]

    qc = _read_json(out_dir / "qc_report.json")
    assert qc["sheets_ok"] == 1
    assert qc["sheets_failed"] == 0
    sheet = qc["sheets"][0]  # type: ignore[index]
    assert sheet["method"] == "exact-header"
    assert sheet["cost_column"] == 1

    manifest = _read_json(out_dir / "run_manifest.json")
    assert manifest["status"] == "success"
    assert manifest["version"] == __version__
    assert manifest["markup"] == {
        "percentages": [10, 20],
        "decimal_places": 2,
        "currency_symbol": "",
    }
    inputs = manifest["inputs"]
    assert isinstance(inputs, list)
    assert inputs[0]["path"] == str(csv_path.resolve())
    assert len(inputs[0]["sha256"]) == 64


def test_run_partial_failure_still_exports_good_sheets(tmp_path: Path) -> None:
    good = _write_csv(tmp_path, "good.csv", PRICES_CSV)
    bad = _write_csv(tmp_path, "bad.csv", NO_COST_CSV)
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        [
            "run", "-i", str(good), "-i", str(bad), "-o", str(out_dir),
            "--required-rows", "2", "--quiet",
        ],
    )

    assert result.exit_code == 2
    wb = load_workbook(out_dir / "Priced_Pricelists.xlsx")
    assert wb.sheetnames == ["Summary", "good"]

    qc = _read_json(out_dir / "qc_report.json")
    assert qc["sheets_ok"] == 1
    assert qc["sheets_failed"] == 1
    failed = qc["sheets"][1]  # type: ignore[index]
    assert failed["sheet"] == "bad"
    assert failed["error_code"] == "COST_COLUMN_NOT_FOUND"
    assert _read_json(out_dir / "run_manifest.json")["status"] == "partial"


def test_run_all_failed_writes_no_workbook(tmp_path: Path) -> None:
    bad = _write_csv(tmp_path, "bad.csv", "foo,bar\n1,2\n")
    out_dir = tmp_path / "out"

    result = runner.invoke(app, ["run", "-i", str(bad), "-o", str(out_dir), "--quiet"])

    assert result.exit_code == 2
    assert not (out_dir / "Priced_Pricelists.xlsx").exists()
    qc = _read_json(out_dir / "qc_report.json")
    assert qc["sheets"][0]["error_code"] == "NO_HEADERS_FOUND"  # type: ignore[index]
    assert _read_json(out_dir / "run_manifest.json")["status"] == "failed"


def test_run_unreadable_file_is_file_read_error(tmp_path: Path) -> None:
    empty = _write_csv(tmp_path, "empty.csv", "")
    out_dir = tmp_path / "out"

    result = runner.invoke(app, ["run", "-i", str(empty), "-o", str(out_dir), "--quiet"])

    assert result.exit_code == 2
    qc = _read_json(out_dir / "qc_report.json")
    assert qc["sheets"][0]["error_code"] == "FILE_READ_ERROR"  # type: ignore[index]


@pytest.mark.parametrize(
    "extra",
    [
        ["--markup=-5"],
        ["--decimals", "11"],
        ["--min-confidence", "2"],
    ],
)
def test_run_invalid_configuration_exits_2(tmp_path: Path, extra: list[str]) -> None:
    csv_path = _write_csv(tmp_path, "acme.csv", PRICES_CSV)
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app, ["run", "-i", str(csv_path), "-o", str(out_dir), "--quiet", *extra]
    )

    assert result.exit_code == 2
    assert _read_json(out_dir / "run_manifest.json")["status"] == "failed"
    assert not (out_dir / "Priced_Pricelists.xlsx").exists()


def test_run_keywords_file_and_keyword_option(tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path, "eu.csv", "Code,Netto,Bruto\nAB,10,12\nCD,20,24\n")
    keywords = tmp_path / "keywords.txt"
    keywords.write_text("# supplier specific\n\nnetto\n", encoding="utf-8")
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        [
            "run", "-i", str(csv_path), "-o", str(out_dir), "--required-rows", "2",
            "--keywords-file", str(keywords), "--keyword", "bruto", "--quiet",
        ],
    )

    assert result.exit_code == 0, result.output
    sheet = _read_json(out_dir / "qc_report.json")["sheets"][0]  # type: ignore[index]
    assert sheet["method"] == "exact-header"
    assert sheet["cost_header"] == "Netto"


def test_run_missing_keywords_file_exits_2(tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path, "acme.csv", PRICES_CSV)
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        [
            "run", "-i", str(csv_path), "-o", str(out_dir),
            "--keywords-file", str(tmp_path / "nope.txt"),
        ],
    )

    assert result.exit_code == 2
    assert "Keywords file not found" in result.output


def test_run_cost_column_override(tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path, "rrp.csv", "Code,Net,RRP\nAB,10,20\nCD,5,9\n")
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        [
            "run", "-i", str(csv_path), "-o", str(out_dir),
            "--cost-column", "RRP", "--markup", "50", "--currency", "$", "--quiet",
        ],
    )

    assert result.exit_code == 0, result.output
    ws = load_workbook(out_dir / "Priced_Pricelists.xlsx")["rrp"]
    assert ws["D1"].value == "$50% Markup"
    assert ws["D2"].value == 30
    sheet = _read_json(out_dir / "qc_report.json")["sheets"][0]  # type: ignore[index]
    assert sheet["method"] == "user-selected"


def test_run_nonquiet_shows_progress_panels(tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path, "acme.csv", PRICES_CSV)
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app, ["run", "-i", str(csv_path), "-o", str(out_dir), "--required-rows", "2"]
    )

    assert result.exit_code == 0, result.output
    assert "Pipeline Start" in result.output
    assert "Pricing Summary" in result.output
    assert "Pipeline Complete" in result.output


def test_run_unexpected_error_exits_1(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path, "acme.csv", PRICES_CSV)
    out_dir = tmp_path / "out"

    def _boom(*_args: object, **_kwargs: object) -> Path:
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(cli_mod, "write_workbook", _boom)

    result = runner.invoke(
        app, ["run", "-i", str(csv_path), "-o", str(out_dir), "--required-rows", "2", "-q"]
    )

    assert result.exit_code == 1
    assert "Unexpected internal error" in result.output
    assert _read_json(out_dir / "run_manifest.json")["status"] == "failed"


def test_run_verbose_routes_logs_through_rich(tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path, "acme.csv", PRICES_CSV)
    out_dir = tmp_path / "out"
    package_logger = logging.getLogger("pricelist_markup")
    previous_level = package_logger.level

    try:
        result = runner.invoke(
            app,
            ["run", "-i", str(csv_path), "-o", str(out_dir), "--required-rows", "2", "-q", "-v"],
        )
        assert result.exit_code == 0, result.output
        assert any(isinstance(h, RichHandler) for h in package_logger.handlers)
        assert "header row" in result.output
    finally:
        for handler in list(package_logger.handlers):
            if isinstance(handler, RichHandler):
                package_logger.removeHandler(handler)
        package_logger.setLevel(previous_level)


def test_detect_reports_column(tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path, "acme.csv", PRICES_CSV)

    result = runner.invoke(app, ["detect", "-i", str(csv_path), "--required-rows", "2"])

    assert result.exit_code == 0, result.output
    assert "exact-header" in result.output
    assert "95%" in result.output
    assert "FOUND" in result.output


def test_detect_not_found_exits_2(tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path, "names.csv", NO_COST_CSV)

    result = runner.invoke(app, ["detect", "-i", str(csv_path), "--required-rows", "2"])

    assert result.exit_code == 2
    assert "NOT FOUND" in result.output


def test_detect_structural_error_exits_2(tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path, "title.csv", "Item,Cost,Qty\n")

    result = runner.invoke(app, ["detect", "-i", str(csv_path)])

    assert result.exit_code == 2
    assert "INSUFFICIENT_DATA" in result.output


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert f"pricelist-markup v{__version__}" in result.output


@pytest.mark.parametrize("command", ["run", "detect"])
def test_required_rows_help_describes_detection_precondition(command: str) -> None:
    group = typer.main.get_command(app)
    option = next(p for p in group.commands[command].params if p.name == "required_rows")

    assert option.default == 5
    assert "before detection runs" in (option.help or "")
