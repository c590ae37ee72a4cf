"""CLI entry point for pricelist-markup."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table as RichTable

from pricelist_markup import DEFAULT_MARKUP_PERCENTAGES, __version__
from pricelist_markup.detection import detect_cost_column
from pricelist_markup.errors import PricelistError
from pricelist_markup.io import load_grid, write_json
from pricelist_markup.models import (
    DetectionOptions,
    Grid,
    MarkupConfig,
    ProcessingReport,
    RunManifest,
)
from pricelist_markup.pipeline import prepare_sheet, process_sheet
from pricelist_markup.qc import write_qc_report
from pricelist_markup.report import sheet_title, write_workbook
from pricelist_markup.utils import format_confidence, sha256_file, utcnow_iso

app = typer.Typer(
    name="pmarkup",
    help="pricelist-markup — Find the cost column in supplier pricelists and add markup prices.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}")


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"pricelist-markup v{__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    """Route the core's log records through rich when ``--verbose`` is set."""
    if not verbose:
        return
    package_logger = logging.getLogger("pricelist_markup")
    package_logger.setLevel(logging.DEBUG)
    if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
        package_logger.addHandler(
            RichHandler(console=console, show_path=False, markup=False)
        )


def _load_keywords_file(path: Path | None) -> list[str]:
    """Return one keyword per non-blank, non-comment line of *path*."""
    if not path:
        return []
    if not path.exists():
        raise ValueError(f"Keywords file not found: {path} (expected one keyword per line)")
    if path.is_dir():
        raise ValueError(f"Keywords file is a directory, not a file: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read keywords file {path}: {exc}") from exc

    keywords: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        keywords.append(stripped)
    return keywords


def _percentages(raw: Sequence[float] | None) -> tuple[float | int, ...]:
    if not raw:
        return DEFAULT_MARKUP_PERCENTAGES
    return tuple(int(p) if float(p).is_integer() else p for p in raw)


def _cost_column_arg(raw: str | None) -> int | str | None:
    if raw is None or not raw.strip():
        return None
    stripped = raw.strip()
    return int(stripped) if stripped.isdigit() else stripped


def _build_options(
    min_confidence: float,
    required_rows: int,
    keywords: list[str] | None,
    keywords_file: Path | None,
) -> DetectionOptions:
    return DetectionOptions(
        min_confidence=min_confidence,
        required_data_rows=required_rows,
        custom_keywords=tuple(_load_keywords_file(keywords_file) + (keywords or [])),
    )


def _input_entry(path: Path) -> dict[str, str]:
    sha256 = ""
    try:
        sha256 = sha256_file(path)
    except OSError:
        pass
    return {"path": str(path.resolve()), "sha256": sha256}


def _write_manifest(
    out_dir: Path,
    inputs: Sequence[Path],
    created_at: str,
    reports: Sequence[ProcessingReport],
    config: MarkupConfig | None,
    *,
    status: str,
) -> Path:
    manifest = RunManifest(
        version=__version__,
        output_dir=str(out_dir.resolve()),
        created_at_utc=created_at,
        inputs=[_input_entry(path) for path in inputs],
        sheets_ok=sum(1 for r in reports if r.status == "success"),
        sheets_failed=sum(1 for r in reports if r.status != "success"),
        markup=config.to_dict() if config is not None else {},
        status=status,
    )
    return write_json(out_dir / "run_manifest.json", manifest.to_dict())


def _report_table(reports: Sequence[ProcessingReport]) -> RichTable:
    tbl = RichTable(title="Pricing Summary", show_lines=True)
    tbl.add_column("Sheet", style="bold")
    tbl.add_column("Status")
    tbl.add_column("Rows")
    tbl.add_column("Cost column")
    tbl.add_column("Confidence")
    tbl.add_column("Method")
    for report in reports:
        if report.status == "success":
            tbl.add_row(
                report.sheet,
                "[green]OK[/green]",
                f"{report.rows_priced}/{report.rows_in}",
                report.cost_header,
                format_confidence(report.confidence),
                report.method,
            )
        else:
            tbl.add_row(
                report.sheet,
                f"[red]{report.error_code}[/red]",
                "-",
                "-",
                "-",
                report.error_message,
            )
    return tbl


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """pricelist-markup CLI."""


# ── run command ──────────────────────────────────────────────────


@app.command()
def run(
    input_files: list[Path] = typer.Option(
        ..., "--input", "-i",
        help="CSV or Excel pricelist. Repeat for several files.",
        exists=True, readable=True, dir_okay=False,
    ),
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o",
        help="Output directory for workbook + QC + manifest.",
    ),
    markup: list[float] | None = typer.Option(
        None, "--markup", "-p",
        help="Markup percentage. Repeat for several (default 5 10 15 20 30).",
    ),
    decimals: int = typer.Option(
        2, "--decimals",
        help="Decimal places for markup prices (0-10).",
    ),
    currency: str = typer.Option(
        "", "--currency",
        help="Currency symbol prefixed to markup column headers.",
    ),
    min_confidence: float = typer.Option(
        0.3, "--min-confidence",
        help="Minimum confidence for the primary detection strategies.",
    ),
    required_rows: int = typer.Option(
        5, "--required-rows",
        help="Minimum data rows below the header row before detection runs at all.",
    ),
    keywords: list[str] | None = typer.Option(
        None, "--keyword", "-k",
        help="Extra cost-header keyword. Repeat for several.",
    ),
    keywords_file: Path | None = typer.Option(
        None, "--keywords-file",
        help="File with one extra cost-header keyword per line.",
    ),
    cost_column: str | None = typer.Option(
        None, "--cost-column",
        help="Skip detection: 0-based column index or header text of the cost column.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes all artifacts.",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Show debug logging from detection and pruning.",
    ),
) -> None:
    """Detect the cost column of each pricelist and append markup columns.

    Exit 0 = all sheets priced, exit 2 = at least one sheet failed,
    exit 1 = unexpected internal error.
    """
    echo = _printer(quiet)
    _configure_logging(verbose)
    created_at = utcnow_iso()
    out_dir.mkdir(parents=True, exist_ok=True)

    try:
        config = MarkupConfig(
            percentages=_percentages(markup),
            decimal_places=decimals,
            currency_symbol=currency,
        )
        options = _build_options(min_confidence, required_rows, keywords, keywords_file)
    except (PricelistError, ValueError) as exc:
        message = exc.message if isinstance(exc, PricelistError) else str(exc)
        manifest_path = _write_manifest(
            out_dir, input_files, created_at, [], None, status="failed"
        )
        _err(message)
        console.print(f"  Manifest -> {manifest_path}")
        raise typer.Exit(code=2)

    selection = _cost_column_arg(cost_column)

    if not quiet:
        console.print(Panel(
            f"[bold]pricelist-markup[/bold] v{__version__}\n"
            f"Inputs: {len(input_files)} file(s)\nOutput: {out_dir}",
            title="Pipeline Start", border_style="blue",
        ))
        pcts = ", ".join(f"{p}%" for p in config.percentages)
        console.print(f"  Markups: {pcts}  (decimals={config.decimal_places})")
        if options.custom_keywords:
            console.print(f"  Extra keywords: {', '.join(options.custom_keywords)}")
        if selection is not None:
            console.print(f"  Cost column override: {selection!r}")

    priced: list[tuple[Grid, ProcessingReport]] = []
    failures: list[ProcessingReport] = []
    try:
        for index, path in enumerate(input_files):
            name = sheet_title(path.name, index)
            echo(f"[blue]>[/blue] {path.name} …")
            try:
                grid = load_grid(path)
            except (FileNotFoundError, ValueError, OSError) as exc:
                failures.append(ProcessingReport.failure(name, "FILE_READ_ERROR", str(exc)))
                _err(f"{path.name}: {exc}")
                continue

            try:
                out_grid, report = process_sheet(
                    grid,
                    config=config,
                    options=options,
                    cost_column=selection,
                    sheet_name=path.name,
                )
            except PricelistError as exc:
                failures.append(ProcessingReport.failure(name, exc.code, exc.message))
                _err(f"{path.name}: {exc.message}")
                continue

            priced.append((out_grid, report))
            echo(
                f"  cost column {report.cost_header!r} "
                f"({format_confidence(report.confidence)} via {report.method}), "
                f"{report.rows_priced}/{report.rows_in} rows priced"
            )
            if not quiet:
                for w in report.warnings:
                    console.print(f"  [yellow]![/yellow] {w}")

        workbook_path: Path | None = None
        if priced:
            echo("[blue]>[/blue] Writing workbook …")
            workbook_path = write_workbook(
                out_dir, priced, decimal_places=config.decimal_places, failures=failures
            )
            echo(f"  Workbook -> {workbook_path}")

        reports = [report for _grid, report in priced] + failures
        qc_path = write_qc_report(out_dir, reports)
        status = "success" if not failures else ("partial" if priced else "failed")
        manifest_path = _write_manifest(
            out_dir, input_files, created_at, reports, config, status=status
        )
        echo(f"  QC report -> {qc_path}")
        echo(f"  Manifest  -> {manifest_path}")

        if not quiet:
            console.print(_report_table(reports))
    except typer.Exit:
        raise
    except Exception as exc:
        message = f"Unexpected internal error: {exc}"
        reports = [report for _grid, report in priced] + failures
        manifest_path = _write_manifest(
            out_dir, input_files, created_at, reports, config, status="failed"
        )
        _err(message)
        console.print(f"  Manifest -> {manifest_path}")
        raise typer.Exit(code=1)

    if failures:
        _err(f"{len(failures)} of {len(input_files)} file(s) failed")
        raise typer.Exit(code=2)

    if not quiet:
        console.print(Panel(
            f"[green]Done[/green] — {len(priced)} sheet(s) -> {workbook_path}",
            title="Pipeline Complete", border_style="green",
        ))


# ── detect command ───────────────────────────────────────────────


@app.command()
def detect(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="CSV or Excel pricelist.",
        exists=True, readable=True, dir_okay=False,
    ),
    min_confidence: float = typer.Option(
        0.3, "--min-confidence",
        help="Minimum confidence for the primary detection strategies.",
    ),
    required_rows: int = typer.Option(
        5, "--required-rows",
        help="Minimum data rows below the header row before detection runs at all.",
    ),
    keywords: list[str] | None = typer.Option(
        None, "--keyword", "-k",
        help="Extra cost-header keyword. Repeat for several.",
    ),
    keywords_file: Path | None = typer.Option(
        None, "--keywords-file",
        help="File with one extra cost-header keyword per line.",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Show debug logging from header and column detection.",
    ),
) -> None:
    """Show which row and column would be used, without writing anything.

    Exit 0 = cost column found, exit 2 = not found or unreadable input.
    """
    _configure_logging(verbose)
    try:
        options = _build_options(min_confidence, required_rows, keywords, keywords_file)
        header_row, sheet = prepare_sheet(load_grid(input_file))
    except PricelistError as exc:
        _err(f"{exc.code}: {exc.message}")
        raise typer.Exit(code=2)
    except (FileNotFoundError, ValueError, OSError) as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    headers = sheet[0]
    result = detect_cost_column(headers, sheet[1:], options)

    def _label(index: int) -> str:
        value = headers[index] if 0 <= index < len(headers) else None
        return f"{index} ({value})" if value is not None else str(index)

    tbl = RichTable(title="Cost Column Detection", show_lines=True)
    tbl.add_column("Check", style="bold")
    tbl.add_column("Result")
    tbl.add_row("Header row", str(header_row))
    tbl.add_row("Data rows", str(len(sheet) - 1))
    if result.found:
        tbl.add_row("Cost column", _label(result.column_index))
        tbl.add_row("Confidence", format_confidence(result.confidence))
        tbl.add_row("Method", result.method.value)
        if result.alternatives:
            tbl.add_row("Alternatives", ", ".join(_label(i) for i in result.alternatives))
        tbl.add_row("Status", "[green]FOUND[/green]")
    else:
        tbl.add_row("Cost column", "[red]none[/red]")
        tbl.add_row("Status", "[red]NOT FOUND[/red]")
    console.print(tbl)

    if not result.found:
        _err("Could not identify a cost price column")
        console.print("  Hint: add --keyword for your supplier's cost header")
        raise typer.Exit(code=2)
