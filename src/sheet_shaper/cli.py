"""CLI entry point for sheet-shaper."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import NoReturn
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table as RichTable

from sheet_shaper import __version__
from sheet_shaper.columns import (
    alphabetical_order,
    order_by_headers,
    select_matching_headers,
    validate_column_order,
)
from sheet_shaper.errors import (
    DateColumnRemovedError,
    NoDateColumnError,
    SheetShaperError,
)
from sheet_shaper.headers import HeaderIndex
from sheet_shaper.io import load_grid, write_json
from sheet_shaper.models import ProcessingReport, RunManifest
from sheet_shaper.profile import Profile, load_profile
from sheet_shaper.report import (
    output_name,
    split_output_name,
    write_split_workbook,
    write_workbook,
)
from sheet_shaper.session import WorkbookSession
from sheet_shaper.utils import sha256_file, utcnow_iso

app = typer.Typer(
    name="sshape",
    help="sheet-shaper — Trim, reorder and split spreadsheets by month.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()


class DateOrderOption(str, Enum):
    dmy = "dmy"
    mdy = "mdy"

    @property
    def pattern(self) -> str:
        return "DD/MM/YYYY" if self is DateOrderOption.dmy else "MM/DD/YYYY"


class OrderPreset(str, Enum):
    original = "original"
    alphabetical = "alphabetical"


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}")


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"sheet-shaper v{__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logger = logging.getLogger("sheet_shaper")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    if verbose:
        logger.addHandler(RichHandler(console=console, show_path=False, markup=False))
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.WARNING)


def _resolve_date_order(option: DateOrderOption | None, profile: Profile) -> str:
    if option is not None:
        return option.pattern
    return profile.date_order or DateOrderOption.dmy.pattern


def _open_session(input_file: Path, sheet: str | None, date_order: str) -> WorkbookSession:
    grid = load_grid(input_file, sheet=sheet)
    return WorkbookSession(grid, file_name=input_file.name, assumed_order=date_order)


def _apply_date_column(session: WorkbookSession, raw: str | None) -> None:
    """Select the date column named *raw* (or given as a 0-based index)."""
    if raw is None:
        return
    position = HeaderIndex(session.headers).position(raw)
    if position == -1 and raw.strip().lstrip("-").isdigit():
        position = int(raw)
    if position == -1 and raw.strip() != "-1":
        raise SheetShaperError(
            f"Date column {raw!r} not found. Headers: {', '.join(session.headers)}"
        )
    session.select_date_column(position)


def _order_positions(
    session: WorkbookSession, names: list[str], preset: str | None
) -> list[int] | None:
    """Complete column order: named columns first, then the rest.

    The rest keep header order, or sort by name for the alphabetical preset.
    """
    if not names and preset != OrderPreset.alphabetical.value:
        return None
    combined = session.combined_headers
    rest = alphabetical_order(combined) if preset == OrderPreset.alphabetical.value else None
    positions, unknown = order_by_headers(combined, names, rest)
    for name in unknown:
        console.print(f"[yellow]![/yellow] --order: unknown column {name!r} ignored")
    ok, message = validate_column_order(combined, positions)
    if not ok:
        raise SheetShaperError(message)
    return positions


def _removal_names(session: WorkbookSession, names: list[str]) -> list[str]:
    """Match *names* to headers case-insensitively; unmatched names are kept for the report."""
    matched = select_matching_headers(session.combined_headers, names)
    known = {name.lower() for name in matched}
    return [*matched, *(name for name in names if name.lower() not in known)]


def _write_manifest(
    out_dir: Path,
    input_file: Path,
    created_at: str,
    *,
    rows_in: int = 0,
    rows_out: int = 0,
    outputs: list[Path] | None = None,
    status: str = "success",
    error_code: int | None = None,
    error_message: str = "",
) -> Path:
    sha256 = ""
    try:
        sha256 = sha256_file(input_file)
    except OSError:
        pass

    manifest = RunManifest(
        version=__version__,
        input_path=str(input_file.resolve()),
        outputs=[str(p.resolve()) for p in outputs or []],
        created_at_utc=created_at,
        rows_in=rows_in,
        rows_out=rows_out,
        sha256=sha256,
        status=status,
        error_code=error_code,
        error_message=error_message,
    )
    return write_json(out_dir / "run_manifest.json", manifest.to_dict())


def _fail(out_dir: Path, input_file: Path, created_at: str, message: str, code: int) -> NoReturn:
    manifest_path = _write_manifest(
        out_dir, input_file, created_at,
        status="failed", error_code=code, error_message=message,
    )
    _err(message)
    console.print(f"  Manifest -> {manifest_path}")
    raise typer.Exit(code=code)


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
    """sheet-shaper CLI."""


# ── inspect command ──────────────────────────────────────────────


@app.command()
def inspect(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to CSV or XLSX input file.",
        exists=True, readable=True,
    ),
    sheet: str | None = typer.Option(None, "--sheet", help="Sheet name (default: first)."),
    date_column: str | None = typer.Option(
        None, "--date-column", "-d",
        help="Count months on this column instead of the detected one.",
    ),
    date_order: DateOrderOption = typer.Option(
        DateOrderOption.dmy, "--date-order",
        help="How to read ambiguous dates like 01/02/2024: dmy or mdy.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging."),
) -> None:
    """Show the detected header row, date columns and month counts."""
    _configure_logging(verbose)
    try:
        session = _open_session(input_file, sheet, date_order.pattern)
        _apply_date_column(session, date_column)
    except (FileNotFoundError, ValueError, OSError) as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    console.print(Panel(
        f"[bold]sheet-shaper[/bold] v{__version__}  [dim]inspect[/dim]\n"
        f"Input: {input_file}\n"
        f"Header row: {session.header_row_index + 1}  "
        f"({len(session.headers)} columns, {session.row_count} data rows)",
        title="Inspect", border_style="cyan",
    ))
    for warning in session.warnings:
        console.print(f"  [yellow]![/yellow] {warning}")

    headers = RichTable(title="Columns", show_lines=False)
    headers.add_column("#", justify="right")
    headers.add_column("Header", style="bold")
    for idx, name in enumerate(session.headers):
        headers.add_row(str(idx), name or "[dim](blank)[/dim]")
    console.print(headers)

    if session.date_candidates:
        candidates = RichTable(title="Date column candidates")
        candidates.add_column("#", justify="right")
        candidates.add_column("Header", style="bold")
        candidates.add_column("Confidence", justify="right")
        candidates.add_column("Why")
        for cand in session.date_candidates:
            candidates.add_row(
                str(cand.index), cand.header, f"{cand.confidence:.2f}", cand.match_type
            )
        console.print(candidates)
    else:
        console.print("  [yellow]![/yellow] No date column detected")

    if session.month_counts:
        months = RichTable(title=f"Rows per month ({session.date_header})")
        months.add_column("Month", style="bold")
        months.add_column("Rows", justify="right")
        for mc in session.month_counts:
            months.add_row(mc.display_name, str(mc.count))
        console.print(months)
        counted = sum(mc.count for mc in session.month_counts)
        if counted < session.row_count:
            console.print(
                f"  [yellow]![/yellow] {session.row_count - counted} rows have no usable date"
            )


# ── process command ──────────────────────────────────────────────


@app.command()
def process(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to CSV or XLSX input file.",
        exists=True, readable=True,
    ),
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o",
        help="Output directory for workbooks + report + manifest.",
    ),
    sheet: str | None = typer.Option(None, "--sheet", help="Sheet name (default: first)."),
    profile: Path | None = typer.Option(
        None, "--profile",
        help="Profile file with key=value lines (remove=, exclude_month=, add=, order=, ...).",
    ),
    remove: list[str] | None = typer.Option(
        None, "--remove", "-r", help="Column to remove (repeatable)."
    ),
    exclude_month: list[str] | None = typer.Option(
        None, "--exclude-month", "-x",
        help='Month to drop, e.g. "January 2024" (repeatable).',
    ),
    add: list[str] | None = typer.Option(
        None, "--add", "-a", help="Empty column to append (repeatable)."
    ),
    order: list[str] | None = typer.Option(
        None, "--order",
        help=(
            "Column to put first, by name, original or added (repeatable, "
            "case-insensitive; unlisted columns follow)."
        ),
    ),
    order_preset: OrderPreset | None = typer.Option(
        None, "--order-preset",
        help="Order of the columns --order does not list: original (default) or alphabetical.",
    ),
    date_column: str | None = typer.Option(
        None, "--date-column", "-d",
        help="Date column name or 0-based index (default: best detected).",
    ),
    date_order: DateOrderOption | None = typer.Option(
        None, "--date-order",
        help="How to read ambiguous dates like 01/02/2024: dmy (default) or mdy.",
    ),
    split: bool = typer.Option(
        False, "--split", help="Also write a workbook with one sheet per month."
    ),
    borders: bool = typer.Option(False, "--borders", help="Draw thin borders on every cell."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes all artifacts.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging."),
) -> None:
    """Filter months, add/reorder/remove columns and write the result."""
    _configure_logging(verbose)
    echo = _printer(quiet)
    created_at = utcnow_iso()
    out_dir.mkdir(parents=True, exist_ok=True)

    try:
        prof = load_profile(profile)
        order_of_dates = _resolve_date_order(date_order, prof)
    except ValueError as exc:
        _fail(out_dir, input_file, created_at, str(exc), 2)

    if not quiet:
        console.print(Panel(
            f"[bold]sheet-shaper[/bold] v{__version__}\n"
            f"Input:  {input_file}\nOutput: {out_dir}",
            title="Pipeline Start", border_style="blue",
        ))
        if profile:
            console.print(f"  Using profile: {profile}")

    # ── Load ─────────────────────────────────────────────────────
    echo("[blue]>[/blue] Loading input file …")
    try:
        session = _open_session(input_file, sheet, order_of_dates)
        _apply_date_column(session, date_column or prof.date_column)
    except (FileNotFoundError, ValueError, OSError) as exc:
        _fail(out_dir, input_file, created_at, str(exc), 2)

    echo(
        f"  Header row {session.header_row_index + 1}: "
        f"{len(session.headers)} columns x {session.row_count} rows"
    )
    if session.date_header is not None:
        echo(f"  Date column: {session.date_header}")

    try:
        # ── Selection ────────────────────────────────────────────
        for month in [*prof.exclude_month, *(exclude_month or [])]:
            if month not in session.selected_months:
                session.toggle_month(month)
        session.added_columns = [*prof.add, *(add or [])]
        session.selected_headers = _removal_names(session, [*prof.remove, *(remove or [])])
        preset = order_preset.value if order_preset is not None else prof.order_preset

        try:
            session.column_order = _order_positions(
                session, [*prof.order, *(order or [])], preset
            )
            session.validate()
        except SheetShaperError as exc:
            _fail(out_dir, input_file, created_at, str(exc), 2)
        echo(f"  {session.summary()}")

        # ── Process ──────────────────────────────────────────────
        echo("[blue]>[/blue] Processing …")
        final, report = session.run()
        if not quiet:
            for w in report.warnings:
                console.print(f"  [yellow]![/yellow] {w}")
            for name in report.unmatched_columns:
                console.print(f"  [yellow]![/yellow] Column not found, not removed: {name}")
            console.print(f"  {report.rows_out} rows retained, {report.dropped_rows} dropped")

        outputs: list[Path] = []
        workbook_path = write_workbook(
            out_dir / output_name(input_file.name, session.selected_months),
            final,
            borders=borders,
        )
        outputs.append(workbook_path)
        echo(f"  Workbook -> {workbook_path}")

        # ── Split ────────────────────────────────────────────────
        split_error = ""
        if split:
            try:
                split_result = session.split()
            except (DateColumnRemovedError, NoDateColumnError) as exc:
                split_error = str(exc)
                report = ProcessingReport(**{
                    **report.to_dict(), "warnings": [*report.warnings, split_error]
                })
            else:
                split_path = write_split_workbook(
                    out_dir / split_output_name(input_file.name), split_result, borders=borders
                )
                outputs.append(split_path)
                echo(
                    f"  Split    -> {split_path} "
                    f"({len(split_result.buckets)} months, "
                    f"{split_result.invalid_date_rows} rows without a date)"
                )

        report_path = write_json(out_dir / "processing_report.json", report.to_dict())
        echo(f"  Report   -> {report_path}")

        manifest_path = _write_manifest(
            out_dir, input_file, created_at,
            rows_in=report.rows_in,
            rows_out=report.rows_out,
            outputs=outputs,
            status="failed" if split_error else "success",
            error_code=2 if split_error else None,
            error_message=split_error,
        )
        echo(f"  Manifest -> {manifest_path}")

        if split_error:
            _err(split_error)
            raise typer.Exit(code=2)

        if not quiet:
            console.print(Panel(
                f"[green]Done[/green] — {report.rows_out} rows -> {workbook_path}",
                title="Pipeline Complete", border_style="green",
            ))
    except typer.Exit:
        raise
    except Exception as exc:
        _fail(out_dir, input_file, created_at, f"Unexpected internal error: {exc}", 1)
