"""
Command-line interface for Sheet Calendar Sync.
"""

import logging
from collections.abc import Callable
from configparser import ConfigParser
from dataclasses import dataclass
from dataclasses import field
from datetime import date
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from sheet_calendar_sync.models import DEFAULT_CONFIG
from sheet_calendar_sync.models import DEFAULT_CREDENTIALS_FILE
from sheet_calendar_sync.models import DEFAULT_TOKEN_FILE
from sheet_calendar_sync.models import DEFAULT_WORKSHEET
from sheet_calendar_sync.models import CalendarSyncError
from sheet_calendar_sync.models import ConfigurationError
from sheet_calendar_sync.models import RecordOutcome
from sheet_calendar_sync.models import SyncConfig
from sheet_calendar_sync.models import SyncStats
from sheet_calendar_sync.models import require_calendar_id

# ---------------------------------------------------------------------------
# Typer app
# ---------------------------------------------------------------------------

app = typer.Typer(
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Two-way sync between a Google Sheet of events and a Google Calendar.",
)

console = Console()

CONFIG_SECTION = "sheet-calendar-sync"


# ---------------------------------------------------------------------------
# Global state shared across subcommands
# ---------------------------------------------------------------------------


@dataclass
class _State:
    config_path: Path = field(default_factory=lambda: DEFAULT_CONFIG)
    verbose: bool = False


state = _State()


@app.callback()
def _global(
    config: Annotated[
        Path,
        typer.Option("--config", "-c", help=f"Config file path (default: {DEFAULT_CONFIG})"),
    ] = DEFAULT_CONFIG,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose debug output"),
    ] = False,
) -> None:
    state.config_path = config
    state.verbose = verbose
    _setup_logging(verbose)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False, console=console)],
    )


def _load_config_file(config_path: Path) -> dict[str, str]:
    if not config_path.exists():
        return {}
    parser = ConfigParser()
    parser.read(config_path)
    if CONFIG_SECTION not in parser:
        return {}
    return dict(parser[CONFIG_SECTION])


def _build_config(
    calendar: str | None,
    spreadsheet: str | None,
    worksheet: str | None,
    timezone: str | None = None,
    dry_run: bool = False,
    yes: bool = False,
) -> SyncConfig:
    config_file = _load_config_file(state.config_path)

    def _path(key: str, default: Path) -> Path:
        value = config_file.get(key)
        return Path(value).expanduser() if value else default

    return SyncConfig(
        calendar_id=calendar or config_file.get("calendar_id"),
        spreadsheet_id=spreadsheet or config_file.get("spreadsheet_id"),
        worksheet=worksheet or config_file.get("worksheet", DEFAULT_WORKSHEET),
        timezone=timezone or config_file.get("timezone"),
        credentials_file=_path("credentials_file", DEFAULT_CREDENTIALS_FILE),
        token_file=_path("token_file", DEFAULT_TOKEN_FILE),
        dry_run=dry_run,
        verbose=state.verbose,
        yes=yes,
    )


def _fail(message: str) -> typer.Exit:
    console.print(f"[bold red]Error:[/] {message}")
    return typer.Exit(1)


def _credentials(cfg: SyncConfig):
    from sheet_calendar_sync.auth import load_credentials

    return load_credentials(cfg.credentials_file, cfg.token_file)


def _open_row_store(cfg: SyncConfig, credentials):
    from sheet_calendar_sync.sheets import WorksheetRowStore
    from sheet_calendar_sync.sheets import open_worksheet

    if not cfg.spreadsheet_id:
        raise ConfigurationError(
            "No spreadsheet configured. Set spreadsheet_id in the config file "
            "or pass --spreadsheet."
        )
    return WorksheetRowStore(open_worksheet(credentials, cfg.spreadsheet_id, cfg.worksheet))


def _build_synchronizer(cfg: SyncConfig):
    from sheet_calendar_sync.repository import GoogleCalendarRepository
    from sheet_calendar_sync.repository import build_calendar_service
    from sheet_calendar_sync.sync import SheetCalendarSynchronizer

    calendar_id = require_calendar_id(cfg)
    credentials = _credentials(cfg)
    repository = GoogleCalendarRepository(
        build_calendar_service(credentials), calendar_id, cfg.timezone
    )
    return SheetCalendarSynchronizer(cfg, repository, _open_row_store(cfg, credentials))


def _info_panel(cfg: SyncConfig, operation: Text, extra: str | None = None) -> Panel:
    info = Text()
    info.append("  Calendar:  ", style="bold")
    info.append(f"{cfg.calendar_id}\n")
    info.append("  Sheet:     ", style="bold")
    info.append(f"{cfg.spreadsheet_id}", style="dim")
    info.append(f" / {cfg.worksheet}\n")
    if extra:
        info.append("  Window:    ", style="bold")
        info.append(f"{extra}\n")
    info.append("  Operation: ")
    info.append_text(operation)
    if cfg.dry_run:
        info.append("\n  Mode:      ")
        info.append("DRY RUN", style="bold magenta")
    return Panel(info, title="[bold]Sheet Calendar Sync[/bold]")


def _results_panel(stats: SyncStats) -> Panel:
    results = Table.grid(padding=(0, 2))
    results.add_column(style="bold")
    results.add_column(justify="right")
    results.add_row("Created", str(stats.created))
    results.add_row("Updated", str(stats.updated))
    results.add_row("Unchanged", str(stats.unchanged))
    results.add_row("Deleted", str(stats.deleted))
    results.add_row("Skipped", str(stats.skipped))
    results.add_row("Imported", str(stats.imported))
    failed_val = Text(str(stats.failed))
    if stats.failed == 0:
        failed_val.append(" ✓", style="green")
    else:
        failed_val.stylize("bold red")
    results.add_row("Failed", failed_val)
    return Panel(results, title="[bold]Results[/bold]", expand=False)


def _problems_table(stats: SyncStats) -> Table | None:
    problems = [
        r
        for r in stats.results
        if r.outcome in (RecordOutcome.FAILED, RecordOutcome.SKIPPED)
    ]
    if not problems:
        return None
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Row", justify="right")
    table.add_column("Outcome")
    table.add_column("Event")
    table.add_column("Reason", overflow="fold")
    for r in problems:
        style = "red" if r.outcome is RecordOutcome.FAILED else "yellow"
        table.add_row(
            str(r.row or "?"), Text(r.outcome.value, style=style), r.event_id or "", r.error or ""
        )
    return table


def _run(cfg: SyncConfig, operation: Text, action: Callable, extra: str | None = None) -> None:
    """Core runner: display panel, confirm, run, show results."""
    try:
        require_calendar_id(cfg)
    except ConfigurationError as e:
        raise _fail(str(e)) from None

    console.print(_info_panel(cfg, operation, extra))

    if not cfg.yes and not cfg.dry_run:
        typer.confirm("Proceed?", abort=True)

    try:
        stats = action(_build_synchronizer(cfg))
    except ConfigurationError as e:
        raise _fail(str(e)) from None
    except CalendarSyncError as e:
        console.print(f"[bold red]Sync failed:[/] {e}")
        raise typer.Exit(1) from None
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted by user[/]")
        raise typer.Exit(130) from None

    console.print(_results_panel(stats))
    problems = _problems_table(stats)
    if problems is not None:
        console.print(problems)

    if stats.failed:
        raise typer.Exit(1)


def _parse_date(value: str, name: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise _fail(f"Invalid {name} date: {value!r} (expected YYYY-MM-DD)") from None


# ---------------------------------------------------------------------------
# Shared options
# ---------------------------------------------------------------------------

_CAL_OPT = Annotated[
    str | None,
    typer.Option("--calendar", "-C", help="Google Calendar id (overrides config)"),
]
_SHEET_OPT = Annotated[
    str | None,
    typer.Option("--spreadsheet", "-s", help="Spreadsheet key (overrides config)"),
]
_WS_OPT = Annotated[
    str | None,
    typer.Option("--worksheet", "-w", help=f"Worksheet title (default: {DEFAULT_WORKSHEET})"),
]
_TZ_OPT = Annotated[
    str | None,
    typer.Option("--timezone", help="IANA time zone (default: the calendar's own)"),
]
_DRY_RUN = Annotated[bool, typer.Option("--dry-run", "-n", help="Preview changes without applying")]
_YES = Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")]


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


@app.command()
def push(
    calendar: _CAL_OPT = None,
    spreadsheet: _SHEET_OPT = None,
    worksheet: _WS_OPT = None,
    timezone: _TZ_OPT = None,
    dry_run: _DRY_RUN = False,
    yes: _YES = False,
) -> None:
    """Create, update and delete calendar events from the sheet's rows.

    Afterwards the sheet is refreshed from the calendar for the dates
    the rows span, so new event ids appear in the [cyan]id[/] column.
    """
    cfg = _build_config(calendar, spreadsheet, worksheet, timezone, dry_run=dry_run, yes=yes)
    _run(
        cfg,
        Text("PUSH (sheet → calendar, then re-import)", style="bold green"),
        lambda s: s.push(),
    )


@app.command("import")
def import_(
    start: Annotated[str, typer.Option("--start", help="First day to import (YYYY-MM-DD)")],
    end: Annotated[str, typer.Option("--end", help="Day after the last one to import (YYYY-MM-DD)")],
    calendar: _CAL_OPT = None,
    spreadsheet: _SHEET_OPT = None,
    worksheet: _WS_OPT = None,
    timezone: _TZ_OPT = None,
    yes: _YES = False,
) -> None:
    """Replace the sheet's rows with calendar events between two dates.

    [bold]Every[/] data row is rewritten: rows for dates outside the window
    are dropped from the sheet, not kept alongside the imported events.
    """
    window_start = _parse_date(start, "start")
    window_end = _parse_date(end, "end")
    if window_end <= window_start:
        raise _fail("--end must be after --start")

    cfg = _build_config(calendar, spreadsheet, worksheet, timezone, yes=yes)
    _run(
        cfg,
        Text("IMPORT (calendar → sheet)", style="bold yellow"),
        lambda s: s.import_window(window_start, window_end),
        extra=f"{window_start} → {window_end} (exclusive)",
    )


@app.command()
def header(
    spreadsheet: _SHEET_OPT = None,
    worksheet: _WS_OPT = None,
) -> None:
    """Write the column header row to the worksheet."""
    cfg = _build_config(None, spreadsheet, worksheet)
    try:
        _open_row_store(cfg, _credentials(cfg)).write_header()
    except CalendarSyncError as e:
        raise _fail(str(e)) from None
    console.print(f"[green]Header written to[/] {cfg.worksheet!r}")


@app.command()
def calendars() -> None:
    """List the calendars these credentials can see."""
    from sheet_calendar_sync.repository import build_calendar_service
    from sheet_calendar_sync.repository import list_calendars

    cfg = _build_config(None, None, None)
    try:
        entries = list_calendars(build_calendar_service(_credentials(cfg)))
    except CalendarSyncError as e:
        raise _fail(str(e)) from None

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Summary", style="bold")
    table.add_column("Calendar id", overflow="fold")
    table.add_column("Time zone")
    table.add_column("Access")
    for entry in entries:
        access = entry.get("accessRole", "")
        style = "green" if access in ("owner", "writer") else "yellow"
        table.add_row(
            entry.get("summary", "(unnamed)"),
            entry.get("id", ""),
            entry.get("timeZone", ""),
            Text(access, style=style),
        )
    console.print(table)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    app()
