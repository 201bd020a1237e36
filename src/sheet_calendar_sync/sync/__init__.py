"""
SheetCalendarSynchronizer — thin orchestrator that delegates to sync submodules.
"""

import logging
from datetime import date
from datetime import datetime
from zoneinfo import ZoneInfo
from zoneinfo import ZoneInfoNotFoundError

from sheet_calendar_sync.models import ConfigurationError
from sheet_calendar_sync.models import EmptyBatchError
from sheet_calendar_sync.models import RecordOutcome
from sheet_calendar_sync.models import RecordResult
from sheet_calendar_sync.models import SyncConfig
from sheet_calendar_sync.models import SyncStats
from sheet_calendar_sync.models import require_calendar_id
from sheet_calendar_sync.records import FIRST_DATA_ROW
from sheet_calendar_sync.records import parse_rows
from sheet_calendar_sync.repository import EventRepository
from sheet_calendar_sync.sheets import RowStore
from sheet_calendar_sync.sync.importer import import_events
from sheet_calendar_sync.sync.reconcile import reconcile_records
from sheet_calendar_sync.sync.window import compute_import_window


class SheetCalendarSynchronizer:
    """Pushes sheet rows to the calendar and pulls calendar events into the sheet."""

    def __init__(self, config: SyncConfig, repository: EventRepository, row_store: RowStore):
        self.config = config
        self.repository = repository
        self.row_store = row_store
        self.logger = logging.getLogger(__name__)
        self.stats = SyncStats()

    def _resolve_timezone(self) -> ZoneInfo:
        name = self.config.timezone or self.repository.get_timezone()
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigurationError(f"Unknown time zone: {name!r}") from e

    def push(self) -> SyncStats:
        """Apply every sheet row to the calendar, then refresh the sheet.

        The refresh covers the window spanned by the pushed rows, so ids the
        calendar assigned and values it normalised flow back into the sheet.
        Rows that were skipped or failed are written back unchanged.
        """
        require_calendar_id(self.config)
        self.stats = SyncStats()
        tz = self._resolve_timezone()

        raw_rows = self.row_store.read_rows()
        records, errors = parse_rows(raw_rows, tz)
        for error in errors:
            self.logger.warning(f"Skipping row {error.row}: {error}")
            self.stats.record(RecordResult(error.row, RecordOutcome.SKIPPED, error=str(error)))

        self.logger.info(f"Reconciling {len(records)} rows with calendar {self.config.calendar_id}")
        reconcile_records(self.config, self.stats, self.logger, records, self.repository)

        if self.config.dry_run:
            self.logger.info("[DRY RUN] Skipping re-import")
            return self.stats

        try:
            start, end = compute_import_window(records)
        except EmptyBatchError:
            self.logger.info("No rows to sync, skipping re-import")
            return self.stats

        import_events(
            self.stats,
            self.logger,
            self.repository,
            self.row_store,
            start,
            end,
            tz,
            kept_rows=self._unsynced_rows(raw_rows),
        )
        return self.stats

    def _unsynced_rows(self, raw_rows: list[list]) -> list[list]:
        """Raw rows whose record was skipped or failed, in sheet order."""
        rows = sorted(
            result.row
            for result in self.stats.results
            if result.outcome in (RecordOutcome.SKIPPED, RecordOutcome.FAILED)
            and result.row is not None
        )
        return [raw_rows[row - FIRST_DATA_ROW] for row in rows]

    def import_window(self, start: date | datetime, end: date | datetime) -> SyncStats:
        """Replace the sheet's rows with calendar events in [start, end)."""
        require_calendar_id(self.config)
        self.stats = SyncStats()
        tz = self._resolve_timezone()

        start_dt = _as_datetime(start, tz)
        end_dt = _as_datetime(end, tz)
        if end_dt <= start_dt:
            raise ConfigurationError(f"Import window end {end} must be after start {start}")

        import_events(self.stats, self.logger, self.repository, self.row_store, start_dt, end_dt, tz)
        return self.stats


def _as_datetime(value: date | datetime, tz: ZoneInfo) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=tz)
    return datetime(value.year, value.month, value.day, tzinfo=tz)
