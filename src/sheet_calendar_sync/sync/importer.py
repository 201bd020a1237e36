"""
Calendar → sheet import.
"""

from collections.abc import Sequence
from datetime import datetime
from datetime import tzinfo

from sheet_calendar_sync.models import Record
from sheet_calendar_sync.models import RepositoryEvent
from sheet_calendar_sync.models import SyncStats
from sheet_calendar_sync.records import COL_ID
from sheet_calendar_sync.records import pad_row
from sheet_calendar_sync.records import parse_text
from sheet_calendar_sync.records import record_to_row
from sheet_calendar_sync.repository import EventRepository
from sheet_calendar_sync.sheets import RowStore


def strip_id_suffix(event_id: str) -> str:
    """Keep the stable part of a composite id ("abc123@google.com" -> "abc123")."""
    return event_id.split("@", 1)[0]


def record_from_event(event: RepositoryEvent) -> Record:
    return Record(
        id=strip_id_suffix(event.id),
        title=event.title,
        start=event.start,
        end=event.end,
        is_all_day=event.is_all_day,
        description=event.description or "",
        color_id=event.color_id,
        guests=tuple(event.guests),
        owner_status=event.owner_status,
        location=event.location or "",
        send_invites=False,
        delete_flag=False,
    )


def import_events(
    stats: SyncStats,
    logger,
    repository: EventRepository,
    row_store: RowStore,
    start: datetime,
    end: datetime,
    tz: tzinfo,
    kept_rows: Sequence[Sequence] = (),
) -> list[Record]:
    """Replace the sheet's rows with the calendar's events in [start, end).

    ``kept_rows`` are raw rows that must survive the rewrite (rows a push
    skipped or failed to apply).  They are written after the imported rows,
    and an imported event whose id one of them carries is left out so the
    unsynced edit is not shadowed by a second copy.  With no events and no
    kept rows the sheet is cleared so no stale rows survive.
    """
    kept = [pad_row(row) for row in kept_rows]
    kept_ids = {parse_text(row[COL_ID]) for row in kept} - {""}

    events = repository.list_events(start, end)
    records = [record_from_event(event) for event in events]
    records = [r for r in records if r.id not in kept_ids]
    records.sort(key=lambda r: (r.start, r.title))

    if kept:
        logger.warning(f"Keeping {len(kept)} unsynced rows below the imported events")

    if not records and not kept:
        logger.info(f"No events between {start:%Y-%m-%d} and {end:%Y-%m-%d}, clearing sheet")
        row_store.clear()
        stats.imported = 0
        return records

    row_store.replace_rows([record_to_row(record, tz) for record in records] + kept)
    stats.imported = len(records)
    logger.info(f"Imported {len(records)} events between {start:%Y-%m-%d} and {end:%Y-%m-%d}")
    return records
