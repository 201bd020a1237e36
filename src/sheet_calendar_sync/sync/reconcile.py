"""
Per-record reconciliation: decide Delete / Update / Create and apply it.
"""

from collections.abc import Iterable
from datetime import datetime
from datetime import timedelta
from typing import Any

from sheet_calendar_sync.models import SETTABLE_OWNER_STATUSES
from sheet_calendar_sync.models import EventPayload
from sheet_calendar_sync.models import EventTiming
from sheet_calendar_sync.models import Record
from sheet_calendar_sync.models import RecordOutcome
from sheet_calendar_sync.models import RecordResult
from sheet_calendar_sync.models import RepositoryError
from sheet_calendar_sync.models import RepositoryEvent
from sheet_calendar_sync.models import RepositoryNotFound
from sheet_calendar_sync.models import SyncConfig
from sheet_calendar_sync.models import SyncStats
from sheet_calendar_sync.repository import EventRepository
from sheet_calendar_sync.sync.guests import diff_guests
from sheet_calendar_sync.sync.guests import join_guest_emails

ONE_DAY = timedelta(days=1)


# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------


def _midnight(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def effective_end(start: datetime, end: datetime) -> datetime:
    """End time for a timed event.

    An end at or before the start is shorthand for "the next day": the end
    time moves forward one day, and if that still isn't after the start the
    event lasts one day from its start.
    """
    if end > start:
        return end
    shifted = end + ONE_DAY
    if shifted > start:
        return shifted
    return start + ONE_DAY


def is_single_day(record: Record) -> bool:
    """All-day record whose start and end fall on the same calendar day."""
    return record.end.date() <= record.start.date()


def resolve_timing(record: Record) -> EventTiming:
    """The timing the repository should end up with for this record.

    All-day records are truncated to whole days.  A single-day record covers
    [start, start + 1 day); a multi-day record's end date is exclusive.
    """
    if record.is_all_day:
        start = _midnight(record.start)
        if is_single_day(record):
            return EventTiming(start, start + ONE_DAY, all_day=True)
        return EventTiming(start, _midnight(record.end), all_day=True)
    return EventTiming(record.start, effective_end(record.start, record.end))


# ---------------------------------------------------------------------------
# Diffing
# ---------------------------------------------------------------------------


def build_payload(config: SyncConfig, record: Record) -> EventPayload:
    return EventPayload(
        title=record.title,
        timing=resolve_timing(record),
        description=record.description,
        color_id=record.color_id or config.default_color,
        location=record.location,
        guest_emails=join_guest_emails(record.guests),
        send_invites=record.send_invites,
    )


def compute_changes(record: Record, event: RepositoryEvent) -> dict[str, Any]:
    """Fields whose desired value differs from the repository's.

    An unset color leaves the event's color alone.  Owner status is only sent
    for events the calendar owner was invited to.
    """
    changes: dict[str, Any] = {}
    if record.title != event.title:
        changes["title"] = record.title
    if record.description != (event.description or ""):
        changes["description"] = record.description
    if record.location != (event.location or ""):
        changes["location"] = record.location
    if record.color_id and record.color_id != event.color_id:
        changes["color_id"] = record.color_id

    timing = resolve_timing(record)
    if timing != event.timing:
        changes["timing"] = timing

    if (
        record.owner_status in SETTABLE_OWNER_STATUSES
        and event.owner_status in SETTABLE_OWNER_STATUSES
        and record.owner_status != event.owner_status
    ):
        changes["owner_status"] = record.owner_status
    return changes


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


def _describe(record: Record) -> str:
    return f"row {record.row} {record.title!r}"


def _process_delete(
    config: SyncConfig,
    stats: SyncStats,
    logger,
    record: Record,
    repository: EventRepository,
) -> RecordResult:
    if not record.has_id:
        message = "marked for deletion but has no event id"
        logger.error(f"Cannot delete {_describe(record)}: {message}")
        return stats.record(RecordResult(record.row, RecordOutcome.FAILED, error=message))

    if config.dry_run:
        logger.info(f"[DRY RUN] Would DELETE: {record.id} ({_describe(record)})")
        return stats.record(RecordResult(record.row, RecordOutcome.DELETED, record.id))

    try:
        repository.delete(record.id)
    except RepositoryNotFound:
        logger.info(f"Event {record.id} already gone, nothing to delete")
        return stats.record(RecordResult(record.row, RecordOutcome.UNCHANGED, record.id))

    logger.debug(f"Deleted event {record.id}")
    return stats.record(RecordResult(record.row, RecordOutcome.DELETED, record.id))


def _process_create(
    config: SyncConfig,
    stats: SyncStats,
    logger,
    record: Record,
    repository: EventRepository,
) -> RecordResult:
    payload = build_payload(config, record)

    if config.dry_run:
        logger.info(f"[DRY RUN] Would CREATE: {_describe(record)} at {payload.timing.start}")
        return stats.record(RecordResult(record.row, RecordOutcome.CREATED))

    if payload.timing.all_day:
        form = "single-day" if is_single_day(record) else "multi-day"
        logger.debug(f"Creating {form} all-day event for {_describe(record)}")

    event = repository.create(payload)
    if not getattr(repository, "accepts_inline_color", True):
        repository.update(event.id, {"color_id": payload.color_id})

    logger.debug(f"Created event {event.id} for {_describe(record)}")
    return stats.record(RecordResult(record.row, RecordOutcome.CREATED, event.id))


def _process_update(
    config: SyncConfig,
    stats: SyncStats,
    logger,
    record: Record,
    repository: EventRepository,
) -> RecordResult:
    try:
        event = repository.get(record.id)
    except RepositoryNotFound:
        logger.info(f"Event {record.id} not found, recreating {_describe(record)}")
        return _process_create(config, stats, logger, record, repository)

    changes = compute_changes(record, event)
    guest_diff = diff_guests((g.email for g in record.guests), event.guests)

    if not changes and not guest_diff:
        logger.debug(f"No changes for {record.id}")
        return stats.record(RecordResult(record.row, RecordOutcome.UNCHANGED, record.id))

    if config.dry_run:
        fields = sorted(changes) + (["guests"] if guest_diff else [])
        logger.info(f"[DRY RUN] Would UPDATE: {record.id} ({', '.join(fields)})")
        return stats.record(RecordResult(record.row, RecordOutcome.UPDATED, record.id))

    if changes:
        try:
            repository.update(record.id, changes)
        except RepositoryNotFound:
            logger.info(f"Event {record.id} vanished during update, recreating")
            return _process_create(config, stats, logger, record, repository)
        logger.debug(f"Updated {record.id}: {', '.join(sorted(changes))}")

    for email in guest_diff.to_add:
        repository.add_guest(record.id, email, record.send_invites)
        logger.debug(f"Added guest {email} to {record.id}")
    for email in guest_diff.to_remove:
        repository.remove_guest(record.id, email, record.send_invites)
        logger.debug(f"Removed guest {email} from {record.id}")

    return stats.record(RecordResult(record.row, RecordOutcome.UPDATED, record.id))


def reconcile_record(
    config: SyncConfig,
    stats: SyncStats,
    logger,
    record: Record,
    repository: EventRepository,
) -> RecordResult:
    """Apply one record; repository failures mark it FAILED instead of raising."""
    try:
        if record.delete_flag:
            return _process_delete(config, stats, logger, record, repository)
        if record.has_id:
            return _process_update(config, stats, logger, record, repository)
        return _process_create(config, stats, logger, record, repository)
    except RepositoryError as e:
        logger.error(f"Failed to sync {_describe(record)}: {e}")
        return stats.record(
            RecordResult(record.row, RecordOutcome.FAILED, record.id, error=str(e))
        )


def reconcile_records(
    config: SyncConfig,
    stats: SyncStats,
    logger,
    records: Iterable[Record],
    repository: EventRepository,
) -> list[RecordResult]:
    """Apply records one after another; each write completes before the next."""
    return [
        reconcile_record(config, stats, logger, record, repository) for record in records
    ]
