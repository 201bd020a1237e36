"""
Unit tests for calendar → sheet import.
"""

from sheet_calendar_sync.models import Guest
from sheet_calendar_sync.models import OwnerStatus
from sheet_calendar_sync.models import RepositoryEvent
from sheet_calendar_sync.sync.importer import import_events
from sheet_calendar_sync.sync.importer import record_from_event
from sheet_calendar_sync.sync.importer import strip_id_suffix
from tests.fakes import FakeEventRepository
from tests.fakes import InMemoryRowStore


def _event(at, event_id="abc", title="Review", day=5, **kwargs) -> RepositoryEvent:
    return RepositoryEvent(
        id=event_id,
        title=title,
        start=at(2024, 1, day, 9),
        end=at(2024, 1, day, 10),
        **kwargs,
    )


def test_strip_id_suffix():
    assert strip_id_suffix("abc123@google.com") == "abc123"
    assert strip_id_suffix("plain") == "plain"


def test_record_from_event_never_marks_deletion(at):
    event = _event(
        at,
        "abc@google.com",
        guests=(Guest("a@x.com", OwnerStatus.YES),),
        owner_status=OwnerStatus.MAYBE,
        color_id=4,
    )
    record = record_from_event(event)
    assert record.id == "abc"
    assert record.delete_flag is False
    assert record.owner_status is OwnerStatus.MAYBE
    assert record.color_id == 4
    assert record.guests == (Guest("a@x.com", OwnerStatus.YES),)


def test_import_writes_rows_sorted_by_start(tz, at, sync_stats, sync_logger):
    repo = FakeEventRepository(
        [_event(at, "late", "Later", day=7), _event(at, "early", "Earlier", day=3)],
        id_suffix="@google.com",
    )
    store = InMemoryRowStore()

    records = import_events(sync_stats, sync_logger, repo, store, at(2024, 1, 1), at(2024, 1, 31), tz)

    assert [r.id for r in records] == ["early", "late"]
    assert [row[0] for row in store.rows] == ["early", "late"]
    assert store.rows[0][7] == ""
    assert store.rows[0][11] is False
    assert sync_stats.imported == 2


def test_guest_column_round_trips_status(tz, at, sync_stats, sync_logger):
    guests = (Guest("a@x.com", OwnerStatus.YES), Guest("b@x.com", OwnerStatus.NO))
    repo = FakeEventRepository([_event(at, guests=guests)])
    store = InMemoryRowStore()

    import_events(sync_stats, sync_logger, repo, store, at(2024, 1, 1), at(2024, 2, 1), tz)

    assert store.rows[0][7] == "a@x.com (YES), b@x.com (NO)"


def test_empty_window_clears_rows(tz, at, sync_stats, sync_logger):
    repo = FakeEventRepository([_event(at, day=20)])
    store = InMemoryRowStore([["stale", "Old row"]])

    records = import_events(sync_stats, sync_logger, repo, store, at(2024, 1, 1), at(2024, 1, 10), tz)

    assert records == []
    assert store.rows == []
    assert store.clears == 1


def test_kept_rows_follow_imported_rows(tz, at, sync_stats, sync_logger):
    repo = FakeEventRepository(
        [_event(at, "abc", "Review", day=5), _event(at, "dup", "Old title", day=6)]
    )
    store = InMemoryRowStore()
    kept = [["dup", "New title", "2024-01-06 11:00"], ["", "Unparsed", "someday"]]

    records = import_events(
        sync_stats, sync_logger, repo, store, at(2024, 1, 1), at(2024, 1, 31), tz, kept_rows=kept
    )

    assert [r.id for r in records] == ["abc"]
    assert [row[1] for row in store.rows] == ["Review", "New title", "Unparsed"]
    assert all(len(row) == 12 for row in store.rows)
    assert sync_stats.imported == 1


def test_empty_window_with_kept_rows_does_not_clear(tz, at, sync_stats, sync_logger):
    store = InMemoryRowStore([["", "Unparsed", "someday"]])

    import_events(
        sync_stats,
        sync_logger,
        FakeEventRepository(),
        store,
        at(2024, 1, 1),
        at(2024, 1, 10),
        tz,
        kept_rows=store.read_rows(),
    )

    assert store.clears == 0
    assert [row[1] for row in store.rows] == ["Unparsed"]
