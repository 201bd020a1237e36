"""
Integration tests: full push / import passes through SheetCalendarSynchronizer.

All tests use FakeEventRepository and InMemoryRowStore so the orchestrator,
reconciler and import mapper run end-to-end without network access.
"""

from dataclasses import replace

import pytest

from sheet_calendar_sync.models import ConfigurationError
from sheet_calendar_sync.models import Guest
from sheet_calendar_sync.models import RecordOutcome
from sheet_calendar_sync.models import RepositoryEvent
from sheet_calendar_sync.records import parse_rows
from sheet_calendar_sync.sync import SheetCalendarSynchronizer
from tests.fakes import FakeEventRepository
from tests.fakes import InMemoryRowStore
from tests.fakes import make_row


def _sheet() -> InMemoryRowStore:
    return InMemoryRowStore(
        [
            make_row(
                "Kickoff",
                "2024-01-05 09:00",
                "2024-01-05 10:00",
                description="Agenda in doc",
                guests="a@x.com, b@x.com",
                location="Room 1",
            ),
            make_row("", "", ""),
            make_row("Offsite", "2024-01-10", "2024-01-12", all_day=True, color="3"),
            make_row("Retro", "2024-01-03 16:00", "2024-01-03 17:00"),
        ]
    )


def _synchronizer(config, repo, store) -> SheetCalendarSynchronizer:
    return SheetCalendarSynchronizer(config, repo, store)


class TestPush:
    def test_creates_then_refreshes_sheet_with_ids(self, sync_config):
        repo = FakeEventRepository(id_suffix="@google.com")
        store = _sheet()

        stats = _synchronizer(sync_config, repo, store).push()

        assert stats.created == 3
        assert stats.failed == 0
        assert stats.imported == 3
        ids = [row[0] for row in store.rows]
        assert sorted(ids) == ["evt1", "evt2", "evt3"]
        assert [row[1] for row in store.rows] == ["Retro", "Kickoff", "Offsite"]

    def test_second_push_is_idempotent(self, sync_config):
        repo = FakeEventRepository(id_suffix="@google.com")
        store = _sheet()
        sync = _synchronizer(sync_config, repo, store)
        sync.push()
        repo.reset_counters()

        stats = sync.push()

        assert repo.write_count == 0
        assert stats.unchanged == 3
        assert stats.writes == 0

    def test_round_trip_matches_written_intent(self, sync_config, tz):
        repo = FakeEventRepository(id_suffix="@google.com")
        store = _sheet()
        intent, _ = parse_rows(store.read_rows(), tz)

        _synchronizer(sync_config, repo, store).push()
        imported, errors = parse_rows(store.read_rows(), tz)

        assert errors == []
        by_title = {r.title: r for r in imported}
        for wanted in intent:
            got = by_title[wanted.title]
            assert got.start == wanted.start
            assert got.description == wanted.description
            assert got.location == wanted.location
            assert [g.email for g in got.guests] == [g.email for g in wanted.guests]
            assert got.color_id == (wanted.color_id or 8)
            assert got.delete_flag is False
        assert by_title["Kickoff"].end == intent[0].end
        assert by_title["Offsite"].is_all_day is True

    def test_edits_and_deletes_flow_back(self, sync_config):
        repo = FakeEventRepository()
        store = _sheet()
        sync = _synchronizer(sync_config, repo, store)
        sync.push()
        repo.reset_counters()

        rows = store.read_rows()
        kickoff = next(r for r in rows if r[1] == "Kickoff")
        retro = next(r for r in rows if r[1] == "Retro")
        kickoff[1] = "Kickoff (moved)"
        kickoff[7] = "a@x.com"
        retro[11] = True
        store.replace_rows(rows)

        stats = sync.push()

        assert (stats.updated, stats.deleted, stats.unchanged) == (1, 1, 1)
        assert repo.guest_removes == [(kickoff[0], "b@x.com")]
        assert [row[1] for row in store.rows] == ["Kickoff (moved)", "Offsite"]

    def test_row_pointing_at_deleted_event_is_recreated(self, sync_config):
        repo = FakeEventRepository()
        store = InMemoryRowStore(
            [make_row("Orphan", "2024-01-05 09:00", "2024-01-05 10:00", event_id="vanished")]
        )

        stats = _synchronizer(sync_config, repo, store).push()

        assert stats.created == 1
        assert len(repo.creates) == 1
        assert store.rows[0][0] == "evt1"

    def test_malformed_rows_are_skipped(self, sync_config):
        repo = FakeEventRepository()
        store = InMemoryRowStore(
            [
                make_row("Broken", "someday", "2024-01-05 10:00"),
                make_row("Fine", "2024-01-05 09:00", "2024-01-05 10:00"),
            ]
        )

        stats = _synchronizer(sync_config, repo, store).push()

        assert (stats.skipped, stats.created) == (1, 1)
        skipped = [r for r in stats.results if r.outcome is RecordOutcome.SKIPPED]
        assert skipped[0].row == 2

    def test_failed_record_is_reported_and_batch_continues(self, sync_config):
        repo = FakeEventRepository()
        repo.failing_titles.add("Retro")

        stats = _synchronizer(sync_config, repo, _sheet()).push()

        assert (stats.created, stats.failed) == (2, 1)
        failed = next(r for r in stats.results if r.outcome is RecordOutcome.FAILED)
        assert failed.row == 5

    def test_skipped_and_failed_rows_survive_the_refresh(self, sync_config):
        repo = FakeEventRepository()
        repo.failing_titles.add("Retro")
        broken = make_row("Broken", "someday", "2024-01-05 10:00", description="keep me")
        retro = make_row("Retro", "2024-01-03 16:00", "2024-01-03 17:00", location="Room 9")
        store = InMemoryRowStore(
            [broken, retro, make_row("Fine", "2024-01-05 09:00", "2024-01-05 10:00")]
        )

        stats = _synchronizer(sync_config, repo, store).push()

        assert [r.outcome for r in stats.results] == [
            RecordOutcome.SKIPPED,
            RecordOutcome.FAILED,
            RecordOutcome.CREATED,
        ]
        assert stats.imported == 1
        assert [row[1] for row in store.rows] == ["Fine", "Broken", "Retro"]
        assert store.rows[1] == broken
        assert store.rows[2] == retro

    def test_failed_update_keeps_the_unsynced_edit(self, sync_config, at):
        event = RepositoryEvent(
            id="e1", title="Retro", start=at(2024, 1, 3, 16), end=at(2024, 1, 3, 17)
        )
        repo = FakeEventRepository([event])
        repo.failing_titles.add("Retro")
        edited = make_row("Retro (moved)", "2024-01-03 18:00", "2024-01-03 19:00", event_id="e1")
        store = InMemoryRowStore([edited])

        stats = _synchronizer(sync_config, repo, store).push()

        assert stats.failed == 1
        assert stats.imported == 0
        assert store.rows == [edited]

    def test_empty_sheet_skips_reimport(self, sync_config):
        repo = FakeEventRepository()
        store = InMemoryRowStore([make_row("", "", "")])

        stats = _synchronizer(sync_config, repo, store).push()

        assert stats.results == []
        assert store.clears == 0

    def test_dry_run_skips_reimport(self, sync_config):
        repo = FakeEventRepository()
        store = _sheet()
        before = store.read_rows()

        stats = _synchronizer(replace(sync_config, dry_run=True), repo, store).push()

        assert stats.created == 3
        assert repo.write_count == 0
        assert store.rows == before

    def test_missing_calendar_id_blocks_everything(self, sync_config):
        repo = FakeEventRepository()
        store = _sheet()
        before = store.read_rows()

        with pytest.raises(ConfigurationError):
            _synchronizer(replace(sync_config, calendar_id="  "), repo, store).push()

        assert repo.gets == []
        assert repo.write_count == 0
        assert store.rows == before

    def test_unknown_timezone_is_configuration_error(self, sync_config):
        config = replace(sync_config, timezone="Mars/Olympus_Mons")
        with pytest.raises(ConfigurationError):
            _synchronizer(config, FakeEventRepository(), _sheet()).push()

    def test_configured_timezone_overrides_calendar(self, sync_config, at):
        repo = FakeEventRepository(timezone="UTC")
        store = InMemoryRowStore([make_row("Call", "2024-01-05 09:00", "2024-01-05 10:00")])

        _synchronizer(replace(sync_config, timezone="America/New_York"), repo, store).push()

        assert repo.creates[0].timing.start == at(2024, 1, 5, 9)


class TestImportWindow:
    def test_import_replaces_rows(self, sync_config, at):
        repo = FakeEventRepository(
            [
                RepositoryEvent(
                    id="x1",
                    title="Dentist",
                    start=at(2024, 2, 2, 8),
                    end=at(2024, 2, 2, 9),
                    guests=(Guest("doc@x.com"),),
                )
            ]
        )
        store = InMemoryRowStore([make_row("Stale", "2024-01-01", "2024-01-02")])

        stats = _synchronizer(sync_config, repo, store).import_window(
            at(2024, 2, 1).date(), at(2024, 3, 1).date()
        )

        assert stats.imported == 1
        assert store.rows[0][:4] == ["x1", "Dentist", "2024-02-02 08:00", "2024-02-02 09:00"]
        assert store.rows[0][7] == "doc@x.com (INVITED)"

    def test_import_requires_calendar_id(self, sync_config, at):
        sync = _synchronizer(replace(sync_config, calendar_id=None), FakeEventRepository(), InMemoryRowStore())
        with pytest.raises(ConfigurationError):
            sync.import_window(at(2024, 2, 1), at(2024, 3, 1))

    def test_inverted_window_is_rejected(self, sync_config, at):
        sync = _synchronizer(sync_config, FakeEventRepository(), InMemoryRowStore())
        with pytest.raises(ConfigurationError):
            sync.import_window(at(2024, 3, 1), at(2024, 2, 1))
