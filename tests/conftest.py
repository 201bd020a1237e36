"""
Shared pytest fixtures.
"""

import logging
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from sheet_calendar_sync.models import Record
from sheet_calendar_sync.models import SyncConfig
from sheet_calendar_sync.models import SyncStats
from tests.fakes import TEST_TIMEZONE
from tests.fakes import FakeEventRepository
from tests.fakes import InMemoryRowStore

CALENDAR_ID = "team-calendar@group.calendar.google.com"


@pytest.fixture
def tz():
    return ZoneInfo(TEST_TIMEZONE)


@pytest.fixture
def at(tz):
    """Build aware datetimes in the test time zone: at(2024, 1, 5, 10)."""

    def _at(*args) -> datetime:
        return datetime(*args, tzinfo=tz)

    return _at


@pytest.fixture
def make_record(at):
    def _make(title="Standup", start=None, end=None, **kwargs) -> Record:
        start = start or at(2024, 3, 4, 10, 0)
        end = end or at(2024, 3, 4, 11, 0)
        return Record(title=title, start=start, end=end, **kwargs)

    return _make


@pytest.fixture
def sync_config():
    return SyncConfig(calendar_id=CALENDAR_ID, spreadsheet_id="sheet-key")


@pytest.fixture
def sync_logger():
    return logging.getLogger("test_sync")


@pytest.fixture
def sync_stats():
    return SyncStats()


@pytest.fixture
def repository():
    return FakeEventRepository()


@pytest.fixture
def row_store():
    return InMemoryRowStore()
