"""
Date window covering a batch of records, used to re-import after a push.
"""

from collections.abc import Iterable
from datetime import datetime
from datetime import timedelta

from sheet_calendar_sync.models import EmptyBatchError
from sheet_calendar_sync.models import Record

WINDOW_BUFFER = timedelta(days=1)


def compute_import_window(records: Iterable[Record]) -> tuple[datetime, datetime]:
    """Return the half-open window [earliest start, latest start + 1 day).

    Only start timestamps are considered: the window re-queries the span that
    was just written, and the extra day keeps late or multi-day events from
    being clipped.
    """
    starts = [record.start for record in records]
    if not starts:
        raise EmptyBatchError("Cannot compute a window for an empty batch")
    return min(starts), max(starts) + WINDOW_BUFFER
