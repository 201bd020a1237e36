"""
Row <-> Record conversion for the sheet's fixed column layout.

Spreadsheet input is noisy, so parsing is permissive: a cell that cannot be
understood is treated as unset.  Only the start/end columns are structural;
a row whose timestamps cannot be resolved raises MalformedRecordError.
"""

import logging
import re
from collections.abc import Iterable
from collections.abc import Sequence
from datetime import date
from datetime import datetime
from datetime import timedelta
from datetime import tzinfo

from dateutil import parser as date_parser

from sheet_calendar_sync.models import MAX_COLOR_ID
from sheet_calendar_sync.models import MIN_COLOR_ID
from sheet_calendar_sync.models import Guest
from sheet_calendar_sync.models import GuestParseError
from sheet_calendar_sync.models import MalformedRecordError
from sheet_calendar_sync.models import OwnerStatus
from sheet_calendar_sync.models import Record
from sheet_calendar_sync.models import parse_owner_status

logger = logging.getLogger(__name__)

# Column order is a fixed contract with the sheet (A..L).
COLUMNS = (
    "id",
    "title",
    "start",
    "end",
    "isAllDay",
    "description",
    "colorId",
    "guests",
    "ownerStatus",
    "location",
    "sendInvites",
    "deleteFlag",
)
COL_ID, COL_TITLE, COL_START, COL_END, COL_ALL_DAY, COL_DESCRIPTION = range(6)
COL_COLOR, COL_GUESTS, COL_OWNER_STATUS, COL_LOCATION, COL_SEND_INVITES, COL_DELETE = range(6, 12)

HEADER_ROW = 1
FIRST_DATA_ROW = 2

DATE_FORMAT = "%Y-%m-%d"
DATETIME_FORMAT = "%Y-%m-%d %H:%M"

# Sheets serial dates count days from this epoch.
_SHEETS_EPOCH = datetime(1899, 12, 30)

_TRUE_STRINGS = frozenset({"true", "yes", "y", "1", "x", "on"})

# "someone@example.com" optionally followed by "(STATUS)".
_GUEST_RE = re.compile(r"^(?P<email>[^\s()<>,;]+@[^\s()<>,;]+)\s*(?:\((?P<status>[^()]*)\))?$")
_GUEST_SPLIT_RE = re.compile(r"[,;\n]")


# ---------------------------------------------------------------------------
# Cell parsers
# ---------------------------------------------------------------------------


def parse_text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return parse_text(value).lower() in _TRUE_STRINGS


def parse_color(value) -> int:
    """Return a color id in 1..11, or 0 for anything else."""
    if isinstance(value, bool):
        return 0
    try:
        color = int(float(parse_text(value)))
    except (ValueError, OverflowError):
        return 0
    if MIN_COLOR_ID <= color <= MAX_COLOR_ID:
        return color
    return 0


def parse_timestamp(value, tz: tzinfo) -> datetime:
    """Resolve a cell to an aware datetime in ``tz``.

    Accepts datetime/date objects, Sheets serial numbers and free-form
    strings.  Raises ValueError when the cell cannot be resolved.
    """
    if isinstance(value, datetime):
        result = value
    elif isinstance(value, date):
        result = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            result = _SHEETS_EPOCH + timedelta(seconds=round(float(value) * 86400))
        except (ValueError, OverflowError) as e:
            raise ValueError(f"serial date out of range: {value!r}") from e
    else:
        text = parse_text(value)
        if not text:
            raise ValueError("empty timestamp")
        try:
            result = date_parser.parse(text)
        except (ValueError, OverflowError) as e:
            raise ValueError(f"unparseable timestamp {text!r}") from e

    if result.tzinfo is None:
        return result.replace(tzinfo=tz)
    try:
        return result.astimezone(tz)
    except OverflowError as e:
        raise ValueError(f"timestamp out of range: {result!r}") from e


def parse_guests(value) -> tuple[Guest, ...]:
    """Parse "a@x.com (YES), b@x.com" into Guests.

    Raises GuestParseError on any entry that is not a plain address with an
    optional parenthesised status.  Addresses that themselves contain
    parentheses are rejected rather than guessed at.
    """
    guests: list[Guest] = []
    seen: set[str] = set()
    for raw in _GUEST_SPLIT_RE.split(parse_text(value)):
        entry = raw.strip()
        if not entry:
            continue
        match = _GUEST_RE.match(entry)
        if not match:
            raise GuestParseError(f"Malformed guest entry: {entry!r}")
        status_text = match.group("status")
        status = parse_owner_status(status_text) if status_text else OwnerStatus.INVITED
        guest = Guest(match.group("email"), status)
        if guest.key in seen:
            continue
        seen.add(guest.key)
        guests.append(guest)
    return tuple(guests)


def render_guests(guests: Iterable[Guest]) -> str:
    return ", ".join(f"{g.email} ({g.status.value})" for g in guests)


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------


def pad_row(values: Sequence) -> list:
    padded = list(values[: len(COLUMNS)])
    padded.extend([""] * (len(COLUMNS) - len(padded)))
    return padded


def is_blank_row(values: Sequence) -> bool:
    """A row without a title is blank and never synchronized."""
    if len(values) <= COL_TITLE:
        return True
    return parse_text(values[COL_TITLE]) == ""


def parse_row(values: Sequence, tz: tzinfo, row: int | None = None) -> Record:
    """Build a Record from one raw row tuple."""
    cells = pad_row(values)
    title = parse_text(cells[COL_TITLE])
    if not title:
        raise MalformedRecordError("Row has no title", row=row)

    try:
        start = parse_timestamp(cells[COL_START], tz)
        end = parse_timestamp(cells[COL_END], tz)
    except ValueError as e:
        raise MalformedRecordError(f"Row {row}: {e}", row=row) from e

    try:
        guests = parse_guests(cells[COL_GUESTS])
    except GuestParseError as e:
        # Leaving guests unset disables guest management for this row.
        logger.warning(f"Row {row}: ignoring guest list ({e})")
        guests = ()

    event_id = parse_text(cells[COL_ID]) or None

    return Record(
        id=event_id,
        title=title,
        start=start,
        end=end,
        is_all_day=parse_bool(cells[COL_ALL_DAY]),
        description=parse_text(cells[COL_DESCRIPTION]),
        color_id=parse_color(cells[COL_COLOR]),
        guests=guests,
        owner_status=parse_owner_status(cells[COL_OWNER_STATUS]),
        location=parse_text(cells[COL_LOCATION]),
        send_invites=parse_bool(cells[COL_SEND_INVITES]),
        delete_flag=parse_bool(cells[COL_DELETE]),
        row=row,
    )


def parse_rows(
    rows: Iterable[Sequence], tz: tzinfo, first_row: int = FIRST_DATA_ROW
) -> tuple[list[Record], list[MalformedRecordError]]:
    """Parse every non-blank row; malformed rows are returned separately."""
    records: list[Record] = []
    errors: list[MalformedRecordError] = []
    for offset, values in enumerate(rows):
        row = first_row + offset
        if is_blank_row(values):
            continue
        try:
            records.append(parse_row(values, tz, row=row))
        except MalformedRecordError as e:
            errors.append(e)
    return records, errors


def format_timestamp(value: datetime, tz: tzinfo, all_day: bool) -> str:
    local = value.astimezone(tz)
    return local.strftime(DATE_FORMAT if all_day else DATETIME_FORMAT)


def record_to_row(record: Record, tz: tzinfo) -> list:
    """Render a Record back into the sheet's column order."""
    return [
        record.id or "",
        record.title,
        format_timestamp(record.start, tz, record.is_all_day),
        format_timestamp(record.end, tz, record.is_all_day),
        record.is_all_day,
        record.description,
        record.color_id or "",
        render_guests(record.guests),
        record.owner_status.value,
        record.location,
        record.send_invites,
        record.delete_flag,
    ]
