"""
Pure data models — no Google API or gspread imports.
"""

from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from enum import Enum
from pathlib import Path

DEFAULT_CONFIG = Path.home() / ".config/sheet-calendar-sync.conf"
DEFAULT_TOKEN_FILE = Path.home() / ".local/share/sheet-calendar-sync-token.json"
DEFAULT_CREDENTIALS_FILE = Path("credentials.json")
DEFAULT_WORKSHEET = "Events"

# Google Calendar event palette is 1..11; 8 is "Graphite".
DEFAULT_COLOR_ID = 8
MIN_COLOR_ID = 1
MAX_COLOR_ID = 11


class CalendarSyncError(Exception):
    """Base exception for calendar sync errors."""

    pass


class ConfigurationError(CalendarSyncError):
    """Missing or invalid configuration; blocks the whole sync."""

    pass


class MalformedRecordError(CalendarSyncError):
    """A row could not be turned into a Record."""

    def __init__(self, message: str, row: int | None = None):
        super().__init__(message)
        self.row = row


class GuestParseError(MalformedRecordError):
    """A guest cell contains an entry that is not a usable e-mail address."""

    pass


class RepositoryError(CalendarSyncError):
    """Any failure reported by the event repository."""

    pass


class RepositoryNotFound(RepositoryError):
    """The repository has no event with the requested id."""

    def __init__(self, event_id: str):
        super().__init__(f"Event not found: {event_id}")
        self.event_id = event_id


class EmptyBatchError(CalendarSyncError):
    """A date window was requested for zero records."""

    pass


class OwnerStatus(Enum):
    """The calendar owner's relationship to an event."""

    OWNER = "OWNER"
    INVITED = "INVITED"
    YES = "YES"
    NO = "NO"
    MAYBE = "MAYBE"
    UNKNOWN = "UNKNOWN"


OWNER_STATUS_BY_NAME = {status.value: status for status in OwnerStatus}

# Statuses the owner can set on an event they were invited to.
SETTABLE_OWNER_STATUSES = frozenset(
    {OwnerStatus.INVITED, OwnerStatus.YES, OwnerStatus.NO, OwnerStatus.MAYBE}
)


def parse_owner_status(value) -> OwnerStatus:
    """Map a cell value to an OwnerStatus; anything unrecognised is UNKNOWN."""
    if isinstance(value, OwnerStatus):
        return value
    if value is None:
        return OwnerStatus.UNKNOWN
    return OWNER_STATUS_BY_NAME.get(str(value).strip().upper(), OwnerStatus.UNKNOWN)


@dataclass(frozen=True)
class Guest:
    """One invitee: e-mail address plus response status."""

    email: str
    status: OwnerStatus = OwnerStatus.INVITED

    @property
    def key(self) -> str:
        return self.email.strip().lower()


@dataclass(frozen=True)
class EventTiming:
    """Start/end pair as sent to or read from the repository.

    For all-day events both ends are local midnights and ``end`` is exclusive.
    """

    start: datetime
    end: datetime
    all_day: bool = False


@dataclass
class Record:
    """One synchronizable row of the sheet."""

    title: str
    start: datetime
    end: datetime
    id: str | None = None
    is_all_day: bool = False
    description: str = ""
    color_id: int = 0
    guests: tuple[Guest, ...] = ()
    owner_status: OwnerStatus = OwnerStatus.UNKNOWN
    location: str = ""
    send_invites: bool = False
    delete_flag: bool = False
    row: int | None = None  # 1-based sheet row, header is row 1

    @property
    def has_id(self) -> bool:
        return bool(self.id and self.id.strip())


@dataclass
class RepositoryEvent:
    """An event as reported by the calendar."""

    id: str
    title: str
    start: datetime
    end: datetime
    is_all_day: bool = False
    description: str = ""
    color_id: int = 0
    guests: tuple[Guest, ...] = ()
    owner_status: OwnerStatus = OwnerStatus.UNKNOWN
    location: str = ""

    @property
    def timing(self) -> EventTiming:
        return EventTiming(self.start, self.end, self.is_all_day)


@dataclass
class EventPayload:
    """Everything the repository needs to create an event in one call."""

    title: str
    timing: EventTiming
    description: str = ""
    color_id: int = DEFAULT_COLOR_ID
    location: str = ""
    guest_emails: str = ""  # comma-joined
    send_invites: bool = False

    @property
    def guest_list(self) -> list[str]:
        return [e.strip() for e in self.guest_emails.split(",") if e.strip()]


@dataclass
class SyncConfig:
    """Configuration for one sync invocation."""

    calendar_id: str | None
    spreadsheet_id: str | None = None
    worksheet: str = DEFAULT_WORKSHEET
    timezone: str | None = None  # resolved from the calendar when None
    credentials_file: Path = DEFAULT_CREDENTIALS_FILE
    token_file: Path = DEFAULT_TOKEN_FILE
    default_color: int = DEFAULT_COLOR_ID
    dry_run: bool = False
    verbose: bool = False
    yes: bool = False  # Auto-confirm without prompting


def require_calendar_id(config: SyncConfig) -> str:
    """Return the configured calendar id or raise ConfigurationError."""
    calendar_id = (config.calendar_id or "").strip()
    if not calendar_id:
        raise ConfigurationError(
            "No calendar identifier configured. Set calendar_id in the config file "
            "or pass --calendar."
        )
    return calendar_id


class RecordOutcome(Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    DELETED = "deleted"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class RecordResult:
    """What happened to a single row during a pass."""

    row: int | None
    outcome: RecordOutcome
    event_id: str | None = None
    error: str | None = None


@dataclass
class SyncStats:
    """Statistics for sync operation."""

    created: int = 0
    updated: int = 0
    unchanged: int = 0
    deleted: int = 0
    failed: int = 0
    skipped: int = 0
    imported: int = 0
    results: list[RecordResult] = field(default_factory=list)

    def record(self, result: RecordResult) -> RecordResult:
        self.results.append(result)
        counter = result.outcome.value
        setattr(self, counter, getattr(self, counter) + 1)
        return result

    @property
    def writes(self) -> int:
        return self.created + self.updated + self.deleted
