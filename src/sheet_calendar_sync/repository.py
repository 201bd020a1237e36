"""
Event repository contract and its Google Calendar API implementation.
"""

import logging
from datetime import date
from datetime import datetime
from datetime import timedelta
from typing import Any
from typing import Protocol
from zoneinfo import ZoneInfo

import httplib2
from dateutil import parser as date_parser
from google.auth.exceptions import TransportError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from sheet_calendar_sync.models import EventPayload
from sheet_calendar_sync.models import EventTiming
from sheet_calendar_sync.models import Guest
from sheet_calendar_sync.models import OwnerStatus
from sheet_calendar_sync.models import RepositoryError
from sheet_calendar_sync.models import RepositoryEvent
from sheet_calendar_sync.models import RepositoryNotFound

logger = logging.getLogger(__name__)

# Google reports 410 Gone for events that were deleted but not yet purged.
_NOT_FOUND_STATUSES = frozenset({404, 410})

_RESPONSE_TO_STATUS = {
    "needsAction": OwnerStatus.INVITED,
    "accepted": OwnerStatus.YES,
    "declined": OwnerStatus.NO,
    "tentative": OwnerStatus.MAYBE,
}
_STATUS_TO_RESPONSE = {status: response for response, status in _RESPONSE_TO_STATUS.items()}

# Network-level failures that never reach the API as an HTTP response.
_TRANSPORT_ERRORS = (OSError, httplib2.HttpLib2Error, TransportError)


class EventRepository(Protocol):
    """What the reconciler needs from a calendar.

    ``get``, ``update``, ``delete``, ``add_guest`` and ``remove_guest`` raise
    RepositoryNotFound for unknown ids; any other failure is RepositoryError.
    """

    accepts_inline_color: bool

    def get_timezone(self) -> str: ...

    def get(self, event_id: str) -> RepositoryEvent: ...

    def create(self, payload: EventPayload) -> RepositoryEvent: ...

    def update(self, event_id: str, changes: dict[str, Any]) -> RepositoryEvent: ...

    def delete(self, event_id: str) -> None: ...

    def add_guest(self, event_id: str, email: str, send_invites: bool = False) -> None: ...

    def remove_guest(self, event_id: str, email: str, send_invites: bool = False) -> None: ...

    def list_events(self, start: datetime, end: datetime) -> list[RepositoryEvent]: ...


def is_not_found_error(e: Exception) -> bool:
    """Return True when the API reports that an event does not exist."""
    if isinstance(e, HttpError):
        return getattr(e.resp, "status", None) in _NOT_FOUND_STATUSES
    return False


def _wrap_http_error(e: HttpError, event_id: str | None = None) -> RepositoryError:
    if event_id is not None and is_not_found_error(e):
        return RepositoryNotFound(event_id)
    status = getattr(e.resp, "status", "?")
    return RepositoryError(f"Calendar API error {status}: {e}")


def _execute(request, event_id: str | None = None):
    """Run an API request, translating every failure into RepositoryError."""
    try:
        return request.execute()
    except HttpError as e:
        raise _wrap_http_error(e, event_id) from e
    except _TRANSPORT_ERRORS as e:
        raise RepositoryError(f"Calendar API unreachable: {e}") from e


# ---------------------------------------------------------------------------
# API <-> model translation (pure functions)
# ---------------------------------------------------------------------------


def timing_to_api(timing: EventTiming, tz_name: str) -> tuple[dict, dict]:
    """Return (start, end) bodies; all-day events use exclusive ``date`` ends."""
    if timing.all_day:
        return (
            {"date": timing.start.date().isoformat()},
            {"date": timing.end.date().isoformat()},
        )
    return (
        {"dateTime": timing.start.isoformat(), "timeZone": tz_name},
        {"dateTime": timing.end.isoformat(), "timeZone": tz_name},
    )


def _time_from_api(value: dict, tz: ZoneInfo) -> tuple[datetime, bool]:
    if "date" in value:
        day = date.fromisoformat(value["date"])
        return datetime(day.year, day.month, day.day, tzinfo=tz), True
    return date_parser.isoparse(value["dateTime"]).astimezone(tz), False


def _color_from_api(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def owner_status_from_api(item: dict) -> OwnerStatus:
    if item.get("organizer", {}).get("self"):
        return OwnerStatus.OWNER
    for attendee in item.get("attendees", []):
        if attendee.get("self"):
            return _RESPONSE_TO_STATUS.get(attendee.get("responseStatus"), OwnerStatus.UNKNOWN)
    return OwnerStatus.UNKNOWN


def event_from_api(item: dict, tz: ZoneInfo) -> RepositoryEvent:
    """Convert an events resource into a RepositoryEvent."""
    start, all_day = _time_from_api(item["start"], tz)
    end, _ = _time_from_api(item.get("end", item["start"]), tz)
    if end <= start:
        end = start + timedelta(days=1) if all_day else start

    guests = tuple(
        Guest(a["email"], _RESPONSE_TO_STATUS.get(a.get("responseStatus"), OwnerStatus.INVITED))
        for a in item.get("attendees", [])
        if a.get("email") and not a.get("self") and not a.get("resource")
    )

    return RepositoryEvent(
        id=item["id"],
        title=item.get("summary", ""),
        start=start,
        end=end,
        is_all_day=all_day,
        description=item.get("description", "") or "",
        color_id=_color_from_api(item.get("colorId")),
        guests=guests,
        owner_status=owner_status_from_api(item),
        location=item.get("location", "") or "",
    )


def body_from_payload(payload: EventPayload, tz_name: str) -> dict:
    start, end = timing_to_api(payload.timing, tz_name)
    body: dict[str, Any] = {
        "summary": payload.title,
        "description": payload.description,
        "location": payload.location,
        "start": start,
        "end": end,
    }
    if payload.color_id:
        body["colorId"] = str(payload.color_id)
    guests = payload.guest_list
    if guests:
        body["attendees"] = [{"email": email} for email in guests]
    return body


def _replacing(time_body: dict) -> dict:
    """Null out the other time form; patch merges nested objects."""
    if "date" in time_body:
        return {"dateTime": None, "timeZone": None, **time_body}
    return {"date": None, **time_body}


def body_from_changes(changes: dict[str, Any], tz_name: str) -> dict:
    """Translate reconciler field changes into a partial events resource."""
    body: dict[str, Any] = {}
    if "title" in changes:
        body["summary"] = changes["title"]
    if "description" in changes:
        body["description"] = changes["description"]
    if "location" in changes:
        body["location"] = changes["location"]
    if "color_id" in changes:
        body["colorId"] = str(changes["color_id"])
    if "timing" in changes:
        start, end = timing_to_api(changes["timing"], tz_name)
        body["start"], body["end"] = _replacing(start), _replacing(end)
    return body


def _send_updates(send_invites: bool) -> str:
    return "all" if send_invites else "none"


# ---------------------------------------------------------------------------
# Google Calendar implementation
# ---------------------------------------------------------------------------


def build_calendar_service(credentials):
    return build("calendar", "v3", credentials=credentials, cache_discovery=False)


def list_calendars(service) -> list[dict]:
    """Return every calendar on the user's calendar list."""
    calendars: list[dict] = []
    page_token = None
    while True:
        response = _execute(service.calendarList().list(pageToken=page_token))
        calendars.extend(response.get("items", []))
        page_token = response.get("nextPageToken")
        if not page_token:
            return calendars


class GoogleCalendarRepository:
    """EventRepository backed by the Google Calendar API v3."""

    accepts_inline_color = True

    def __init__(self, service, calendar_id: str, timezone: str | None = None):
        self.service = service
        self.calendar_id = calendar_id
        self._timezone = timezone

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.get_timezone())

    def get_timezone(self) -> str:
        """Return the calendar's own default time zone."""
        if self._timezone is None:
            calendar = _execute(self.service.calendars().get(calendarId=self.calendar_id))
            self._timezone = calendar.get("timeZone", "UTC")
            logger.debug(f"Calendar {self.calendar_id} time zone: {self._timezone}")
        return self._timezone

    def _get_raw(self, event_id: str) -> dict:
        item = _execute(
            self.service.events().get(calendarId=self.calendar_id, eventId=event_id),
            event_id,
        )
        # Deleted events can still be fetched by id with status "cancelled".
        if item.get("status") == "cancelled":
            raise RepositoryNotFound(event_id)
        return item

    def _patch(self, event_id: str, body: dict, send_invites: bool = False) -> dict:
        return _execute(
            self.service.events().patch(
                calendarId=self.calendar_id,
                eventId=event_id,
                body=body,
                sendUpdates=_send_updates(send_invites),
            ),
            event_id,
        )

    def get(self, event_id: str) -> RepositoryEvent:
        return event_from_api(self._get_raw(event_id), self.tz)

    def create(self, payload: EventPayload) -> RepositoryEvent:
        body = body_from_payload(payload, self.get_timezone())
        item = _execute(
            self.service.events().insert(
                calendarId=self.calendar_id,
                body=body,
                sendUpdates=_send_updates(payload.send_invites),
            )
        )
        return event_from_api(item, self.tz)

    def update(self, event_id: str, changes: dict[str, Any]) -> RepositoryEvent:
        body = body_from_changes(changes, self.get_timezone())
        status = changes.get("owner_status")
        if status is not None:
            body["attendees"] = self._attendees_with_own_status(event_id, status)
        item = self._patch(event_id, body)
        return event_from_api(item, self.tz)

    def _attendees_with_own_status(self, event_id: str, status: OwnerStatus) -> list[dict]:
        attendees = self._get_raw(event_id).get("attendees", [])
        response = _STATUS_TO_RESPONSE[status]
        for attendee in attendees:
            if attendee.get("self"):
                attendee["responseStatus"] = response
        return attendees

    def delete(self, event_id: str) -> None:
        _execute(
            self.service.events().delete(calendarId=self.calendar_id, eventId=event_id),
            event_id,
        )

    def add_guest(self, event_id: str, email: str, send_invites: bool = False) -> None:
        attendees = self._get_raw(event_id).get("attendees", [])
        if any(a.get("email", "").lower() == email.lower() for a in attendees):
            return
        attendees.append({"email": email})
        self._patch(event_id, {"attendees": attendees}, send_invites)

    def remove_guest(self, event_id: str, email: str, send_invites: bool = False) -> None:
        attendees = self._get_raw(event_id).get("attendees", [])
        kept = [a for a in attendees if a.get("email", "").lower() != email.lower()]
        if len(kept) == len(attendees):
            return
        self._patch(event_id, {"attendees": kept}, send_invites)

    def list_events(self, start: datetime, end: datetime) -> list[RepositoryEvent]:
        """Return events overlapping [start, end), recurring series expanded."""
        tz = self.tz
        events: list[RepositoryEvent] = []
        page_token = None
        while True:
            response = _execute(
                self.service.events().list(
                    calendarId=self.calendar_id,
                    timeMin=start.isoformat(),
                    timeMax=end.isoformat(),
                    singleEvents=True,
                    orderBy="startTime",
                    showDeleted=False,
                    maxResults=2500,
                    pageToken=page_token,
                )
            )
            events.extend(event_from_api(item, tz) for item in response.get("items", []))
            page_token = response.get("nextPageToken")
            if not page_token:
                break
        logger.debug(f"Listed {len(events)} events between {start} and {end}")
        return events
