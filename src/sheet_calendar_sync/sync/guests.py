"""
Guest list diffing.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from dataclasses import field

from sheet_calendar_sync.models import Guest


@dataclass
class GuestDiff:
    to_add: list[str] = field(default_factory=list)
    to_remove: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.to_add or self.to_remove)


def _normalise(email: str) -> str:
    return email.strip().lower()


def diff_guests(desired: Iterable[str], current: Iterable[Guest]) -> GuestDiff:
    """Compute which addresses to invite and which to drop.

    An empty desired list means "guests not managed for this row" and never
    removes anybody, so a blank cell cannot de-invite everyone.  Addresses
    compare case-insensitively; the desired spelling is used for additions.
    """
    wanted: dict[str, str] = {}
    for email in desired:
        key = _normalise(email)
        if key:
            wanted.setdefault(key, email.strip())
    if not wanted:
        return GuestDiff()

    existing: dict[str, str] = {}
    for guest in current:
        existing.setdefault(guest.key, guest.email)

    return GuestDiff(
        to_add=[email for key, email in wanted.items() if key not in existing],
        to_remove=[email for key, email in existing.items() if key not in wanted],
    )


def join_guest_emails(guests: Iterable[Guest]) -> str:
    return ",".join(guest.email for guest in guests)
