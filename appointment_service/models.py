from datetime import datetime, timezone
from pydantic import BaseModel

BOOKED = "BOOKED"
CANCELLED = "CANCELLED"
COMPLETED = "COMPLETED"


def wall_clock(value: datetime) -> datetime:
    """The time as written by the caller, with any offset dropped.

    Day windows are matched against this, so an appointment belongs to the
    calendar day it was booked on in its own offset.
    """
    return value.replace(tzinfo=None)


def slot_key(value: datetime) -> str:
    """Equality key for a provider slot.

    Aware times collapse to their UTC instant (09:00+02:00 and 07:00Z share a
    key); naive times keep their own key and never match an aware one.
    """
    if value.tzinfo is not None and value.utcoffset() is not None:
        return value.astimezone(timezone.utc).isoformat()
    return value.isoformat()


class Party(BaseModel):
    """A provider or requester known to the party directory."""
    id: str
    given_name: str = ""
    family_name: str = ""

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.given_name, self.family_name) if p)

    def matches_name(self, fragment: str) -> bool:
        """Case-insensitive substring match on the full name."""
        return fragment.casefold() in self.full_name.casefold()


class Appointment(BaseModel):
    id: str | None = None  # assigned by the store on insert
    provider_id: str
    requester_id: str
    scheduled_time: datetime  # passed through as given, no timezone conversion
    status: str = BOOKED
    cancelled_by: str | None = None
    cancelled_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status != CANCELLED


class BookRequest(BaseModel):
    # Fields are optional so missing values reach the service's ordered validation
    provider_id: str | None = None
    requester_id: str | None = None
    scheduled_time: datetime | None = None
    status: str | None = None


class CancelRequest(BaseModel):
    cancelled_by: str | None = None


class StatusChangeRequest(BaseModel):
    status: str | None = None


class RescheduleRequest(BaseModel):
    scheduled_time: datetime | None = None
