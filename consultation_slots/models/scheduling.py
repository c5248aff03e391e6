from pydantic import BaseModel, Field, computed_field, model_validator
from typing import Optional, List, Dict, Any
from datetime import date
from enum import Enum

from consultation_slots.errors import ConfigurationError


def format_label(minutes: int) -> str:
    """Minutes since midnight -> "HH:MM" slot label"""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_label(label: Any) -> Optional[int]:
    """
    "HH:MM" slot label -> minutes since midnight.

    Returns None for anything that is not a well-formed label, so callers
    can treat malformed upstream data as absent.
    """
    if not isinstance(label, str):
        return None
    parts = label.strip().split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        return None
    hours, minutes = int(parts[0]), int(parts[1])
    if hours > 24 or minutes > 59:
        return None
    return hours * 60 + minutes


class OperatingWindow(BaseModel):
    """Provider working hours for a day, in the provider's home timezone"""
    start_hour: int = 9
    end_hour: int = 18
    granularity_minutes: int = 30

    class Config:
        frozen = True

    @model_validator(mode="after")
    def _check_window(self) -> "OperatingWindow":
        if not 0 <= self.start_hour < self.end_hour <= 24:
            raise ConfigurationError(
                f"Operating window must satisfy 0 <= start < end <= 24, "
                f"got {self.start_hour}-{self.end_hour}"
            )
        if self.granularity_minutes < 1:
            raise ConfigurationError("Slot granularity must be at least 1 minute")
        span = (self.end_hour - self.start_hour) * 60
        if span % self.granularity_minutes:
            raise ConfigurationError(
                f"Slot granularity {self.granularity_minutes}min does not divide "
                f"the {span}min operating window"
            )
        return self

    @property
    def start_minutes(self) -> int:
        return self.start_hour * 60

    @property
    def end_minutes(self) -> int:
        return self.end_hour * 60

    @property
    def slot_count(self) -> int:
        return (self.end_minutes - self.start_minutes) // self.granularity_minutes

    def slot_labels(self) -> List[str]:
        """Ordered slot-start labels, e.g. 09:00, 09:30, ..., 17:30"""
        return [
            format_label(minutes)
            for minutes in range(self.start_minutes, self.end_minutes, self.granularity_minutes)
        ]

    def hours(self) -> List[int]:
        return list(range(self.start_hour, self.end_hour))


class PricingBasis(str, Enum):
    """Which regional price a consultation kind is charged at"""
    INITIAL = "initial"
    FOLLOWUP = "followup"


class ConsultationKind(BaseModel):
    """A category of appointment and the consecutive slots it needs"""
    key: str
    label: str = ""
    slots: int = 1
    pricing_basis: PricingBasis = PricingBasis.INITIAL

    class Config:
        frozen = True

    @model_validator(mode="after")
    def _check_slots(self) -> "ConsultationKind":
        if self.slots < 1:
            raise ConfigurationError(
                f"Consultation kind {self.key!r} must require at least one slot, got {self.slots}"
            )
        return self

    def duration_minutes(self, window: OperatingWindow) -> int:
        return self.slots * window.granularity_minutes


class ExistingSlot(BaseModel):
    """Slot-level booking feed entry, as returned by the booking store"""
    time: str
    available: bool = True


class BookingRecord(BaseModel):
    """Confirmed appointment occupying consecutive slots on a date"""
    date: date
    start: str
    duration_slots: int = Field(1, ge=1)


class BusyInterval(BaseModel):
    """Busy slot labels for one date from a connected external calendar"""
    date: date
    slots: List[str] = Field(default_factory=list)


class UnavailableReason(str, Enum):
    """Why a slot cannot be booked"""
    ALREADY_BOOKED = "already_booked"
    CALENDAR_CONFLICT = "calendar_conflict"
    INSUFFICIENT_WINDOW = "insufficient_window"
    PAST_TIME = "past_time"

    @property
    def message(self) -> str:
        return _REASON_MESSAGES[self]


_REASON_MESSAGES = {
    UnavailableReason.ALREADY_BOOKED: "Already booked",
    UnavailableReason.CALENDAR_CONFLICT: "Doctor busy",
    UnavailableReason.INSUFFICIENT_WINDOW: "Insufficient time window",
    UnavailableReason.PAST_TIME: "Past time",
}


class SlotVerdict(BaseModel):
    """Availability of a single slot start"""
    time: str
    available: bool
    reason: Optional[UnavailableReason] = None

    @computed_field
    @property
    def message(self) -> Optional[str]:
        return self.reason.message if self.reason else None


class DayAvailabilitySummary(BaseModel):
    """Per-date density used for month-grid styling"""
    date: date
    available: int
    total: int

    @computed_field
    @property
    def sold_out(self) -> bool:
        return self.available == 0


class NextAvailableSlot(BaseModel):
    """First bookable (date, time) found by a forward search"""
    date: date
    time: str


class TimeOfDay(str, Enum):
    """Time of day preference for the next-available search"""
    ANY = "any"
    MORNING = "morning"  # before 12:00
    AFTERNOON = "afternoon"  # 12:00 - 17:00
    EVENING = "evening"  # 17:00 and after

    def contains(self, label: str) -> bool:
        minutes = parse_label(label)
        if minutes is None:
            return False
        if self == TimeOfDay.MORNING:
            return minutes < 12 * 60
        if self == TimeOfDay.AFTERNOON:
            return 12 * 60 <= minutes < 17 * 60
        if self == TimeOfDay.EVENING:
            return minutes >= 17 * 60
        return True


class CalendarConnectionState(BaseModel):
    """
    Whether the provider's external calendar is connected.

    Passed explicitly into availability queries. A connection without
    token data is a demo connection and serves canned busy slots.
    """
    connected: bool = False
    token_data: Optional[Dict[str, Any]] = None

    class Config:
        frozen = True

    @property
    def is_demo(self) -> bool:
        return self.connected and not self.token_data

    @classmethod
    def from_provider(cls, provider: Optional[Dict[str, Any]]) -> "CalendarConnectionState":
        """Derive the state from a stored provider profile with OAuth tokens"""
        if not provider:
            return cls(connected=False)

        has_calendar = all([
            provider.get("token"),
            provider.get("refresh_token"),
            provider.get("token_uri")
        ])
        if not has_calendar:
            return cls(connected=False)

        token_fields = ["token", "refresh_token", "token_uri", "client_id", "client_secret", "scopes"]
        return cls(
            connected=True,
            token_data={field: provider.get(field) for field in token_fields}
        )
