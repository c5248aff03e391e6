"""
Availability Engine

Computes per-slot availability for consultations, considering:
- Existing bookings (platform booking store)
- Busy slots from a connected external calendar
- Consecutive slots required by the consultation kind
- Minimum advance-booking buffer for same-day slots

Pure computation: upstream data is fetched by the caller and passed in,
the only other input is the (injectable) clock.
"""

import calendar
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, date, time, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Union

import pytz
from pydantic import ValidationError

from consultation_slots.config import settings
from consultation_slots.errors import ConfigurationError
from consultation_slots.logging_config import get_logger
from consultation_slots.models import (
    OperatingWindow,
    ConsultationKind,
    ExistingSlot,
    BookingRecord,
    BusyInterval,
    UnavailableReason,
    SlotVerdict,
    DayAvailabilitySummary,
    NextAvailableSlot,
    TimeOfDay,
    format_label,
    parse_label,
)
from .kinds import resolve_kind


logger = get_logger(__name__)

BookingEntry = Union[ExistingSlot, BookingRecord, Dict[str, Any]]
BusyEntry = Union[str, BusyInterval]

# date -> upstream data for that date
BookingFeed = Callable[[date], Iterable[BookingEntry]]
BusyFeed = Callable[[date], Iterable[BusyEntry]]
Clock = Callable[[], datetime]


def empty_feed(target_date: date) -> List[Any]:
    """Feed with no upstream data for any date"""
    return []


def feed_from_mapping(data: Mapping[Any, Iterable[Any]]) -> Callable[[date], Iterable[Any]]:
    """
    Adapt pre-fetched per-date data to a feed.

    Keys may be date objects or ISO strings (YYYY-MM-DD); missing dates
    yield no data.
    """
    def feed(target_date: date) -> Iterable[Any]:
        if target_date in data:
            return data[target_date]
        return data.get(target_date.isoformat(), [])
    return feed


def month_dates(year: int, month: int) -> List[date]:
    """Every date of a calendar month, in order"""
    _, days = calendar.monthrange(year, month)
    return [date(year, month, day) for day in range(1, days + 1)]


def _to_date(value: Union[date, datetime, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def _coerce_booking(entry: BookingEntry) -> Optional[Union[ExistingSlot, BookingRecord]]:
    if isinstance(entry, (ExistingSlot, BookingRecord)):
        return entry
    if not isinstance(entry, dict):
        return None
    try:
        if "start" in entry:
            return BookingRecord(**entry)
        return ExistingSlot(**entry)
    except (ValidationError, TypeError):
        return None


class AvailabilityEngine:
    """
    Evaluates slot availability for a provider's operating window.

    Construction validates the deployment configuration (window, kinds,
    timezone, buffer); queries never raise for lack of availability.
    """

    def __init__(
        self,
        window: Optional[OperatingWindow] = None,
        kinds: Optional[Dict[str, ConsultationKind]] = None,
        home_timezone: Optional[str] = None,
        buffer_minutes: Optional[int] = None,
        horizon_days: Optional[int] = None,
        clock: Optional[Clock] = None
    ):
        self.window = window or settings.operating_window
        self.kinds = settings.consultation_kinds if kinds is None else dict(kinds)
        self.home_timezone = home_timezone or settings.HOME_TIMEZONE
        self.buffer_minutes = (
            settings.ADVANCE_BOOKING_BUFFER_MINUTES if buffer_minutes is None else buffer_minutes
        )
        self.horizon_days = (
            settings.NEXT_AVAILABLE_HORIZON_DAYS if horizon_days is None else horizon_days
        )

        if not self.kinds:
            raise ConfigurationError("At least one consultation kind must be configured")
        if self.buffer_minutes < 0:
            raise ConfigurationError("Advance-booking buffer cannot be negative")
        if self.horizon_days < 1:
            raise ConfigurationError("Next-available horizon must be at least one day")
        try:
            self.tz = pytz.timezone(self.home_timezone)
        except pytz.UnknownTimeZoneError as e:
            raise ConfigurationError(f"Unknown home timezone: {self.home_timezone!r}") from e

        self.clock = clock or (lambda: datetime.now(self.tz))

    # ==================== CLOCK ====================

    def local_now(self, now: Optional[datetime] = None) -> datetime:
        """
        Current wall-clock time in the home timezone, as a naive datetime.

        Aware datetimes are converted; naive ones are taken as home time.
        """
        now = now or self.clock()
        if now.tzinfo is None:
            return now
        return now.astimezone(self.tz).replace(tzinfo=None)

    # ==================== SINGLE DAY ====================

    def evaluate_day(
        self,
        target_date: Union[date, str],
        kind: Union[ConsultationKind, str],
        existing_bookings: Optional[Iterable[BookingEntry]] = None,
        busy_slots: Optional[Iterable[BusyEntry]] = None,
        window: Optional[OperatingWindow] = None,
        now: Optional[datetime] = None
    ) -> List[SlotVerdict]:
        """
        Verdict for every slot start of the operating window on a date.

        Args:
            target_date: date to evaluate (date or YYYY-MM-DD)
            kind: consultation kind or its registry key
            existing_bookings: ExistingSlot feed entries and/or BookingRecords
            busy_slots: busy slot labels (or BusyIntervals) from an external calendar
            window: overrides the engine's operating window
            now: overrides the clock

        Returns:
            list[SlotVerdict], one per slot label, in slot order

        Algorithm:
            1. Past dates: every slot is PAST_TIME
            2. Candidate i needing `need` slots runs past the window: INSUFFICIENT_WINDOW
            3. Any of the `need` slots booked: ALREADY_BOOKED
            4. Any of them busy in the external calendar: CALENDAR_CONFLICT
            5. Today and starting before now + buffer: PAST_TIME
            6. Otherwise available
        """
        target_date = _to_date(target_date)
        kind = resolve_kind(kind, self.kinds)
        window = window or self.window
        labels = window.slot_labels()

        current = self.local_now(now)
        today = current.date()

        if target_date < today:
            return [
                SlotVerdict(time=label, available=False, reason=UnavailableReason.PAST_TIME)
                for label in labels
            ]

        booked = self._booked_labels(target_date, existing_bookings, labels)
        busy = self._busy_labels(target_date, busy_slots)
        earliest_start = current + timedelta(minutes=self.buffer_minutes)

        verdicts = []
        for index, label in enumerate(labels):
            reason = self._check_candidate(
                index, labels, kind.slots, booked, busy, target_date, today, earliest_start
            )
            verdicts.append(SlotVerdict(time=label, available=reason is None, reason=reason))

        logger.debug(
            "day_evaluated",
            date=target_date.isoformat(),
            consultation_type=kind.key,
            available=sum(1 for v in verdicts if v.available),
            total=len(verdicts)
        )
        return verdicts

    def _check_candidate(
        self,
        index: int,
        labels: List[str],
        need: int,
        booked: Set[str],
        busy: Set[str],
        target_date: date,
        today: date,
        earliest_start: datetime
    ) -> Optional[UnavailableReason]:
        if index + need > len(labels):
            return UnavailableReason.INSUFFICIENT_WINDOW

        for label in labels[index:index + need]:
            # Booking check first: it wins when both sources mark a slot
            if label in booked:
                return UnavailableReason.ALREADY_BOOKED
            if label in busy:
                return UnavailableReason.CALENDAR_CONFLICT

        if target_date == today:
            slot_start = datetime.combine(target_date, time()) + timedelta(minutes=parse_label(labels[index]))
            if slot_start < earliest_start:
                return UnavailableReason.PAST_TIME

        return None

    def _booked_labels(
        self,
        target_date: date,
        existing_bookings: Optional[Iterable[BookingEntry]],
        labels: List[str]
    ) -> Set[str]:
        """Labels occupied by bookings; entries matching no label are ignored"""
        index_of = {label: i for i, label in enumerate(labels)}
        booked = set()

        for raw in existing_bookings or []:
            entry = _coerce_booking(raw)
            if entry is None:
                logger.debug("booking_entry_ignored", entry=repr(raw))
                continue

            if isinstance(entry, ExistingSlot):
                if not entry.available and entry.time.strip() in index_of:
                    booked.add(entry.time.strip())
                continue

            if entry.date != target_date:
                continue
            start = index_of.get(entry.start.strip())
            if start is None:
                continue
            booked.update(labels[start:start + entry.duration_slots])

        return booked

    def _busy_labels(self, target_date: date, busy_slots: Optional[Iterable[BusyEntry]]) -> Set[str]:
        busy = set()
        for entry in busy_slots or []:
            if isinstance(entry, str):
                busy.add(entry.strip())
            elif isinstance(entry, BusyInterval) and entry.date == target_date:
                busy.update(label.strip() for label in entry.slots if isinstance(label, str))
        return busy

    @staticmethod
    def summarize_day(target_date: Union[date, str], verdicts: List[SlotVerdict]) -> DayAvailabilitySummary:
        """Reduce verdicts to {available, total}"""
        return DayAvailabilitySummary(
            date=_to_date(target_date),
            available=sum(1 for v in verdicts if v.available),
            total=len(verdicts)
        )

    # ==================== MULTI DAY ====================

    def summarize_month(
        self,
        dates: Iterable[Union[date, str]],
        kind: Union[ConsultationKind, str],
        booking_feed: Optional[BookingFeed] = None,
        busy_feed: Optional[BusyFeed] = None,
        now: Optional[datetime] = None,
        max_workers: Optional[int] = None
    ) -> Dict[date, DayAvailabilitySummary]:
        """
        Availability summary for each date (typically a visible month).

        Past dates are summarized as {0, total} without reading the feeds.
        Dates are independent; with max_workers > 1 they are evaluated on a
        thread pool with identical output.

        Returns:
            dict: {date: DayAvailabilitySummary}, in input order
        """
        dates = [_to_date(d) for d in dates]
        kind = resolve_kind(kind, self.kinds)
        booking_feed = booking_feed or empty_feed
        busy_feed = busy_feed or empty_feed

        # Pin "now" so every date is judged against the same instant
        current = self.local_now(now)
        today = current.date()
        total = self.window.slot_count

        def summarize(target_date: date) -> DayAvailabilitySummary:
            if target_date < today:
                return DayAvailabilitySummary(date=target_date, available=0, total=total)
            verdicts = self.evaluate_day(
                target_date,
                kind,
                existing_bookings=booking_feed(target_date),
                busy_slots=busy_feed(target_date),
                now=current
            )
            return self.summarize_day(target_date, verdicts)

        if max_workers and max_workers > 1 and len(dates) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                summaries = list(pool.map(summarize, dates))
        else:
            summaries = [summarize(d) for d in dates]

        return dict(zip(dates, summaries))

    def find_next_available(
        self,
        start_date: Union[date, str],
        kind: Union[ConsultationKind, str],
        booking_feed: Optional[BookingFeed] = None,
        busy_feed: Optional[BusyFeed] = None,
        horizon_days: Optional[int] = None,
        time_of_day: TimeOfDay = TimeOfDay.ANY,
        now: Optional[datetime] = None
    ) -> Optional[NextAvailableSlot]:
        """
        First available slot on or after start_date.

        Walks forward one day at a time and evaluates at most horizon_days
        dates (start_date inclusive).

        Returns:
            NextAvailableSlot, or None if nothing is free within the horizon
        """
        start_date = _to_date(start_date)
        kind = resolve_kind(kind, self.kinds)
        horizon = self.horizon_days if horizon_days is None else horizon_days
        booking_feed = booking_feed or empty_feed
        busy_feed = busy_feed or empty_feed
        current = self.local_now(now)

        for offset in range(max(horizon, 0)):
            target_date = start_date + timedelta(days=offset)
            if target_date < current.date():
                continue

            verdicts = self.evaluate_day(
                target_date,
                kind,
                existing_bookings=booking_feed(target_date),
                busy_slots=busy_feed(target_date),
                now=current
            )
            for verdict in verdicts:
                if verdict.available and time_of_day.contains(verdict.time):
                    return NextAvailableSlot(date=target_date, time=verdict.time)

        logger.info(
            "no_availability_within_horizon",
            start_date=start_date.isoformat(),
            consultation_type=kind.key,
            horizon_days=horizon
        )
        return None

    def is_slot_available(
        self,
        target_date: Union[date, str],
        slot_time: str,
        kind: Union[ConsultationKind, str],
        existing_bookings: Optional[Iterable[BookingEntry]] = None,
        busy_slots: Optional[Iterable[BusyEntry]] = None,
        now: Optional[datetime] = None
    ) -> SlotVerdict:
        """
        Re-check one chosen slot before it is handed to booking/payment.

        Labels are compared in canonical "HH:MM" form ("9:00" matches
        "09:00"). A label that is not a slot of the window is reported as
        INSUFFICIENT_WINDOW.
        """
        minutes = parse_label(slot_time)
        label = format_label(minutes) if minutes is not None else str(slot_time).strip()
        for verdict in self.evaluate_day(target_date, kind, existing_bookings, busy_slots, now=now):
            if verdict.time == label:
                return verdict
        return SlotVerdict(time=slot_time, available=False, reason=UnavailableReason.INSUFFICIENT_WINDOW)


# Singleton instance
availability_engine = AvailabilityEngine()
