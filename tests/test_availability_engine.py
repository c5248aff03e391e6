"""
Tests for the availability engine.

Clock is pinned to Monday 2026-03-16 08:00 (home time) via the conftest
fixtures, with a 60 minute advance-booking buffer.
"""
import pytest
import pytz
from datetime import date, datetime, timedelta

from consultation_slots.errors import ConfigurationError, UnknownConsultationKind
from consultation_slots.models import (
    BookingRecord,
    BusyInterval,
    ConsultationKind,
    ExistingSlot,
    OperatingWindow,
    TimeOfDay,
    UnavailableReason,
)
from consultation_slots.services.availability_engine import (
    AvailabilityEngine,
    feed_from_mapping,
    month_dates,
)

from .conftest import NOW, TODAY, TOMORROW, YESTERDAY


def verdicts_by_time(verdicts):
    return {v.time: v for v in verdicts}


class TestEvaluateDay:
    """Per-slot verdicts for a single date"""

    @pytest.mark.parametrize("start,end,step,expected", [
        (9, 18, 30, 18),
        (0, 24, 15, 96),
        (10, 12, 60, 2),
    ])
    def test_one_verdict_per_label_in_order(self, kinds, start, end, step, expected):
        window = OperatingWindow(start_hour=start, end_hour=end, granularity_minutes=step)
        engine = AvailabilityEngine(window=window, kinds=kinds, clock=lambda: NOW)

        verdicts = engine.evaluate_day(TOMORROW, "followup")

        assert len(verdicts) == expected
        assert [v.time for v in verdicts] == window.slot_labels()

    def test_followup_with_no_data_is_fully_available(self, engine):
        verdicts = engine.evaluate_day(TODAY, "followup")

        assert len(verdicts) == 18
        assert all(v.available for v in verdicts)
        assert all(v.reason is None and v.message is None for v in verdicts)

    def test_past_date_is_entirely_past_time(self, engine):
        verdicts = engine.evaluate_day(
            YESTERDAY,
            "followup",
            existing_bookings=[ExistingSlot(time="12:00", available=False)],
            busy_slots=["14:00"],
        )

        assert len(verdicts) == 18
        assert all(not v.available for v in verdicts)
        assert {v.reason for v in verdicts} == {UnavailableReason.PAST_TIME}

    def test_accepts_iso_date_strings(self, engine):
        verdicts = engine.evaluate_day(TOMORROW.isoformat(), "followup")
        assert all(v.available for v in verdicts)

    def test_feed_booked_slots_are_already_booked(self, engine):
        feed = [
            ExistingSlot(time="12:00", available=False),
            ExistingSlot(time="12:30", available=False),
        ]

        verdicts = engine.evaluate_day(TOMORROW, "followup", existing_bookings=feed)

        unavailable = {v.time: v.reason for v in verdicts if not v.available}
        assert unavailable == {
            "12:00": UnavailableReason.ALREADY_BOOKED,
            "12:30": UnavailableReason.ALREADY_BOOKED,
        }

    def test_labels_missing_from_feed_count_as_free(self, engine):
        feed = [ExistingSlot(time="09:00", available=True)]

        verdicts = engine.evaluate_day(TOMORROW, "followup", existing_bookings=feed)

        assert all(v.available for v in verdicts)

    def test_initial_needs_two_consecutive_slots(self, engine):
        verdicts = verdicts_by_time(
            engine.evaluate_day(TOMORROW, "initial", busy_slots=["14:00"])
        )

        assert verdicts["13:30"].reason == UnavailableReason.CALENDAR_CONFLICT
        assert verdicts["14:00"].reason == UnavailableReason.CALENDAR_CONFLICT
        assert verdicts["13:00"].available
        assert verdicts["14:30"].available
        assert verdicts["14:00"].message == "Doctor busy"

    def test_last_slot_cannot_fit_two_slot_kind(self, engine):
        verdicts = engine.evaluate_day(TOMORROW, "initial")

        assert verdicts[-1].time == "17:30"
        assert verdicts[-1].reason == UnavailableReason.INSUFFICIENT_WINDOW
        assert verdicts[-1].message == "Insufficient time window"
        assert all(v.available for v in verdicts[:-1])

    def test_kind_longer_than_window_has_no_availability(self, window):
        kinds = {"marathon": ConsultationKind(key="marathon", slots=30)}
        engine = AvailabilityEngine(window=window, kinds=kinds, clock=lambda: NOW)

        verdicts = engine.evaluate_day(TOMORROW, "marathon")

        assert {v.reason for v in verdicts} == {UnavailableReason.INSUFFICIENT_WINDOW}

    def test_booking_wins_over_calendar_conflict(self, engine):
        verdicts = verdicts_by_time(engine.evaluate_day(
            TOMORROW,
            "followup",
            existing_bookings=[ExistingSlot(time="12:00", available=False)],
            busy_slots=["12:00"],
        ))

        assert verdicts["12:00"].reason == UnavailableReason.ALREADY_BOOKED
        assert verdicts["12:00"].message == "Already booked"

    def test_booking_record_spans_its_duration(self, engine):
        records = [
            BookingRecord(date=TOMORROW, start="10:00", duration_slots=2),
            BookingRecord(date=TODAY + timedelta(days=5), start="15:00"),
        ]

        verdicts = verdicts_by_time(
            engine.evaluate_day(TOMORROW, "followup", existing_bookings=records)
        )

        booked = {t for t, v in verdicts.items() if v.reason == UnavailableReason.ALREADY_BOOKED}
        assert booked == {"10:00", "10:30"}

    def test_booking_dicts_are_coerced(self, engine):
        raw = [
            {"time": "11:00", "available": False},
            {"date": TOMORROW.isoformat(), "start": "16:00", "duration_slots": 1},
        ]

        verdicts = verdicts_by_time(engine.evaluate_day(TOMORROW, "followup", existing_bookings=raw))

        assert verdicts["11:00"].reason == UnavailableReason.ALREADY_BOOKED
        assert verdicts["16:00"].reason == UnavailableReason.ALREADY_BOOKED

    def test_busy_intervals_only_apply_to_their_date(self, engine):
        busy = [
            BusyInterval(date=TOMORROW, slots=["09:00"]),
            BusyInterval(date=TODAY + timedelta(days=2), slots=["10:00"]),
        ]

        verdicts = verdicts_by_time(engine.evaluate_day(TOMORROW, "followup", busy_slots=busy))

        assert verdicts["09:00"].reason == UnavailableReason.CALENDAR_CONFLICT
        assert verdicts["10:00"].available

    def test_malformed_upstream_data_is_ignored(self, engine):
        clean = engine.evaluate_day(TOMORROW, "initial")

        noisy = engine.evaluate_day(
            TOMORROW,
            "initial",
            existing_bookings=[
                ExistingSlot(time="25:99", available=False),
                ExistingSlot(time="bogus", available=False),
                {"date": "not-a-date", "start": "10:00"},
                {"unexpected": True},
                42,
                None,
            ],
            busy_slots=["9:00", "nonsense", "", 1200, None],
        )

        assert noisy == clean


class TestAdvanceBuffer:
    """Same-day slots must start at least buffer_minutes after now"""

    def test_slot_exactly_at_buffer_is_available(self, engine):
        verdicts = verdicts_by_time(engine.evaluate_day(TODAY, "followup"))
        assert verdicts["09:00"].available

    def test_slot_inside_buffer_is_past_time(self, engine):
        now = NOW + timedelta(minutes=1)

        verdicts = verdicts_by_time(engine.evaluate_day(TODAY, "followup", now=now))

        assert verdicts["09:00"].reason == UnavailableReason.PAST_TIME
        assert verdicts["09:00"].message == "Past time"
        assert verdicts["09:30"].available

    def test_late_in_the_day(self, engine):
        now = datetime.combine(TODAY, datetime.min.time()) + timedelta(hours=16, minutes=45)

        verdicts = engine.evaluate_day(TODAY, "followup", now=now)

        assert [v.time for v in verdicts if v.available] == []
        assert all(v.reason == UnavailableReason.PAST_TIME for v in verdicts)

    def test_buffer_does_not_apply_to_future_dates(self, engine):
        late = datetime.combine(TODAY, datetime.min.time()) + timedelta(hours=23, minutes=30)

        verdicts = engine.evaluate_day(TOMORROW, "followup", now=late)

        assert verdicts[0].available

    def test_aware_now_is_converted_to_home_time(self, engine):
        # 02:30 UTC == 08:00 IST
        aware = pytz.utc.localize(datetime(2026, 3, 16, 2, 30))
        assert engine.local_now(aware) == NOW

        verdicts = verdicts_by_time(engine.evaluate_day(TODAY, "followup", now=aware))
        assert verdicts["09:00"].available

    def test_conflict_reported_before_past_time(self, engine):
        now = NOW + timedelta(hours=2)

        verdicts = verdicts_by_time(engine.evaluate_day(TODAY, "followup", busy_slots=["09:00"], now=now))

        assert verdicts["09:00"].reason == UnavailableReason.CALENDAR_CONFLICT
        assert verdicts["09:30"].reason == UnavailableReason.PAST_TIME


class TestSummaries:

    def test_summarize_day(self, engine):
        verdicts = engine.evaluate_day(TOMORROW, "initial", busy_slots=["14:00"])

        summary = engine.summarize_day(TOMORROW, verdicts)

        assert summary.date == TOMORROW
        assert summary.total == 18
        assert summary.available == 15
        assert summary.sold_out is False

    def test_month_dates(self):
        assert len(month_dates(2026, 2)) == 28
        assert len(month_dates(2028, 2)) == 29
        assert month_dates(2026, 3)[0] == date(2026, 3, 1)
        assert month_dates(2026, 3)[-1] == date(2026, 3, 31)

    def test_summarize_month_skips_feeds_for_past_dates(self, engine, counting_feed):
        dates = month_dates(2026, 3)
        bookings = counting_feed()
        busy = counting_feed()

        summaries = engine.summarize_month(dates, "followup", booking_feed=bookings, busy_feed=busy)

        assert list(summaries) == dates
        for d in dates[:15]:
            assert summaries[d].available == 0
            assert summaries[d].total == 18
            assert summaries[d].sold_out
        for d in dates[15:]:
            assert summaries[d].available == 18
        assert bookings.calls == dates[15:]
        assert busy.calls == dates[15:]

    def test_fully_booked_day_is_sold_out(self, engine, window):
        full = [ExistingSlot(time=label, available=False) for label in window.slot_labels()]
        feed = feed_from_mapping({TOMORROW: full})

        summaries = engine.summarize_month([TODAY, TOMORROW], "followup", booking_feed=feed)

        assert summaries[TOMORROW].sold_out
        assert not summaries[TODAY].sold_out

    def test_parallel_matches_sequential(self, engine):
        dates = month_dates(2026, 4)
        busy = feed_from_mapping({
            d.isoformat(): ["10:00", "14:00"] if d.day % 2 else ["17:00"]
            for d in dates
        })
        booked = feed_from_mapping({
            d: [BookingRecord(date=d, start="12:00", duration_slots=d.day % 3 + 1)]
            for d in dates
        })

        sequential = engine.summarize_month(dates, "initial", booked, busy)
        parallel = engine.summarize_month(dates, "initial", booked, busy, max_workers=4)

        assert parallel == sequential


class TestFindNextAvailable:

    def test_first_free_slot_today(self, engine):
        slot = engine.find_next_available(TODAY, "followup")

        assert slot.date == TODAY
        assert slot.time == "09:00"

    def test_skips_fully_blocked_days(self, engine, window):
        all_labels = window.slot_labels()
        busy = feed_from_mapping({TODAY: all_labels, TOMORROW: all_labels[:-2]})

        slot = engine.find_next_available(TODAY, "followup", busy_feed=busy)

        assert slot.date == TOMORROW
        assert slot.time == "17:00"

    def test_evaluates_at_most_horizon_dates(self, engine, window, counting_feed):
        everything_busy = counting_feed(lambda d: window.slot_labels())

        slot = engine.find_next_available(TODAY, "followup", busy_feed=everything_busy, horizon_days=5)

        assert slot is None
        assert len(everything_busy.calls) == 5
        assert everything_busy.calls[-1] == TODAY + timedelta(days=4)

    def test_default_horizon_comes_from_engine(self, engine, window, counting_feed):
        everything_busy = counting_feed(lambda d: window.slot_labels())

        assert engine.find_next_available(TODAY, "followup", busy_feed=everything_busy) is None
        assert len(everything_busy.calls) == engine.horizon_days

    def test_past_start_dates_count_towards_horizon(self, engine, counting_feed):
        feed = counting_feed()

        slot = engine.find_next_available(TODAY - timedelta(days=3), "followup", busy_feed=feed, horizon_days=5)

        assert slot.date == TODAY
        assert feed.calls == [TODAY]

    def test_horizon_entirely_in_the_past(self, engine, counting_feed):
        feed = counting_feed()

        slot = engine.find_next_available(TODAY - timedelta(days=10), "followup", busy_feed=feed, horizon_days=5)

        assert slot is None
        assert feed.calls == []

    @pytest.mark.parametrize("time_of_day,expected", [
        (TimeOfDay.MORNING, "09:00"),
        (TimeOfDay.AFTERNOON, "12:00"),
        (TimeOfDay.EVENING, "17:00"),
    ])
    def test_time_of_day_filter(self, engine, time_of_day, expected):
        slot = engine.find_next_available(TOMORROW, "followup", time_of_day=time_of_day)

        assert slot.date == TOMORROW
        assert slot.time == expected

    def test_time_of_day_filter_rolls_over_to_next_day(self, engine):
        morning_busy = feed_from_mapping({TOMORROW: ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]})

        slot = engine.find_next_available(
            TOMORROW, "followup", busy_feed=morning_busy, time_of_day=TimeOfDay.MORNING
        )

        assert slot.date == TOMORROW + timedelta(days=1)
        assert slot.time == "09:00"


class TestIsSlotAvailable:

    def test_free_slot(self, engine):
        verdict = engine.is_slot_available(TOMORROW, "10:00", "initial")
        assert verdict.available

    def test_taken_slot(self, engine):
        verdict = engine.is_slot_available(
            TOMORROW, "10:00", "initial", busy_slots=["10:30"]
        )

        assert not verdict.available
        assert verdict.reason == UnavailableReason.CALENDAR_CONFLICT

    def test_unpadded_label_is_normalized(self, engine):
        verdict = engine.is_slot_available(
            TOMORROW, "9:30", "followup", busy_slots=["09:30"]
        )

        assert verdict.time == "09:30"
        assert verdict.reason == UnavailableReason.CALENDAR_CONFLICT

    def test_label_outside_window(self, engine):
        verdict = engine.is_slot_available(TOMORROW, "20:00", "followup")

        assert not verdict.available
        assert verdict.reason == UnavailableReason.INSUFFICIENT_WINDOW


class TestEngineConfiguration:

    def test_unknown_kind(self, engine):
        with pytest.raises(UnknownConsultationKind) as exc_info:
            engine.evaluate_day(TOMORROW, "massage")

        assert exc_info.value.key == "massage"
        assert "massage" in str(exc_info.value)

    def test_kind_lookup_is_case_insensitive(self, engine):
        verdicts = engine.evaluate_day(TOMORROW, "Initial")
        assert verdicts[-1].reason == UnavailableReason.INSUFFICIENT_WINDOW

    def test_unknown_home_timezone(self, window, kinds):
        with pytest.raises(ConfigurationError):
            AvailabilityEngine(window=window, kinds=kinds, home_timezone="Mars/Olympus_Mons")

    def test_negative_buffer(self, window, kinds):
        with pytest.raises(ConfigurationError):
            AvailabilityEngine(window=window, kinds=kinds, buffer_minutes=-5)

    def test_zero_horizon(self, window, kinds):
        with pytest.raises(ConfigurationError):
            AvailabilityEngine(window=window, kinds=kinds, horizon_days=0)

    def test_empty_kind_registry(self, window):
        with pytest.raises(ConfigurationError):
            AvailabilityEngine(window=window, kinds={})
