"""Shared test fixtures."""
import pytest
from datetime import datetime, timedelta

from consultation_slots.models import OperatingWindow, ConsultationKind, PricingBasis
from consultation_slots.services.availability_engine import AvailabilityEngine


# Monday, 08:00 provider (IST) wall-clock time
NOW = datetime(2026, 3, 16, 8, 0)
TODAY = NOW.date()
TOMORROW = TODAY + timedelta(days=1)
YESTERDAY = TODAY - timedelta(days=1)


@pytest.fixture
def window() -> OperatingWindow:
    """09:00-18:00 at 30-minute slots."""
    return OperatingWindow(start_hour=9, end_hour=18, granularity_minutes=30)


@pytest.fixture
def kinds():
    """Reference consultation kinds."""
    return {
        "initial": ConsultationKind(key="initial", label="Initial Consultation", slots=2),
        "followup": ConsultationKind(
            key="followup", label="Follow-up", slots=1, pricing_basis=PricingBasis.FOLLOWUP
        ),
        "urgent": ConsultationKind(key="urgent", label="Urgent Consultation", slots=2),
    }


@pytest.fixture
def engine(window, kinds) -> AvailabilityEngine:
    """Engine with the clock pinned to NOW."""
    return AvailabilityEngine(
        window=window,
        kinds=kinds,
        home_timezone="Asia/Kolkata",
        buffer_minutes=60,
        horizon_days=60,
        clock=lambda: NOW,
    )


@pytest.fixture
def counting_feed():
    """Feed factory that records every date it is asked about."""
    def _create(data_for_date=lambda d: []):
        calls = []

        def feed(target_date):
            calls.append(target_date)
            return data_for_date(target_date)

        feed.calls = calls
        return feed
    return _create
