"""
FastAPI dependency injection functions
These are reusable dependencies that can be injected into route handlers
"""
from datetime import date
from typing import Annotated

from fastapi import Depends, HTTPException, status

from consultation_slots.config import settings
from consultation_slots.errors import UnknownConsultationKind
from consultation_slots.models import CalendarConnectionState, ConsultationKind
from consultation_slots.services.availability_engine import AvailabilityEngine, availability_engine
from consultation_slots.services.booking_store import get_booking_store
from consultation_slots.services.calendar_service import CalendarService, calendar_service
from consultation_slots.services.kinds import resolve_kind
from consultation_slots.services.pricing import RegionPricingResolver, pricing_resolver
from consultation_slots.services.time_conversion import TimeConversionHelper, time_conversion


def get_engine() -> AvailabilityEngine:
    """Availability engine (override in tests to pin the clock)"""
    return availability_engine


def get_store():
    """Booking source: Firestore, or the demo feed when USE_DEMO_DATA is set"""
    return get_booking_store()


def get_calendar() -> CalendarService:
    return calendar_service


def get_pricing() -> RegionPricingResolver:
    return pricing_resolver


def get_time_conversion() -> TimeConversionHelper:
    return time_conversion


async def get_calendar_connection(store=Depends(get_store)) -> CalendarConnectionState:
    """
    Calendar connection state for the configured provider

    Demo deployments take it from DEMO_CALENDAR_CONNECTED; otherwise it is
    derived from the OAuth tokens stored on the provider profile.
    """
    if settings.USE_DEMO_DATA:
        return CalendarConnectionState(connected=settings.DEMO_CALENDAR_CONNECTED)

    provider = await store.get_provider(settings.PROVIDER_ID)
    return CalendarConnectionState.from_provider(provider)


def parse_date(value: str, field: str = "date") -> date:
    """
    Parse a YYYY-MM-DD query value

    Raises:
        HTTPException: 400 on malformed dates
    """
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {field} format. Use ISO format (YYYY-MM-DD)",
        )


def get_consultation_kind(
    consultation_type: str = "initial",
    engine: AvailabilityEngine = Depends(get_engine)
) -> ConsultationKind:
    """
    Resolve the consultation_type query parameter

    Raises:
        HTTPException: 400 for kinds missing from the registry
    """
    try:
        return resolve_kind(consultation_type, engine.kinds)
    except UnknownConsultationKind as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{e}. Expected one of: {', '.join(sorted(engine.kinds))}",
        )


# Type aliases for cleaner route signatures
Engine = Annotated[AvailabilityEngine, Depends(get_engine)]
Calendar = Annotated[CalendarService, Depends(get_calendar)]
Connection = Annotated[CalendarConnectionState, Depends(get_calendar_connection)]
Kind = Annotated[ConsultationKind, Depends(get_consultation_kind)]
