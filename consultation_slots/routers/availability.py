import asyncio
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query, status

from consultation_slots.dependencies import (
    Calendar,
    Connection,
    Engine,
    Kind,
    get_consultation_kind,
    get_pricing,
    get_store,
    get_time_conversion,
    parse_date,
)
from consultation_slots.errors import UnknownConsultationKind
from consultation_slots.models import (
    AvailabilityResponse,
    MonthAvailabilityResponse,
    NextAvailableResponse,
    PriceQuote,
    SelectionResponse,
    SlotSelection,
    TimeLabel,
    TimeOfDay,
    CalendarConnectionState,
)
from consultation_slots.services.availability_engine import feed_from_mapping, month_dates
from consultation_slots.services.calendar_service import CalendarService
from consultation_slots.services.kinds import resolve_kind
from consultation_slots.services.pricing import RegionPricingResolver
from consultation_slots.services.time_conversion import TimeConversionHelper


router = APIRouter(prefix="/api", tags=["availability"])

# Days of upstream data fetched per round of the next-available search
SEARCH_BATCH_DAYS = 7


async def _fetch_day(
    store,
    calendar: CalendarService,
    connection: CalendarConnectionState,
    target_date: date
) -> Tuple[list, List[str]]:
    """Bookings and calendar busy slots for one date, fetched concurrently"""
    bookings, busy = await asyncio.gather(
        store.get_bookings(target_date),
        calendar.get_busy_slots(connection, target_date),
    )
    return bookings, busy


async def _fetch_days(store, calendar, connection, dates: List[date]) -> Tuple[Dict, Dict]:
    results = await asyncio.gather(*[_fetch_day(store, calendar, connection, d) for d in dates])
    bookings = {d: result[0] for d, result in zip(dates, results)}
    busy = {d: result[1] for d, result in zip(dates, results)}
    return bookings, busy


@router.get("/availability", response_model=AvailabilityResponse)
async def get_day_availability(
    date: str,
    engine: Engine,
    calendar: Calendar,
    connection: Connection,
    kind: Kind,
    store=Depends(get_store)
):
    """Slot verdicts for a date, including unavailable slots and their reasons"""
    target_date = parse_date(date)
    bookings, busy = await _fetch_day(store, calendar, connection, target_date)

    verdicts = engine.evaluate_day(target_date, kind, existing_bookings=bookings, busy_slots=busy)
    return AvailabilityResponse(
        date=target_date,
        consultation_type=kind.key,
        calendar_connected=connection.connected,
        slots=verdicts,
        summary=engine.summarize_day(target_date, verdicts),
    )


@router.get("/availability/month", response_model=MonthAvailabilityResponse)
async def get_month_availability(
    engine: Engine,
    calendar: Calendar,
    connection: Connection,
    kind: Kind,
    year: int = Query(..., ge=1970, le=9999),
    month: int = Query(..., ge=1, le=12),
    store=Depends(get_store)
):
    """Per-day availability counts for the month grid ("sold out" days have 0)"""
    dates = month_dates(year, month)
    today = engine.local_now().date()
    bookings, busy = await _fetch_days(store, calendar, connection, [d for d in dates if d >= today])

    summaries = engine.summarize_month(
        dates,
        kind,
        booking_feed=feed_from_mapping(bookings),
        busy_feed=feed_from_mapping(busy),
    )
    return MonthAvailabilityResponse(
        year=year,
        month=month,
        consultation_type=kind.key,
        days=list(summaries.values()),
    )


@router.get("/availability/next", response_model=NextAvailableResponse)
async def get_next_available(
    engine: Engine,
    calendar: Calendar,
    connection: Connection,
    kind: Kind,
    start_date: Optional[str] = None,
    time_of_day: TimeOfDay = TimeOfDay.ANY,
    horizon_days: Optional[int] = Query(None, ge=1, le=366),
    store=Depends(get_store)
):
    """
    First bookable slot on or after start_date (today by default)

    Upstream data is fetched a week at a time and the search stops at the
    first batch with a match, so near slots cost one batch of lookups.
    """
    today = engine.local_now().date()
    start = parse_date(start_date, "start_date") if start_date else today
    horizon = horizon_days or engine.horizon_days

    slot = None
    for offset in range(0, horizon, SEARCH_BATCH_DAYS):
        batch_start = start + timedelta(days=offset)
        batch_days = min(SEARCH_BATCH_DAYS, horizon - offset)
        dates = [batch_start + timedelta(days=i) for i in range(batch_days)]
        bookings, busy = await _fetch_days(store, calendar, connection, [d for d in dates if d >= today])

        slot = engine.find_next_available(
            batch_start,
            kind,
            booking_feed=feed_from_mapping(bookings),
            busy_feed=feed_from_mapping(busy),
            horizon_days=batch_days,
            time_of_day=time_of_day,
        )
        if slot is not None:
            break

    return NextAvailableResponse(consultation_type=kind.key, horizon_days=horizon, slot=slot)


@router.post("/availability/confirm", response_model=SelectionResponse)
async def confirm_selection(
    selection: SlotSelection,
    engine: Engine,
    calendar: Calendar,
    connection: Connection,
    store=Depends(get_store)
):
    """
    Re-check a chosen slot right before it is handed to booking/payment

    Raises:
        HTTPException: 400 for unknown kinds, 409 if the slot was taken meanwhile
    """
    try:
        kind = resolve_kind(selection.consultation_type, engine.kinds)
    except UnknownConsultationKind as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    bookings, busy = await _fetch_day(store, calendar, connection, selection.date)
    verdict = engine.is_slot_available(selection.date, selection.time, kind, bookings, busy)

    if not verdict.available:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Time slot unavailable: {verdict.message}",
        )

    return SelectionResponse(
        confirmed=True,
        selection=selection,
        message=f"{kind.label or kind.key} on {selection.date.isoformat()} at {verdict.time} is available",
    )


@router.get("/pricing", response_model=PriceQuote)
async def get_pricing_quote(
    timezone: Optional[str] = None,
    kind=Depends(get_consultation_kind),
    pricing: RegionPricingResolver = Depends(get_pricing)
):
    """Regional price for the visitor's timezone"""
    return pricing.quote(timezone, kind)


@router.get("/time-labels", response_model=List[TimeLabel])
async def get_time_labels(
    engine: Engine,
    timezone: Optional[str] = None,
    date: Optional[str] = None,
    helper: TimeConversionHelper = Depends(get_time_conversion)
):
    """Provider working hours rendered in the visitor's timezone"""
    on_date = parse_date(date) if date else None
    return helper.slot_labels_for(engine.window, engine.home_timezone, timezone, on_date)


@router.get("/google-calendar/status")
async def get_calendar_status(connection: Connection):
    """Whether the provider's external calendar is connected"""
    return {"connected": connection.connected}
