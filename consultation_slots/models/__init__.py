"""
Data models for the application
Pydantic models for engine inputs/outputs and request/response validation
"""

from .scheduling import (
    OperatingWindow,
    PricingBasis,
    ConsultationKind,
    ExistingSlot,
    BookingRecord,
    BusyInterval,
    UnavailableReason,
    SlotVerdict,
    DayAvailabilitySummary,
    NextAvailableSlot,
    TimeOfDay,
    CalendarConnectionState,
    format_label,
    parse_label,
)

from .pricing import (
    RegionPrice,
    PriceQuote,
    TimeLabel,
)

from .availability import (
    AvailabilityResponse,
    MonthAvailabilityResponse,
    NextAvailableResponse,
    SlotSelection,
    SelectionResponse,
)


__all__ = [
    # Scheduling models
    "OperatingWindow",
    "PricingBasis",
    "ConsultationKind",
    "ExistingSlot",
    "BookingRecord",
    "BusyInterval",
    "UnavailableReason",
    "SlotVerdict",
    "DayAvailabilitySummary",
    "NextAvailableSlot",
    "TimeOfDay",
    "CalendarConnectionState",
    "format_label",
    "parse_label",

    # Pricing and display models
    "RegionPrice",
    "PriceQuote",
    "TimeLabel",

    # API models
    "AvailabilityResponse",
    "MonthAvailabilityResponse",
    "NextAvailableResponse",
    "SlotSelection",
    "SelectionResponse",
]
