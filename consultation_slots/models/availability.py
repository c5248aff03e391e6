from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date

from .scheduling import SlotVerdict, DayAvailabilitySummary, NextAvailableSlot


class AvailabilityResponse(BaseModel):
    """Slot verdicts for one date"""
    date: date
    consultation_type: str
    calendar_connected: bool
    slots: List[SlotVerdict]
    summary: DayAvailabilitySummary


class MonthAvailabilityResponse(BaseModel):
    """Per-day summaries for a visible month"""
    year: int
    month: int
    consultation_type: str
    days: List[DayAvailabilitySummary]


class NextAvailableResponse(BaseModel):
    """Result of a next-available search (slot is None when nothing was found)"""
    consultation_type: str
    horizon_days: int
    slot: Optional[NextAvailableSlot] = None


class SlotSelection(BaseModel):
    """A patient's chosen slot, forwarded to booking/payment once confirmed"""
    date: date
    time: str = Field(..., min_length=4, max_length=5)
    consultation_type: str = "initial"


class SelectionResponse(BaseModel):
    """Response after re-checking a chosen slot"""
    confirmed: bool
    selection: SlotSelection
    message: str
