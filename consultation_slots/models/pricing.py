from pydantic import BaseModel
from typing import Optional

from .scheduling import ConsultationKind, PricingBasis


class RegionPrice(BaseModel):
    """Consultation prices for a timezone region"""
    currency: str
    symbol: str
    initial: int
    followup: int

    class Config:
        frozen = True

    def amount_for(self, kind: ConsultationKind) -> int:
        if kind.pricing_basis == PricingBasis.FOLLOWUP:
            return self.followup
        return self.initial


class PriceQuote(BaseModel):
    """Price of one consultation kind for a visitor's timezone"""
    timezone: Optional[str] = None
    country: str
    consultation_type: str
    currency: str
    symbol: str
    amount: int

    @property
    def display(self) -> str:
        return f"{self.symbol}{self.amount} {self.currency}"


class TimeLabel(BaseModel):
    """One operating-window hour rendered in the home and the visitor's zone"""
    home_time: str  # "18:00"
    home_label: str  # "6:00 PM IST"
    local_label: str  # "8:30 AM"
