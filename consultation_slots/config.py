from pydantic import ValidationError, model_validator
from pydantic_settings import BaseSettings
from typing import Any, Dict, List

import pytz
from dotenv import load_dotenv

from consultation_slots.errors import ConfigurationError
from consultation_slots.models.scheduling import OperatingWindow, ConsultationKind

load_dotenv()

DEFAULT_CONSULTATION_KINDS: Dict[str, Dict[str, Any]] = {
    "initial": {"label": "Initial Consultation", "slots": 2, "pricing_basis": "initial"},
    "followup": {"label": "Follow-up", "slots": 1, "pricing_basis": "followup"},
    "urgent": {"label": "Urgent Consultation", "slots": 2, "pricing_basis": "initial"},
}


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Provider schedule (all hours in HOME_TIMEZONE)
    HOME_TIMEZONE: str = "Asia/Kolkata"
    OPERATING_START_HOUR: int = 9
    OPERATING_END_HOUR: int = 18
    SLOT_GRANULARITY_MINUTES: int = 30
    ADVANCE_BOOKING_BUFFER_MINUTES: int = 60
    NEXT_AVAILABLE_HORIZON_DAYS: int = 60
    CONSULTATION_KINDS: Dict[str, Any] = DEFAULT_CONSULTATION_KINDS

    # Upstream data
    USE_DEMO_DATA: bool = True
    DEMO_CALENDAR_CONNECTED: bool = False
    PROVIDER_ID: str = "default"
    FIREBASE_PROJECT_ID: str = ""
    FIREBASE_DATABASE_ID: str = "(default)"

    # CORS
    CORS_ORIGINS: List[str] = ["*"]  # In production, specify exact origins

    class Config:
        env_file = ".env"
        case_sensitive = True

    @model_validator(mode="after")
    def _check_schedule(self) -> "Settings":
        # Build once so misconfiguration fails at startup, not per query
        self.operating_window
        self.consultation_kinds
        try:
            pytz.timezone(self.HOME_TIMEZONE)
        except pytz.UnknownTimeZoneError as e:
            raise ConfigurationError(f"Unknown HOME_TIMEZONE: {self.HOME_TIMEZONE!r}") from e
        if self.ADVANCE_BOOKING_BUFFER_MINUTES < 0:
            raise ConfigurationError("ADVANCE_BOOKING_BUFFER_MINUTES must be >= 0")
        if self.NEXT_AVAILABLE_HORIZON_DAYS < 1:
            raise ConfigurationError("NEXT_AVAILABLE_HORIZON_DAYS must be >= 1")
        return self

    @property
    def operating_window(self) -> OperatingWindow:
        """Provider working hours as an OperatingWindow"""
        return OperatingWindow(
            start_hour=self.OPERATING_START_HOUR,
            end_hour=self.OPERATING_END_HOUR,
            granularity_minutes=self.SLOT_GRANULARITY_MINUTES,
        )

    @property
    def consultation_kinds(self) -> Dict[str, ConsultationKind]:
        """Consultation kind registry keyed by kind key"""
        if not self.CONSULTATION_KINDS:
            raise ConfigurationError("CONSULTATION_KINDS must define at least one kind")

        kinds = {}
        for key, options in self.CONSULTATION_KINDS.items():
            if not isinstance(options, dict):
                raise ConfigurationError(f"CONSULTATION_KINDS[{key!r}] must be an object, got {options!r}")
            if "key" in options:
                raise ConfigurationError(f"CONSULTATION_KINDS[{key!r}] must not set 'key'; the map key names the kind")
            try:
                kinds[key.lower()] = ConsultationKind(key=key.lower(), **options)
            except (ValidationError, TypeError) as e:
                raise ConfigurationError(f"Invalid consultation kind {key!r}: {e}") from e
        return kinds

    @property
    def IS_PRODUCTION(self) -> bool:
        """Check if running in production"""
        return self.ENVIRONMENT == "production"


# Singleton instance
settings = Settings()
