from datetime import datetime, date, time, timedelta
from typing import List, Optional

import pytz

from consultation_slots.config import settings
from consultation_slots.logging_config import get_logger
from consultation_slots.models import OperatingWindow, TimeLabel, format_label
from .timezones import normalize_timezone, same_family


logger = get_logger(__name__)


def format_12h(dt: datetime) -> str:
    """Wall-clock 12-hour label, e.g. "6:00 PM" """
    hour_12 = dt.hour % 12 or 12
    period = "AM" if dt.hour < 12 else "PM"
    return f"{hour_12}:{dt.minute:02d} {period}"


def format_appointment_time(local_label: str, home_label: str, zone_abbrev: Optional[str] = None) -> str:
    """
    Confirmation text showing both clocks, e.g. "8:30 AM (6:00 PM IST)".

    zone_abbrev is appended to home_label unless it already ends with it.
    """
    if zone_abbrev and not home_label.endswith(zone_abbrev):
        home_label = f"{home_label} {zone_abbrev}"
    return f"{local_label} ({home_label})"


def _get_zone(timezone_id: Optional[str]) -> Optional[pytz.BaseTzInfo]:
    name = normalize_timezone(timezone_id)
    if not name:
        return None
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        return None


class TimeConversionHelper:
    """
    Renders the provider's working hours in a visitor's timezone.

    Conversion goes home zone -> UTC -> target zone with pytz so the
    result follows both zones' DST rules on the given date. Display
    degrades to the unconverted home label instead of raising.
    """

    def __init__(self, home_timezone: Optional[str] = None):
        self.home_timezone = home_timezone or settings.HOME_TIMEZONE

    def slot_labels_for(
        self,
        window: OperatingWindow,
        home_timezone: Optional[str],
        target_timezone: Optional[str],
        on_date: Optional[date] = None,
        step_minutes: int = 60
    ) -> List[TimeLabel]:
        """
        Home and local labels for each step of the window (hourly by default).

        Args:
            window: provider working hours, in the home zone
            home_timezone: provider zone; None uses the helper default
            target_timezone: visitor's zone identifier
            on_date: date the hours fall on (DST); defaults to today in the home zone
            step_minutes: label spacing

        Returns:
            list[TimeLabel] in window order
        """
        home_name = home_timezone or self.home_timezone
        home_tz = _get_zone(home_name)
        target_tz = _get_zone(target_timezone)

        if on_date is None:
            on_date = datetime.now(home_tz or pytz.UTC).date()

        same_zone = same_family(home_name, target_timezone)
        if target_timezone and target_tz is None and not same_zone:
            logger.warning(
                "timezone_conversion_fallback",
                home_timezone=home_name,
                target_timezone=target_timezone
            )

        labels = []
        for minutes in range(window.start_minutes, window.end_minutes, step_minutes):
            naive = datetime.combine(on_date, time()) + timedelta(minutes=minutes)

            if home_tz is None:
                # Nothing to convert from; show the bare wall-clock time
                plain = format_12h(naive)
                labels.append(TimeLabel(home_time=format_label(minutes), home_label=plain, local_label=plain))
                continue

            home_dt = home_tz.localize(naive)
            home_label = f"{format_12h(home_dt)} {home_dt.strftime('%Z')}"

            if same_zone or target_tz is None:
                local_label = home_label
            else:
                local_dt = home_dt.astimezone(pytz.UTC).astimezone(target_tz)
                local_label = format_12h(local_dt)

            labels.append(TimeLabel(
                home_time=format_label(minutes),
                home_label=home_label,
                local_label=local_label
            ))

        return labels

    def labels_for(
        self,
        window: OperatingWindow,
        home_timezone: Optional[str],
        target_timezone: Optional[str],
        on_date: Optional[date] = None
    ) -> List[str]:
        """Visitor-facing label for each hour of the window"""
        return [
            label.local_label
            for label in self.slot_labels_for(window, home_timezone, target_timezone, on_date)
        ]


# Singleton instance
time_conversion = TimeConversionHelper()
