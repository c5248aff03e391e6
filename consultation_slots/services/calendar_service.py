import asyncio

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from datetime import datetime, date, time, timedelta
from typing import List, Dict, Any, Optional

import pytz

from consultation_slots.config import settings
from consultation_slots.logging_config import get_logger
from consultation_slots.models import CalendarConnectionState, OperatingWindow, parse_label


logger = get_logger(__name__)

# Canned busy slots per weekday (Monday=0) served to demo connections
DEMO_BUSY_SLOTS: Dict[int, List[str]] = {
    0: ["09:00", "09:30", "11:00", "11:30"],  # busy morning
    1: ["14:00", "14:30", "15:00", "15:30"],  # afternoon meetings
    2: ["10:00", "10:30", "13:00", "16:00", "16:30"],  # scattered
    3: ["09:00", "09:30", "10:00", "10:30"],  # morning block
    4: ["13:30", "17:00"],  # light schedule
}


def _parse_event_time(value: Dict[str, Any], tz: pytz.BaseTzInfo) -> Optional[datetime]:
    """Google event start/end -> aware datetime (all-day dates map to midnight)"""
    if value.get("dateTime"):
        parsed = datetime.fromisoformat(value["dateTime"].replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else tz.localize(parsed)
    if value.get("date"):
        return tz.localize(datetime.combine(date.fromisoformat(value["date"]), time()))
    return None


def busy_slots_from_events(
    events: List[Dict[str, Any]],
    target_date: date,
    window: OperatingWindow,
    timezone: str
) -> List[str]:
    """
    Map calendar events onto the slot labels they overlap.

    Args:
        events: Google Calendar event resources
        target_date: date whose slots are checked
        window: operating window (labels are in `timezone`)
        timezone: provider home timezone

    Returns:
        Busy slot labels in slot order
    """
    tz = pytz.timezone(timezone)
    intervals = []
    for event in events:
        # Events marked "free" do not block the provider
        if event.get("transparency") == "transparent" or event.get("status") == "cancelled":
            continue
        try:
            start = _parse_event_time(event.get("start") or {}, tz)
            end = _parse_event_time(event.get("end") or {}, tz)
        except ValueError:
            logger.debug("calendar_event_ignored", event_id=event.get("id"))
            continue
        if start is None or end is None:
            continue
        intervals.append((start, end))

    busy = []
    for label in window.slot_labels():
        slot_start = tz.localize(datetime.combine(target_date, time()) + timedelta(minutes=parse_label(label)))
        slot_end = slot_start + timedelta(minutes=window.granularity_minutes)
        if any(start < slot_end and end > slot_start for start, end in intervals):
            busy.append(label)
    return busy


class CalendarService:
    """Service for external calendar conflicts (Google Calendar)"""

    def __init__(self, window: Optional[OperatingWindow] = None, timezone: Optional[str] = None):
        self.window = window or settings.operating_window
        self.timezone = timezone or settings.HOME_TIMEZONE

    def _build_credentials(self, token_data: Dict[str, Any]) -> Credentials:
        """Rebuild Google Credentials from stored token data"""
        return Credentials(
            token=token_data.get("token"),
            refresh_token=token_data.get("refresh_token"),
            token_uri=token_data.get("token_uri"),
            client_id=token_data.get("client_id"),
            client_secret=token_data.get("client_secret"),
            scopes=token_data.get("scopes")
        )

    def _list_events(self, token_data: Dict[str, Any], target_date: date) -> List[Dict[str, Any]]:
        creds = self._build_credentials(token_data)
        service = build('calendar', 'v3', credentials=creds, cache_discovery=False)

        tz = pytz.timezone(self.timezone)
        start_of_day = tz.localize(datetime.combine(target_date, time(hour=self.window.start_hour)))
        end_of_day = start_of_day + timedelta(hours=self.window.end_hour - self.window.start_hour)

        events_result = service.events().list(
            calendarId='primary',
            timeMin=start_of_day.isoformat(),
            timeMax=end_of_day.isoformat(),
            singleEvents=True,
            orderBy='startTime'
        ).execute()

        return events_result.get('items', [])

    async def get_busy_slots(
        self,
        connection: CalendarConnectionState,
        target_date: date
    ) -> List[str]:
        """
        Busy slot labels for a date from the provider's connected calendar.

        Returns:
            [] when the calendar is not connected or the lookup fails,
            canned weekday slots for a demo connection, otherwise the
            labels overlapped by the provider's events
        """
        if not connection.connected:
            return []

        if connection.is_demo:
            return list(DEMO_BUSY_SLOTS.get(target_date.weekday(), []))

        try:
            events = await asyncio.to_thread(self._list_events, connection.token_data, target_date)
        except Exception as e:
            logger.warning("calendar_lookup_failed", date=target_date.isoformat(), error=str(e))
            return []

        return busy_slots_from_events(events, target_date, self.window, self.timezone)


# Singleton instance
calendar_service = CalendarService()
