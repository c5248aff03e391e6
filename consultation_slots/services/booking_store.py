import asyncio
import os
from datetime import date, datetime
from typing import Optional, Dict, Any, List

import firebase_admin
from firebase_admin import credentials, firestore
from google.cloud.firestore_v1 import FieldFilter

from consultation_slots.config import settings
from consultation_slots.logging_config import get_logger
from consultation_slots.models import BookingRecord, ExistingSlot, OperatingWindow


logger = get_logger(__name__)

# Appointment statuses that still hold their slots
ACTIVE_STATUSES = ("pending", "confirmed")


class BookingStore:
    """
    Firestore-backed source of existing bookings and provider profiles.

    Reads only; appointment creation belongs to the booking/payment API.
    Lookup failures are logged and reported as "no data", the caller
    decides whether that means "no known conflicts".
    """

    def __init__(self, db: Any = None, window: Optional[OperatingWindow] = None):
        self._db = db
        self.window = window or settings.operating_window

    @property
    def db(self):
        """Firestore client, initializing Firebase Admin SDK on first use"""
        if self._db is None:
            self._db = self._init_firestore()
        return self._db

    @staticmethod
    def _init_firestore():
        if not firebase_admin._apps:
            project_id = settings.FIREBASE_PROJECT_ID or os.getenv("FIREBASE_PROJECT_ID", "")
            cred_path = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")

            if cred_path and os.path.exists(cred_path):
                logger.info("firebase_init", credentials="service_account", path=cred_path)
                cred = credentials.Certificate(cred_path)
            else:
                logger.info("firebase_init", credentials="application_default")
                cred = credentials.ApplicationDefault()

            firebase_admin.initialize_app(cred, {"projectId": project_id})

        db = firestore.client(database_id=settings.FIREBASE_DATABASE_ID)
        logger.info("firestore_connected", project=db.project, database=settings.FIREBASE_DATABASE_ID)
        return db

    # ==================== PROVIDER OPERATIONS ====================

    async def get_provider(self, provider_id: str) -> Optional[Dict[str, Any]]:
        """Get provider profile (including stored calendar OAuth tokens)"""
        try:
            return await asyncio.to_thread(self._read_provider, provider_id)
        except Exception as e:
            logger.warning("provider_lookup_failed", provider_id=provider_id, error=str(e))
            return None

    def _read_provider(self, provider_id: str) -> Optional[Dict[str, Any]]:
        doc = self.db.collection("doctors").document(provider_id).get()
        if not doc.exists:
            return None
        data = doc.to_dict()
        data["id"] = provider_id
        return data

    # ==================== BOOKING OPERATIONS ====================

    async def get_bookings(self, target_date: date, provider_id: Optional[str] = None) -> List[BookingRecord]:
        """
        Active appointments on a date as BookingRecords.

        Appointments store `date` (YYYY-MM-DD), `time_slot` ("HH:MM") and
        optionally `duration_slots`; entries without a usable slot are skipped.
        The Firestore client blocks, so the query runs on a worker thread.
        """
        provider_id = provider_id or settings.PROVIDER_ID
        try:
            return await asyncio.to_thread(self._read_bookings, target_date, provider_id)
        except Exception as e:
            logger.warning("booking_lookup_failed", date=target_date.isoformat(), error=str(e))
            return []

    def _read_bookings(self, target_date: date, provider_id: str) -> List[BookingRecord]:
        query = self.db.collection("appointments").where(
            filter=FieldFilter("doctor_id", "==", provider_id)
        ).where(
            filter=FieldFilter("date", "==", target_date.isoformat())
        )

        bookings = []
        for doc in query.stream():
            data = doc.to_dict() or {}
            if data.get("status", "confirmed") not in ACTIVE_STATUSES:
                continue
            record = self._to_record(data, target_date)
            if record is not None:
                bookings.append(record)
        return bookings

    @staticmethod
    def _to_record(data: Dict[str, Any], target_date: date) -> Optional[BookingRecord]:
        start = data.get("time_slot")
        if not start and isinstance(data.get("start_time"), datetime):
            start = data["start_time"].strftime("%H:%M")
        if not isinstance(start, str):
            return None
        try:
            duration = int(data.get("duration_slots") or 1)
        except (TypeError, ValueError):
            duration = 1
        return BookingRecord(date=target_date, start=start, duration_slots=max(duration, 1))


class DemoBookingStore:
    """
    In-memory booking feed for development and demos.

    Returns every slot of the window with the lunch slots and the last
    slot of the day taken, like the mock the booking UI was built against.
    """

    BOOKED_SLOTS = ("12:00", "12:30", "17:30")

    def __init__(self, window: Optional[OperatingWindow] = None, booked: Optional[List[str]] = None):
        self.window = window or settings.operating_window
        self.booked = tuple(self.BOOKED_SLOTS if booked is None else booked)

    async def get_provider(self, provider_id: str) -> Optional[Dict[str, Any]]:
        return None

    async def get_bookings(self, target_date: date, provider_id: Optional[str] = None) -> List[ExistingSlot]:
        return [
            ExistingSlot(time=label, available=label not in self.booked)
            for label in self.window.slot_labels()
        ]


def get_booking_store():
    """Booking source for the configured environment"""
    if settings.USE_DEMO_DATA:
        return DemoBookingStore()
    return BookingStore()
