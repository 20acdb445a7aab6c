"""
Attendance views and service bookings.

"Bookings" covers two things in this API: the events a user created
or joined (``my_bookings``, ``going``), and time-slot bookings made
against a creator's service listing.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from ..core.db import from_json, get_connection, utcnow_iso
from ..core.errors import ForbiddenError, ServiceError
from ..schemas.booking import (
    AttendeeRead,
    MyBookings,
    ServiceBookingCreate,
    ServiceBookingRead,
)
from ..schemas.event import EventRead
from .event_service import EventService, rows_to_events, to_utc_iso
from .user_service import UserService


logger = logging.getLogger(__name__)

MAX_SERVICE_BOOKINGS = 2000


def event_time(event: EventRead) -> Optional[datetime]:
    """Best-effort start time of an event.

    ``startsAt`` when set, else ``date`` + ``time`` as UTC, else noon UTC
    on ``date``.  ``None`` when the event carries no usable date.
    """
    if event.starts_at is not None:
        if event.starts_at.tzinfo is None:
            return event.starts_at.replace(tzinfo=timezone.utc)
        return event.starts_at
    for suffix in (f"T{event.time}:00+00:00" if event.time else None, "T12:00:00+00:00"):
        if event.date and suffix:
            try:
                return datetime.fromisoformat(f"{event.date}{suffix}")
            except ValueError:
                continue
    return None


def split_by_time(events: List[EventRead], now: datetime) -> Tuple[List[EventRead], List[EventRead]]:
    """Split into (upcoming, past).  Undated events count as upcoming."""
    upcoming, past = [], []
    for event in events:
        when = event_time(event)
        if when is not None and when < now:
            past.append(event)
        else:
            upcoming.append(event)
    return upcoming, past


def _booking_from_row(row) -> ServiceBookingRead:
    return ServiceBookingRead(
        id=row["id"],
        event_id=row["event_id"],
        when_iso=row["when_iso"],
        customer_clerk_id=row["customer_clerk_id"],
        customer_name=row["customer_name"],
        customer_email=row["customer_email"],
        notes=row["notes"],
        created_at=row["created_at"],
    )


class BookingService:
    """Queries over attendance plus the service booking workflow."""

    @classmethod
    def _owned_event(cls, conn, event_id: int, creator_clerk_id: str):
        row = EventService.fetch_row(conn, event_id)
        if row["creator_clerk_id"] != creator_clerk_id:
            raise ForbiddenError("Forbidden")
        return row

    @classmethod
    def _joined_events(cls, conn, clerk_user_id: str, limit: int) -> List[EventRead]:
        rows = conn.execute(
            """
            SELECT e.* FROM events e
            JOIN event_attendees a ON a.event_id = e.id
            WHERE a.clerk_id = ?
            ORDER BY e.starts_at IS NULL, e.starts_at, e.date, e.time, e.id
            LIMIT ?
            """,
            (clerk_user_id, limit),
        ).fetchall()
        return rows_to_events(conn, rows)

    @classmethod
    async def my_bookings(cls, clerk_user_id: str, limit: int = 200) -> MyBookings:
        """Events the user created (newest first) and joined, split by time."""
        conn = get_connection()
        try:
            created_rows = conn.execute(
                "SELECT * FROM events WHERE creator_clerk_id = ? ORDER BY created_at DESC, id DESC LIMIT ?",
                (clerk_user_id, limit),
            ).fetchall()
            created = rows_to_events(conn, created_rows)
            joined = cls._joined_events(conn, clerk_user_id, limit)
        finally:
            conn.close()

        now = datetime.now(timezone.utc)
        created_upcoming, created_past = split_by_time(created, now)
        going, past = split_by_time(joined, now)
        return MyBookings(
            created_events=created,
            created_upcoming=created_upcoming,
            created_past=created_past,
            going_events=going,
            past_events=past,
        )

    @classmethod
    async def going(cls, clerk_user_id: str, limit: int = 200) -> List[EventRead]:
        conn = get_connection()
        try:
            events = cls._joined_events(conn, clerk_user_id, limit)
        finally:
            conn.close()
        logger.debug("User %s is going to %d events", clerk_user_id, len(events))
        return events

    @classmethod
    async def attendees(cls, event_id: int, creator_clerk_id: str) -> List[AttendeeRead]:
        """Attendee list for the event's creator.

        Names, emails and avatars come from the attendee's user record
        when there is one, falling back to what they sent when joining.
        """
        conn = get_connection()
        try:
            cls._owned_event(conn, event_id, creator_clerk_id)
            rows = conn.execute(
                "SELECT * FROM event_attendees WHERE event_id = ? ORDER BY id", (event_id,)
            ).fetchall()
        finally:
            conn.close()

        users = await UserService.lookup_many(row["clerk_id"] for row in rows)
        out = []
        for row in rows:
            user = users.get(row["clerk_id"])
            profile = from_json(user["profile"], {}) if user is not None else {}
            clerk = from_json(user["clerk"], {}) if user is not None else {}
            profile, clerk = profile or {}, clerk or {}
            name = " ".join(
                part for part in (profile.get("firstName"), profile.get("lastName")) if isinstance(part, str) and part
            )
            out.append(
                AttendeeRead(
                    clerk_id=row["clerk_id"],
                    name=name or row["name"],
                    email=clerk.get("email") or row["email"],
                    image_url=clerk.get("imageUrl") or row["image_url"],
                )
            )
        return out

    @classmethod
    async def list_service_bookings(cls, event_id: int, creator_clerk_id: str) -> List[ServiceBookingRead]:
        conn = get_connection()
        try:
            event = cls._owned_event(conn, event_id, creator_clerk_id)
            if event["kind"] != "service":
                raise ServiceError("Not a service event")
            rows = conn.execute(
                "SELECT * FROM service_bookings WHERE event_id = ? ORDER BY when_iso, id LIMIT ?",
                (event_id, MAX_SERVICE_BOOKINGS),
            ).fetchall()
            return [_booking_from_row(row) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def create_service_booking(cls, data: ServiceBookingCreate, customer_clerk_id: str) -> ServiceBookingRead:
        """Book a time slot on an active service listing."""
        conn = get_connection()
        try:
            event = EventService.fetch_row(conn, data.event_id)
            if event["kind"] != "service":
                raise ServiceError("Not a service event")
            if event["status"] != "active":
                raise ServiceError("This service is not accepting bookings")
            cursor = conn.execute(
                """
                INSERT INTO service_bookings
                    (event_id, when_iso, customer_clerk_id, customer_name, customer_email, notes, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    data.event_id,
                    to_utc_iso(data.when_iso),
                    customer_clerk_id,
                    data.customer_name.strip(),
                    data.customer_email.strip(),
                    data.notes.strip(),
                    utcnow_iso(),
                ),
            )
            conn.commit()
            row = conn.execute("SELECT * FROM service_bookings WHERE id = ?", (cursor.lastrowid,)).fetchone()
        finally:
            conn.close()
        logger.info("User %s booked service %s for %s", customer_clerk_id, data.event_id, row["when_iso"])
        return _booking_from_row(row)
