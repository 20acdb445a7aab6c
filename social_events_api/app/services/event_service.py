"""
Business logic for events.

Events are stored in the ``events`` table with the location kept as a
JSON document plus a few denormalised columns (country code, admin1,
city key, coordinates) used for filtering.  Attendees live in
``event_attendees``; joining is handled here because it needs the
event's kind, status and attendance limit.
"""

import logging
import math
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from ..core.db import from_json, get_connection, to_json, transaction, utcnow_iso
from ..core.errors import ConflictError, ForbiddenError, NotFoundError, ServiceError
from ..schemas.event import (
    Attendee,
    EventCreate,
    EventRead,
    EventUpdate,
    JoinRequest,
    Location,
    LocationRead,
    check_kind_rules,
)


logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6_371_000.0

# Columns that cannot hold NULL; an explicit null in a patch resets them.
_PATCH_DEFAULTS = {
    "emoji": "",
    "description": "",
    "timezone": "",
    "date": "",
    "time": "",
    "tags": [],
    "visibility": "public",
    "status": "active",
}


def to_utc_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def build_starts_at(starts_at: Optional[datetime], date: str, time: str) -> Optional[datetime]:
    """Explicit start time, else ``date`` + ``time`` read as UTC, else ``None``."""
    if starts_at is not None:
        return starts_at
    if date and time:
        try:
            return datetime.fromisoformat(f"{date}T{time}:00+00:00")
        except ValueError:
            return None
    return None


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in metres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))


def _location_columns(location: Location) -> Dict[str, Any]:
    loc = location.normalised()
    doc = loc.model_dump(by_alias=True)
    doc["geo"] = {"type": "Point", "coordinates": [loc.lng, loc.lat]}
    return {
        "location": to_json(doc),
        "lat": loc.lat,
        "lng": loc.lng,
        "country_code": loc.country_code,
        "admin1": loc.admin1,
        "city_key": loc.city_key,
    }


def _attendee_from_row(row: sqlite3.Row) -> Attendee:
    return Attendee(
        clerk_id=row["clerk_id"],
        name=row["name"],
        email=row["email"],
        image_url=row["image_url"],
        joined_at=row["joined_at"],
    )


def _event_from_row(row: sqlite3.Row, attendees: List[Attendee], distance_m: Optional[float] = None) -> EventRead:
    return EventRead(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        emoji=row["emoji"],
        creator_clerk_id=row["creator_clerk_id"],
        kind=row["kind"],
        price_cents=row["price_cents"],
        attendance=row["attendance"],
        attendees=attendees,
        timezone=row["timezone"],
        starts_at=row["starts_at"],
        date=row["date"],
        time=row["time"],
        tags=from_json(row["tags"], []),
        visibility=row["visibility"],
        status=row["status"],
        location=LocationRead.model_validate(from_json(row["location"], {})),
        distance_m=distance_m,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _load_attendees(conn: sqlite3.Connection, event_ids: List[int]) -> Dict[int, List[Attendee]]:
    by_event: Dict[int, List[Attendee]] = {event_id: [] for event_id in event_ids}
    if not event_ids:
        return by_event
    placeholders = ", ".join("?" for _ in event_ids)
    rows = conn.execute(
        f"SELECT * FROM event_attendees WHERE event_id IN ({placeholders}) ORDER BY id",
        tuple(event_ids),
    ).fetchall()
    for row in rows:
        by_event[row["event_id"]].append(_attendee_from_row(row))
    return by_event


def rows_to_events(conn: sqlite3.Connection, rows: List[sqlite3.Row]) -> List[EventRead]:
    attendees = _load_attendees(conn, [row["id"] for row in rows])
    return [_event_from_row(row, attendees[row["id"]]) for row in rows]


class EventService:
    """Create, query and modify events."""

    @classmethod
    def fetch_row(cls, conn: sqlite3.Connection, event_id: int) -> sqlite3.Row:
        row = conn.execute("SELECT * FROM events WHERE id = ?", (event_id,)).fetchone()
        if row is None:
            raise NotFoundError("Event not found")
        return row

    @classmethod
    async def create_event(cls, data: EventCreate, creator_clerk_id: str) -> EventRead:
        """Insert a new event owned by ``creator_clerk_id``.

        The attendee list always starts empty, whatever the client sent.
        """
        now = utcnow_iso()
        starts_at = build_starts_at(data.starts_at, data.date, data.time)
        columns = {
            "title": data.title.strip(),
            "description": data.description.strip(),
            "emoji": data.emoji,
            "creator_clerk_id": creator_clerk_id,
            "kind": data.kind,
            "price_cents": data.price_cents,
            "attendance": data.attendance,
            "timezone": data.timezone,
            "starts_at": to_utc_iso(starts_at),
            "date": data.date,
            "time": data.time,
            "tags": to_json(data.tags),
            "visibility": data.visibility,
            "status": "active",
            "created_at": now,
            "updated_at": now,
            **_location_columns(data.location),
        }
        names = ", ".join(columns)
        placeholders = ", ".join("?" for _ in columns)
        conn = get_connection()
        try:
            cursor = conn.execute(
                f"INSERT INTO events ({names}) VALUES ({placeholders})", tuple(columns.values())
            )
            event_id = cursor.lastrowid
            conn.commit()
            logger.info("User %s created %s event %s '%s'", creator_clerk_id, data.kind, event_id, data.title)
            return _event_from_row(cls.fetch_row(conn, event_id), [])
        finally:
            conn.close()

    @classmethod
    async def get_event(cls, event_id: int) -> EventRead:
        conn = get_connection()
        try:
            return rows_to_events(conn, [cls.fetch_row(conn, event_id)])[0]
        finally:
            conn.close()

    @classmethod
    async def list_events(
        cls,
        limit: int = 200,
        country: str = "",
        admin1: str = "",
        city_key: str = "",
        kind: str = "",
        status: str = "",
        visibility: str = "",
        creator_clerk_id: str = "",
        near: Optional[Tuple[float, float]] = None,
        radius_m: Optional[float] = None,
    ) -> List[EventRead]:
        """Return events matching the filters.

        - Without ``near``: newest first, at most ``limit``.
        - With ``near`` (lat, lng): nearest first, events further than
          ``radius_m`` (when given) are dropped, at most ``limit``.
        """
        where: List[str] = []
        params: List[Any] = []
        for column, value in (
            ("country_code", country.upper()),
            ("admin1", admin1),
            ("city_key", city_key),
            ("kind", kind),
            ("status", status),
            ("visibility", visibility),
            ("creator_clerk_id", creator_clerk_id),
        ):
            if value:
                where.append(f"{column} = ?")
                params.append(value)
        query = "SELECT * FROM events"
        if where:
            query += " WHERE " + " AND ".join(where)
        query += " ORDER BY created_at DESC, id DESC"
        if near is None:
            query += " LIMIT ?"
            params.append(limit)

        conn = get_connection()
        try:
            rows = conn.execute(query, tuple(params)).fetchall()
            if near is None:
                return rows_to_events(conn, rows)

            lat, lng = near
            ranked = []
            for row in rows:
                distance = haversine_m(lat, lng, row["lat"], row["lng"])
                if radius_m is not None and distance > radius_m:
                    continue
                ranked.append((distance, row))
            ranked.sort(key=lambda item: item[0])
            ranked = ranked[:limit]
            attendees = _load_attendees(conn, [row["id"] for _, row in ranked])
            return [_event_from_row(row, attendees[row["id"]], distance) for distance, row in ranked]
        finally:
            conn.close()

    @classmethod
    async def update_event(cls, event_id: int, patch: EventUpdate, creator_clerk_id: str) -> EventRead:
        """Apply a partial update made by the event's creator.

        Kind, price and attendance are checked on the merged result, so
        a patch that only changes ``kind`` is validated against the
        stored price.  Changing ``date``/``time`` recomputes ``startsAt``
        unless the patch sets ``startsAt`` itself.
        """
        changes = patch.changes()
        if not changes:
            raise ServiceError("No fields provided to update")

        with transaction() as conn:
            row = conn.execute(
                "SELECT * FROM events WHERE id = ? AND creator_clerk_id = ?",
                (event_id, creator_clerk_id),
            ).fetchone()
            if row is None:
                raise NotFoundError("Event not found or you are not the creator")

            updates: Dict[str, Any] = {}
            for field in ("title", "location"):
                if field in changes and changes[field] is None:
                    raise ServiceError(f"{field} cannot be null", field=field)
            if changes.get("kind") is None:
                changes.pop("kind", None)

            for field, value in changes.items():
                if field in ("location", "starts_at"):
                    continue
                if value is None and field in _PATCH_DEFAULTS:
                    value = _PATCH_DEFAULTS[field]
                if field == "tags":
                    if any(len(tag) > 40 for tag in value):
                        raise ServiceError("tags must be at most 40 characters each", field="tags")
                    value = to_json(value)
                elif field in ("title", "description") and isinstance(value, str):
                    value = value.strip()
                updates[field] = value

            kind = updates.get("kind", row["kind"])
            if kind == "free" and "kind" in updates:
                updates["price_cents"] = None
            price_cents = updates.get("price_cents", row["price_cents"])
            attendance = updates.get("attendance", row["attendance"])
            try:
                check_kind_rules(kind, price_cents, attendance)
            except ValueError as exc:
                raise ServiceError(str(exc)) from exc

            if "starts_at" in changes:
                updates["starts_at"] = to_utc_iso(patch.starts_at)
            elif "date" in updates or "time" in updates:
                computed = build_starts_at(
                    None,
                    updates.get("date", row["date"]),
                    updates.get("time", row["time"]),
                )
                if computed is not None:
                    updates["starts_at"] = to_utc_iso(computed)

            if "location" in changes:
                updates.update(_location_columns(patch.location))

            updates["updated_at"] = utcnow_iso()
            assignments = ", ".join(f"{column} = ?" for column in updates)
            conn.execute(
                f"UPDATE events SET {assignments} WHERE id = ?",
                (*updates.values(), event_id),
            )
            event = rows_to_events(conn, [cls.fetch_row(conn, event_id)])[0]
        logger.info("User %s updated event %s: %s", creator_clerk_id, event_id, sorted(changes))
        return event

    @classmethod
    async def delete_event(cls, event_id: int, creator_clerk_id: str) -> None:
        """Delete an event owned by ``creator_clerk_id`` with its attendees and bookings."""
        conn = get_connection()
        try:
            cursor = conn.execute(
                "DELETE FROM events WHERE id = ? AND creator_clerk_id = ?",
                (event_id, creator_clerk_id),
            )
            conn.commit()
            if cursor.rowcount == 0:
                raise NotFoundError("Event not found or not authorized")
        finally:
            conn.close()
        logger.info("User %s deleted event %s", creator_clerk_id, event_id)

    @classmethod
    async def set_service_enabled(cls, event_id: int, creator_clerk_id: str, enabled: bool) -> EventRead:
        """Pause or resume a service listing."""
        with transaction() as conn:
            row = cls.fetch_row(conn, event_id)
            if row["creator_clerk_id"] != creator_clerk_id:
                raise ForbiddenError("Forbidden: not creator")
            if row["kind"] != "service":
                raise ServiceError("Only service listings can be toggled")
            conn.execute(
                "UPDATE events SET status = ?, updated_at = ? WHERE id = ?",
                ("active" if enabled else "paused", utcnow_iso(), event_id),
            )
            event = rows_to_events(conn, [cls.fetch_row(conn, event_id)])[0]
        logger.info("Service %s is now %s", event_id, event.status)
        return event

    @classmethod
    async def join_event(cls, event_id: int, clerk_user_id: str, details: JoinRequest) -> Tuple[Attendee, bool]:
        """Add the user to a free event's attendees.

        Returns the attendee entry and whether the user had already
        joined.  Joining is idempotent: a repeat join returns the
        original entry.
        """
        with transaction() as conn:
            event = cls.fetch_row(conn, event_id)
            if (event["kind"] or "free").lower() != "free":
                raise ServiceError("Payment required: use the payment flow for paid/service events")
            if event["status"] == "cancelled":
                raise ServiceError("Event is cancelled")

            existing = conn.execute(
                "SELECT * FROM event_attendees WHERE event_id = ? AND clerk_id = ?",
                (event_id, clerk_user_id),
            ).fetchone()
            if existing is not None:
                return _attendee_from_row(existing), True

            if event["attendance"] is not None:
                count = conn.execute(
                    "SELECT COUNT(*) AS count FROM event_attendees WHERE event_id = ?", (event_id,)
                ).fetchone()["count"]
                if count >= event["attendance"]:
                    raise ConflictError("Event is full")

            now = utcnow_iso()
            conn.execute(
                """
                INSERT INTO event_attendees (event_id, clerk_id, name, email, image_url, joined_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    event_id,
                    clerk_user_id,
                    details.name.strip(),
                    details.email.strip(),
                    details.image_url.strip(),
                    now,
                ),
            )
            conn.execute("UPDATE events SET updated_at = ? WHERE id = ?", (now, event_id))
        logger.info("User %s joined event %s", clerk_user_id, event_id)
        attendee = Attendee(
            clerk_id=clerk_user_id,
            name=details.name.strip(),
            email=details.email.strip(),
            image_url=details.image_url.strip(),
            joined_at=now,
        )
        return attendee, False

    @classmethod
    async def is_joined(cls, event_id: int, clerk_user_id: str) -> bool:
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT 1 FROM event_attendees WHERE event_id = ? AND clerk_id = ?",
                (event_id, clerk_user_id),
            ).fetchone()
            return row is not None
        finally:
            conn.close()
