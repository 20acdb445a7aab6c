"""
Pydantic models for event data.

``EventCreate`` carries the full creation payload including the
location block; ``EventUpdate`` is the partial patch accepted by the
creator; ``EventRead`` is what every event endpoint returns.  The
kind-dependent price/attendance rules live in ``check_kind_rules`` so
that creation and (merged) updates apply exactly the same checks.
"""

import re
import unicodedata
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, PositiveInt, model_validator

from .common import ApiModel, OkResponse


EventKind = Literal["free", "paid", "service"]
LocationSource = Literal["user_typed", "places_autocomplete", "reverse_geocode", "user_edit", "db"]

DATE_PATTERN = r"^(\d{4}-\d{2}-\d{2})?$"
TIME_PATTERN = r"^(\d{2}:\d{2})?$"

# Kinds accepted on update from older clients.
KIND_ALIASES = {"event_free": "free", "event_paid": "paid"}


def norm_key(value: str) -> str:
    """Normalise a place name into a lookup key ("São Paulo " -> "são-paulo")."""
    text = re.sub(r"\s+", " ", value.strip().lower())
    text = "".join(
        ch for ch in text
        if ch in {" ", "-"} or unicodedata.category(ch)[0] in {"L", "N"}
    )
    return text.replace(" ", "-")


def check_kind_rules(kind: str, price_cents: Optional[int], attendance: Optional[int]) -> None:
    """Raise ``ValueError`` if price/attendance do not fit the event kind."""
    if kind in ("paid", "service"):
        if price_cents is None or price_cents <= 0:
            raise ValueError("priceCents must be > 0 for paid/service")
        if attendance is not None:
            raise ValueError("attendance must be null for paid/service")
    elif price_cents is not None:
        raise ValueError("priceCents must be null for free events")


class Location(ApiModel):
    lat: float = Field(..., allow_inf_nan=False)
    lng: float = Field(..., allow_inf_nan=False)

    formatted_address: str = Field("", max_length=300)
    place_id: str = Field("", max_length=200)

    country_code: str = Field(..., min_length=2, max_length=2, examples=["US"])
    country_name: str = Field("", max_length=80)

    admin1: str = Field("", max_length=120)
    admin1_code: str = Field("", max_length=10)

    city: str = Field(..., min_length=1, max_length=120)
    city_key: str = Field("", max_length=140)

    postal_code: str = Field("", max_length=20)
    neighborhood: str = Field("", max_length=120)

    source: LocationSource = "user_typed"

    def normalised(self) -> "Location":
        """Copy with upper-case country code and a derived ``city_key`` when blank."""
        return self.model_copy(
            update={
                "country_code": self.country_code.upper(),
                "city_key": self.city_key.strip() or norm_key(self.city),
            }
        )


class EventCreate(ApiModel):
    title: str = Field(..., min_length=1, max_length=120, examples=["Sunday board games"])
    description: str = Field("", max_length=2000)
    emoji: str = "📍"

    # Creator of the event.  ``clerkUserId`` is accepted for older clients.
    creator_clerk_id: str = ""
    clerk_user_id: str = ""

    kind: EventKind = "free"
    price_cents: Optional[int] = None
    # Attendance limit; null means open/unlimited.  Free events only.
    attendance: Optional[PositiveInt] = None

    # Preferred: ISO datetime.  ``date`` + ``time`` are the older form.
    starts_at: Optional[datetime] = None
    date: str = Field("", pattern=DATE_PATTERN)
    time: str = Field("", pattern=TIME_PATTERN)

    timezone: str = Field("", max_length=60)
    location: Location

    tags: List[str] = Field(default_factory=list)
    visibility: Literal["public", "private"] = "public"

    @model_validator(mode="after")
    def _kind_rules(self) -> "EventCreate":
        check_kind_rules(self.kind, self.price_cents, self.attendance)
        for tag in self.tags:
            if len(tag) > 40:
                raise ValueError("tags must be at most 40 characters each")
        return self

    @property
    def claimed_creator(self) -> str:
        return (self.creator_clerk_id or self.clerk_user_id).strip()


class EventUpdate(ApiModel):
    """Partial update.  Only fields present in the request are applied."""

    creator_clerk_id: str = ""
    clerk_user_id: str = ""

    title: Optional[str] = Field(None, min_length=1, max_length=120)
    emoji: Optional[str] = None
    description: Optional[str] = Field(None, max_length=2000)
    kind: Optional[Literal["free", "paid", "service", "event_free", "event_paid"]] = None
    price_cents: Optional[int] = None
    attendance: Optional[PositiveInt] = None
    starts_at: Optional[datetime] = None
    date: Optional[str] = Field(None, pattern=DATE_PATTERN)
    time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    timezone: Optional[str] = Field(None, max_length=60)
    location: Optional[Location] = None
    tags: Optional[List[str]] = None
    visibility: Optional[Literal["public", "private"]] = None
    status: Optional[Literal["active", "cancelled"]] = None

    @property
    def claimed_creator(self) -> str:
        return (self.creator_clerk_id or self.clerk_user_id).strip()

    def changes(self) -> dict:
        """Fields explicitly sent by the client, minus the identity fields."""
        data = self.model_dump(exclude_unset=True, exclude={"creator_clerk_id", "clerk_user_id"})
        if "kind" in data and data["kind"] is not None:
            data["kind"] = KIND_ALIASES.get(data["kind"], data["kind"])
        return data


class ServiceToggle(ApiModel):
    creator_clerk_id: str = ""
    enabled: bool


class Attendee(ApiModel):
    clerk_id: str
    name: str = ""
    email: str = ""
    image_url: str = ""
    joined_at: Optional[str] = None


class LocationRead(Location):
    geo: dict = Field(default_factory=dict)


class EventRead(ApiModel):
    id: int
    title: str
    description: str = ""
    emoji: str = ""
    creator_clerk_id: str
    kind: str
    price_cents: Optional[int] = None
    attendance: Optional[int] = None
    attendees: List[Attendee] = Field(default_factory=list)
    timezone: str = ""
    starts_at: Optional[datetime] = None
    date: str = ""
    time: str = ""
    tags: List[str] = Field(default_factory=list)
    visibility: str = "public"
    status: str = "active"
    location: LocationRead
    distance_m: Optional[float] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class EventEnvelope(OkResponse):
    event: EventRead


class EventCreated(EventEnvelope):
    id: int


class EventList(OkResponse):
    events: List[EventRead]


class EventDeleted(OkResponse):
    deleted_id: int


class JoinRequest(ApiModel):
    clerk_user_id: str = ""
    name: str = Field("", max_length=120)
    email: str = Field("", max_length=200)
    image_url: str = Field("", max_length=500)


class JoinResult(OkResponse):
    joined: bool = True
    already_joined: bool
    attendee: Attendee


class JoinedStatus(OkResponse):
    joined: bool
