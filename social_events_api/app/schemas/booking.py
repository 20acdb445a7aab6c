"""
Pydantic models for attendance views and service bookings.

Free events are "joined" (see ``schemas.event.JoinRequest``); service
listings are booked for a specific time slot with the models below.
"""

from datetime import datetime
from typing import List

from pydantic import Field

from .common import ApiModel, OkResponse
from .event import EventRead


class ServiceBookingCreate(ApiModel):
    event_id: int
    clerk_user_id: str = ""
    when_iso: datetime = Field(..., alias="whenISO", examples=["2025-09-01T10:00:00Z"])
    customer_name: str = Field("", max_length=120)
    customer_email: str = Field("", max_length=200)
    notes: str = Field("", max_length=1000)


class ServiceBookingRead(ApiModel):
    id: int
    event_id: int
    when_iso: str = Field(..., alias="whenISO")
    customer_clerk_id: str
    customer_name: str = ""
    customer_email: str = ""
    notes: str = ""
    created_at: str | None = None


class ServiceBookingCreated(OkResponse):
    booking: ServiceBookingRead


class ServiceBookingList(OkResponse):
    bookings: List[ServiceBookingRead]


class AttendeeRead(ApiModel):
    clerk_id: str
    name: str = ""
    email: str = ""
    image_url: str = ""


class AttendeeList(OkResponse):
    attendees: List[AttendeeRead]


class MyBookings(OkResponse):
    created_events: List[EventRead]
    created_upcoming: List[EventRead]
    created_past: List[EventRead]
    going_events: List[EventRead]
    past_events: List[EventRead]


class GoingEvents(OkResponse):
    going_events: List[EventRead]
