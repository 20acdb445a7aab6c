"""
Booking endpoints for API v1.

Attendance views over joined events (``my-bookings``, ``going``,
``attendees``) and time-slot bookings on service listings.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from social_events_api.app.core.security import IdentityResolver, get_identity_resolver
from social_events_api.app.schemas.booking import (
    AttendeeList,
    GoingEvents,
    MyBookings,
    ServiceBookingCreate,
    ServiceBookingCreated,
    ServiceBookingList,
)
from social_events_api.app.services.booking_service import BookingService


router = APIRouter()


@router.get("/my-bookings", response_model=MyBookings)
async def my_bookings(
    request: Request,
    clerk_user_id: Optional[str] = Query(None, alias="clerkUserId"),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> MyBookings:
    """Events the caller created and joined, each split into upcoming and past."""
    user_id = resolver.resolve(request, clerk_user_id)
    return await BookingService.my_bookings(user_id)


@router.get("/going", response_model=GoingEvents)
async def going(
    request: Request,
    clerk_user_id: Optional[str] = Query(None, alias="clerkUserId"),
    limit: int = Query(200),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> GoingEvents:
    user_id = resolver.resolve(request, clerk_user_id)
    limit = max(1, min(limit, 1000))
    return GoingEvents(going_events=await BookingService.going(user_id, limit))


@router.get("/attendees", response_model=AttendeeList)
async def attendees(
    request: Request,
    event_id: int = Query(..., alias="eventId"),
    creator_clerk_id: Optional[str] = Query(None, alias="creatorClerkId"),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> AttendeeList:
    """Attendees of one of the caller's events."""
    creator = resolver.resolve(request, creator_clerk_id)
    return AttendeeList(attendees=await BookingService.attendees(event_id, creator))


@router.get("/service-bookings", response_model=ServiceBookingList)
async def list_service_bookings(
    request: Request,
    event_id: int = Query(..., alias="eventId"),
    creator_clerk_id: Optional[str] = Query(None, alias="creatorClerkId"),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> ServiceBookingList:
    creator = resolver.resolve(request, creator_clerk_id)
    bookings = await BookingService.list_service_bookings(event_id, creator)
    return ServiceBookingList(bookings=bookings)


@router.post("/service-bookings", response_model=ServiceBookingCreated, status_code=status.HTTP_201_CREATED)
async def create_service_booking(
    payload: ServiceBookingCreate,
    request: Request,
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> ServiceBookingCreated:
    """Book a time slot on a service listing for the caller."""
    customer = resolver.resolve(request, payload.clerk_user_id)
    booking = await BookingService.create_service_booking(payload, customer)
    return ServiceBookingCreated(booking=booking)
