"""
Event endpoints for API v1.

CRUD for events plus joining free events.  Reads are open to any
authenticated client; writes act on behalf of the resolved user, who
must be the event's creator for updates, deletes and the service
toggle.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status

from social_events_api.app.core.errors import ServiceError
from social_events_api.app.core.security import IdentityResolver, get_identity_resolver, require_client
from social_events_api.app.schemas.event import (
    EventCreate,
    EventCreated,
    EventDeleted,
    EventEnvelope,
    EventList,
    EventUpdate,
    JoinedStatus,
    JoinRequest,
    JoinResult,
    ServiceToggle,
    norm_key,
)
from social_events_api.app.services.event_service import EventService


router = APIRouter()


@router.post("/", response_model=EventCreated, status_code=status.HTTP_201_CREATED)
async def create_event(
    event: EventCreate,
    request: Request,
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> EventCreated:
    """Create an event owned by the caller."""
    creator = resolver.resolve(request, event.claimed_creator)
    created = await EventService.create_event(event, creator)
    return EventCreated(id=created.id, event=created)


@router.get("/", response_model=EventList, dependencies=[Depends(require_client)])
async def list_events(
    limit: int = Query(200, ge=1, le=500),
    country: str = Query(""),
    admin1: str = Query(""),
    city: str = Query(""),
    city_key: str = Query("", alias="cityKey"),
    kind: str = Query(""),
    status_: str = Query("", alias="status"),
    visibility: str = Query(""),
    creator_clerk_id: str = Query("", alias="creatorClerkId"),
    near_lat: Optional[float] = Query(None, alias="nearLat", ge=-90, le=90),
    near_lng: Optional[float] = Query(None, alias="nearLng", ge=-180, le=180),
    radius_m: Optional[float] = Query(None, alias="radiusM", gt=0),
) -> EventList:
    """List events.

    - **country**, **admin1**, **city** / **cityKey** narrow by place;
      ``city`` is normalised the same way stored city keys are.
    - **nearLat** + **nearLng** sort by distance, **radiusM** drops
      events further away.  Without them the newest come first.
    """
    if (near_lat is None) != (near_lng is None):
        raise ServiceError("nearLat and nearLng must be given together", field="nearLat")
    events = await EventService.list_events(
        limit=limit,
        country=country.strip(),
        admin1=admin1.strip(),
        city_key=city_key.strip() or (norm_key(city) if city.strip() else ""),
        kind=kind.strip(),
        status=status_.strip(),
        visibility=visibility.strip(),
        creator_clerk_id=creator_clerk_id.strip(),
        near=(near_lat, near_lng) if near_lat is not None else None,
        radius_m=radius_m,
    )
    return EventList(events=events)


@router.get("/{event_id}", response_model=EventEnvelope, dependencies=[Depends(require_client)])
async def get_event(event_id: int) -> EventEnvelope:
    """Retrieve a single event by its ID.  Raises 404 if it does not exist."""
    return EventEnvelope(event=await EventService.get_event(event_id))


@router.patch("/{event_id}", response_model=EventEnvelope)
async def update_event(
    event_id: int,
    patch: EventUpdate,
    request: Request,
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> EventEnvelope:
    """Partially update an event.  Only its creator may do this."""
    creator = resolver.resolve(request, patch.claimed_creator)
    return EventEnvelope(event=await EventService.update_event(event_id, patch, creator))


@router.delete("/{event_id}", response_model=EventDeleted)
async def delete_event(
    event_id: int,
    request: Request,
    creator_clerk_id: Optional[str] = Query(None, alias="creatorClerkId"),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> EventDeleted:
    """Delete an event together with its attendees and service bookings."""
    creator = resolver.resolve(request, creator_clerk_id)
    await EventService.delete_event(event_id, creator)
    return EventDeleted(deleted_id=event_id)


@router.patch("/{event_id}/service-status", response_model=EventEnvelope)
async def set_service_status(
    event_id: int,
    toggle: ServiceToggle,
    request: Request,
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> EventEnvelope:
    """Pause or resume bookings on a service listing."""
    creator = resolver.resolve(request, toggle.creator_clerk_id)
    event = await EventService.set_service_enabled(event_id, creator, toggle.enabled)
    return EventEnvelope(event=event)


@router.post("/{event_id}/join", response_model=JoinResult, status_code=status.HTTP_201_CREATED)
async def join_event(
    event_id: int,
    details: JoinRequest,
    request: Request,
    response: Response,
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> JoinResult:
    """Join a free event.  Joining again is harmless and returns 200."""
    user_id = resolver.resolve(request, details.clerk_user_id)
    attendee, already_joined = await EventService.join_event(event_id, user_id, details)
    if already_joined:
        response.status_code = status.HTTP_200_OK
    return JoinResult(already_joined=already_joined, attendee=attendee)


@router.get("/{event_id}/joined", response_model=JoinedStatus)
async def is_joined(
    event_id: int,
    request: Request,
    clerk_user_id: Optional[str] = Query(None, alias="clerkUserId"),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> JoinedStatus:
    user_id = resolver.resolve(request, clerk_user_id)
    return JoinedStatus(joined=await EventService.is_joined(event_id, user_id))
