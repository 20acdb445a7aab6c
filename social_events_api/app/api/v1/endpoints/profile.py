"""
Profile endpoints for API v1.

The profile card shown in the app plus photo management.  Files are
uploaded straight to the storage provider by the client; these routes
only record or drop the resulting references.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Request, Response

from social_events_api.app.core.security import IdentityResolver, get_identity_resolver
from social_events_api.app.schemas.user import PhotoAdd, PhotoDelete, PhotoList, ProfileRead
from social_events_api.app.services.user_service import UserService


logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=ProfileRead)
async def get_profile(
    request: Request,
    response: Response,
    clerk_user_id: Optional[str] = Query(None, alias="clerkUserId"),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> ProfileRead:
    """Return the caller's profile, creating an empty one on first use."""
    user_id = resolver.resolve(request, clerk_user_id)
    response.headers["Cache-Control"] = "no-store"
    return await UserService.get_profile(user_id)


@router.post("/photos", response_model=PhotoList)
async def add_photo(
    payload: PhotoAdd,
    request: Request,
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> PhotoList:
    user_id = resolver.resolve(request, payload.clerk_user_id)
    return await UserService.add_photo(user_id, payload.url, payload.key)


@router.delete("/photos", response_model=PhotoList)
async def delete_photo(
    request: Request,
    payload: Optional[PhotoDelete] = Body(None),
    uri: str = Query(""),
    clerk_user_id: Optional[str] = Query(None, alias="clerkUserId"),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> PhotoList:
    """Remove a photo by URL, given in the body (``{uri}``) or as ``?uri=``."""
    claimed = (payload.clerk_user_id if payload else "") or clerk_user_id
    user_id = resolver.resolve(request, claimed)
    photos, removed = await UserService.delete_photo(user_id, (payload.uri if payload else "") or uri)
    if removed.get("key"):
        logger.info("Photo %s of user %s can be purged from storage", removed["key"], user_id)
    return photos
