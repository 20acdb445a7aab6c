"""
User endpoints for API v1.
"""

from fastapi import APIRouter, Depends, Query

from social_events_api.app.core.security import require_client
from social_events_api.app.schemas.user import UserLookup
from social_events_api.app.services.user_service import UserService


router = APIRouter()


@router.get("/get-user", response_model=UserLookup, dependencies=[Depends(require_client)])
async def get_user(clerk_user_id: str = Query(..., alias="clerkUserId", min_length=1)) -> UserLookup:
    """Look up a user record.  ``user`` is null when there is none."""
    return UserLookup(user=await UserService.get_user(clerk_user_id.strip()))
