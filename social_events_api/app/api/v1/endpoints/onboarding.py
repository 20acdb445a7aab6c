"""
Onboarding wizard endpoints for API v1.

One POST route per wizard page.  Each validates its page, records the
fields and moves the stored step forward (see
``services.onboarding_service``).  The GET routes let the client decide
where to send the user on launch and prefill the about/interests pages.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from social_events_api.app.core.security import IdentityResolver, get_identity_resolver
from social_events_api.app.schemas.onboarding import (
    AboutRead,
    AboutStep,
    DateOfBirthStep,
    GenderStep,
    InterestsRead,
    InterestsStep,
    NameStep,
    OnboardingStatus,
    OnboardingStepResponse,
    PhotosStep,
)
from social_events_api.app.services.onboarding_service import OnboardingService


router = APIRouter()

_step_route = dict(response_model=OnboardingStepResponse, response_model_exclude_none=True)


@router.post("/name", **_step_route)
async def submit_name(
    payload: NameStep,
    request: Request,
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> OnboardingStepResponse:
    """Store first/last name.  First page of the wizard."""
    user_id = resolver.resolve(request, payload.clerk_user_id)
    return await OnboardingService.submit_name(user_id, payload)


@router.post("/dateOfBirth", **_step_route)
async def submit_date_of_birth(
    payload: DateOfBirthStep,
    request: Request,
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> OnboardingStepResponse:
    """Store the date of birth and the age derived from it (18..100)."""
    user_id = resolver.resolve(request, payload.clerk_user_id)
    return await OnboardingService.submit_date_of_birth(user_id, payload)


@router.post("/gender", **_step_route)
async def submit_gender(
    payload: GenderStep,
    request: Request,
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> OnboardingStepResponse:
    user_id = resolver.resolve(request, payload.clerk_user_id)
    return await OnboardingService.submit_gender(user_id, payload)


@router.post("/interests", **_step_route)
async def submit_interests(
    payload: InterestsStep,
    request: Request,
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> OnboardingStepResponse:
    user_id = resolver.resolve(request, payload.clerk_user_id)
    return await OnboardingService.submit_interests(user_id, payload)


@router.post("/about", **_step_route)
async def submit_about(
    payload: AboutStep,
    request: Request,
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> OnboardingStepResponse:
    user_id = resolver.resolve(request, payload.clerk_user_id)
    return await OnboardingService.submit_about(user_id, payload)


@router.post("/photos", **_step_route)
async def submit_photos(
    payload: PhotosStep,
    request: Request,
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> OnboardingStepResponse:
    """Store the photo references.  Last page; completes onboarding."""
    user_id = resolver.resolve(request, payload.clerk_user_id)
    return await OnboardingService.submit_photos(user_id, payload)


@router.get("/status", response_model=OnboardingStatus)
async def onboarding_status(
    request: Request,
    response: Response,
    clerk_user_id: Optional[str] = Query(None, alias="clerkUserId"),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> OnboardingStatus:
    """Where the client should route the user: ``{completed, step, nextRoute}``."""
    user_id = resolver.resolve(request, clerk_user_id)
    response.headers["Cache-Control"] = "no-store"
    return await OnboardingService.get_status(user_id)


@router.get("/about", response_model=AboutRead)
async def get_about(
    request: Request,
    clerk_user_id: Optional[str] = Query(None, alias="clerkUserId"),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> AboutRead:
    user_id = resolver.resolve(request, clerk_user_id)
    return await OnboardingService.get_about(user_id)


@router.get("/interests", response_model=InterestsRead)
async def get_interests(
    request: Request,
    clerk_user_id: Optional[str] = Query(None, alias="clerkUserId"),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> InterestsRead:
    user_id = resolver.resolve(request, clerk_user_id)
    return await OnboardingService.get_interests(user_id)
