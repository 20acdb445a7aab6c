"""
Top‑level router for version 1 of the API.

This router aggregates domain‑specific routers (onboarding, events,
bookings, profile, users, webhooks) under a unified prefix.  When new
domains are introduced, include their routers here.
"""

from fastapi import APIRouter

from .endpoints import (
    onboarding,
    events,
    bookings,
    profile,
    users,
    webhooks,
)

router = APIRouter()

router.include_router(onboarding.router, prefix="/onboarding", tags=["onboarding"])
router.include_router(events.router, prefix="/events", tags=["events"])
router.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
router.include_router(profile.router, prefix="/profile", tags=["profile"])
router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
