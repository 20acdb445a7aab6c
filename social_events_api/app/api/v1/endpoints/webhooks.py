"""
Inbound notifications from the identity provider.

The provider calls ``POST /webhooks/identity`` whenever a user is
created, updated or deleted.  Calls must carry the shared secret from
``IDENTITY_WEBHOOK_SECRET`` in the ``x-webhook-secret`` header.
"""

import hmac
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from social_events_api.app.core.config import settings
from social_events_api.app.schemas.user import IdentityEvent
from social_events_api.app.services.user_service import UserService


logger = logging.getLogger(__name__)

router = APIRouter()


def verify_webhook_secret(request: Request) -> None:
    expected = settings.identity_webhook_secret
    if not expected:
        logger.error("Identity webhook called but IDENTITY_WEBHOOK_SECRET is not set")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Webhook secret not configured")
    got = request.headers.get("x-webhook-secret", "")
    if not hmac.compare_digest(got.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook secret")


@router.post("/identity", dependencies=[Depends(verify_webhook_secret)])
async def identity_webhook(event: IdentityEvent) -> dict:
    return await UserService.sync_identity(event)
