"""
Caller identity resolution.

Every route that acts on behalf of an end user needs to know *which*
user that is.  Two deployment modes are supported and represented by
two ``IdentityResolver`` implementations:

* ``SessionIdentityResolver`` trusts a signed session token sent as
  ``Authorization: Bearer <token>``.  The token's ``sub`` claim is the
  user id.  Tokens are HS256 JWTs signed with ``settings.secret_key``.
* ``ApiKeyIdentityResolver`` trusts a shared secret sent in the
  ``x-api-key`` header and takes the user id from an explicit
  parameter supplied by the (server-side) caller.

``get_identity_resolver`` picks the implementation from
``settings.identity_mode`` and is meant to be used as a FastAPI
dependency.  Routes then call ``resolver.resolve(request, claimed_id)``
where ``claimed_id`` is the ``clerkUserId`` (or ``creatorClerkId``)
sent with the request.
"""

import base64
import hashlib
import hmac
import json
import logging
import time
from typing import Dict, Optional

from fastapi import HTTPException, Request, status

from .config import settings


logger = logging.getLogger(__name__)


def _b64_url_encode(data: bytes) -> str:
    """Base64-url encode bytes without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64_url_decode(data: str) -> bytes:
    """Decode base64-url encoded string, adding padding if necessary."""
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(message: bytes, secret: str) -> bytes:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def create_access_token(data: Dict[str, str], expires_delta: Optional[int] = None) -> str:
    """Create a signed session token with the given claims.

    The payload is extended with an ``exp`` field (UNIX timestamp).
    The token has the form ``header.payload.signature`` with each part
    base64url encoded.

    Parameters
    ----------
    data : dict
        Claims to embed in the token, at least ``{"sub": <user id>}``.
    expires_delta : Optional[int]
        Lifetime of the token in seconds.  Defaults to
        ``settings.access_token_expire_minutes * 60``.
    """
    to_encode = data.copy()
    exp_seconds = expires_delta or settings.access_token_expire_minutes * 60
    to_encode["exp"] = int(time.time()) + exp_seconds
    header = {"alg": settings.algorithm, "typ": "JWT"}
    header_b64 = _b64_url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_b64 = _b64_url_encode(json.dumps(to_encode, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    signature_b64 = _b64_url_encode(_sign(signing_input, settings.secret_key))
    return f"{header_b64}.{payload_b64}.{signature_b64}"


def decode_access_token(token: str) -> Optional[Dict[str, str]]:
    """Verify and decode a session token.

    Returns the payload when the signature is valid and the token has
    not expired, otherwise ``None``.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return None
    header_b64, payload_b64, signature_b64 = parts
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    try:
        actual_sig = _b64_url_decode(signature_b64)
        if not hmac.compare_digest(_sign(signing_input, settings.secret_key), actual_sig):
            return None
        data = json.loads(_b64_url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    try:
        if int(data.get("exp", 0)) < int(time.time()):
            return None
    except (TypeError, ValueError):
        return None
    return data


def _unauthorized(detail: str = "Unauthorized") -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class IdentityResolver:
    """Resolve the end user a request acts on behalf of."""

    mode = ""

    def authenticate(self, request: Request) -> None:
        """Reject requests that do not come from an authenticated client."""
        raise NotImplementedError

    def resolve(self, request: Request, claimed_user_id: Optional[str] = None) -> str:
        """Return the caller's user id or raise HTTP 401."""
        raise NotImplementedError


class SessionIdentityResolver(IdentityResolver):
    """Identity from a signed bearer token."""

    mode = "session"

    def _subject(self, request: Request) -> str:
        header = request.headers.get("authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise _unauthorized("Not authenticated")
        payload = decode_access_token(token.strip())
        subject = str((payload or {}).get("sub") or "").strip()
        if not subject:
            logger.warning("Rejected invalid or expired session token")
            raise _unauthorized("Invalid or expired token")
        return subject

    def authenticate(self, request: Request) -> None:
        self._subject(request)

    def resolve(self, request: Request, claimed_user_id: Optional[str] = None) -> str:
        subject = self._subject(request)
        claimed = (claimed_user_id or "").strip()
        if claimed and claimed != subject:
            logger.warning("Session user %s tried to act as %s", subject, claimed)
            raise _unauthorized("Identity mismatch")
        return subject


class ApiKeyIdentityResolver(IdentityResolver):
    """Identity from a shared secret plus an explicit user id."""

    mode = "api_key"

    def authenticate(self, request: Request) -> None:
        expected = settings.api_key
        got = request.headers.get("x-api-key", "")
        if not expected or not hmac.compare_digest(got.encode("utf-8"), expected.encode("utf-8")):
            raise _unauthorized()

    def resolve(self, request: Request, claimed_user_id: Optional[str] = None) -> str:
        self.authenticate(request)
        claimed = (claimed_user_id or "").strip()
        if not claimed:
            raise _unauthorized("clerkUserId is required")
        return claimed


_RESOLVERS: Dict[str, IdentityResolver] = {
    SessionIdentityResolver.mode: SessionIdentityResolver(),
    ApiKeyIdentityResolver.mode: ApiKeyIdentityResolver(),
}


def get_identity_resolver() -> IdentityResolver:
    """Dependency returning the resolver configured by ``IDENTITY_MODE``."""
    try:
        return _RESOLVERS[settings.identity_mode]
    except KeyError:
        raise RuntimeError(f"Unknown IDENTITY_MODE {settings.identity_mode!r}") from None


def require_client(request: Request) -> None:
    """Dependency for routes that need an authenticated client but no user."""
    get_identity_resolver().authenticate(request)
