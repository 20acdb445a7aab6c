"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  Defaults are provided for all fields so the
API starts without any configuration in development.  In a
production deployment you should at least set ``EVENT_API_KEY`` (or
``SECRET_KEY`` when running in session mode) and
``IDENTITY_WEBHOOK_SECRET``.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Social Events API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    debug: bool = os.getenv("DEBUG", "false").lower() in {"1", "true", "yes"}
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "")

    # How the caller identity of a request is resolved.  ``api_key``
    # expects a shared secret in the ``x-api-key`` header together with an
    # explicit ``clerkUserId`` parameter; ``session`` expects a signed
    # bearer token whose ``sub`` claim is the user id.
    identity_mode: str = os.getenv("IDENTITY_MODE", "api_key").lower()

    # Shared secret for ``api_key`` mode.  ONBOARDING_API_KEY is accepted
    # for older deployments that configured onboarding separately.
    api_key: str = os.getenv("EVENT_API_KEY", "") or os.getenv("ONBOARDING_API_KEY", "")

    secret_key: str = os.getenv("SECRET_KEY", "change_me")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))
    algorithm: str = os.getenv("ALGORITHM", "HS256")

    # Shared secret presented by the identity provider when it pushes
    # user.created / user.updated / user.deleted notifications.
    identity_webhook_secret: str = os.getenv("IDENTITY_WEBHOOK_SECRET", "")

    # Onboarding limits
    onboarding_max_interests: int = int(os.getenv("ONBOARDING_MAX_INTERESTS", "10"))
    onboarding_min_photos: int = int(os.getenv("ONBOARDING_MIN_PHOTOS", "2"))
    onboarding_max_photos: int = int(os.getenv("ONBOARDING_MAX_PHOTOS", "6"))
    # Minimum number of photos a profile must keep when deleting one.
    profile_min_photos: int = int(os.getenv("PROFILE_MIN_PHOTOS", "2"))

    # Path or connection string for the SQLite database.  If a relative
    # path is provided, it will be resolved relative to the project root
    # by the ``db`` module.
    database_url: str = os.getenv("DATABASE_URL", "social_events.db")


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Because the dataclass
# computes values at class definition time, environment variables should
# be set before importing this module.
settings = Settings()
