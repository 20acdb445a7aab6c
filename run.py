"""Start the Social Events API with Uvicorn.

Host and port are read from the environment variables ``API_HOST`` and
``API_PORT`` (defaults ``0.0.0.0`` and ``8000``).  Other settings such
as ``DATABASE_URL`` or ``IDENTITY_MODE`` are read by
``social_events_api.app.core.config``.

Usage:
    python run.py
"""
import os

import uvicorn

from social_events_api.app.core.config import settings


def main() -> None:
    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))
    uvicorn.run(
        "social_events_api.app.main:app",
        host=host,
        port=port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
