"""
Top‑level package for the Social Events API.

The package provides no public exports; all functionality lives in
submodules under ``app`` (``social_events_api.app.main`` builds the
ASGI application).
"""

__all__ = []
