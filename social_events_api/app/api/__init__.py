"""
HTTP layer of the Social Events API.

Routes are grouped by API version (``v1``); each version exposes a
``router`` that ``app.main`` mounts under ``/api/<version>``.
"""
