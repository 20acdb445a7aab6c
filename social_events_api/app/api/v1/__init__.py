"""
Version 1 of the API, mounted at ``/api/v1``.

Request and response bodies use camelCase keys; see
``schemas.common.ApiModel``.
"""
