"""
Pydantic schema definitions for API payloads.

Each domain (onboarding, events, bookings, users) defines its own
Pydantic models for request and response bodies.  JSON keys are
camelCase on the wire and snake_case in Python; see ``common.ApiModel``.
"""
