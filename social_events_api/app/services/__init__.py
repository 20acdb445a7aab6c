"""
Service layer abstraction.

Each service encapsulates business logic for a domain and talks to
SQLite through ``core.db``.  API handlers stay thin: they resolve the
caller's identity and hand validated payloads to a service.
"""
