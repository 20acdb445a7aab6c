"""
SQLite database integration and simple migration system.

This module provides functions for obtaining a database connection
(``get_connection``), running a read-check-write sequence atomically
(``transaction``), applying migrations on application start
(``init_db``) and small helpers for the JSON columns used to keep
document-shaped data (profiles, locations, tags) alongside the
relational columns used for filtering.

The migration mechanism stores applied migration versions in the
``migrations`` table and executes new migrations in order.
"""

import json
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from .config import settings


def get_database_path() -> str:
    """Compute the path to the SQLite database file.

    If ``settings.database_url`` is an absolute path, use it directly.
    Otherwise resolve it relative to the project root.
    """
    db_url = settings.database_url
    if os.path.isabs(db_url):
        return db_url
    base_dir = Path(__file__).resolve().parent.parent.parent  # social_events_api/
    return str((base_dir / db_url).resolve())


def get_connection() -> sqlite3.Connection:
    """Create and return a new SQLite connection.

    Rows are returned as ``sqlite3.Row`` so columns can be accessed by
    name.  Timestamps are stored as ISO strings and returned unparsed.
    """
    conn = sqlite3.connect(get_database_path())
    conn.row_factory = sqlite3.Row
    # Foreign keys are off by default in SQLite and must be enabled per
    # connection for the ON DELETE CASCADE clauses below to apply.
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_cursor() -> Iterator[sqlite3.Cursor]:
    """Context manager that yields a cursor and closes the connection on exit."""
    conn = get_connection()
    try:
        yield conn.cursor()
        conn.commit()
    finally:
        conn.close()


@contextmanager
def transaction() -> Iterator[sqlite3.Connection]:
    """Yield a connection holding the database write lock.

    ``BEGIN IMMEDIATE`` takes the write lock up front, so a row read
    inside the block cannot change before the block's own write lands.
    The transaction is committed on normal exit and rolled back if the
    block raises.
    """
    conn = get_connection()
    conn.isolation_level = None
    try:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")
    finally:
        conn.close()


def utcnow_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def to_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def from_json(raw: Any, default: Any = None) -> Any:
    """Decode a JSON column, returning ``default`` for NULL or corrupt values."""
    if raw is None or raw == "":
        return default
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return default


def init_db() -> None:
    """Initialise the database and apply pending migrations.

    Creates the ``migrations`` table if it does not exist, checks the
    current schema version, and applies any new migrations defined in
    the ``migrations`` list.  If you add a new migration, append it
    with an incremented version number.
    """
    migrations: list[tuple[int, str]] = [
        # Migration 1: Initial schema
        (
            1,
            """
            -- One row per identity-provider user.  ``clerk`` holds the
            -- provider snapshot and ``profile`` the app-owned profile, both
            -- as JSON documents.  Onboarding progress is kept in plain
            -- columns so it can be read and advanced without decoding.
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                clerk_user_id TEXT NOT NULL UNIQUE,
                clerk TEXT,
                profile TEXT NOT NULL DEFAULT '{}',
                onboarding_step TEXT NOT NULL DEFAULT 'none',
                onboarding_completed INTEGER NOT NULL DEFAULT 0,
                is_deleted INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP,
                updated_at TIMESTAMP,
                deleted_at TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                emoji TEXT NOT NULL DEFAULT '',
                creator_clerk_id TEXT NOT NULL,
                kind TEXT NOT NULL DEFAULT 'free',
                price_cents INTEGER,
                attendance INTEGER,
                timezone TEXT NOT NULL DEFAULT '',
                starts_at TIMESTAMP,
                date TEXT NOT NULL DEFAULT '',
                time TEXT NOT NULL DEFAULT '',
                tags TEXT NOT NULL DEFAULT '[]',
                visibility TEXT NOT NULL DEFAULT 'public',
                status TEXT NOT NULL DEFAULT 'active',
                location TEXT NOT NULL,
                lat REAL NOT NULL,
                lng REAL NOT NULL,
                country_code TEXT NOT NULL,
                admin1 TEXT NOT NULL DEFAULT '',
                city_key TEXT NOT NULL,
                created_at TIMESTAMP,
                updated_at TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS event_attendees (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                event_id INTEGER NOT NULL,
                clerk_id TEXT NOT NULL,
                name TEXT NOT NULL DEFAULT '',
                email TEXT NOT NULL DEFAULT '',
                image_url TEXT NOT NULL DEFAULT '',
                joined_at TIMESTAMP,
                UNIQUE(event_id, clerk_id),
                FOREIGN KEY(event_id) REFERENCES events(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS service_bookings (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                event_id INTEGER NOT NULL,
                when_iso TEXT NOT NULL,
                customer_clerk_id TEXT NOT NULL,
                customer_name TEXT NOT NULL DEFAULT '',
                customer_email TEXT NOT NULL DEFAULT '',
                notes TEXT NOT NULL DEFAULT '',
                created_at TIMESTAMP,
                FOREIGN KEY(event_id) REFERENCES events(id) ON DELETE CASCADE
            );
            """,
        ),

        # Migration 2: indices for the list/filter queries
        (
            2,
            """
            CREATE INDEX IF NOT EXISTS idx_events_creator ON events(creator_clerk_id);
            CREATE INDEX IF NOT EXISTS idx_events_city_key ON events(country_code, city_key);
            CREATE INDEX IF NOT EXISTS idx_event_attendees_clerk_id ON event_attendees(clerk_id);
            CREATE INDEX IF NOT EXISTS idx_service_bookings_event_id ON service_bookings(event_id);
            """,
        ),
    ]

    with get_cursor() as cursor:
        cursor.execute(
            "CREATE TABLE IF NOT EXISTS migrations (version INTEGER PRIMARY KEY)"
        )
        cursor.execute("SELECT MAX(version) as version FROM migrations")
        row = cursor.fetchone()
        current_version = row["version"] if row and row["version"] is not None else 0

        for version, sql in migrations:
            if version > current_version:
                cursor.executescript(sql)
                cursor.execute(
                    "INSERT INTO migrations (version) VALUES (?)", (version,)
                )
                current_version = version
