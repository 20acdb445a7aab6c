"""
Business logic for user records.

A user record is created the first time the API hears about a user:
either from the identity provider's sync hook or, under the upsert
policy, from the first onboarding or profile call.  Records are never
hard-deleted; ``user.deleted`` notifications only set ``is_deleted``.
"""

import logging
import sqlite3
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..core.config import settings
from ..core.db import from_json, get_connection, to_json, transaction, utcnow_iso
from ..core.errors import ConflictError, NotFoundError, ServiceError
from ..schemas.onboarding import OnboardingState
from ..schemas.user import IdentityEvent, PhotoList, ProfileRead, UserRead


logger = logging.getLogger(__name__)


def default_profile() -> Dict[str, Any]:
    return {
        "firstName": None,
        "lastName": None,
        "about": None,
        "gender": None,
        "age": None,
        "interests": [],
        "photos": [],
        "location": None,
    }


def normalize_photos(raw: Any) -> List[Dict[str, Any]]:
    """Photo entries as ``{url, key, uploadedAt}`` dicts.

    Older records hold bare URL strings; both shapes are accepted and
    anything without a usable URL is dropped.
    """
    if not isinstance(raw, list):
        return []
    photos = []
    for item in raw:
        if isinstance(item, str) and item.strip():
            photos.append({"url": item.strip(), "key": None, "uploadedAt": None})
        elif isinstance(item, dict) and isinstance(item.get("url"), str) and item["url"].strip():
            key = item.get("key") if isinstance(item.get("key"), str) else None
            photos.append({"url": item["url"].strip(), "key": key, "uploadedAt": item.get("uploadedAt")})
    return photos


def primary_email(data: Dict[str, Any]) -> Optional[str]:
    """Pick the primary address from an identity payload, else the first one."""
    emails = data.get("email_addresses")
    if not isinstance(emails, list):
        return None
    primary_id = data.get("primary_email_address_id")
    for entry in emails:
        if isinstance(entry, dict) and entry.get("id") == primary_id and entry.get("email_address"):
            return entry["email_address"]
    for entry in emails:
        if isinstance(entry, dict) and entry.get("email_address"):
            return entry["email_address"]
    return None


def _as_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


class UserService:
    """Reads and writes user records."""

    @staticmethod
    def _insert_defaults(conn: sqlite3.Connection, clerk_user_id: str) -> None:
        now = utcnow_iso()
        conn.execute(
            """
            INSERT INTO users (clerk_user_id, profile, onboarding_step, onboarding_completed,
                               is_deleted, created_at, updated_at)
            VALUES (?, ?, 'none', 0, 0, ?, ?)
            """,
            (clerk_user_id, to_json(default_profile()), now, now),
        )

    @classmethod
    def load_or_create(cls, conn: sqlite3.Connection, clerk_user_id: str) -> Tuple[sqlite3.Row, bool]:
        """Return the user's row, inserting a default record if there is none.

        Must be called inside ``core.db.transaction`` so the returned row
        stays current until the caller's write.  Soft-deleted users are
        not resurrected.
        """
        row = conn.execute("SELECT * FROM users WHERE clerk_user_id = ?", (clerk_user_id,)).fetchone()
        created = False
        if row is None:
            cls._insert_defaults(conn, clerk_user_id)
            logger.info("Created user record for %s", clerk_user_id)
            row = conn.execute("SELECT * FROM users WHERE clerk_user_id = ?", (clerk_user_id,)).fetchone()
            created = True
        if row["is_deleted"]:
            raise ConflictError("User account has been deleted")
        return row, created

    @classmethod
    async def get_user_row(cls, clerk_user_id: str) -> Optional[sqlite3.Row]:
        """Return the live (not soft-deleted) record or ``None``."""
        conn = get_connection()
        try:
            return conn.execute(
                "SELECT * FROM users WHERE clerk_user_id = ? AND is_deleted = 0",
                (clerk_user_id,),
            ).fetchone()
        finally:
            conn.close()

    @classmethod
    async def get_user(cls, clerk_user_id: str) -> Optional[UserRead]:
        row = await cls.get_user_row(clerk_user_id)
        if row is None:
            return None
        return UserRead(clerk_user_id=row["clerk_user_id"], profile=from_json(row["profile"], {}))

    @classmethod
    async def lookup_many(cls, clerk_user_ids: Iterable[str]) -> Dict[str, sqlite3.Row]:
        """Map user id -> row for the given ids; unknown ids are absent."""
        ids = list(dict.fromkeys(clerk_user_ids))
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        conn = get_connection()
        try:
            rows = conn.execute(
                f"SELECT * FROM users WHERE is_deleted = 0 AND clerk_user_id IN ({placeholders})",
                tuple(ids),
            ).fetchall()
            return {row["clerk_user_id"]: row for row in rows}
        finally:
            conn.close()

    @classmethod
    async def sync_identity(cls, event: IdentityEvent) -> Dict[str, Any]:
        """Apply an identity-provider notification.

        ``user.created`` / ``user.updated`` replace the ``clerk`` snapshot
        and create the record with defaults on first sight;
        ``user.deleted`` soft-deletes.  Other types are acknowledged and
        ignored.
        """
        data = event.data
        clerk_user_id = _as_text(data.get("id"))
        now = utcnow_iso()

        if event.type in ("user.created", "user.updated"):
            if not clerk_user_id:
                raise ServiceError("Missing user id", field="data.id")
            snapshot = {
                "email": primary_email(data),
                "firstName": data.get("first_name"),
                "lastName": data.get("last_name"),
                "imageUrl": data.get("image_url"),
                "createdAt": data.get("created_at"),
            }
            with transaction() as conn:
                exists = conn.execute(
                    "SELECT id FROM users WHERE clerk_user_id = ?", (clerk_user_id,)
                ).fetchone()
                if exists is None:
                    cls._insert_defaults(conn, clerk_user_id)
                conn.execute(
                    """
                    UPDATE users SET clerk = ?, is_deleted = 0, deleted_at = NULL, updated_at = ?
                    WHERE clerk_user_id = ?
                    """,
                    (to_json(snapshot), now, clerk_user_id),
                )
            logger.info("Synced identity %s (%s)", clerk_user_id, event.type)
            return {"ok": True}

        if event.type == "user.deleted":
            if clerk_user_id:
                conn = get_connection()
                try:
                    conn.execute(
                        "UPDATE users SET is_deleted = 1, deleted_at = ?, updated_at = ? WHERE clerk_user_id = ?",
                        (now, now, clerk_user_id),
                    )
                    conn.commit()
                finally:
                    conn.close()
                logger.info("Soft-deleted user %s", clerk_user_id)
            return {"ok": True}

        return {"ok": True, "ignored": event.type}

    @classmethod
    async def get_profile(cls, clerk_user_id: str) -> ProfileRead:
        """Return the profile card, creating an empty record if needed."""
        with transaction() as conn:
            row, _ = cls.load_or_create(conn, clerk_user_id)
        profile = from_json(row["profile"], {}) or {}
        clerk = from_json(row["clerk"], {}) or {}

        first_name = _as_text(profile.get("firstName")) or _as_text(clerk.get("firstName"))
        last_name = _as_text(profile.get("lastName")) or _as_text(clerk.get("lastName"))
        name = f"{first_name} {last_name}".strip()

        def _strings(value: Any) -> List[str]:
            return [v for v in value if isinstance(v, str)] if isinstance(value, list) else []

        return ProfileRead(
            clerk_user_id=clerk_user_id,
            name=name or "Your Name",
            username=_as_text(profile.get("username")),
            about=_as_text(profile.get("about")),
            interests=_strings(profile.get("interests")),
            languages=_strings(profile.get("languages")),
            photos=[p["url"] for p in normalize_photos(profile.get("photos"))],
            onboarding=OnboardingState.from_row(row),
        )

    @classmethod
    def _save_photos(cls, conn: sqlite3.Connection, row: sqlite3.Row, photos: List[Dict[str, Any]]) -> None:
        profile = from_json(row["profile"], {}) or {}
        profile["photos"] = photos
        conn.execute(
            "UPDATE users SET profile = ?, updated_at = ? WHERE clerk_user_id = ?",
            (to_json(profile), utcnow_iso(), row["clerk_user_id"]),
        )

    @classmethod
    async def add_photo(cls, clerk_user_id: str, url: str, key: Optional[str]) -> PhotoList:
        """Append a photo reference uploaded through the storage provider."""
        url = url.strip()
        if not url:
            raise ServiceError("url is required", field="url")
        limit = settings.onboarding_max_photos
        with transaction() as conn:
            row, _ = cls.load_or_create(conn, clerk_user_id)
            photos = normalize_photos((from_json(row["profile"], {}) or {}).get("photos"))
            if len(photos) >= limit:
                raise ServiceError(f"Max {limit} photos allowed", field="photos")
            photos.append({"url": url, "key": key, "uploadedAt": utcnow_iso()})
            cls._save_photos(conn, row, photos)
        logger.info("User %s added a photo (%d total)", clerk_user_id, len(photos))
        urls = [p["url"] for p in photos]
        return PhotoList(photos=urls, count=len(urls))

    @classmethod
    async def delete_photo(cls, clerk_user_id: str, uri: str) -> Tuple[PhotoList, Dict[str, Any]]:
        """Remove a photo reference by URL.

        Returns the remaining photos and the removed entry, whose ``key``
        the caller can use to delete the file from the storage provider.
        """
        uri = uri.strip()
        if not uri:
            raise ServiceError("Missing uri", field="uri")
        minimum = settings.profile_min_photos
        with transaction() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE clerk_user_id = ? AND is_deleted = 0", (clerk_user_id,)
            ).fetchone()
            profile = from_json(row["profile"], {}) if row is not None else {}
            photos = normalize_photos((profile or {}).get("photos"))
            target = next((p for p in photos if p["url"] == uri), None)
            if target is None:
                raise NotFoundError("Photo not found")
            if len(photos) <= minimum:
                raise ServiceError(f"Keep at least {minimum} photos", field="photos")
            remaining = [p for p in photos if p is not target]
            cls._save_photos(conn, row, remaining)
        logger.info("User %s removed a photo (%d left)", clerk_user_id, len(remaining))
        urls = [p["url"] for p in remaining]
        return PhotoList(photos=urls, count=len(urls)), target
