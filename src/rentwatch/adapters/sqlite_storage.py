"""SQLite storage adapter.

Implements the core ListingStorePort and GroupRegistryPort using a simple
SQLite database.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from rentwatch.core.models import Listing, ListingDraft, ListingUpdate, MonitoredGroup
from rentwatch.core.validator import validate_listing_fields

_LISTING_COLUMNS = (
    "title",
    "description",
    "price",
    "location",
    "property_type",
    "bedrooms",
    "bathrooms",
    "image_url",
    "furnished",
    "contact_info",
)


def _row_to_listing(row: sqlite3.Row) -> Listing:
    return Listing(
        id=int(row["id"]),
        title=row["title"],
        description=row["description"],
        price=int(row["price"]),
        location=row["location"],
        property_type=row["property_type"],
        bedrooms=int(row["bedrooms"]),
        bathrooms=int(row["bathrooms"]),
        image_url=row["image_url"],
        furnished=bool(row["furnished"]),
        contact_info=row["contact_info"],
    )


def _row_to_group(row: sqlite3.Row) -> MonitoredGroup:
    return MonitoredGroup(
        id=int(row["id"]),
        name=row["name"],
        invite_link=row["invite_link"],
        is_active=bool(row["is_active"]),
        last_scraped=datetime.fromisoformat(row["last_scraped"]),
    )


def _listing_values(draft: ListingDraft) -> tuple:
    return (
        draft.title,
        draft.description,
        draft.price,
        draft.location,
        draft.property_type,
        draft.bedrooms,
        draft.bathrooms,
        draft.image_url,
        int(draft.furnished),
        draft.contact_info,
    )


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies both storage port contracts."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - listings: structured rental listings
        - monitored_groups: chat groups feeding the pipeline
        """

        with self._connect() as conn:
            # AUTOINCREMENT guarantees ids are never reused after a delete.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS listings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL,
                    price INTEGER NOT NULL,
                    location TEXT NOT NULL,
                    property_type TEXT NOT NULL,
                    bedrooms INTEGER NOT NULL,
                    bathrooms INTEGER NOT NULL,
                    image_url TEXT NOT NULL,
                    furnished INTEGER NOT NULL,
                    contact_info TEXT NOT NULL
                )
                """
            )
            # Fields:
            # - invite_link: opaque locator handed to the gateway
            # - last_scraped: ISO-8601 UTC timestamp of the last scrape attempt
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS monitored_groups (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    invite_link TEXT NOT NULL,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    last_scraped TIMESTAMP NOT NULL
                )
                """
            )

    def get_all(self) -> List[Listing]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM listings ORDER BY id").fetchall()
        return [_row_to_listing(row) for row in rows]

    def get_by_id(self, listing_id: int) -> Optional[Listing]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM listings WHERE id = ?", (listing_id,)).fetchone()
        return _row_to_listing(row) if row else None

    def create(self, draft: ListingDraft) -> Listing:
        """Insert a complete listing and return it with its new id."""

        validate_listing_fields(draft)
        placeholders = ", ".join("?" for _ in _LISTING_COLUMNS)
        with self._connect() as conn:
            cur = conn.execute(
                f"INSERT INTO listings ({', '.join(_LISTING_COLUMNS)}) VALUES ({placeholders})",
                _listing_values(draft),
            )
            listing_id = cur.lastrowid
        return Listing.from_draft(listing_id, draft)

    def update(self, listing_id: int, changes: ListingUpdate) -> Optional[Listing]:
        """Merge ``changes`` over the stored listing inside one write transaction."""

        assignments = ", ".join(f"{column} = ?" for column in _LISTING_COLUMNS)
        with self._connect() as conn:
            # Take the write lock before reading so concurrent merges serialize.
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute("SELECT * FROM listings WHERE id = ?", (listing_id,)).fetchone()
            if row is None:
                return None
            merged = changes.apply_to(_row_to_listing(row).to_draft())
            validate_listing_fields(merged)
            conn.execute(
                f"UPDATE listings SET {assignments} WHERE id = ?",
                (*_listing_values(merged), listing_id),
            )
        return Listing.from_draft(listing_id, merged)

    def delete(self, listing_id: int) -> bool:
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM listings WHERE id = ?", (listing_id,))
            return cur.rowcount > 0

    def list_groups(self) -> List[MonitoredGroup]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM monitored_groups ORDER BY id").fetchall()
        return [_row_to_group(row) for row in rows]

    def get_group(self, group_id: int) -> Optional[MonitoredGroup]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM monitored_groups WHERE id = ?", (group_id,)).fetchone()
        return _row_to_group(row) if row else None

    def register(self, name: str, invite_link: str, is_active: bool = True) -> MonitoredGroup:
        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO monitored_groups (name, invite_link, is_active, last_scraped)
                VALUES (?, ?, ?, ?)
                """,
                (name, invite_link, int(is_active), now.isoformat()),
            )
            group_id = cur.lastrowid
        return MonitoredGroup(
            id=group_id,
            name=name,
            invite_link=invite_link,
            is_active=is_active,
            last_scraped=now,
        )

    def remove(self, group_id: int) -> bool:
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM monitored_groups WHERE id = ?", (group_id,))
            return cur.rowcount > 0

    def set_active(self, group_id: int, is_active: bool) -> Optional[MonitoredGroup]:
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE monitored_groups SET is_active = ? WHERE id = ?",
                (int(is_active), group_id),
            )
            if cur.rowcount == 0:
                return None
            row = conn.execute("SELECT * FROM monitored_groups WHERE id = ?", (group_id,)).fetchone()
        return _row_to_group(row)

    def touch_scraped(self, group_id: int) -> Optional[MonitoredGroup]:
        """Advance last_scraped to now, never moving it backwards."""

        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute("SELECT * FROM monitored_groups WHERE id = ?", (group_id,)).fetchone()
            if row is None:
                return None
            group = _row_to_group(row)
            last_scraped = max(group.last_scraped, datetime.now(timezone.utc))
            conn.execute(
                "UPDATE monitored_groups SET last_scraped = ? WHERE id = ?",
                (last_scraped.isoformat(), group_id),
            )
        return MonitoredGroup(
            id=group.id,
            name=group.name,
            invite_link=group.invite_link,
            is_active=group.is_active,
            last_scraped=last_scraped,
        )
