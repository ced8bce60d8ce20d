"""In-memory storage adapters.

Implements the core ListingStorePort and GroupRegistryPort with plain dicts.
Useful for tests and throwaway runs; nothing survives a restart.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional

from rentwatch.core.models import Listing, ListingDraft, ListingUpdate, MonitoredGroup
from rentwatch.core.validator import validate_listing_fields


class InMemoryListingStore:
    """Dict-backed listing store satisfying the ListingStorePort contract."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listings: Dict[int, Listing] = {}
        # Ids keep growing after deletes, so an id is never handed out twice.
        self._next_id = 1

    def get_all(self) -> List[Listing]:
        with self._lock:
            return list(self._listings.values())

    def get_by_id(self, listing_id: int) -> Optional[Listing]:
        with self._lock:
            return self._listings.get(listing_id)

    def create(self, draft: ListingDraft) -> Listing:
        validate_listing_fields(draft)
        with self._lock:
            listing = Listing.from_draft(self._next_id, draft)
            self._listings[listing.id] = listing
            self._next_id += 1
        return listing

    def update(self, listing_id: int, changes: ListingUpdate) -> Optional[Listing]:
        with self._lock:
            current = self._listings.get(listing_id)
            if current is None:
                return None
            merged = changes.apply_to(current.to_draft())
            validate_listing_fields(merged)
            updated = Listing.from_draft(listing_id, merged)
            self._listings[listing_id] = updated
        return updated

    def delete(self, listing_id: int) -> bool:
        with self._lock:
            return self._listings.pop(listing_id, None) is not None


class InMemoryGroupRegistry:
    """Dict-backed registry satisfying the GroupRegistryPort contract."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._groups: Dict[int, MonitoredGroup] = {}
        self._next_id = 1

    def list_groups(self) -> List[MonitoredGroup]:
        with self._lock:
            return list(self._groups.values())

    def get_group(self, group_id: int) -> Optional[MonitoredGroup]:
        with self._lock:
            return self._groups.get(group_id)

    def register(self, name: str, invite_link: str, is_active: bool = True) -> MonitoredGroup:
        with self._lock:
            group = MonitoredGroup(
                id=self._next_id,
                name=name,
                invite_link=invite_link,
                is_active=is_active,
                last_scraped=datetime.now(timezone.utc),
            )
            self._groups[group.id] = group
            self._next_id += 1
        return group

    def remove(self, group_id: int) -> bool:
        with self._lock:
            return self._groups.pop(group_id, None) is not None

    def set_active(self, group_id: int, is_active: bool) -> Optional[MonitoredGroup]:
        with self._lock:
            group = self._groups.get(group_id)
            if group is None:
                return None
            group = replace(group, is_active=is_active)
            self._groups[group_id] = group
        return group

    def touch_scraped(self, group_id: int) -> Optional[MonitoredGroup]:
        with self._lock:
            group = self._groups.get(group_id)
            if group is None:
                return None
            now = datetime.now(timezone.utc)
            group = replace(group, last_scraped=max(group.last_scraped, now))
            self._groups[group_id] = group
        return group
