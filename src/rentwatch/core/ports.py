"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for storage and messaging adapters so
that the core can be reused with different backends.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol

from rentwatch.core.models import Listing, ListingDraft, ListingUpdate, MonitoredGroup


class ListingStorePort(Protocol):
    """Listing persistence required by the core pipeline."""

    def get_all(self) -> List[Listing]:
        ...

    def get_by_id(self, listing_id: int) -> Optional[Listing]:
        ...

    def create(self, draft: ListingDraft) -> Listing:
        ...

    def update(self, listing_id: int, changes: ListingUpdate) -> Optional[Listing]:
        ...

    def delete(self, listing_id: int) -> bool:
        ...


class GroupRegistryPort(Protocol):
    """Monitored group bookkeeping required by the core pipeline."""

    def list_groups(self) -> List[MonitoredGroup]:
        ...

    def get_group(self, group_id: int) -> Optional[MonitoredGroup]:
        ...

    def register(self, name: str, invite_link: str, is_active: bool = True) -> MonitoredGroup:
        ...

    def remove(self, group_id: int) -> bool:
        ...

    def set_active(self, group_id: int, is_active: bool) -> Optional[MonitoredGroup]:
        ...

    def touch_scraped(self, group_id: int) -> Optional[MonitoredGroup]:
        ...


class GatewayPort(Protocol):
    """Messaging-provider operations required by the core pipeline."""

    async def send(self, target: str, message: str) -> None:
        ...

    async def fetch_messages(self, locator: str, since: Optional[datetime] = None) -> List[str]:
        ...
