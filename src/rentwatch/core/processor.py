"""Core listing ingestion pipeline.

This module is integration-agnostic. It only relies on ports for storage and
messaging, enabling other providers or storage backends without changes here.

Every inbound message follows the same order:
1) Fast-exit for empty text
2) Cheap sendable check (location, price, contact, property type)
3) Full extraction and completeness gate
4) Persist the listing
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from rentwatch.core.errors import ConfigurationError, GatewayError
from rentwatch.core.extractor import extract_listing
from rentwatch.core.models import Listing, MonitoredGroup, SendResult, WebhookResult
from rentwatch.core.ports import GatewayPort, GroupRegistryPort, ListingStorePort
from rentwatch.core.validator import find_invalid_fields, is_sendable
from rentwatch.core.webhook import parse_webhook_messages

LOGGER = logging.getLogger(__name__)


class ListingProcessor:
    """Orchestrates extraction, validation, persistence, and group state."""

    def __init__(
        self,
        listings: ListingStorePort,
        groups: GroupRegistryPort,
        gateway: Optional[GatewayPort] = None,
    ) -> None:
        self._listings = listings
        self._groups = groups
        self._gateway = gateway

    def _require_gateway(self) -> GatewayPort:
        # Local bookkeeping runs without a provider; only scrape and send need one.
        if self._gateway is None:
            raise ConfigurationError("A gateway is required to reach the messaging provider")
        return self._gateway

    def process_message(self, text: str) -> Optional[Listing]:
        """Turn one raw message into a listing, or drop it silently."""

        if not text or not text.strip():
            return None

        if not is_sendable(text):
            LOGGER.info("Message rejected: no listing information")
            return None

        draft = extract_listing(text)
        invalid = find_invalid_fields(draft)
        if invalid:
            LOGGER.info("Message rejected: missing or invalid %s", ", ".join(invalid))
            return None

        listing = self._listings.create(draft)
        LOGGER.info("Listing %s created: %s", listing.id, listing.title)
        return listing

    def _process_in_batch(self, text: str) -> Optional[Listing]:
        """Run ``process_message`` so one failing message cannot stop its siblings."""

        try:
            return self.process_message(text)
        except Exception:
            LOGGER.exception("Error while processing message")
            return None

    async def handle_webhook(self, payload: Any) -> WebhookResult:
        """Process a pushed batch. Each message is handled independently."""

        messages = parse_webhook_messages(payload)
        if messages is None:
            LOGGER.warning("Webhook payload rejected: unexpected object type")
            return WebhookResult(accepted=False)

        created: List[Listing] = []
        skipped = 0
        for message in messages:
            if message.type != "text" or message.body is None:
                skipped += 1
                LOGGER.info("Skipping non-text message %s (%s)", message.message_id, message.type)
                continue
            listing = self._process_in_batch(message.body)
            if listing is not None:
                created.append(listing)

        LOGGER.info(
            "Webhook processed: messages=%s, skipped=%s, listings=%s",
            len(messages),
            skipped,
            len(created),
        )
        return WebhookResult(accepted=True, received=len(messages), skipped=skipped, listings=created)

    async def scrape_group(self, group_id: int) -> int:
        """Pull messages for one group and return the number of new listings."""

        group = self._groups.get_group(group_id)
        if group is None:
            LOGGER.info("Scrape skipped: group %s not found", group_id)
            return 0
        if not group.is_active:
            LOGGER.info("Scrape skipped: group %s is inactive", group.name)
            return 0

        gateway = self._require_gateway()
        try:
            messages = await gateway.fetch_messages(group.invite_link, since=group.last_scraped)
        except GatewayError as exc:
            # last_scraped stays untouched so the failed attempt is visible.
            LOGGER.error("Failed to fetch messages for group %s: %s", group.name, exc)
            return 0

        created = 0
        for text in messages:
            if self._process_in_batch(text) is not None:
                created += 1

        # "We looked", not "we found": the timestamp advances even with no listings.
        self._groups.touch_scraped(group.id)
        LOGGER.info("Scraped group %s: messages=%s, listings=%s", group.name, len(messages), created)
        return created

    def list_groups(self) -> List[MonitoredGroup]:
        return self._groups.list_groups()

    def register_group(self, name: str, invite_link: str, is_active: bool = True) -> MonitoredGroup:
        group = self._groups.register(name, invite_link, is_active=is_active)
        LOGGER.info("Registered group %s (%s)", group.name, group.id)
        return group

    def remove_group(self, group_id: int) -> bool:
        removed = self._groups.remove(group_id)
        if removed:
            LOGGER.info("Removed group %s", group_id)
        return removed

    def set_group_active(self, group_id: int, is_active: bool) -> Optional[MonitoredGroup]:
        group = self._groups.set_active(group_id, is_active)
        if group is not None:
            LOGGER.info("Group %s is now %s", group.name, "active" if is_active else "inactive")
        return group

    async def send_to_group(self, group_id: int, text: str) -> Optional[SendResult]:
        """Send a text message to a group. Returns None for unknown groups."""

        group = self._groups.get_group(group_id)
        if group is None:
            return None
        if not group.is_active:
            return SendResult(success=False, message="Group is inactive", code="GROUP_INACTIVE")

        gateway = self._require_gateway()
        try:
            await gateway.send(group.invite_link, text)
        except GatewayError as exc:
            LOGGER.error("Failed to send message to group %s: %s", group.name, exc)
            return SendResult(success=False, message=exc.message, code=exc.code)
        return SendResult(success=True, message="Message sent")
