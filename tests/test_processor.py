from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional

import pytest

from rentwatch.adapters.memory_storage import InMemoryGroupRegistry, InMemoryListingStore
from rentwatch.adapters.sqlite_storage import SQLiteStorage
from rentwatch.core.errors import ConfigurationError, GatewayError
from rentwatch.core.models import ListingDraft
from rentwatch.core.processor import ListingProcessor

KREUZBERG = (
    "2 BHK apartment in Kreuzberg, 1200€/month, fully furnished with modern amenities, "
    "contact: +49 123 456789"
)
MITTE = "Studio flat available in Mitte, 800€, unfurnished, WhatsApp: +49987654321"
CHATTER = "Does anyone know a good plumber in Neukölln?"
HUGE_PRICE = "Apartment in Mitte, 99999999999999999999€, contact: +49 1"


class FakeGateway:
    def __init__(self, messages: Optional[list[str]] = None, error: Optional[GatewayError] = None) -> None:
        self.messages = messages or []
        self.error = error
        self.fetched: list[str] = []
        self.since: list[Optional[datetime]] = []
        self.sent: list[tuple[str, str]] = []

    async def send(self, target: str, message: str) -> None:
        if self.error:
            raise self.error
        self.sent.append((target, message))

    async def fetch_messages(self, locator: str, since: Optional[datetime] = None) -> list[str]:
        self.fetched.append(locator)
        self.since.append(since)
        if self.error:
            raise self.error
        return list(self.messages)


def _processor(gateway: Optional[FakeGateway] = None):
    listings = InMemoryListingStore()
    groups = InMemoryGroupRegistry()
    gateway = gateway or FakeGateway()
    return ListingProcessor(listings=listings, groups=groups, gateway=gateway), listings, groups, gateway


def _text(body: str) -> dict:
    return {"type": "text", "text": {"body": body}}


def _payload(*messages: dict) -> dict:
    return {
        "object": "whatsapp_business_account",
        "entry": [{"changes": [{"value": {"messages": list(messages)}}]}],
    }


def test_process_message_creates_listing() -> None:
    processor, listings, _, _ = _processor()
    listing = processor.process_message(KREUZBERG)

    assert listing is not None
    assert listing.id == 1
    assert listing.location == "Kreuzberg"
    assert listing.price == 1200
    assert listing.property_type == "apartment"
    assert listing.bedrooms == 2
    assert listing.furnished is True
    assert listing.contact_info == "+49 123 456789"
    assert listings.get_all() == [listing]


def test_rejected_message_leaves_store_untouched() -> None:
    processor, listings, _, _ = _processor()
    assert processor.process_message(CHATTER) is None
    assert processor.process_message("   ") is None
    assert listings.get_all() == []


def test_duplicate_messages_create_separate_listings() -> None:
    processor, listings, _, _ = _processor()
    first = processor.process_message(MITTE)
    second = processor.process_message(MITTE)
    assert first.id != second.id
    assert len(listings.get_all()) == 2


def test_webhook_processes_text_messages_independently() -> None:
    processor, listings, _, _ = _processor()
    payload = _payload(
        _text(KREUZBERG),
        {"type": "image", "image": {"id": "img-1"}},
        _text(CHATTER),
        _text(MITTE),
    )

    result = asyncio.run(processor.handle_webhook(payload))

    assert result.accepted
    assert result.received == 4
    assert result.skipped == 1
    assert [listing.location for listing in result.listings] == ["Kreuzberg", "Mitte"]
    assert len(listings.get_all()) == 2


def test_webhook_rejects_foreign_payload() -> None:
    processor, listings, _, _ = _processor()
    result = asyncio.run(processor.handle_webhook({"object": "instagram", "entry": []}))
    assert not result.accepted
    assert listings.get_all() == []


def test_webhook_with_no_messages_is_accepted() -> None:
    processor, _, _, _ = _processor()
    result = asyncio.run(processor.handle_webhook(_payload()))
    assert result.accepted
    assert result.received == 0
    assert result.listings == []


def test_scrape_inactive_group_does_nothing() -> None:
    gateway = FakeGateway(messages=[KREUZBERG])
    processor, listings, groups, _ = _processor(gateway)
    group = processor.register_group("Berlin Flats", "group-1", is_active=False)

    assert asyncio.run(processor.scrape_group(group.id)) == 0
    assert gateway.fetched == []
    assert groups.get_group(group.id).last_scraped == group.last_scraped
    assert listings.get_all() == []


def test_scrape_counts_new_listings() -> None:
    gateway = FakeGateway(messages=[KREUZBERG, CHATTER, MITTE])
    processor, listings, groups, _ = _processor(gateway)
    group = processor.register_group("Berlin Flats", "group-1")

    assert asyncio.run(processor.scrape_group(group.id)) == 2
    assert gateway.fetched == ["group-1"]
    assert len(listings.get_all()) == 2
    assert groups.get_group(group.id).last_scraped >= group.last_scraped


def test_scrape_without_listings_still_advances_timestamp() -> None:
    gateway = FakeGateway(messages=[])
    processor, _, groups, _ = _processor(gateway)
    group = processor.register_group("Berlin Flats", "group-1")
    # Push the stored timestamp back so the advance is observable.
    earlier = group.last_scraped - timedelta(days=1)
    groups._groups[group.id] = replace(group, last_scraped=earlier)

    assert asyncio.run(processor.scrape_group(group.id)) == 0
    assert groups.get_group(group.id).last_scraped > earlier


def test_scrape_fetch_failure_keeps_timestamp() -> None:
    gateway = FakeGateway(error=GatewayError("boom", code="TRANSPORT_ERROR"))
    processor, _, groups, _ = _processor(gateway)
    group = processor.register_group("Berlin Flats", "group-1")

    assert asyncio.run(processor.scrape_group(group.id)) == 0
    assert gateway.fetched == ["group-1"]
    assert groups.get_group(group.id).last_scraped == group.last_scraped


def test_scrape_unknown_group_returns_zero() -> None:
    processor, _, _, gateway = _processor()
    assert asyncio.run(processor.scrape_group(99)) == 0
    assert gateway.fetched == []


def test_send_to_active_group() -> None:
    processor, _, _, gateway = _processor()
    group = processor.register_group("Berlin Flats", "group-1")

    result = asyncio.run(processor.send_to_group(group.id, "Still available?"))

    assert result.success
    assert gateway.sent == [("group-1", "Still available?")]


def test_send_to_inactive_group_skips_gateway() -> None:
    processor, _, _, gateway = _processor()
    group = processor.register_group("Berlin Flats", "group-1")
    processor.set_group_active(group.id, False)

    result = asyncio.run(processor.send_to_group(group.id, "hello"))

    assert not result.success
    assert result.code == "GROUP_INACTIVE"
    assert gateway.sent == []


def test_send_reports_gateway_error_code() -> None:
    gateway = FakeGateway(error=GatewayError("Invalid parameter", code="131009"))
    processor, _, _, _ = _processor(gateway)
    group = processor.register_group("Berlin Flats", "group-1")

    result = asyncio.run(processor.send_to_group(group.id, "hello"))

    assert not result.success
    assert result.code == "131009"
    assert result.message == "Invalid parameter"


def test_send_to_unknown_group_returns_none() -> None:
    processor, _, _, _ = _processor()
    assert asyncio.run(processor.send_to_group(7, "hello")) is None


def test_group_management_round_trip() -> None:
    processor, _, _, _ = _processor()
    group = processor.register_group("Berlin Flats", "group-1")

    assert processor.set_group_active(group.id, False).is_active is False
    assert processor.set_group_active(99, True) is None
    assert processor.list_groups()[0].is_active is False
    assert processor.remove_group(group.id)
    assert not processor.remove_group(group.id)
    assert processor.list_groups() == []


class FlakyListingStore(InMemoryListingStore):
    """Listing store whose first create fails like a broken backend."""

    def __init__(self) -> None:
        super().__init__()
        self.failures = 1

    def create(self, draft: ListingDraft):
        if self.failures:
            self.failures -= 1
            raise RuntimeError("disk I/O error")
        return super().create(draft)


def test_oversized_price_is_rejected_without_breaking_the_batch(tmp_path) -> None:
    storage = SQLiteStorage(str(tmp_path / "rentwatch.db"))
    storage.init_db()
    processor = ListingProcessor(listings=storage, groups=storage, gateway=FakeGateway())

    result = asyncio.run(processor.handle_webhook(_payload(_text(HUGE_PRICE), _text(KREUZBERG))))

    assert result.accepted
    assert [listing.location for listing in result.listings] == ["Kreuzberg"]
    assert [listing.location for listing in storage.get_all()] == ["Kreuzberg"]


def test_store_failure_in_webhook_does_not_stop_siblings() -> None:
    listings = FlakyListingStore()
    processor = ListingProcessor(listings=listings, groups=InMemoryGroupRegistry(), gateway=FakeGateway())

    result = asyncio.run(processor.handle_webhook(_payload(_text(MITTE), _text(KREUZBERG))))

    assert [listing.location for listing in result.listings] == ["Kreuzberg"]
    assert len(listings.get_all()) == 1


def test_store_failure_in_scrape_still_advances_timestamp() -> None:
    gateway = FakeGateway(messages=[MITTE, KREUZBERG])
    groups = InMemoryGroupRegistry()
    processor = ListingProcessor(listings=FlakyListingStore(), groups=groups, gateway=gateway)
    group = processor.register_group("Berlin Flats", "group-1")
    earlier = group.last_scraped - timedelta(days=1)
    groups._groups[group.id] = replace(group, last_scraped=earlier)

    assert asyncio.run(processor.scrape_group(group.id)) == 1
    assert groups.get_group(group.id).last_scraped > earlier


def test_scrape_asks_only_for_messages_since_last_scrape() -> None:
    gateway = FakeGateway(messages=[])
    processor, _, groups, _ = _processor(gateway)
    group = processor.register_group("Berlin Flats", "group-1")

    asyncio.run(processor.scrape_group(group.id))
    asyncio.run(processor.scrape_group(group.id))

    assert gateway.since[0] == group.last_scraped
    assert gateway.since[1] >= gateway.since[0]


def test_local_operations_need_no_gateway() -> None:
    listings = InMemoryListingStore()
    processor = ListingProcessor(listings=listings, groups=InMemoryGroupRegistry())

    group = processor.register_group("Berlin Flats", "group-1")
    assert processor.process_message(KREUZBERG) is not None
    assert asyncio.run(processor.handle_webhook(_payload(_text(MITTE)))).accepted
    assert len(listings.get_all()) == 2

    with pytest.raises(ConfigurationError):
        asyncio.run(processor.scrape_group(group.id))
    with pytest.raises(ConfigurationError):
        asyncio.run(processor.send_to_group(group.id, "hello"))
