"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

PROPERTY_TYPES = ("apartment", "house", "studio", "other")


@dataclass(frozen=True)
class ListingDraft:
    """Partial listing produced by extraction or supplied as structured input."""

    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[int] = None
    location: Optional[str] = None
    property_type: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    image_url: Optional[str] = None
    furnished: Optional[bool] = None
    contact_info: Optional[str] = None


@dataclass(frozen=True)
class Listing:
    """Persisted rental listing. Only stores construct these."""

    id: int
    title: str
    description: str
    price: int
    location: str
    property_type: str
    bedrooms: int
    bathrooms: int
    image_url: str
    furnished: bool
    contact_info: str

    @classmethod
    def from_draft(cls, listing_id: int, draft: ListingDraft) -> "Listing":
        return cls(
            id=listing_id,
            title=draft.title,
            description=draft.description,
            price=draft.price,
            location=draft.location,
            property_type=draft.property_type,
            bedrooms=draft.bedrooms,
            bathrooms=draft.bathrooms,
            image_url=draft.image_url,
            furnished=draft.furnished,
            contact_info=draft.contact_info,
        )

    def to_draft(self) -> ListingDraft:
        return ListingDraft(
            title=self.title,
            description=self.description,
            price=self.price,
            location=self.location,
            property_type=self.property_type,
            bedrooms=self.bedrooms,
            bathrooms=self.bathrooms,
            image_url=self.image_url,
            furnished=self.furnished,
            contact_info=self.contact_info,
        )


@dataclass(frozen=True)
class ListingUpdate:
    """Partial update for a listing. ``None`` leaves a field unchanged."""

    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[int] = None
    location: Optional[str] = None
    property_type: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    image_url: Optional[str] = None
    furnished: Optional[bool] = None
    contact_info: Optional[str] = None

    def apply_to(self, draft: ListingDraft) -> ListingDraft:
        """Return ``draft`` with every supplied field of this update merged in."""

        def pick(new, old):
            return old if new is None else new

        return ListingDraft(
            title=pick(self.title, draft.title),
            description=pick(self.description, draft.description),
            price=pick(self.price, draft.price),
            location=pick(self.location, draft.location),
            property_type=pick(self.property_type, draft.property_type),
            bedrooms=pick(self.bedrooms, draft.bedrooms),
            bathrooms=pick(self.bathrooms, draft.bathrooms),
            image_url=pick(self.image_url, draft.image_url),
            furnished=pick(self.furnished, draft.furnished),
            contact_info=pick(self.contact_info, draft.contact_info),
        )


@dataclass(frozen=True)
class MonitoredGroup:
    """A chat group registered as a listing source."""

    id: int
    name: str
    invite_link: str
    is_active: bool
    last_scraped: datetime


@dataclass(frozen=True)
class InboundMessage:
    """Minimal message context extracted from a webhook batch."""

    type: str
    body: Optional[str]
    sender: Optional[str] = None
    message_id: Optional[str] = None


@dataclass(frozen=True)
class WebhookResult:
    """Outcome of one webhook delivery."""

    accepted: bool
    received: int = 0
    skipped: int = 0
    listings: list[Listing] = field(default_factory=list)


@dataclass(frozen=True)
class SendResult:
    """Outcome of an outbound operation against a group."""

    success: bool
    message: str
    code: Optional[str] = None
