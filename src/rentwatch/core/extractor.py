"""Field extraction from free-text listing messages (core domain).

Supported conventions, e.g.:
    "2 BHK apartment in Kreuzberg, 1200€/month, furnished, contact: +49123456789"
    "Studio flat available in Mitte, 800€, unfurnished, WhatsApp: +49987654321"
"""

from __future__ import annotations

import re
from typing import Optional

from rentwatch.core.models import ListingDraft

DEFAULT_BEDROOMS = 1
DEFAULT_BATHROOMS = 1

# Containment is checked in this order, so "studio" wins over "apartment"
# regardless of where each word appears in the message.
PROPERTY_TYPE_PRIORITY = ("studio", "apartment", "house")

STUDIO_IMAGE_URL = "https://images.unsplash.com/photo-1502672260266-1c1ef2d93688"
DEFAULT_IMAGE_URL = "https://images.unsplash.com/photo-1522708323590-d24dbb6b0267"

_LOCATION_RE = re.compile(r"in\s+([^,]+)", re.IGNORECASE)
# Amounts written with thousands separators ("1,200€") are not prices here.
_PRICE_RE = re.compile(r"(?<![\d.,])(\d+)\s*€")
_BEDROOMS_RE = re.compile(r"(\d+)\s*(?:bhk|bedroom)", re.IGNORECASE)
_CONTACT_RE = re.compile(r"(?:contact|whatsapp|tel|phone):\s*([+\d\s-]+)", re.IGNORECASE)


def _first_group(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    if not match:
        return None
    value = match.group(1).strip()
    return value or None


def extract_location(text: str) -> Optional[str]:
    return _first_group(_LOCATION_RE, text)


def extract_price(text: str) -> Optional[int]:
    raw = _first_group(_PRICE_RE, text)
    return int(raw) if raw is not None else None


def extract_property_type(text: str) -> Optional[str]:
    lowered = text.lower()
    for property_type in PROPERTY_TYPE_PRIORITY:
        if property_type in lowered:
            return property_type
    return None


def extract_bedrooms(text: str) -> int:
    raw = _first_group(_BEDROOMS_RE, text)
    return int(raw) if raw is not None else DEFAULT_BEDROOMS


def extract_furnished(text: str) -> bool:
    # Plain substring test: "unfurnished" also counts as furnished.
    return "furnished" in text.lower()


def extract_contact(text: str) -> Optional[str]:
    return _first_group(_CONTACT_RE, text)


def build_title(bedrooms: Optional[int], property_type: Optional[str], location: Optional[str]) -> str:
    """Compose a title like "2 Bedroom apartment in Kreuzberg"."""

    parts = [
        f"{bedrooms} Bedroom" if bedrooms else "",
        property_type or "Property",
        f"in {location}" if location else "",
    ]
    return " ".join(part for part in parts if part)


def placeholder_image_url(property_type: Optional[str]) -> str:
    return STUDIO_IMAGE_URL if property_type == "studio" else DEFAULT_IMAGE_URL


def extract_listing(text: str) -> ListingDraft:
    """Extract a partial listing from a raw message.

    Extraction never fails: fields that cannot be found stay ``None``, while
    bedrooms and bathrooms fall back to 1 and furnished to False.
    """

    location = extract_location(text)
    property_type = extract_property_type(text)
    bedrooms = extract_bedrooms(text)

    return ListingDraft(
        title=build_title(bedrooms, property_type, location),
        description=text.strip(),
        price=extract_price(text),
        location=location,
        property_type=property_type,
        bedrooms=bedrooms,
        bathrooms=DEFAULT_BATHROOMS,
        image_url=placeholder_image_url(property_type),
        furnished=extract_furnished(text),
        contact_info=extract_contact(text),
    )
