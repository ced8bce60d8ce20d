"""Completeness gates between extraction and persistence."""

from __future__ import annotations

from typing import List

from rentwatch.core.errors import ValidationError
from rentwatch.core.extractor import extract_listing
from rentwatch.core.models import PROPERTY_TYPES, ListingDraft

# Largest value a SQLite INTEGER column can hold.
MAX_STORED_INTEGER = 2**63 - 1


def _non_empty(value) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _non_negative_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= MAX_STORED_INTEGER


def find_invalid_fields(draft: ListingDraft) -> List[str]:
    """Return the names of mandatory fields that are missing or out of range."""

    invalid: List[str] = []
    for name in ("title", "description", "location", "contact_info"):
        if not _non_empty(getattr(draft, name)):
            invalid.append(name)
    if not (_non_negative_int(draft.price) and draft.price > 0):
        invalid.append("price")
    if draft.property_type not in PROPERTY_TYPES:
        invalid.append("property_type")
    for name in ("bedrooms", "bathrooms"):
        if not _non_negative_int(getattr(draft, name)):
            invalid.append(name)
    if not isinstance(draft.image_url, str):
        invalid.append("image_url")
    if not isinstance(draft.furnished, bool):
        invalid.append("furnished")
    return invalid


def is_complete(draft: ListingDraft) -> bool:
    """True when the draft carries every field a persisted listing needs."""

    return not find_invalid_fields(draft)


def is_sendable(text: str) -> bool:
    """Cheap pre-check: does the message look like a listing at all?"""

    draft = extract_listing(text)
    return bool(draft.location and draft.price and draft.contact_info and draft.property_type)


def validate_listing_fields(draft: ListingDraft) -> None:
    """Raise ValidationError naming every invalid field of ``draft``."""

    invalid = find_invalid_fields(draft)
    if invalid:
        raise ValidationError(f"Invalid listing fields: {', '.join(invalid)}", detail=invalid)
