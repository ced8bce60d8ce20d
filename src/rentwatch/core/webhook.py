"""Helpers for WhatsApp Cloud API webhook deliveries.

Payload shape:
    {"object": "whatsapp_business_account",
     "entry": [{"changes": [{"value": {"messages": [
         {"type": "text", "text": {"body": "..."}, "from": "...", "id": "..."}
     ]}}]}]}
"""

from __future__ import annotations

import hmac
from typing import Any, List, Optional

from rentwatch.core.models import InboundMessage

WEBHOOK_OBJECT = "whatsapp_business_account"
SUBSCRIBE_MODE = "subscribe"


def verify_webhook(
    mode: Optional[str],
    token: Optional[str],
    challenge: Optional[str],
    expected_token: str,
) -> Optional[str]:
    """Return the challenge to echo back, or None to reject the subscription."""

    if mode != SUBSCRIBE_MODE or not token or not expected_token:
        return None
    if not hmac.compare_digest(token.encode("utf-8"), expected_token.encode("utf-8")):
        return None
    return challenge


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _to_inbound(raw: Any) -> Optional[InboundMessage]:
    if not isinstance(raw, dict):
        return None
    message_type = str(raw.get("type") or "unknown")
    body = None
    if message_type == "text":
        text = raw.get("text")
        if isinstance(text, dict) and isinstance(text.get("body"), str):
            body = text["body"]
    return InboundMessage(
        type=message_type,
        body=body,
        sender=raw.get("from"),
        message_id=raw.get("id"),
    )


def parse_webhook_messages(payload: Any) -> Optional[List[InboundMessage]]:
    """Flatten a webhook payload into messages, in delivery order.

    Returns None when the payload is not a WhatsApp business-account event.
    """

    if not isinstance(payload, dict) or payload.get("object") != WEBHOOK_OBJECT:
        return None

    messages: List[InboundMessage] = []
    for entry in _as_list(payload.get("entry")):
        if not isinstance(entry, dict):
            continue
        for change in _as_list(entry.get("changes")):
            value = change.get("value") if isinstance(change, dict) else None
            if not isinstance(value, dict):
                continue
            for raw in _as_list(value.get("messages")):
                message = _to_inbound(raw)
                if message is not None:
                    messages.append(message)
    return messages
