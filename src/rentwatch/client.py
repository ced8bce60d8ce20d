"""Gateway factory for rentwatch.

The gateway is built once by the process and handed to the processor, so
credentials never live in module globals.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

from rentwatch.adapters.whatsapp_gateway import WhatsAppGateway
from rentwatch.core.config import GatewayConfig
from rentwatch.core.errors import ConfigurationError


def build_gateway(config: GatewayConfig) -> WhatsAppGateway:
    """Create a WhatsApp gateway from environment variables.

    We read WHATSAPP_API_KEY/WHATSAPP_PHONE_NUMBER_ID via python-dotenv to
    keep secrets out of the repo.
    """

    load_dotenv()

    api_key = os.getenv("WHATSAPP_API_KEY")
    phone_number_id = os.getenv("WHATSAPP_PHONE_NUMBER_ID")

    logging.getLogger(__name__).info("Initializing WhatsApp gateway")

    return WhatsAppGateway(api_key, phone_number_id, config)


def webhook_verify_token() -> str:
    """Return the pre-shared webhook verification token."""

    load_dotenv()
    token = os.getenv("WEBHOOK_VERIFY_TOKEN")
    if not token:
        raise ConfigurationError("Missing WEBHOOK_VERIFY_TOKEN in environment")
    return token
