"""Command line entry point for rentwatch.

The HTTP front end that receives webhook pushes lives outside this package;
these commands drive the same core operations from a shell.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import re
import sys
from dataclasses import asdict
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv

from rentwatch import settings
from rentwatch.adapters.memory_storage import InMemoryGroupRegistry, InMemoryListingStore
from rentwatch.adapters.sqlite_storage import SQLiteStorage
from rentwatch.client import build_gateway, webhook_verify_token
from rentwatch.core.errors import ConfigurationError, NotFoundError, RentwatchError
from rentwatch.core.models import Listing, MonitoredGroup
from rentwatch.core.processor import ListingProcessor
from rentwatch.core.webhook import verify_webhook

NAME = "RENTWATCH"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)

# Only these commands talk to the messaging provider.
_GATEWAY_COMMANDS = ("scrape", "send")

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
_BEARER_RE = re.compile(r"(Bearer\s+)[^\s'\",]+", re.IGNORECASE)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    """Mask configured secret values and any bearer token in a log line."""

    def __init__(self, secrets: list[str]) -> None:
        super().__init__(fmt=_LOG_FORMAT, datefmt=_LOG_DATEFMT)
        # Longest first so a secret containing another is masked whole.
        self._secrets = sorted({secret for secret in secrets if secret}, key=len, reverse=True)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        # Authorization headers can surface in httpx debug output.
        return _BEARER_RE.sub(r"\1***", message)


def _secret_values(redact_cfg: dict) -> list[str]:
    """Resolve the env variable names listed under logging.redact.patterns."""

    if not redact_cfg.get("enabled", False):
        return []
    return [os.environ[name] for name in redact_cfg.get("patterns", []) if os.getenv(name)]


def _rotating_file_handler(file_cfg: dict) -> RotatingFileHandler:
    path = file_cfg.get("path", "logs/rentwatch.log")
    if not os.path.isabs(path):
        path = os.path.join(settings.PROJECT_ROOT, path)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    return RotatingFileHandler(
        path,
        maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
        backupCount=int(file_cfg.get("backup_count", 5)),
        encoding="utf-8",
    )


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    # Secrets may live only in .env, so load it before collecting them.
    load_dotenv()
    level = getattr(logging, str(config.get("level", "INFO")).upper(), logging.INFO)
    formatter = _RedactingFormatter(_secret_values(config.get("redact", {})))

    handlers: list[logging.Handler] = []
    if config.get("console", True):
        handlers.append(logging.StreamHandler())
    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        handlers.append(_rotating_file_handler(file_cfg))
    if not handlers:
        return

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    # httpx logs every request at INFO; keep the console focused on the pipeline.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.basicConfig(level=level, handlers=handlers)


def _build_stores():
    if settings.STORAGE_BACKEND == "memory":
        return InMemoryListingStore(), InMemoryGroupRegistry()
    if settings.STORAGE_BACKEND == "sqlite":
        storage = SQLiteStorage(settings.DB_PATH)
        storage.init_db()
        return storage, storage
    raise ConfigurationError("storage.backend must be 'sqlite' or 'memory'")


def _format_listing(listing: Listing) -> str:
    furnished = "furnished" if listing.furnished else "unfurnished"
    return (
        f"#{listing.id} | {listing.title} | {listing.price}€ | {listing.property_type} | "
        f"{furnished} | {listing.contact_info}"
    )


def _format_group(group: MonitoredGroup) -> str:
    status = "active" if group.is_active else "inactive"
    last_scraped = group.last_scraped.astimezone().strftime("%H:%M:%S %d-%m-%Y")
    return f"#{group.id} | {group.name} | {status} | last scraped {last_scraped} | {group.invite_link}"


def _run_groups(processor: ListingProcessor, args: argparse.Namespace) -> int:
    if args.action == "list":
        groups = processor.list_groups()
        if not groups:
            print("No groups registered.")
        for group in groups:
            print(_format_group(group))
        return 0
    if args.action == "add":
        group = processor.register_group(args.name, args.invite_link, is_active=not args.inactive)
        print(_format_group(group))
        return 0
    if args.action == "remove":
        if not processor.remove_group(args.group_id):
            raise NotFoundError(f"Group {args.group_id} not found")
        return 0

    group = processor.set_group_active(args.group_id, args.action == "enable")
    if group is None:
        raise NotFoundError(f"Group {args.group_id} not found")
    print(_format_group(group))
    return 0


def _run_listings(listings, args: argparse.Namespace) -> int:
    if args.action == "list":
        for listing in listings.get_all():
            print(_format_listing(listing))
        return 0
    if args.action == "show":
        listing = listings.get_by_id(args.listing_id)
        if listing is None:
            raise NotFoundError(f"Listing {args.listing_id} not found")
        print(json.dumps(asdict(listing), ensure_ascii=False, indent=2))
        return 0
    if not listings.delete(args.listing_id):
        raise NotFoundError(f"Listing {args.listing_id} not found")
    return 0


async def _dispatch(args: argparse.Namespace) -> int:
    if args.command == "verify":
        challenge = verify_webhook(args.mode, args.token, args.challenge, webhook_verify_token())
        if challenge is None:
            print("Verification rejected.")
            return 1
        print(challenge)
        return 0

    listings, groups = _build_stores()
    if args.command == "listings":
        return _run_listings(listings, args)

    if args.command in _GATEWAY_COMMANDS:
        gateway = build_gateway(settings.GATEWAY)
        try:
            return await _run_with_gateway(ListingProcessor(listings, groups, gateway), args)
        finally:
            await gateway.aclose()

    processor = ListingProcessor(listings=listings, groups=groups)
    if args.command == "process":
        listing = processor.process_message(args.text)
        if listing is None:
            print("No listing extracted.")
            return 1
        print(_format_listing(listing))
        return 0

    if args.command == "webhook":
        with open(args.payload_file, "r", encoding="utf-8") as handle:
            payload = json.load(handle)
        result = await processor.handle_webhook(payload)
        if not result.accepted:
            print("Payload rejected: not a WhatsApp business account event.")
            return 1
        for listing in result.listings:
            print(_format_listing(listing))
        print(f"messages={result.received} skipped={result.skipped} listings={len(result.listings)}")
        return 0

    if args.command == "groups":
        return _run_groups(processor, args)

    return 2


async def _run_with_gateway(processor: ListingProcessor, args: argparse.Namespace) -> int:
    if args.command == "scrape":
        created = await processor.scrape_group(args.group_id)
        print(f"{created} new listing(s)")
        return 0

    result = await processor.send_to_group(args.group_id, args.text)
    if result is None:
        raise NotFoundError(f"Group {args.group_id} not found")
    print(result.message if result.success else f"{result.message} ({result.code})")
    return 0 if result.success else 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rentwatch")
    subparsers = parser.add_subparsers(dest="command", required=True)

    process = subparsers.add_parser("process", help="Extract and store a listing from one message")
    process.add_argument("text")

    webhook = subparsers.add_parser("webhook", help="Process a saved webhook payload (JSON file)")
    webhook.add_argument("payload_file")

    verify = subparsers.add_parser("verify", help="Answer a webhook verification challenge")
    verify.add_argument("mode")
    verify.add_argument("token")
    verify.add_argument("challenge")

    groups = subparsers.add_parser("groups", help="Manage monitored groups")
    group_actions = groups.add_subparsers(dest="action", required=True)
    group_actions.add_parser("list")
    add = group_actions.add_parser("add")
    add.add_argument("name")
    add.add_argument("invite_link")
    add.add_argument("--inactive", action="store_true", help="Register without monitoring")
    for action in ("remove", "enable", "disable"):
        group_action = group_actions.add_parser(action)
        group_action.add_argument("group_id", type=int)

    scrape = subparsers.add_parser("scrape", help="Pull messages from one group")
    scrape.add_argument("group_id", type=int)

    send = subparsers.add_parser("send", help="Send a text message to a group")
    send.add_argument("group_id", type=int)
    send.add_argument("text")

    listings = subparsers.add_parser("listings", help="Inspect stored listings")
    listing_actions = listings.add_subparsers(dest="action", required=True)
    listing_actions.add_parser("list")
    for action in ("show", "delete"):
        listing_action = listing_actions.add_parser(action)
        listing_action.add_argument("listing_id", type=int)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    args = _build_parser().parse_args(argv)
    _print_banner()
    _configure_logging()
    LOGGER.info("Starting rentwatch %s", args.command)

    try:
        code = asyncio.run(_dispatch(args))
    except ConfigurationError as exc:
        print(f"Configuration error: {exc.message}", file=sys.stderr)
        raise SystemExit(2) from exc
    except RentwatchError as exc:
        print(exc, file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
