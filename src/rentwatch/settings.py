"""Static configuration for rentwatch.

All non-secret settings (storage, gateway retry policy, logging) live in a
single JSON file for quick edits without touching Python. Secrets come from
the environment, see ``client.py``.
"""

import json
import os

from rentwatch.core.config import GRAPH_API_URL, GatewayConfig

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))

# RENTWATCH_CONFIG points at an alternative config file when set.
CONFIG_PATH = os.getenv("RENTWATCH_CONFIG") or os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Storage backend: "sqlite" keeps listings across runs, "memory" does not.
_storage = _CONFIG.get("storage", {})
STORAGE_BACKEND = _storage.get("backend", "sqlite")
DB_PATH = _resolve_path(_storage.get("db_path", "rentwatch.db"))

# Retry policy and transport settings for the WhatsApp gateway.
_gateway = _CONFIG.get("gateway", {})
GATEWAY = GatewayConfig(
    base_url=_gateway.get("base_url", GRAPH_API_URL),
    retry_count=int(_gateway.get("retry_count", 3)),
    retry_delay=float(_gateway.get("retry_delay", 1.0)),
    timeout=float(_gateway.get("timeout", 10.0)),
    fetch_path=_gateway.get("fetch_path") or None,
)

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
