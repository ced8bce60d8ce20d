"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

GRAPH_API_URL = "https://graph.facebook.com/v19.0"


@dataclass(frozen=True)
class GatewayConfig:
    """Retry and transport settings for the messaging-provider gateway."""

    base_url: str = GRAPH_API_URL
    retry_count: int = 3
    retry_delay: float = 1.0
    timeout: float = 10.0
    # Template such as "/{group}/messages"; None keeps fetch a no-op.
    fetch_path: Optional[str] = None
