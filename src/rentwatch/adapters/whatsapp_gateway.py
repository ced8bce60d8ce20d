"""WhatsApp Cloud API gateway adapter.

Every call to the provider goes through a bounded retry loop: up to
``retry_count`` attempts with a delay of ``retry_delay * attempt`` seconds
between them. Only the last failure reaches the caller, as a GatewayError.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional
from urllib.parse import quote

import httpx

from rentwatch.core.config import GatewayConfig
from rentwatch.core.errors import ConfigurationError, GatewayError

LOGGER = logging.getLogger(__name__)


def _error_from_response(response: httpx.Response) -> GatewayError:
    try:
        body = response.json()
    except ValueError:
        return GatewayError(
            f"WhatsApp API request failed with HTTP {response.status_code}",
            code=f"HTTP_{response.status_code}",
        )
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return GatewayError(
            error.get("message") or "WhatsApp API request failed",
            code=str(error["code"]) if error.get("code") is not None else f"HTTP_{response.status_code}",
            detail=error,
        )
    return GatewayError(
        f"WhatsApp API request failed with HTTP {response.status_code}",
        code=f"HTTP_{response.status_code}",
        detail=body,
    )


class WhatsAppGateway:
    """Gateway adapter that talks to the WhatsApp Cloud API over HTTPS."""

    def __init__(
        self,
        api_key: Optional[str],
        phone_number_id: Optional[str],
        config: Optional[GatewayConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        # Fail fast on missing credentials instead of failing every call.
        if not api_key:
            raise ConfigurationError("WHATSAPP_API_KEY is required to build the gateway")
        if not phone_number_id:
            raise ConfigurationError("WHATSAPP_PHONE_NUMBER_ID is required to build the gateway")

        self._config = config or GatewayConfig()
        if self._config.fetch_path:
            try:
                self._config.fetch_path.format(group="")
            except (IndexError, KeyError, ValueError) as exc:
                raise ConfigurationError(
                    "gateway.fetch_path may only use the {group} placeholder",
                    detail=self._config.fetch_path,
                ) from exc
        self._phone_number_id = phone_number_id
        self._sleep = sleep
        self._client = http_client or httpx.AsyncClient(timeout=self._config.timeout)
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    async def aclose(self) -> None:
        await self._client.aclose()

    def _url(self, path: str) -> str:
        return f"{self._config.base_url.rstrip('/')}/{path.lstrip('/')}"

    async def _attempt(self, method: str, url: str, payload: Optional[dict], params: Optional[dict]) -> dict:
        try:
            response = await self._client.request(method, url, headers=self._headers, json=payload, params=params)
        except httpx.HTTPError as exc:
            raise GatewayError(f"WhatsApp API transport failure: {exc}", code="TRANSPORT_ERROR") from exc

        if not response.is_success:
            raise _error_from_response(response)

        try:
            body = response.json()
        except ValueError as exc:
            raise GatewayError("WhatsApp API returned a non-JSON body", code="INVALID_RESPONSE") from exc

        # A 2xx envelope can still carry an error object.
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            raise _error_from_response(response)
        if not isinstance(body, dict):
            raise GatewayError("WhatsApp API returned an unexpected body", code="INVALID_RESPONSE")
        return body

    async def _request(
        self,
        method: str,
        path: str,
        payload: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> dict:
        url = self._url(path)
        retry_count = max(1, self._config.retry_count)
        attempt = 1
        while True:
            try:
                return await self._attempt(method, url, payload, params)
            except GatewayError as exc:
                if attempt >= retry_count:
                    LOGGER.error("Giving up on %s after %s attempts: %s", path, attempt, exc)
                    raise
                LOGGER.warning("Retry attempt %s for %s: %s", attempt, path, exc)
            await self._sleep(self._config.retry_delay * attempt)
            attempt += 1

    async def send(self, target: str, message: str) -> None:
        """Send a text message to ``target`` (a recipient or group locator)."""

        payload = {
            "messaging_product": "whatsapp",
            "to": target,
            "type": "text",
            "text": {"body": message},
        }
        await self._request("POST", f"/{self._phone_number_id}/messages", payload)
        LOGGER.info("Message sent to %s", target)

    async def fetch_messages(self, locator: str, since: Optional[datetime] = None) -> List[str]:
        """Return text bodies available for ``locator``.

        Messages normally arrive by webhook push, so without a configured
        ``fetch_path`` this returns an empty list without any network call.
        When ``since`` is given only messages after it are requested.
        """

        if not self._config.fetch_path:
            LOGGER.debug("Pull fetch disabled; no messages for %s", locator)
            return []

        # Invite links are full URLs; keep them inside a single path segment.
        path = self._config.fetch_path.format(group=quote(locator, safe=""))
        params = {"since": since.isoformat()} if since is not None else None
        body = await self._request("GET", path, params=params)
        texts: List[str] = []
        for item in body.get("data") or []:
            if not isinstance(item, dict) or item.get("type", "text") != "text":
                continue
            text = item.get("text")
            if isinstance(text, dict):
                text = text.get("body")
            if isinstance(text, str):
                texts.append(text)
        return texts

