"""
Roller booking system: OAuth client and redemption payload mapping.
"""

import logging
import os
import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable

import httpx

logger = logging.getLogger(__name__)

ROLLER_API_BASE = os.getenv("CATFE_ROLLER_API_BASE", "https://api.roller.app").rstrip("/")
ROLLER_CLIENT_ID = os.getenv("CATFE_ROLLER_CLIENT_ID", "").strip()
ROLLER_CLIENT_SECRET = os.getenv("CATFE_ROLLER_CLIENT_SECRET", "").strip()
ROLLER_TIMEOUT_SEC = float(os.getenv("CATFE_ROLLER_TIMEOUT_SEC", "15"))

TOKEN_REFRESH_MARGIN_SEC = 60
DEFAULT_TOKEN_TTL_SEC = 3600
WALK_IN_GUEST = "Walk-in Guest"
DEFAULT_PRODUCT = "Session"


class RollerError(Exception):
    pass


class RollerClient:
    """Client-credentials OAuth client for the Roller REST API.

    The access token is cached on the instance and refreshed shortly before
    it expires.
    """

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client_id = ROLLER_CLIENT_ID if client_id is None else client_id
        self.client_secret = ROLLER_CLIENT_SECRET if client_secret is None else client_secret
        self.base_url = (base_url or ROLLER_API_BASE).rstrip("/")
        self._transport = transport
        self._clock = clock
        self._access_token: str | None = None
        self._expires_at = 0.0

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=ROLLER_TIMEOUT_SEC, transport=self._transport)

    async def get_access_token(self) -> str:
        if self._access_token and self._clock() < self._expires_at - TOKEN_REFRESH_MARGIN_SEC:
            return self._access_token
        if not self.configured:
            raise RollerError("Roller API credentials not configured")

        async with self._client() as client:
            response = await client.post(
                "/token",
                json={"client_id": self.client_id, "client_secret": self.client_secret},
            )
        if response.status_code != 200:
            logger.error("Roller token request failed: %s", response.status_code)
            raise RollerError(f"Roller auth failed ({response.status_code}): {response.text}")

        data = response.json()
        self._access_token = data["access_token"]
        self._expires_at = self._clock() + float(data.get("expires_in") or DEFAULT_TOKEN_TTL_SEC)
        return self._access_token

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        token = await self.get_access_token()
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        async with self._client() as client:
            response = await client.request(method, path, headers=headers, **kwargs)
        if response.status_code >= 400:
            raise RollerError(f"Roller API error ({response.status_code}): {response.text}")
        if not response.content:
            return None
        return response.json()

    async def get_product_availability(self, day: date | str) -> list[Any]:
        result = await self._request("GET", "/product-availability", params={"Date": str(day)})
        return result or []

    async def search_bookings(self, date_from: date | str, date_to: date | str | None = None) -> list[Any]:
        params = {"date": str(date_from)}
        if date_to:
            params["dateTo"] = str(date_to)
        result = await self._request("GET", "/bookings", params=params)
        if isinstance(result, dict):
            return result.get("bookings") or []
        return result or []

    async def list_webhooks(self) -> list[Any]:
        return await self._request("GET", "/webhooks") or []

    async def create_webhook(self, config: dict[str, Any]) -> Any:
        return await self._request("POST", "/webhooks", json=config)

    async def delete_webhook(self, webhook_id: int) -> None:
        await self._request("DELETE", f"/webhooks/{webhook_id}")

    async def test_connection(self) -> dict[str, Any]:
        try:
            products = await self.get_product_availability(date.today().isoformat())
        except (RollerError, httpx.HTTPError) as exc:
            return {"success": False, "error": str(exc)}
        return {"success": True, "product_count": len(products)}


@dataclass(frozen=True)
class Redemption:
    guest_name: str
    guest_count: int
    product_name: str
    duration: str


def _dig(data: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _text(value: Any) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def event_type(body: dict[str, Any]) -> str:
    return str(body.get("event") or body.get("type") or body.get("eventType") or "")


def is_redemption(body: dict[str, Any]) -> bool:
    return "redemption" in event_type(body).lower()


def _guest_name(data: dict[str, Any]) -> str:
    first = _text(_dig(data, "guest", "firstName"))
    last = _text(_dig(data, "guest", "lastName"))
    candidates = (
        _dig(data, "guestName"),
        _dig(data, "guest", "name"),
        f"{first} {last}" if first and last else None,
        first,
        _dig(data, "booking", "guestName"),
        _dig(data, "booking", "guest", "name"),
        _dig(data, "customerName"),
        _dig(data, "customer", "name"),
        _dig(data, "customer", "firstName"),
    )
    for candidate in candidates:
        name = _text(candidate)
        if name:
            return name
    return WALK_IN_GUEST


def _guest_count(data: dict[str, Any]) -> int:
    for candidate in (_dig(data, "quantity"), _dig(data, "ticketQuantity"), _dig(data, "booking", "quantity")):
        try:
            count = int(candidate)
        except (TypeError, ValueError):
            continue
        if count >= 1:
            return min(count, 20)
    return 1


def _product_name(data: dict[str, Any]) -> str:
    for candidate in (
        _dig(data, "productName"),
        _dig(data, "product", "name"),
        _dig(data, "ticketName"),
        _dig(data, "ticket", "name"),
    ):
        name = _text(candidate)
        if name:
            return name
    return DEFAULT_PRODUCT


def infer_duration(product_name: str) -> str:
    """Map a Roller product name onto a session length in minutes."""
    lowered = product_name.lower()
    if "mini" in lowered or "30" in lowered:
        return "30"
    if "study" in lowered or "90" in lowered:
        return "90"
    if "full" in lowered or "60" in lowered:
        return "60"
    return "60"


def parse_redemption(body: dict[str, Any]) -> Redemption:
    data = body.get("data") or body.get("payload") or body
    if not isinstance(data, dict):
        data = {}
    product = _product_name(data)
    return Redemption(
        guest_name=_guest_name(data),
        guest_count=_guest_count(data),
        product_name=product,
        duration=infer_duration(product),
    )
