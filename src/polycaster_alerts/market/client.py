"""Polymarket Gamma API client with rate limiting."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from polycaster_alerts.alerts.models import MarketPrice
from polycaster_alerts.errors import MarketDataError

logger = logging.getLogger(__name__)

# Constants
DEFAULT_API_URL = "https://gamma-api.polymarket.com/markets"
DEFAULT_REQUESTS_PER_SECOND = 5.0
DEFAULT_TIMEOUT_SECONDS = 10.0


class RateLimiter:
    """Minimum-interval rate limiter for API requests."""

    def __init__(self, max_requests_per_second: float = DEFAULT_REQUESTS_PER_SECOND) -> None:
        """Initialize the rate limiter.

        Args:
            max_requests_per_second: Maximum requests allowed per second.
        """
        self._min_interval = 1.0 / max_requests_per_second
        self._last_request_time: float = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until a request slot is available."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_request_time
            if elapsed < self._min_interval:
                await asyncio.sleep(self._min_interval - elapsed)
            self._last_request_time = time.monotonic()


def parse_outcome_prices(raw: Any) -> list[Decimal]:
    """Parse Gamma's ``outcomePrices`` field.

    The API returns a JSON-encoded string such as ``'["0.55", "0.45"]'``,
    although some responses carry a plain list.

    Returns:
        Parsed prices, or an empty list if the value cannot be parsed.
    """
    values = raw
    if isinstance(raw, str):
        try:
            values = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Failed to parse outcome prices: %r", raw)
            return []
    if not isinstance(values, list):
        return []

    prices: list[Decimal] = []
    for value in values:
        try:
            prices.append(Decimal(str(value)))
        except InvalidOperation:
            logger.warning("Ignoring non-numeric outcome price: %r", value)
            return []
    return prices


def market_price_from_gamma(data: dict[str, Any]) -> MarketPrice | None:
    """Build a price snapshot from a Gamma market object.

    The first outcome price is the market's current (YES) price. Returns None
    if the market carries no usable price.
    """
    prices = parse_outcome_prices(data.get("outcomePrices"))
    if not prices:
        return None
    return MarketPrice(
        market_id=str(data.get("id", "")),
        question=str(data.get("question") or ""),
        current_price=prices[0],
    )


class GammaMarketClient:
    """Async client for current market prices from the Polymarket Gamma API.

    Example:
        >>> client = GammaMarketClient()
        >>> price = await client.get_price("516710")
        >>> await client.aclose()
    """

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        *,
        requests_per_second: float = DEFAULT_REQUESTS_PER_SECOND,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_url: Gamma markets endpoint.
            requests_per_second: Rate limit for API requests.
            timeout: HTTP request timeout in seconds.
            client: Optional pre-built HTTP client (closed by ``aclose()``).
        """
        self._api_url = api_url.rstrip("/")
        self._rate_limiter = RateLimiter(requests_per_second)
        self._client = client or httpx.AsyncClient(timeout=timeout)

        logger.info(
            "Initialized GammaMarketClient with url=%s, rate_limit=%.1f req/s",
            self._api_url,
            requests_per_second,
        )

    async def get_price(self, market_id: str) -> MarketPrice | None:
        """Fetch the current price of a market.

        Args:
            market_id: Gamma market identifier.

        Returns:
            MarketPrice, or None if the market does not exist or has no price.

        Raises:
            MarketDataError: On network failures or unexpected HTTP responses.
        """
        await self._rate_limiter.acquire()

        try:
            response = await self._client.get(f"{self._api_url}/{market_id}")
        except httpx.HTTPError as e:
            raise MarketDataError(f"Failed to fetch market {market_id}: {e}") from e

        if response.status_code == 404:
            return None

        try:
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise MarketDataError(
                f"Market API returned {response.status_code} for {market_id}"
            ) from e
        except ValueError as e:
            raise MarketDataError(f"Invalid JSON for market {market_id}") from e

        if not isinstance(data, dict):
            raise MarketDataError(f"Unexpected response shape for market {market_id}")

        market = market_price_from_gamma(data)
        if market is None:
            logger.warning("Market %s has no outcome prices", market_id)
            return None

        if not market.market_id:
            market = MarketPrice(market_id, market.question, market.current_price)
        return market

    async def health_check(self) -> bool:
        """Check if the Gamma API is reachable."""
        try:
            response = await self._client.get(self._api_url, params={"limit": 1})
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error("Health check failed: %s", e)
            return False

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
