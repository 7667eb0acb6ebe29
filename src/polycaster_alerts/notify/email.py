"""Resend e-mail notifier implementation."""

from __future__ import annotations

import asyncio
import logging
import math
from typing import TYPE_CHECKING

import httpx

from polycaster_alerts.errors import NotificationError
from polycaster_alerts.notify.formatter import AlertEmailFormatter

if TYPE_CHECKING:
    from polycaster_alerts.alerts.models import PriceAlertNotice

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
DEFAULT_FROM_EMAIL = "onboarding@resend.dev"
DEFAULT_FROM_NAME = "PolyCaster"


class ResendEmailNotifier:
    """E-mail notifier backed by the Resend HTTP API.

    Renders notices with ``AlertEmailFormatter`` and posts them to Resend with
    rate limiting and retry on rate-limit responses and timeouts. When no API
    key is configured every send reports failure without touching the network.
    """

    def __init__(
        self,
        api_key: str | None,
        *,
        from_email: str = DEFAULT_FROM_EMAIL,
        from_name: str = DEFAULT_FROM_NAME,
        formatter: AlertEmailFormatter | None = None,
        api_url: str = RESEND_API_URL,
        rate_limit_per_second: int = 2,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the notifier.

        Args:
            api_key: Resend API key. None disables delivery.
            from_email: Sender address (must be verified with Resend).
            from_name: Sender display name.
            formatter: Message formatter; a default one is created if omitted.
            api_url: Resend e-mails endpoint.
            rate_limit_per_second: Maximum requests per second (Resend default is 2).
            max_retries: Maximum attempts per message.
            retry_delay: Base delay between retries (exponential backoff).
            timeout: HTTP request timeout in seconds.
        """
        self.api_key = api_key
        self.from_email = from_email
        self.from_name = from_name
        self.formatter = formatter or AlertEmailFormatter()
        self.api_url = api_url
        self.rate_limit_per_second = rate_limit_per_second
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.name = "email"

        # Rate limiting state
        self._request_times: list[float] = []
        self._lock = asyncio.Lock()

        if not api_key:
            logger.warning("RESEND_API_KEY not set - email notifications disabled")

    @property
    def available(self) -> bool:
        """Return True if an API key is configured."""
        return bool(self.api_key)

    async def _wait_for_rate_limit(self) -> None:
        """Wait if rate limit is exceeded."""
        async with self._lock:
            now = asyncio.get_running_loop().time()
            # Remove requests older than 1 second
            self._request_times = [t for t in self._request_times if now - t < 1.0]

            if len(self._request_times) >= self.rate_limit_per_second:
                wait_time = 1.0 - (now - self._request_times[0])
                if wait_time > 0:
                    logger.debug("Resend rate limit hit, waiting %.2fs", wait_time)
                    await asyncio.sleep(wait_time)

            self._request_times.append(asyncio.get_running_loop().time())

    async def send(self, address: str, notice: PriceAlertNotice) -> bool:
        """Send a price alert e-mail.

        Args:
            address: Recipient e-mail address.
            notice: The triggered alert notice.

        Returns:
            True if Resend accepted the message, False otherwise.
        """
        try:
            message_id = await self.deliver(address, notice)
        except NotificationError as e:
            logger.error("Price alert email to %s not delivered: %s", address, e)
            return False

        logger.info("Price alert email sent to %s (id: %s)", address, message_id)
        return True

    async def deliver(self, address: str, notice: PriceAlertNotice) -> str | None:
        """Send a price alert e-mail, raising if it cannot be delivered.

        Rate-limit responses are retried after the advertised delay. Timeouts,
        transport errors and 5xx responses are retried with exponential
        backoff. Other client errors fail at once.

        Returns:
            The Resend message id.

        Raises:
            NotificationError: If no API key is configured, Resend rejects the
                message, or every attempt fails.
        """
        if not self.api_key:
            raise NotificationError("Resend API key is not configured", retryable=False)

        message = self.formatter.format(notice)
        payload = {
            "from": f"{self.from_name} <{self.from_email}>",
            "to": [address],
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        await self._wait_for_rate_limit()

        last_error: NotificationError | None = None
        for attempt in range(self.max_retries):
            try:
                return await self._post(payload, headers)
            except NotificationError as e:
                if not e.retryable:
                    raise
                last_error = e
                if e.retry_after is not None:
                    logger.warning("Resend rate limited, retry after %gs", e.retry_after)
                    await asyncio.sleep(e.retry_after)
                    continue
                logger.warning(
                    "Resend attempt %d/%d failed: %s", attempt + 1, self.max_retries, e
                )

            # Exponential backoff
            if attempt < self.max_retries - 1:
                await asyncio.sleep(self.retry_delay * (2**attempt))

        raise NotificationError(
            f"Delivery failed after {self.max_retries} attempts",
            status_code=last_error.status_code if last_error else None,
        ) from last_error

    async def _post(self, payload: dict[str, object], headers: dict[str, str]) -> str | None:
        """Make one request to Resend and return the message id."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise NotificationError("Resend request timed out") from e
        except httpx.HTTPError as e:
            raise NotificationError(f"Resend request failed: {e}") from e

        if response.status_code == 200:
            return response.json().get("id")

        if response.status_code == 429:
            raise NotificationError(
                "Resend rate limit exceeded",
                status_code=429,
                retry_after=parse_retry_after(
                    response.headers.get("retry-after"), self.retry_delay
                ),
            )

        logger.error("Resend API error: %d %s", response.status_code, response.text)
        # Client errors (bad sender, invalid address) will not succeed on retry
        raise NotificationError(
            f"Resend API error {response.status_code}",
            status_code=response.status_code,
            retryable=response.status_code >= 500,
        )


def parse_retry_after(value: str | None, default: float) -> float:
    """Parse a ``retry-after`` header given in seconds.

    Missing, non-numeric or negative values fall back to ``default``.
    """
    if value is None:
        return default
    try:
        seconds = float(value)
    except ValueError:
        return default
    if not math.isfinite(seconds) or seconds < 0:
        return default
    return seconds
