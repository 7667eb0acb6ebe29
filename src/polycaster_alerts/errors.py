"""Exception hierarchy and error classification helpers."""

from __future__ import annotations

import asyncio

import httpx
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError


class AlertsError(Exception):
    """Base exception for the price alerts service."""


class InvalidAlertError(AlertsError):
    """Raised when an alert has an out-of-range price or unknown condition."""


class InvalidTransitionError(AlertsError):
    """Raised when a status change would leave a terminal state."""


class MarketDataError(AlertsError):
    """Raised when the market data provider cannot be queried."""


class NotificationError(AlertsError):
    """Raised when a notification provider rejects or fails a delivery.

    Attributes:
        status_code: HTTP status returned by the provider, if any.
        retryable: Whether another attempt could succeed.
        retry_after: Delay in seconds the provider asked for before retrying.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retryable: bool = True,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable
        self.retry_after = retry_after


_TRANSIENT_TYPES: tuple[type[BaseException], ...] = (
    httpx.TransportError,
    OperationalError,
    InterfaceError,
    OSError,
    TimeoutError,
    asyncio.TimeoutError,
)


def is_transient_error(error: BaseException) -> bool:
    """Check whether an error is a network-class failure worth retrying later.

    Walks the ``__cause__`` chain so wrapped errors (for example a
    ``MarketDataError`` raised from an ``httpx.ConnectError``) are classified
    by their root cause.

    Args:
        error: The exception to classify.

    Returns:
        True for connection, timeout and transport failures.
    """
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, _TRANSIENT_TYPES):
            return True
        if isinstance(current, DBAPIError) and current.connection_invalidated:
            return True
        current = current.__cause__
    return False
