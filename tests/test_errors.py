"""Tests for error classification."""

from __future__ import annotations

import httpx
import pytest
from sqlalchemy.exc import OperationalError

from polycaster_alerts.errors import (
    AlertsError,
    InvalidAlertError,
    InvalidTransitionError,
    MarketDataError,
    NotificationError,
    is_transient_error,
)


class TestHierarchy:
    """Tests for the exception hierarchy."""

    @pytest.mark.parametrize(
        "error_class",
        [InvalidAlertError, InvalidTransitionError, MarketDataError, NotificationError],
    )
    def test_subclasses_alerts_error(self, error_class: type[Exception]) -> None:
        """Every service error should derive from AlertsError."""
        assert issubclass(error_class, AlertsError)


class TestIsTransientError:
    """Tests for is_transient_error."""

    def test_connect_error_is_transient(self) -> None:
        """httpx connection failures are network errors."""
        assert is_transient_error(httpx.ConnectError("connection refused"))

    def test_timeout_is_transient(self) -> None:
        """Timeouts are network errors."""
        assert is_transient_error(TimeoutError())
        assert is_transient_error(httpx.ReadTimeout("timed out"))

    def test_connection_reset_is_transient(self) -> None:
        """OS-level connection errors are network errors."""
        assert is_transient_error(ConnectionResetError("ECONNRESET"))

    def test_database_operational_error_is_transient(self) -> None:
        """Lost database connections are network errors."""
        error = OperationalError("SELECT 1", {}, Exception("server closed the connection"))
        assert is_transient_error(error)

    def test_wrapped_cause_is_classified(self) -> None:
        """A MarketDataError raised from a transport error is transient."""
        try:
            try:
                raise httpx.ConnectError("connection refused")
            except httpx.ConnectError as e:
                raise MarketDataError("Failed to fetch market 1") from e
        except MarketDataError as wrapped:
            assert is_transient_error(wrapped)

    def test_plain_market_error_is_not_transient(self) -> None:
        """A MarketDataError without a network cause is not transient."""
        assert not is_transient_error(MarketDataError("Market API returned 500"))

    def test_value_error_is_not_transient(self) -> None:
        """Programming and data errors are not network errors."""
        assert not is_transient_error(ValueError("bad value"))
        assert not is_transient_error(KeyError("missing"))
