"""Data models for price alerts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

MIN_TARGET_PRICE = Decimal("0")
MAX_TARGET_PRICE = Decimal("1")


class AlertCondition(str, Enum):
    """Comparison operator that defines when an alert fires."""

    ABOVE = "above"
    BELOW = "below"
    EQUALS = "equals"

    @classmethod
    def parse(cls, value: str) -> AlertCondition | None:
        """Parse a stored condition string, returning None if unrecognized."""
        try:
            return cls(value)
        except ValueError:
            return None


class AlertStatus(str, Enum):
    """Lifecycle status of a price alert."""

    ACTIVE = "active"
    TRIGGERED = "triggered"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Return True if no further transition is allowed."""
        return self is not AlertStatus.ACTIVE


def can_transition(current: AlertStatus, new: AlertStatus) -> bool:
    """Check whether a status change is allowed.

    Only ``active -> triggered`` and ``active -> cancelled`` are legal.
    """
    return current is AlertStatus.ACTIVE and new.is_terminal


def is_valid_target_price(price: Decimal) -> bool:
    """Return True if the price lies within the [0, 1] probability range."""
    return MIN_TARGET_PRICE <= price <= MAX_TARGET_PRICE


@dataclass(frozen=True)
class PriceAlert:
    """A persisted request to be notified when a market crosses a price.

    Attributes:
        id: Opaque unique identifier.
        owner_wallet: Wallet address of the owning user (lowercase).
        market_id: Market identifier at the market data provider.
        market_question: Market text captured when the alert was created.
        target_price: Threshold in the [0, 1] price unit.
        condition: Raw stored condition; see ``parsed_condition``.
        status: Lifecycle status.
        created_at: Creation timestamp.
        triggered_at: When the alert fired, if it has.
        last_checked_at: When the checker last evaluated the alert.
        notification_sent: True once the checker has committed to notifying.
        notes: Optional free-text note from the owner.
    """

    id: str
    owner_wallet: str
    market_id: str
    market_question: str
    target_price: Decimal
    condition: str
    status: AlertStatus = AlertStatus.ACTIVE
    created_at: datetime | None = None
    triggered_at: datetime | None = None
    last_checked_at: datetime | None = None
    notification_sent: bool = False
    notes: str | None = None

    @property
    def parsed_condition(self) -> AlertCondition | None:
        """Return the condition enum, or None for an unrecognized value."""
        return AlertCondition.parse(self.condition)

    @property
    def is_active(self) -> bool:
        """Return True if the alert is still being monitored."""
        return self.status is AlertStatus.ACTIVE


@dataclass(frozen=True)
class OwnerContact:
    """Where to deliver notifications for an alert owner."""

    address: str | None
    verified: bool = False

    @property
    def deliverable(self) -> bool:
        """Return True if there is a verified address to send to."""
        return bool(self.address) and self.verified


@dataclass(frozen=True)
class MarketPrice:
    """Snapshot of a market's current price, fetched once per cycle."""

    market_id: str
    question: str
    current_price: Decimal

    def __post_init__(self) -> None:
        # Oracles may hand back floats or strings; comparisons need Decimal
        if not isinstance(self.current_price, Decimal):
            object.__setattr__(self, "current_price", Decimal(str(self.current_price)))


@dataclass(frozen=True)
class PriceAlertNotice:
    """Payload handed to a notifier for one triggered alert."""

    market_question: str
    target_price: Decimal
    current_price: Decimal
    condition: str
    market_id: str

    @classmethod
    def from_alert(cls, alert: PriceAlert, current_price: Decimal) -> PriceAlertNotice:
        """Build a notice from a triggered alert and the price that fired it."""
        return cls(
            market_question=alert.market_question,
            target_price=alert.target_price,
            current_price=current_price,
            condition=alert.condition,
            market_id=alert.market_id,
        )
