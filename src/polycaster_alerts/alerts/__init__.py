"""Alert checking layer - condition evaluation and the recurring checker."""

from polycaster_alerts.alerts.checker import (
    AlertChecker,
    AlertStore,
    CheckerState,
    CheckerStats,
    CheckerStatus,
    CycleResult,
    Notifier,
    PriceOracle,
)
from polycaster_alerts.alerts.conditions import (
    EQUALS_TOLERANCE,
    group_alerts_by_market,
    should_trigger,
)
from polycaster_alerts.alerts.models import (
    AlertCondition,
    AlertStatus,
    MarketPrice,
    OwnerContact,
    PriceAlert,
    PriceAlertNotice,
)

__all__ = [
    "EQUALS_TOLERANCE",
    "AlertChecker",
    "AlertCondition",
    "AlertStatus",
    "AlertStore",
    "CheckerState",
    "CheckerStats",
    "CheckerStatus",
    "CycleResult",
    "MarketPrice",
    "Notifier",
    "OwnerContact",
    "PriceAlert",
    "PriceAlertNotice",
    "PriceOracle",
    "group_alerts_by_market",
    "should_trigger",
]
