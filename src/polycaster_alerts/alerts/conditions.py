"""Trigger condition evaluation."""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from typing import TYPE_CHECKING

from polycaster_alerts.alerts.models import AlertCondition

if TYPE_CHECKING:
    from polycaster_alerts.alerts.models import PriceAlert

# Absolute tolerance for "equals"; prices are already normalized to [0, 1]
EQUALS_TOLERANCE = Decimal("0.01")


def should_trigger(target_price: Decimal, condition: str, current_price: Decimal) -> bool:
    """Evaluate an alert's trigger condition against the current price.

    Boundaries are inclusive for ``above`` and ``below``. Any unrecognized
    condition never triggers.

    Args:
        target_price: The alert's threshold.
        condition: Raw condition value (``above``, ``below`` or ``equals``).
        current_price: Latest market price.

    Returns:
        True if the alert should fire.
    """
    parsed = AlertCondition.parse(condition)
    if parsed is AlertCondition.ABOVE:
        return current_price >= target_price
    if parsed is AlertCondition.BELOW:
        return current_price <= target_price
    if parsed is AlertCondition.EQUALS:
        return abs(current_price - target_price) <= EQUALS_TOLERANCE
    return False


def group_alerts_by_market(alerts: list[PriceAlert]) -> dict[str, list[PriceAlert]]:
    """Partition alerts by market, keeping every alert for each market.

    Insertion order of both markets and alerts is preserved.
    """
    groups: dict[str, list[PriceAlert]] = defaultdict(list)
    for alert in alerts:
        groups[alert.market_id].append(alert)
    return dict(groups)
