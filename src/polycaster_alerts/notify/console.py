"""Notifier that only logs, used for dry runs."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from polycaster_alerts.notify.formatter import AlertEmailFormatter

if TYPE_CHECKING:
    from polycaster_alerts.alerts.models import PriceAlertNotice

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """Logs rendered notifications instead of delivering them."""

    def __init__(self, formatter: AlertEmailFormatter | None = None) -> None:
        self.formatter = formatter or AlertEmailFormatter()
        self.name = "log"

    async def send(self, address: str, notice: PriceAlertNotice) -> bool:
        """Log the notification and report success."""
        message = self.formatter.format(notice)
        logger.info("[dry run] Would email %s: %s", address, message.subject)
        logger.debug("[dry run] Body:\n%s", message.text)
        return True
