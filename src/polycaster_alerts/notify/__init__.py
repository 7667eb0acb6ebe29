"""Notification layer - price alert delivery."""

from polycaster_alerts.notify.console import LoggingNotifier
from polycaster_alerts.notify.email import ResendEmailNotifier
from polycaster_alerts.notify.formatter import AlertEmailFormatter, format_cents
from polycaster_alerts.notify.models import FormattedEmail

__all__ = [
    "AlertEmailFormatter",
    "FormattedEmail",
    "LoggingNotifier",
    "ResendEmailNotifier",
    "format_cents",
]
