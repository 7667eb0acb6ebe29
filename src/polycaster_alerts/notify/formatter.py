"""Price alert e-mail formatter.

This module renders triggered price alerts into subject, HTML and plain
text bodies for e-mail delivery.
"""

from __future__ import annotations

import html
from decimal import Decimal
from typing import TYPE_CHECKING

from polycaster_alerts.notify.models import FormattedEmail

if TYPE_CHECKING:
    from polycaster_alerts.alerts.models import PriceAlertNotice

# Polymarket URLs
POLYMARKET_MARKET_URL = "https://polymarket.com/event/{market_id}"

DEFAULT_APP_NAME = "PolyCaster"
DEFAULT_FRONTEND_URL = "http://localhost:3000"

SUBJECT_QUESTION_CHARS = 50

# Accent colors for the price change
COLOR_UP = "#10b981"
COLOR_DOWN = "#ef4444"


def format_cents(price: Decimal) -> str:
    """Format a [0, 1] price as cents, e.g. ``Decimal("0.655")`` -> ``65.5¢``."""
    return f"{price * 100:.1f}¢"


def format_change_percent(target: Decimal, current: Decimal) -> str | None:
    """Format the move from target to current as a signed percentage.

    Returns None when the target is zero.
    """
    if target == 0:
        return None
    change = (current - target) / target * 100
    sign = "+" if change >= 0 else ""
    return f"{sign}{change:.1f}%"


class AlertEmailFormatter:
    """Formats price alert notices into e-mail messages."""

    def __init__(
        self,
        frontend_url: str = DEFAULT_FRONTEND_URL,
        *,
        app_name: str = DEFAULT_APP_NAME,
    ) -> None:
        """Initialize the formatter.

        Args:
            frontend_url: Base URL of the client application, used for links.
            app_name: Product name shown in the message.
        """
        self.frontend_url = frontend_url.rstrip("/")
        self.app_name = app_name

    def format(self, notice: PriceAlertNotice) -> FormattedEmail:
        """Render a notice into a multi-part e-mail.

        Args:
            notice: The triggered alert notice.

        Returns:
            FormattedEmail with subject, HTML and text bodies.
        """
        links = self._build_links(notice)
        return FormattedEmail(
            subject=self._build_subject(notice),
            html=self._build_html(notice, links),
            text=self._build_text(notice, links),
            links=links,
        )

    def _build_links(self, notice: PriceAlertNotice) -> dict[str, str]:
        return {
            "market": POLYMARKET_MARKET_URL.format(market_id=notice.market_id),
            "app": f"{self.frontend_url}/?market={notice.market_id}",
            "manage": f"{self.frontend_url}/alerts",
        }

    @staticmethod
    def _build_subject(notice: PriceAlertNotice) -> str:
        question = notice.market_question[:SUBJECT_QUESTION_CHARS]
        return f"🔔 Price Alert Triggered: {question}..."

    def _build_text(self, notice: PriceAlertNotice, links: dict[str, str]) -> str:
        lines = [
            "🔔 Price Alert Triggered!",
            "",
            f"Market: {notice.market_question}",
            "",
            f"Target Price: {format_cents(notice.target_price)} ({notice.condition})",
            f"Current Price: {format_cents(notice.current_price)}",
            "",
            "Your alert has been triggered!",
            "",
            f"View on Polymarket: {links['market']}",
            f"View in {self.app_name}: {links['app']}",
            "",
            f"Manage your alerts: {links['manage']}",
        ]
        return "\n".join(lines)

    def _build_html(self, notice: PriceAlertNotice, links: dict[str, str]) -> str:
        is_up = notice.current_price >= notice.target_price
        color = COLOR_UP if is_up else COLOR_DOWN
        change = format_change_percent(notice.target_price, notice.current_price)
        change_html = ""
        if change:
            change_html = f'<p style="color: {color}; font-size: 12px;">{change}</p>'
        question = html.escape(notice.market_question)
        condition = html.escape(notice.condition)
        app_name = html.escape(self.app_name)
        target = format_cents(notice.target_price)
        current = format_cents(notice.current_price)
        market_url = html.escape(links["market"])
        app_url = html.escape(links["app"])
        manage_url = html.escape(links["manage"])

        return f"""<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <title>Price Alert Triggered</title>
  </head>
  <body style="font-family: Arial, sans-serif; color: #333; max-width: 600px; margin: 0 auto;">
    <div style="background: #1e40af; padding: 30px; text-align: center;">
      <h1 style="color: white; margin: 0;">🔔 Price Alert Triggered!</h1>
      <p style="color: #e0e7ff;">Your market alert has been activated</p>
    </div>
    <div style="padding: 30px;">
      <h2 style="color: #1e40af;">{question}</h2>
      <p>Target Price: <strong>{target}</strong> ({condition})</p>
      <p>Current Price: <strong style="color: {color};">{current}</strong></p>
      {change_html}
      <p style="font-weight: bold;">Alert Condition Met: Price is {condition} {target}</p>
      <p>
        <a href="{market_url}">View on Polymarket</a> |
        <a href="{app_url}">View in {app_name}</a>
      </p>
      <p style="color: #666; font-size: 12px;">
        You're receiving this email because you set up a price alert on {app_name}.
        <a href="{manage_url}">Manage your alerts</a>
      </p>
    </div>
  </body>
</html>
"""
