"""Data models for the notify module."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class FormattedEmail:
    """A rendered notification e-mail ready for delivery.

    Attributes:
        subject: E-mail subject line.
        html: HTML body.
        text: Plain text fallback body.
        links: Dictionary of relevant links (market page, app page).
    """

    subject: str
    html: str
    text: str
    links: dict[str, str] = field(default_factory=dict)
