"""Service wiring for the price alert checker.

Builds the database engine, market client, notifier, checker and health
server from settings and manages their lifecycle together.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from polycaster_alerts.alerts.checker import AlertChecker, Notifier
from polycaster_alerts.health import HealthServer
from polycaster_alerts.market.client import GammaMarketClient
from polycaster_alerts.notify.console import LoggingNotifier
from polycaster_alerts.notify.email import ResendEmailNotifier
from polycaster_alerts.notify.formatter import AlertEmailFormatter
from polycaster_alerts.storage.store import (
    SqlAlertStore,
    create_engine,
    create_session_factory,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from polycaster_alerts.config import Settings

logger = logging.getLogger(__name__)


def build_notifier(settings: Settings, *, dry_run: bool = False) -> Notifier:
    """Create the notifier for the configured mode.

    Args:
        settings: Application settings.
        dry_run: Log notifications instead of sending them.

    Returns:
        A LoggingNotifier in dry-run mode, otherwise a ResendEmailNotifier.
    """
    formatter = AlertEmailFormatter(
        settings.email.frontend_url, app_name=settings.email.from_name
    )
    if dry_run:
        logger.info("Dry run: notifications will be logged, not sent")
        return LoggingNotifier(formatter)

    api_key = settings.email.resend_api_key
    return ResendEmailNotifier(
        api_key.get_secret_value() if api_key else None,
        from_email=settings.email.from_email,
        from_name=settings.email.from_name,
        formatter=formatter,
    )


class AlertService:
    """Owns every component of the running alert service.

    Example:
        ```python
        service = AlertService(get_settings())
        await service.start()
        ...
        await service.stop()
        ```
    """

    def __init__(
        self,
        settings: Settings,
        *,
        dry_run: bool = False,
        health_port: int | None = None,
    ) -> None:
        """Initialize the service without connecting to anything.

        Args:
            settings: Application settings.
            dry_run: Log notifications instead of sending them.
            health_port: Override for the health server port; 0 disables it.
        """
        self.settings = settings
        self.dry_run = dry_run
        self.health_port = settings.health_port if health_port is None else health_port

        self._engine: AsyncEngine | None = None
        self._market_client: GammaMarketClient | None = None
        self.checker: AlertChecker | None = None
        self.health: HealthServer | None = None

    async def start(self) -> None:
        """Connect collaborators and start the checker and health server."""
        if self.checker is not None:
            logger.warning("Alert service already started")
            return

        self._engine = create_engine(self.settings.database.url)
        store = SqlAlertStore(create_session_factory(self._engine))
        self._market_client = GammaMarketClient(
            self.settings.polymarket.api_url,
            requests_per_second=self.settings.polymarket.requests_per_second,
            timeout=self.settings.polymarket.timeout_seconds,
        )

        self.checker = AlertChecker(
            store=store,
            oracle=self._market_client,
            notifier=build_notifier(self.settings, dry_run=self.dry_run),
            interval_seconds=self.settings.checker.interval_seconds,
            market_concurrency=self.settings.checker.market_concurrency,
        )

        if self.health_port:
            self.health = HealthServer(self.checker)
            await self.health.start(port=self.health_port)

        await self.checker.start()
        logger.info("Alert service started")

    async def stop(self) -> None:
        """Stop the checker, then release network and database resources."""
        if self.checker is not None:
            await self.checker.stop()
            self.checker = None
        if self.health is not None:
            await self.health.stop()
            self.health = None
        if self._market_client is not None:
            await self._market_client.aclose()
            self._market_client = None
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
        logger.info("Alert service stopped")
