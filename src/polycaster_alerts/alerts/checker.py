"""Background price alert checker.

This module provides the recurring task that evaluates active price alerts
against live market prices, marks satisfied alerts as triggered, and
notifies their owners.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol

from polycaster_alerts import metrics
from polycaster_alerts.alerts.conditions import group_alerts_by_market, should_trigger
from polycaster_alerts.alerts.models import (
    AlertStatus,
    MarketPrice,
    OwnerContact,
    PriceAlert,
    PriceAlertNotice,
)
from polycaster_alerts.errors import is_transient_error
from polycaster_alerts.notify.formatter import format_cents

logger = logging.getLogger(__name__)


# Default configuration
DEFAULT_CHECK_INTERVAL_SECONDS = 30.0
DEFAULT_IDLE_LOG_INTERVAL_SECONDS = 60.0
DEFAULT_MARKET_CONCURRENCY = 1


class AlertStore(Protocol):
    """Persistence operations the checker needs."""

    async def list_active(self) -> list[PriceAlert]:
        """Return every alert whose status is active."""
        ...

    async def update(self, alert_id: str, **changes: Any) -> PriceAlert | None:
        """Apply changes to an alert. Returns None if it no longer applies."""
        ...

    async def get_owner_contact(self, owner_wallet: str) -> OwnerContact | None:
        """Look up where to notify the owner of an alert."""
        ...


class PriceOracle(Protocol):
    """Source of current market prices."""

    async def get_price(self, market_id: str) -> MarketPrice | None:
        """Return the market's current price, or None if it is not found."""
        ...


class Notifier(Protocol):
    """Delivery channel for triggered alerts."""

    async def send(self, address: str, notice: PriceAlertNotice) -> bool:
        """Attempt delivery. Returns True if the provider accepted it."""
        ...


class CheckerState(str, Enum):
    """State of the alert checker."""

    STOPPED = "stopped"
    RUNNING = "running"


@dataclass
class CycleResult:
    """Outcome of a single check cycle."""

    started_at: datetime
    finished_at: datetime | None = None
    active_alerts: int = 0
    alerts_checked: int = 0
    markets_checked: int = 0
    markets_skipped: int = 0
    alerts_triggered: int = 0
    notifications_sent: int = 0
    notifications_failed: int = 0
    notifications_skipped: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        """Wall-clock duration of the cycle."""
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def succeeded(self) -> bool:
        """Return True if the cycle finished without errors."""
        return not self.errors


@dataclass
class CheckerStats:
    """Cumulative statistics across check cycles."""

    total_cycles: int = 0
    failed_cycles: int = 0
    skipped_ticks: int = 0
    alerts_triggered: int = 0
    notifications_sent: int = 0
    notifications_failed: int = 0
    last_cycle_time: datetime | None = None
    last_cycle_duration_seconds: float = 0.0
    last_error: str | None = None

    def record(self, result: CycleResult) -> None:
        """Fold a finished cycle into the totals."""
        self.total_cycles += 1
        self.alerts_triggered += result.alerts_triggered
        self.notifications_sent += result.notifications_sent
        self.notifications_failed += result.notifications_failed
        self.last_cycle_time = result.finished_at
        self.last_cycle_duration_seconds = result.duration_seconds
        if result.errors:
            self.failed_cycles += 1
            self.last_error = result.errors[-1]


@dataclass(frozen=True)
class CheckerStatus:
    """Snapshot returned by ``AlertChecker.get_status()``."""

    running: bool
    interval_seconds: float
    description: str

    @property
    def interval_ms(self) -> int:
        """Polling interval in milliseconds."""
        return int(self.interval_seconds * 1000)

    def to_dict(self) -> dict[str, object]:
        """Serialize for status endpoints."""
        return {
            "running": self.running,
            "interval_ms": self.interval_ms,
            "description": self.description,
        }


class AlertChecker:
    """Recurring task that checks active price alerts.

    Each cycle:
    - Loads all active alerts from the store
    - Groups them by market so each market is priced once
    - Marks satisfied alerts as triggered, then notifies the owner
    - Records ``last_checked_at`` on alerts that did not fire

    Cycles never overlap. A failure in one market group is logged and the
    remaining groups are still processed; the loop itself only ends when
    ``stop()`` is called.

    Example:
        ```python
        checker = AlertChecker(store=store, oracle=gamma, notifier=email)
        await checker.start()

        print(checker.get_status().to_dict())

        await checker.stop()
        ```
    """

    def __init__(
        self,
        store: AlertStore,
        oracle: PriceOracle,
        notifier: Notifier,
        *,
        interval_seconds: float = DEFAULT_CHECK_INTERVAL_SECONDS,
        idle_log_interval_seconds: float = DEFAULT_IDLE_LOG_INTERVAL_SECONDS,
        market_concurrency: int = DEFAULT_MARKET_CONCURRENCY,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the checker.

        Args:
            store: Alert persistence.
            oracle: Market price source.
            notifier: Delivery channel for triggered alerts.
            interval_seconds: Time between cycle starts (default: 30).
            idle_log_interval_seconds: Minimum gap between "no active alerts" logs.
            market_concurrency: Market groups processed at once within a cycle.
            clock: Returns the current time; defaults to ``datetime.now(UTC)``.
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if market_concurrency < 1:
            raise ValueError("market_concurrency must be at least 1")

        self._store = store
        self._oracle = oracle
        self._notifier = notifier
        self._interval = interval_seconds
        self._idle_log_interval = idle_log_interval_seconds
        self._market_concurrency = market_concurrency
        self._clock = clock or (lambda: datetime.now(UTC))

        self._state = CheckerState.STOPPED
        self._stats = CheckerStats()
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self._cycle_in_flight = False
        self._last_idle_log: float | None = None

    @property
    def state(self) -> CheckerState:
        """Current checker state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """Return True if cycles are being scheduled."""
        return self._state is CheckerState.RUNNING

    @property
    def stats(self) -> CheckerStats:
        """Cumulative cycle statistics."""
        return self._stats

    @property
    def interval_seconds(self) -> float:
        """Time between cycle starts."""
        return self._interval

    def get_status(self) -> CheckerStatus:
        """Return whether the checker is running and how often it polls."""
        if self.is_running:
            description = f"Checking alerts every {self._interval:g} seconds"
        else:
            description = "Alert checker is stopped"
        return CheckerStatus(
            running=self.is_running,
            interval_seconds=self._interval,
            description=description,
        )

    async def start(self) -> None:
        """Start checking alerts.

        Runs one cycle immediately, then schedules a cycle every interval.
        Returns once the first cycle has finished. Calling ``start()`` on a
        running checker does nothing.
        """
        if self._state is CheckerState.RUNNING:
            logger.info("Alert checker is already running")
            return

        self._state = CheckerState.RUNNING
        metrics.CHECKER_RUNNING.set(1)
        logger.info("Starting alert checker (interval=%gs)", self._interval)

        # Each loop gets its own stop event so a loop still winding down from
        # an earlier stop() cannot be revived by this start()
        self._stop_event = asyncio.Event()
        first_cycle_done = asyncio.Event()
        self._task = asyncio.create_task(
            self._run_loop(self._task, self._stop_event, first_cycle_done)
        )
        await first_cycle_done.wait()

    async def stop(self) -> None:
        """Stop scheduling cycles.

        A cycle already in progress is allowed to finish before this returns.
        Calling ``stop()`` on a stopped checker does nothing.
        """
        if self._state is CheckerState.STOPPED:
            return

        self._stop_event.set()
        self._state = CheckerState.STOPPED
        metrics.CHECKER_RUNNING.set(0)

        task = self._task
        if task:
            await task
            if self._task is task:
                self._task = None

        logger.info("Alert checker stopped")

    async def _run_loop(
        self,
        previous: asyncio.Task[None] | None,
        stop_event: asyncio.Event,
        first_cycle_done: asyncio.Event,
    ) -> None:
        """Run the first cycle, then cycles on a fixed cadence until stopped."""
        loop = asyncio.get_running_loop()
        try:
            if previous is not None and not previous.done():
                await asyncio.wait([previous])
            first_cycle_at = loop.time()
            await self.run_cycle()
        finally:
            first_cycle_done.set()

        next_run = first_cycle_at + self._interval

        while not stop_event.is_set():
            delay = max(0.0, next_run - loop.time())
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=delay)
                break
            except TimeoutError:
                pass

            await self.run_cycle()

            next_run += self._interval
            now = loop.time()
            if now > next_run:
                missed = int((now - next_run) // self._interval) + 1
                next_run += missed * self._interval
                self._stats.skipped_ticks += missed
                logger.warning(
                    "Alert check cycle overran the %gs interval; skipped %d tick(s)",
                    self._interval,
                    missed,
                )

    async def run_cycle(self) -> CycleResult | None:
        """Run one check cycle now.

        Never raises. Returns None without doing anything if another cycle
        is already in flight.
        """
        if self._cycle_in_flight:
            logger.warning("Alert check cycle already in progress; skipping")
            return None

        self._cycle_in_flight = True
        result = CycleResult(started_at=self._clock())
        try:
            await self._check_alerts(result)
        except Exception as e:
            self._record_error(result, "active alerts", e)
        finally:
            self._cycle_in_flight = False

        result.finished_at = self._clock()
        self._stats.record(result)
        metrics.CYCLES_TOTAL.labels(outcome="ok" if result.succeeded else "failed").inc()
        metrics.CYCLE_DURATION.observe(result.duration_seconds)
        return result

    async def _check_alerts(self, result: CycleResult) -> None:
        """Load active alerts and check each market group."""
        alerts = [alert for alert in await self._store.list_active() if alert.is_active]
        result.active_alerts = len(alerts)
        metrics.ACTIVE_ALERTS.set(len(alerts))

        if not alerts:
            self._log_idle()
            return

        groups = group_alerts_by_market(alerts)
        logger.info(
            "Checking %d active alert(s) across %d market(s)", len(alerts), len(groups)
        )

        semaphore = asyncio.Semaphore(self._market_concurrency)

        async def check_group(market_id: str, group: list[PriceAlert]) -> None:
            async with semaphore:
                await self._check_market(market_id, group, result)

        await asyncio.gather(*(check_group(m, g) for m, g in groups.items()))

        logger.info(
            "Alert check complete: %d checked, %d triggered, %d market(s) skipped",
            result.alerts_checked,
            result.alerts_triggered,
            result.markets_skipped,
        )

    def _log_idle(self) -> None:
        """Log the idle message at most once per idle log interval."""
        now = time.monotonic()
        if self._last_idle_log is None or now - self._last_idle_log >= self._idle_log_interval:
            logger.info("No active alerts to check")
            self._last_idle_log = now

    async def _check_market(
        self, market_id: str, alerts: list[PriceAlert], result: CycleResult
    ) -> None:
        """Price one market and evaluate all of its alerts against that price."""
        try:
            market = await self._oracle.get_price(market_id)
        except Exception as e:
            result.markets_skipped += 1
            metrics.MARKETS_SKIPPED.inc()
            self._record_error(result, f"market {market_id}", e)
            return

        if market is None:
            logger.info("Market %s not found, skipping %d alert(s)", market_id, len(alerts))
            result.markets_skipped += 1
            metrics.MARKETS_SKIPPED.inc()
            return

        result.markets_checked += 1
        logger.debug(
            "Market %r current price: %s", market.question, format_cents(market.current_price)
        )

        for alert in alerts:
            try:
                await self._check_alert(alert, market, result)
            except Exception as e:
                self._record_error(result, f"alert {alert.id}", e)

    async def _check_alert(
        self, alert: PriceAlert, market: MarketPrice, result: CycleResult
    ) -> None:
        """Evaluate one alert and either trigger it or record the check."""
        result.alerts_checked += 1

        if alert.parsed_condition is None:
            logger.warning(
                "Alert %s has unrecognized condition %r; it will never trigger",
                alert.id,
                alert.condition,
            )

        if should_trigger(alert.target_price, alert.condition, market.current_price):
            await self._trigger_alert(alert, market.current_price, result)
        else:
            await self._store.update(alert.id, last_checked_at=self._clock())

    async def _trigger_alert(
        self, alert: PriceAlert, current_price: Decimal, result: CycleResult
    ) -> None:
        """Mark an alert as triggered, then notify its owner.

        The status change is committed before notification is attempted and
        is never reverted by a failed delivery.
        """
        now = self._clock()
        logger.info(
            "Alert triggered: %s (target %s %s, current %s)",
            alert.market_question,
            alert.condition,
            format_cents(alert.target_price),
            format_cents(current_price),
        )

        updated = await self._store.update(
            alert.id,
            status=AlertStatus.TRIGGERED,
            triggered_at=now,
            last_checked_at=now,
            notification_sent=True,
        )
        if updated is None:
            logger.warning("Alert %s is no longer active; not notifying", alert.id)
            return

        result.alerts_triggered += 1
        metrics.ALERTS_TRIGGERED.inc()
        logger.info("Alert %s marked as triggered", alert.id)

        await self._notify(alert, current_price, result)

    async def _notify(
        self, alert: PriceAlert, current_price: Decimal, result: CycleResult
    ) -> None:
        """Send a best-effort notification for a triggered alert."""
        try:
            contact = await self._store.get_owner_contact(alert.owner_wallet)
            if contact is None:
                logger.info(
                    "No user found for wallet %s; skipping notification", alert.owner_wallet
                )
                self._count_notification(result, "skipped")
                return
            if not contact.deliverable:
                logger.info(
                    "User %s has no verified contact address; skipping notification",
                    alert.owner_wallet,
                )
                self._count_notification(result, "skipped")
                return

            notice = PriceAlertNotice.from_alert(alert, current_price)
            # contact.deliverable guarantees an address
            sent = await self._notifier.send(str(contact.address), notice)
        except Exception as e:
            logger.error("Error sending notification for alert %s: %s", alert.id, e)
            self._count_notification(result, "failed")
            return

        if sent:
            logger.info("Notification sent for alert %s", alert.id)
            self._count_notification(result, "sent")
        else:
            logger.warning("Failed to send notification for alert %s", alert.id)
            self._count_notification(result, "failed")

    @staticmethod
    def _count_notification(result: CycleResult, outcome: str) -> None:
        """Record a notification outcome in the cycle result and metrics."""
        if outcome == "sent":
            result.notifications_sent += 1
        elif outcome == "failed":
            result.notifications_failed += 1
        else:
            result.notifications_skipped += 1
        metrics.NOTIFICATIONS_TOTAL.labels(result=outcome).inc()

    @staticmethod
    def _record_error(result: CycleResult, context: str, error: Exception) -> None:
        """Log an error, distinguishing network failures from everything else."""
        if is_transient_error(error):
            metrics.CHECK_ERRORS.labels(kind="network").inc()
            logger.warning(
                "Network error checking %s: %s. Will retry on the next cycle.", context, error
            )
        else:
            metrics.CHECK_ERRORS.labels(kind="other").inc()
            logger.error("Error checking %s: %s", context, error, exc_info=error)
        result.errors.append(f"{context}: {error}")
