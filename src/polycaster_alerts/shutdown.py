"""Graceful shutdown handling for the alert service.

Usage:
    ```python
    async def main():
        async with GracefulShutdown() as shutdown:
            service = AlertService(settings)
            shutdown.register_cleanup(service.stop)
            await service.start()

            await shutdown.wait()
    ```
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from collections.abc import Callable
from contextlib import suppress
from types import FrameType
from typing import Any

logger = logging.getLogger(__name__)

# Default time allowed for cleanup callbacks, in seconds
DEFAULT_SHUTDOWN_TIMEOUT = 30.0

# Signals to trap for graceful shutdown
SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class GracefulShutdown:
    """Traps SIGTERM/SIGINT and coordinates cleanup.

    The first signal sets an event that ``wait()`` returns on; a second
    signal exits immediately. Registered cleanup callbacks (sync or async)
    run on context exit, bounded by ``timeout``.
    """

    def __init__(self, timeout: float = DEFAULT_SHUTDOWN_TIMEOUT) -> None:
        """Initialize the shutdown handler.

        Args:
            timeout: Maximum time in seconds allowed for cleanup callbacks.
        """
        self._timeout = timeout
        self._shutdown_event: asyncio.Event | None = None
        self._shutdown_requested = False
        self._cleanup_callbacks: list[Callable[[], Any]] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._original_handlers: dict[signal.Signals, Any] = {}

    @property
    def timeout(self) -> float:
        """Cleanup timeout in seconds."""
        return self._timeout

    @property
    def is_shutdown_requested(self) -> bool:
        """Check if shutdown has been requested."""
        return self._shutdown_requested

    def register_cleanup(self, callback: Callable[[], Any]) -> None:
        """Register a cleanup callback to run during shutdown.

        Args:
            callback: A callable (sync or async) to run during shutdown.
        """
        self._cleanup_callbacks.append(callback)

    def _event(self) -> asyncio.Event:
        if self._shutdown_event is None:
            self._shutdown_event = asyncio.Event()
            if self._shutdown_requested:
                self._shutdown_event.set()
        return self._shutdown_event

    def request_shutdown(self) -> None:
        """Request shutdown from application code."""
        if self._shutdown_requested:
            return
        self._shutdown_requested = True
        logger.info("Shutdown requested programmatically")
        if self._shutdown_event:
            self._shutdown_event.set()

    async def wait(self) -> None:
        """Block until a shutdown signal arrives or ``request_shutdown()`` is called."""
        await self._event().wait()

    def install_signal_handlers(self) -> None:
        """Install handlers for SIGTERM and SIGINT."""
        self._loop = asyncio.get_running_loop()
        self._event()

        for sig in SHUTDOWN_SIGNALS:
            try:
                self._loop.add_signal_handler(sig, self._handle_signal, sig)
            except NotImplementedError:
                # Event loops without add_signal_handler (Windows)
                self._original_handlers[sig] = signal.signal(sig, self._handle_signal_sync)
            except (ValueError, OSError) as e:
                logger.warning("Could not install handler for %s: %s", sig.name, e)

        logger.debug("Signal handlers installed")

    def remove_signal_handlers(self) -> None:
        """Remove installed handlers and restore any originals."""
        if self._loop is not None:
            for sig in SHUTDOWN_SIGNALS:
                with suppress(ValueError, OSError, NotImplementedError):
                    self._loop.remove_signal_handler(sig)
        for sig, original in self._original_handlers.items():
            with suppress(ValueError, OSError):
                signal.signal(sig, original)
        self._original_handlers.clear()
        logger.debug("Signal handlers removed")

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle a shutdown signal.

        Args:
            sig: The signal that was received.
        """
        if self._shutdown_requested:
            logger.warning("Received %s again - forcing exit!", sig.name)
            sys.exit(128 + sig.value)

        self._shutdown_requested = True
        logger.info("Received %s - initiating graceful shutdown...", sig.name)
        self._event().set()

    def _handle_signal_sync(self, sig: int, _frame: FrameType | None) -> None:
        """Adapter for ``signal.signal`` handlers."""
        self._handle_signal(signal.Signals(sig))

    async def run_cleanup_callbacks(self) -> None:
        """Run all registered cleanup callbacks within the timeout."""

        async def run_all() -> None:
            for callback in self._cleanup_callbacks:
                try:
                    result = callback()
                    if asyncio.iscoroutine(result):
                        await result
                except Exception as e:
                    logger.error("Cleanup callback failed: %s", e)

        try:
            await asyncio.wait_for(run_all(), timeout=self._timeout)
        except TimeoutError:
            logger.error("Cleanup did not finish within %.1fs", self._timeout)

    async def __aenter__(self) -> GracefulShutdown:
        """Install signal handlers."""
        self.install_signal_handlers()
        return self

    async def __aexit__(self, *_args: Any) -> None:
        """Remove signal handlers and run cleanup."""
        self.remove_signal_handlers()
        await self.run_cleanup_callbacks()
