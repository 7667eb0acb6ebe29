"""Health and metrics HTTP endpoints for the alert checker.

This module exposes the checker's status and cumulative statistics over
HTTP, together with Prometheus metrics.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from aiohttp import web
from prometheus_client import generate_latest

if TYPE_CHECKING:
    from polycaster_alerts.alerts.checker import AlertChecker

logger = logging.getLogger(__name__)

DEFAULT_HTTP_PORT = 8080


class HealthServer:
    """HTTP server exposing /health, /ready, /live and /metrics.

    Example:
        ```python
        server = HealthServer(checker)
        await server.start(port=8080)
        ...
        await server.stop()
        ```
    """

    def __init__(self, checker: AlertChecker) -> None:
        """Initialize the server.

        Args:
            checker: The alert checker whose status is reported.
        """
        self._checker = checker
        self._start_time = time.time()
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None

    @property
    def is_running(self) -> bool:
        """Return True if the HTTP server is running."""
        return self._runner is not None

    def build_health_body(self) -> dict[str, Any]:
        """Build the /health response body."""
        status = self._checker.get_status()
        stats = self._checker.stats
        return {
            "status": "healthy" if status.running else "unhealthy",
            "uptime_seconds": round(time.time() - self._start_time, 1),
            "checker": status.to_dict(),
            "stats": {
                "total_cycles": stats.total_cycles,
                "failed_cycles": stats.failed_cycles,
                "skipped_ticks": stats.skipped_ticks,
                "alerts_triggered": stats.alerts_triggered,
                "notifications_sent": stats.notifications_sent,
                "notifications_failed": stats.notifications_failed,
                "last_cycle_time": (
                    stats.last_cycle_time.isoformat() if stats.last_cycle_time else None
                ),
                "last_cycle_duration_seconds": round(stats.last_cycle_duration_seconds, 3),
                "last_error": stats.last_error,
            },
        }

    async def _handle_health(self, _request: web.Request) -> web.Response:
        """Handle /health endpoint."""
        body = self.build_health_body()
        status_code = 200 if body["checker"]["running"] else 503
        return web.json_response(body, status=status_code)

    async def _handle_metrics(self, _request: web.Request) -> web.Response:
        """Handle /metrics endpoint (Prometheus format)."""
        return web.Response(
            body=generate_latest(),
            content_type="text/plain",
            charset="utf-8",
        )

    async def _handle_ready(self, _request: web.Request) -> web.Response:
        """Handle /ready endpoint for k8s readiness probe."""
        if not self._checker.is_running:
            return web.json_response({"ready": False, "reason": "checker stopped"}, status=503)
        return web.json_response({"ready": True}, status=200)

    async def _handle_live(self, _request: web.Request) -> web.Response:
        """Handle /live endpoint for k8s liveness probe."""
        return web.json_response({"live": True}, status=200)

    def _create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application()
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/metrics", self._handle_metrics)
        app.router.add_get("/ready", self._handle_ready)
        app.router.add_get("/live", self._handle_live)
        return app

    async def start(self, port: int = DEFAULT_HTTP_PORT, host: str = "0.0.0.0") -> None:
        """Start the HTTP server.

        Args:
            port: Port to listen on.
            host: Interface to bind.
        """
        if self._runner:
            logger.warning("HTTP server already running")
            return

        self._app = self._create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        site = web.TCPSite(self._runner, host, port)
        await site.start()

        logger.info("Health HTTP server started on port %d", port)

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._app = None
            logger.info("Health HTTP server stopped")
