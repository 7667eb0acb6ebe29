"""Command-line entry point for the price alert checker.

Usage:
    polycaster-alerts [--config-check] [--dry-run] [--interval SECONDS] ...
    python -m polycaster_alerts ...

Command-line options override the matching environment settings for this run.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import logging.config
import sys
from typing import NoReturn

from pydantic import ValidationError

from polycaster_alerts import __version__
from polycaster_alerts.config import Settings, clear_settings_cache, get_settings
from polycaster_alerts.service import AlertService
from polycaster_alerts.shutdown import GracefulShutdown

logger = logging.getLogger(__name__)

APP_NAME = "PolyCaster Price Alerts"

EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s:%(lineno)d: %(message)s"

# Client libraries that log every request at INFO or DEBUG
QUIET_LOGGERS = ("httpx", "httpcore", "aiohttp.access", "aiosqlite", "sqlalchemy.engine")


def positive_seconds(value: str) -> float:
    """argparse type for a strictly positive number of seconds."""
    try:
        seconds = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from None
    if seconds <= 0:
        raise argparse.ArgumentTypeError("must be greater than zero")
    return seconds


def port_number(value: str) -> int:
    """argparse type for a TCP port, where 0 means disabled."""
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a port number: {value!r}") from None
    if not 0 <= port <= 65535:
        raise argparse.ArgumentTypeError("must be between 0 and 65535")
    return port


def create_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="polycaster-alerts",
        description=(
            "Poll prediction-market prices, fire the price alerts they satisfy "
            "and e-mail the alert owners."
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config-check",
        action="store_true",
        help="print the effective configuration and exit",
    )

    overrides = parser.add_argument_group("setting overrides")
    overrides.add_argument("--log-level", choices=LOG_LEVELS, help="LOG_LEVEL")
    overrides.add_argument(
        "--dry-run",
        action="store_true",
        help="log notifications instead of e-mailing them (DRY_RUN)",
    )
    overrides.add_argument(
        "--health-port",
        type=port_number,
        metavar="PORT",
        help="health and metrics port, 0 disables the server (HEALTH_PORT)",
    )
    overrides.add_argument(
        "--interval",
        type=positive_seconds,
        metavar="SECONDS",
        help="seconds between check cycles (ALERT_CHECK_INTERVAL_SECONDS)",
    )
    return parser


def load_settings() -> Settings | None:
    """Read settings from the environment, reporting validation errors."""
    clear_settings_cache()
    try:
        return get_settings()
    except ValidationError as e:
        print("Invalid configuration:", file=sys.stderr)
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            print(f"  {location}: {error['msg']}", file=sys.stderr)
        return None


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Return a copy of ``settings`` with any command-line overrides applied."""
    updates: dict[str, object] = {}
    if args.log_level is not None:
        updates["log_level"] = args.log_level
    if args.dry_run:
        updates["dry_run"] = True
    if args.health_port is not None:
        updates["health_port"] = args.health_port
    if args.interval is not None:
        updates["checker"] = settings.checker.model_copy(
            update={"interval_seconds": args.interval}
        )
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def configure_logging(level: str) -> None:
    """Send all logs to stdout at ``level``, keeping client libraries at WARNING."""
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": DEBUG_LOG_FORMAT if level == "DEBUG" else LOG_FORMAT,
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                },
            },
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "stream": "ext://sys.stdout",
                },
            },
            "root": {"level": level, "handlers": ["stdout"]},
            "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
        }
    )


def describe_settings(settings: Settings) -> list[str]:
    """Render the settings an operator needs to confirm before a run."""
    summary = settings.redacted_summary()
    health = "disabled" if settings.health_port == 0 else f":{settings.health_port}"
    if settings.dry_run:
        delivery = "dry run (logged only)"
    elif settings.email.enabled:
        delivery = f"e-mail via Resend from {settings.email.from_email}"
    else:
        delivery = "e-mail via Resend, NO API KEY (every send will fail)"
    return [
        f"{APP_NAME} {__version__}",
        f"  database        {summary['database_url']}",
        f"  market data     {settings.polymarket.api_url}",
        f"  check interval  {settings.checker.interval_seconds:g}s",
        f"  concurrency     {settings.checker.market_concurrency} market(s)",
        f"  notifications   {delivery}",
        f"  health server   {health}",
        f"  log level       {settings.log_level}",
    ]


async def run_service(settings: Settings, shutdown_timeout: float = 30.0) -> int:
    """Run the alert service until SIGINT or SIGTERM, returning an exit code."""
    shutdown = GracefulShutdown(timeout=shutdown_timeout)
    try:
        async with shutdown:
            service = AlertService(settings, dry_run=settings.dry_run)
            shutdown.register_cleanup(service.stop)
            await service.start()
            await shutdown.wait()
            await service.stop()
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_INTERRUPTED
    except Exception:
        logger.exception("Alert service terminated with an error")
        return EXIT_ERROR
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> NoReturn:
    """Parse arguments, load settings and run the service or the config check."""
    args = create_parser().parse_args(argv)

    settings = load_settings()
    if settings is None:
        sys.exit(EXIT_CONFIG_ERROR)
    settings = apply_overrides(settings, args)

    print("\n".join(describe_settings(settings)))
    if args.config_check:
        sys.exit(EXIT_SUCCESS)

    configure_logging(settings.log_level)
    sys.exit(asyncio.run(run_service(settings)))


if __name__ == "__main__":
    main()
