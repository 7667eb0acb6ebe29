"""Prometheus metrics for the alert checker."""

from prometheus_client import Counter, Gauge, Histogram

CYCLES_TOTAL = Counter(
    "polycaster_alert_cycles_total",
    "Total number of alert check cycles",
    ["outcome"],
)

ACTIVE_ALERTS = Gauge(
    "polycaster_active_alerts",
    "Number of active alerts found by the last cycle",
)

ALERTS_TRIGGERED = Counter(
    "polycaster_alerts_triggered_total",
    "Total number of alerts transitioned to triggered",
)

NOTIFICATIONS_TOTAL = Counter(
    "polycaster_notifications_total",
    "Notification attempts by result",
    ["result"],
)

MARKETS_SKIPPED = Counter(
    "polycaster_markets_skipped_total",
    "Market groups skipped because the market could not be priced",
)

CHECK_ERRORS = Counter(
    "polycaster_check_errors_total",
    "Errors raised while checking alerts",
    ["kind"],
)

CYCLE_DURATION = Histogram(
    "polycaster_alert_cycle_duration_seconds",
    "Duration of alert check cycles in seconds",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)

CHECKER_RUNNING = Gauge(
    "polycaster_alert_checker_running",
    "Alert checker state (1=running, 0=stopped)",
)
