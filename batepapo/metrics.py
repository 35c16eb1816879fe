"""Prometheus metrics exposed on /metrics.

Metric naming convention: batepapo_{subsystem}_{metric}_{unit}
"""

from prometheus_client import Counter, Histogram

# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------
http_requests_total = Counter(
    "batepapo_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration = Histogram(
    "batepapo_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5),
)

# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------
participants_registered_total = Counter(
    "batepapo_participants_registered_total",
    "Participants that joined the room",
)

messages_posted_total = Counter(
    "batepapo_messages_posted_total",
    "Messages posted by participants",
    ["type"],
)

# ---------------------------------------------------------------------------
# Reaper
# ---------------------------------------------------------------------------
participants_reaped_total = Counter(
    "batepapo_reaper_participants_removed_total",
    "Participants evicted for inactivity",
)

reaper_unit_failures_total = Counter(
    "batepapo_reaper_unit_failures_total",
    "Per-participant reap units that raised",
)

reaper_tick_failures_total = Counter(
    "batepapo_reaper_tick_failures_total",
    "Reaper ticks that failed as a whole",
)

reaper_sweep_duration = Histogram(
    "batepapo_reaper_sweep_duration_seconds",
    "Duration of one reaper sweep",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
)
