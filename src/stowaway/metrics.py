"""Prometheus metrics definitions for Stowaway.

All custom Stowaway metrics use the ``stowaway_`` prefix for namespace
isolation.  Metrics are opt-in: until ``init_metrics()`` runs, every
module-level reference stays ``None`` and call sites skip recording.

Counters reset to zero when the process restarts.  The scheduled
deletions gauge mirrors the size of the in-memory sweeper registry and is
only meaningful for the mock backend.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

# Flag indicating whether metrics have been initialised via init_metrics().
_initialized: bool = False

# ---------------------------------------------------------------------------
# Command counter  (labels: command, status)
# ---------------------------------------------------------------------------
commands_total: Counter | None = None

# ---------------------------------------------------------------------------
# Re-authentication counter  (labels: outcome)
# ---------------------------------------------------------------------------
reauthentications_total: Counter | None = None

# ---------------------------------------------------------------------------
# Scheduled expiry
# ---------------------------------------------------------------------------
scheduled_deletions: Gauge | None = None
expired_objects_total: Counter | None = None
expiry_failures_total: Counter | None = None

# ---------------------------------------------------------------------------
# Byte counters
# ---------------------------------------------------------------------------
bytes_uploaded_total: Counter | None = None
bytes_downloaded_total: Counter | None = None


def init_metrics() -> None:
    """Create and register all Prometheus metrics.

    Safe to call more than once; collectors are registered in the global
    registry only on the first call.
    """
    global _initialized
    global commands_total, reauthentications_total
    global scheduled_deletions, expired_objects_total, expiry_failures_total
    global bytes_uploaded_total, bytes_downloaded_total

    if _initialized:
        return

    commands_total = Counter(
        "stowaway_commands_total",
        "Total object store commands by kind and outcome",
        ["command", "status"],
    )

    reauthentications_total = Counter(
        "stowaway_reauthentications_total",
        "Re-authentications triggered by a rejected token",
        ["outcome"],
    )

    scheduled_deletions = Gauge(
        "stowaway_scheduled_deletions",
        "Objects currently registered for scheduled deletion",
    )

    expired_objects_total = Counter(
        "stowaway_expired_objects_total",
        "Objects removed by the scheduled expiry sweeper",
    )

    expiry_failures_total = Counter(
        "stowaway_expiry_failures_total",
        "Due objects the expiry sweeper failed to remove",
    )

    bytes_uploaded_total = Counter(
        "stowaway_bytes_uploaded_total",
        "Total bytes sent in upload bodies",
    )

    bytes_downloaded_total = Counter(
        "stowaway_bytes_downloaded_total",
        "Total bytes received in download bodies",
    )

    _initialized = True
