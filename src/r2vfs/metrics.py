"""Prometheus metrics definitions for r2vfs.

All metrics use the ``r2vfs_`` prefix. They count virtual filesystem
operations and transferred bytes; exposing them (an HTTP endpoint, a push
gateway) is up to the embedding application.

Metrics stay ``None`` until :func:`init_metrics` is called, and the
``record_*`` helpers are no-ops until then, so library users who do not
want Prometheus collectors in the global registry pay nothing.
"""

from __future__ import annotations

from prometheus_client import Counter

_initialized: bool = False

# ---------------------------------------------------------------------------
# Operation counter  (labels: operation, status)
# ---------------------------------------------------------------------------
operations_total: Counter | None = None

# ---------------------------------------------------------------------------
# Byte counters
# ---------------------------------------------------------------------------
bytes_uploaded_total: Counter | None = None
bytes_downloaded_total: Counter | None = None


def init_metrics() -> None:
    """Create and register all Prometheus metrics. Safe to call twice."""
    global _initialized
    global operations_total, bytes_uploaded_total, bytes_downloaded_total

    if _initialized:
        return

    operations_total = Counter(
        "r2vfs_operations_total",
        "Total virtual filesystem operations by type and outcome",
        ["operation", "status"],
    )

    bytes_uploaded_total = Counter(
        "r2vfs_bytes_uploaded_total",
        "Total bytes acknowledged by upload transfers",
    )

    bytes_downloaded_total = Counter(
        "r2vfs_bytes_downloaded_total",
        "Total bytes written by downloads",
    )

    _initialized = True


def record_operation(operation: str, status: str) -> None:
    if operations_total is not None:
        operations_total.labels(operation=operation, status=status).inc()


def record_uploaded(n: int) -> None:
    if bytes_uploaded_total is not None and n > 0:
        bytes_uploaded_total.inc(n)


def record_downloaded(n: int) -> None:
    if bytes_downloaded_total is not None and n > 0:
        bytes_downloaded_total.inc(n)
