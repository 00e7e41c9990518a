"""
Prometheus metric registration and publishing.

Usage:
    from utils.metrics import MetricsPublisher, get_or_create_metric

    PAGES = get_or_create_metric(
        lambda: Counter("reconcile_pages_compared_total", "Pages compared", ["table"]),
        "reconcile_pages_compared",
    )
    MetricsPublisher(port=9108).start()
"""

import logging
from collections.abc import Callable
from typing import TypeVar

from prometheus_client import REGISTRY, CollectorRegistry, start_http_server

logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_or_create_metric(
    metric_factory: Callable[[], T],
    metric_name: str,
    registry: CollectorRegistry = REGISTRY,
) -> T:
    """
    Create a metric, or return the one already registered under that name.

    Module reloads (tests, schedulers re-importing jobs) would otherwise
    fail with "Duplicated timeseries in CollectorRegistry".

    Args:
        metric_factory: Callable that creates the metric
        metric_name: Registered name to look up if creation collides.
        registry: Prometheus registry the factory registers into
    """
    try:
        return metric_factory()
    except ValueError:
        existing = registry._names_to_collectors.get(metric_name)
        if existing is not None:
            return existing
        raise


class MetricsPublisher:
    """Exposes the registry on an HTTP ``/metrics`` endpoint."""

    def __init__(self, port: int = 9108, registry: CollectorRegistry | None = None):
        self.port = port
        self.registry = registry or REGISTRY
        self._server_started = False

    def start(self) -> None:
        """Start the metrics HTTP server (idempotent)."""
        if self._server_started:
            logger.warning(f"Metrics server already running on port {self.port}")
            return

        try:
            start_http_server(self.port, registry=self.registry)
        except OSError as e:
            raise RuntimeError(
                f"Metrics server could not bind port {self.port}: {e}"
            ) from e

        self._server_started = True
        logger.info(f"Metrics server started on port {self.port}")

    def is_started(self) -> bool:
        return self._server_started
