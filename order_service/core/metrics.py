"""
Metrics Sink

Use cases receive a MetricsSink and only ever call ``increment`` and
``observe`` on it. The Prometheus variant owns a private registry so
several application instances (and test runs) never collide on metric
names in the global default registry.

Author: Your Name
Version: 1.0.0
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

Labels = Optional[dict[str, str]]


class MetricsSink(ABC):
    """Counter/histogram contract used by the business layer."""

    @abstractmethod
    def increment(self, name: str, labels: Labels = None) -> None:
        pass

    @abstractmethod
    def observe(self, name: str, labels: Labels, value: float) -> None:
        pass


class NullMetrics(MetricsSink):
    """Discards every measurement."""

    def increment(self, name: str, labels: Labels = None) -> None:
        return None

    def observe(self, name: str, labels: Labels, value: float) -> None:
        return None


class PrometheusMetrics(MetricsSink):
    """
    Prometheus-backed sink with the order service's metric catalogue.

    Names must match a pre-declared metric; anything else is logged once
    and dropped rather than failing the caller.
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self._warned: set[str] = set()
        self._metrics = {
            "orders_created_total": Counter(
                "orders_created_total",
                "Orders successfully created",
                registry=self.registry,
            ),
            "orders_canceled_total": Counter(
                "orders_canceled_total",
                "Orders canceled",
                registry=self.registry,
            ),
            "payment_attempts_total": Counter(
                "payment_attempts_total",
                "Payment attempts sent to a gateway",
                ["provider"],
                registry=self.registry,
            ),
            "payment_success_total": Counter(
                "payment_success_total",
                "Payments approved by a gateway",
                ["provider"],
                registry=self.registry,
            ),
            "payment_failures_total": Counter(
                "payment_failures_total",
                "Payments declined by a gateway",
                ["provider", "reason"],
                registry=self.registry,
            ),
            "payment_latency_seconds": Histogram(
                "payment_latency_seconds",
                "Wall-clock time spent waiting for a gateway result",
                ["provider"],
                buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
                registry=self.registry,
            ),
        }

    def _resolve(self, name: str, labels: Labels):
        metric = self._metrics.get(name)
        if metric is None:
            if name not in self._warned:
                logger.warning(f"Metrics: unknown metric '{name}' ignored")
                self._warned.add(name)
            return None
        return metric.labels(**labels) if labels else metric

    def increment(self, name: str, labels: Labels = None) -> None:
        metric = self._resolve(name, labels)
        if metric is not None:
            metric.inc()

    def observe(self, name: str, labels: Labels, value: float) -> None:
        metric = self._resolve(name, labels)
        if metric is not None:
            metric.observe(value)

    def render(self) -> bytes:
        """Text exposition format for the /metrics route."""
        return generate_latest(self.registry)
