"""Prometheus metrics for storecache.

Provides cache metrics collection:
- Hits and misses per tier
- Factory populations per tier
- Tier invalidations and invalidation failures
- Fire-and-forget writes that never reached the distributed tier

Usage:
    from storecache.observability.metrics import get_metrics

    metrics = get_metrics()
    metrics.cache_hits_total.labels(tier="memory").inc()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from prometheus_client import CollectorRegistry, Counter, generate_latest

from storecache.config import settings

logger = logging.getLogger(__name__)


class NoOpMetric:
    """No-op metric for when metrics are disabled."""

    def labels(self, **kwargs: Any) -> NoOpMetric:
        """Return self for chaining."""
        return self

    def inc(self, amount: float = 1) -> None:
        """No-op."""


@dataclass
class MetricsRegistry:
    """Registry for cache metrics."""

    cache_hits_total: Any = None
    cache_misses_total: Any = None
    cache_populations_total: Any = None
    cache_invalidations_total: Any = None
    cache_invalidation_failures_total: Any = None
    cache_dropped_writes_total: Any = None

    enabled: bool = True

    # Internal state
    _initialized: bool = field(default=False, repr=False)
    _registry: CollectorRegistry | None = field(default=None, repr=False)

    def initialize(self) -> None:
        """Create the Prometheus collectors."""
        if self._initialized:
            return

        if not self.enabled:
            noop = NoOpMetric()
            self.cache_hits_total = noop
            self.cache_misses_total = noop
            self.cache_populations_total = noop
            self.cache_invalidations_total = noop
            self.cache_invalidation_failures_total = noop
            self.cache_dropped_writes_total = noop
            logger.info("Metrics are disabled")
            self._initialized = True
            return

        self._registry = CollectorRegistry()

        self.cache_hits_total = Counter(
            "storecache_cache_hits_total",
            "Cache hits",
            ["tier"],
            registry=self._registry,
        )

        self.cache_misses_total = Counter(
            "storecache_cache_misses_total",
            "Cache misses",
            ["tier"],
            registry=self._registry,
        )

        self.cache_populations_total = Counter(
            "storecache_cache_populations_total",
            "Values produced by a factory after a miss",
            ["tier"],
            registry=self._registry,
        )

        self.cache_invalidations_total = Counter(
            "storecache_cache_invalidations_total",
            "Tier invalidations (remove, pattern removal, clear)",
            ["tier", "operation"],
            registry=self._registry,
        )

        self.cache_invalidation_failures_total = Counter(
            "storecache_cache_invalidation_failures_total",
            "Tier invalidations that failed or only partly succeeded",
            ["tier", "operation"],
            registry=self._registry,
        )

        self.cache_dropped_writes_total = Counter(
            "storecache_cache_dropped_writes_total",
            "Fire-and-forget writes that failed",
            ["tier"],
            registry=self._registry,
        )

        self._initialized = True
        logger.info("Prometheus metrics initialized")

    def generate_latest(self) -> bytes:
        """Generate Prometheus metrics in exposition format."""
        if self._registry is None:
            return b"# Metrics disabled\n"
        return generate_latest(self._registry)


# Global metrics registry
metrics_registry = MetricsRegistry(enabled=settings.enable_metrics)


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry.

    Initializes metrics on first access.
    """
    if not metrics_registry._initialized:
        metrics_registry.initialize()
    return metrics_registry
