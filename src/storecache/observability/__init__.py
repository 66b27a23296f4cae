"""Observability for storecache: structured logging and Prometheus metrics."""

from storecache.observability.logging import LogContext, configure_logging
from storecache.observability.metrics import MetricsRegistry, get_metrics

__all__ = ["LogContext", "MetricsRegistry", "configure_logging", "get_metrics"]
