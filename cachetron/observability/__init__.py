"""
Cachetron - Observability Module

Metrics sampling, the metrics sink file and structured logging.

Usage:
    from cachetron.observability import MetricsCollector, MetricsStore

    collector = MetricsCollector(manager.current, MetricsStore("./data/metric.json"))
    collector.start()
"""

from .collector import MetricsCollector
from .monitoring import JSONFormatter, configure_logging
from .store import MetricsStore

__all__ = [
    "MetricsCollector",
    "MetricsStore",
    "JSONFormatter",
    "configure_logging",
]
