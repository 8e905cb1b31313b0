"""
Cachetron - Metrics Collector

Periodically samples the active cache adapter, appends each snapshot to the
metrics sink and keeps the latest TTL feature vector in memory for
adaptive-TTL writes.

A failed sample (timeout, malformed stats, backend down) is logged and
skipped; the collector keeps running.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from ..errors import MetricsCollectionError

if TYPE_CHECKING:
    from ..cache.interface import CacheInterface
    from ..cache.metrics import MetricsSnapshot
    from .store import MetricsStore

logger = logging.getLogger(__name__)


class MetricsCollector:
    """Background sampler with an explicit start/stop lifecycle."""

    def __init__(
        self,
        cache_source: Callable[[], CacheInterface | None],
        store: MetricsStore | None = None,
        interval: float = 5.0,
    ) -> None:
        """
        Args:
            cache_source: Returns the currently active adapter (None if none yet)
            store: Metrics sink; samples are only kept in memory when omitted
            interval: Seconds between samples
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.cache_source = cache_source
        self.store = store
        self.interval = interval
        self.latest: MetricsSnapshot | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def latest_features(self) -> tuple[float, float, float, float] | None:
        """TTL feature vector from the latest sample, None before the first one."""
        return self.latest.ttl_features() if self.latest else None

    async def collect_once(self) -> MetricsSnapshot | None:
        """Take one sample from the active adapter. Returns None if skipped."""
        cache = self.cache_source()
        if cache is None:
            return None

        try:
            snapshot = await cache.get_cache_metrics()
        except MetricsCollectionError as e:
            logger.warning(
                f"Skipping metrics sample: {e.message}",
                extra={"backend": cache.backend_name, "details": e.details},
            )
            return None
        except Exception as e:
            logger.error(
                f"Error collecting metrics: {e}",
                extra={"backend": cache.backend_name, "error": str(e)},
                exc_info=True,
            )
            return None

        self.latest = snapshot

        if self.store is not None:
            try:
                await self.store.append(snapshot)
            except OSError as e:
                logger.error(
                    f"Failed to write metrics file: {e}",
                    extra={"path": str(self.store.path), "error": str(e)},
                )

        return snapshot

    async def _run(self) -> None:
        while True:
            await self.collect_once()
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        """Start periodic collection on the running event loop (idempotent)."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="cachetron-metrics")
        logger.info("Metrics collection started", extra={"interval": self.interval})

    async def stop(self) -> None:
        """Cancel periodic collection and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Metrics collection stopped")
