"""
Cachetron - Rolling Cache Statistics

Shared metrics algorithm for every backend adapter.

Backends report cumulative counters (hits, misses, evictions). Each sample
compares them with the previous sample held in PreviousStats:
- rolling ratios come from the clamped deltas since the last sample
- lifetime ratios come from the cumulative counters
- data change rate is evictions per minute since the last sample

Counter resets (backend restart) produce negative raw deltas; these clamp to 0.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

BYTES_PER_MB = 1024 * 1024
RATIO_PRECISION = 3
SIZE_PRECISION = 2


def safe_number(value: Any) -> float:
    """Coerce a raw stat to a non-negative finite float; anything else becomes 0."""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    if isinstance(value, bool):
        return 0.0
    try:
        num = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(num) or num < 0:
        return 0.0
    return num


def safe_precision(value: float, decimals: int) -> float:
    """Round to a fixed precision, mapping NaN/Infinity to 0."""
    if not math.isfinite(value):
        return 0.0
    return round(value, decimals)


def ratio(part: float, total: float) -> float:
    """part / total, defined as 0 when total is 0."""
    return part / total if total > 0 else 0.0


class MetricsSnapshot(BaseModel):
    """One metrics sample from a backend adapter."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat().replace("+00:00", "Z"))
    hit_ratio: float = 0.0
    miss_ratio: float = 0.0
    hit_ratio_lifetime: float = 0.0
    miss_ratio_lifetime: float = 0.0
    cache_size: float = Field(default=0.0, description="Used memory in MB")
    data_change_rate: float = Field(default=0.0, description="Evictions per minute")
    key_count: int = 0
    avg_key_size: float = Field(default=0.0, description="Average bytes per key")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def ttl_features(self) -> tuple[float, float, float, float]:
        """Feature vector consumed by the TTL predictor."""
        return (
            self.hit_ratio_lifetime,
            self.miss_ratio_lifetime,
            self.cache_size,
            self.data_change_rate,
        )

    def to_record(self) -> dict[str, Any]:
        """Serialize with camelCase keys for the metrics sink."""
        return self.model_dump(by_alias=True)


@dataclass
class PreviousStats:
    """Cumulative counters from the previous sample, owned by one adapter."""

    hits: float = 0.0
    misses: float = 0.0
    evictions: float = 0.0
    last_check_time: float = field(default_factory=time.time)


class RollingStats:
    """
    Turns successive cumulative counter readings into MetricsSnapshots.

    A fresh instance is created with every adapter, so rolling ratios
    restart from zero after a migration.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self.previous = PreviousStats(last_check_time=clock())

    def sample(
        self,
        hits: Any,
        misses: Any,
        evictions: Any,
        used_bytes: Any,
        key_count: Any = 0,
    ) -> MetricsSnapshot:
        """Compute a snapshot from raw cumulative counters and advance the baseline."""
        hits_now = safe_number(hits)
        misses_now = safe_number(misses)
        evictions_now = safe_number(evictions)
        used = safe_number(used_bytes)
        keys = safe_number(key_count)

        hits_delta = max(0.0, hits_now - self.previous.hits)
        misses_delta = max(0.0, misses_now - self.previous.misses)
        evictions_delta = max(0.0, evictions_now - self.previous.evictions)
        total_delta = hits_delta + misses_delta

        lifetime_total = hits_now + misses_now

        now = self._clock()
        minutes_passed = (now - self.previous.last_check_time) / 60
        change_rate = evictions_delta / minutes_passed if minutes_passed > 0 else 0.0

        self.previous = PreviousStats(
            hits=hits_now,
            misses=misses_now,
            evictions=evictions_now,
            last_check_time=now,
        )

        return MetricsSnapshot(
            hit_ratio=safe_precision(ratio(hits_delta, total_delta), RATIO_PRECISION),
            miss_ratio=safe_precision(ratio(misses_delta, total_delta), RATIO_PRECISION),
            hit_ratio_lifetime=safe_precision(ratio(hits_now, lifetime_total), RATIO_PRECISION),
            miss_ratio_lifetime=safe_precision(ratio(misses_now, lifetime_total), RATIO_PRECISION),
            cache_size=safe_precision(used / BYTES_PER_MB, SIZE_PRECISION),
            data_change_rate=safe_precision(change_rate, SIZE_PRECISION),
            key_count=int(keys),
            avg_key_size=safe_precision(ratio(used, keys), 0),
        )
