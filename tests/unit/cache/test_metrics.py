"""
Cachetron - Rolling Statistics Tests

Tests the shared delta/ratio/change-rate algorithm and its numeric guards.
"""

import math

import pytest

from cachetron.cache.metrics import MetricsSnapshot, RollingStats, safe_number, safe_precision


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestSafeNumber:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (5, 5.0),
            ("12", 12.0),
            (b"34", 34.0),
            ("1.5", 1.5),
            (None, 0.0),
            ("abc", 0.0),
            (-3, 0.0),
            (math.nan, 0.0),
            (math.inf, 0.0),
            (True, 0.0),
        ],
    )
    def test_coercion(self, raw: object, expected: float) -> None:
        assert safe_number(raw) == expected

    def test_safe_precision_rounds(self) -> None:
        assert safe_precision(0.123456, 3) == 0.123
        assert safe_precision(2.005, 0) == 2.0

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    def test_safe_precision_non_finite(self, value: float) -> None:
        assert safe_precision(value, 2) == 0.0


class TestRollingStats:
    """Test suite for RollingStats."""

    def test_first_sample_uses_full_counters(self) -> None:
        clock = FakeClock()
        stats = RollingStats(clock=clock)
        clock.advance(60)

        snapshot = stats.sample(hits=80, misses=20, evictions=6, used_bytes=2 * 1024 * 1024, key_count=4)

        assert snapshot.hit_ratio == 0.8
        assert snapshot.miss_ratio == 0.2
        assert snapshot.hit_ratio_lifetime == 0.8
        assert snapshot.miss_ratio_lifetime == 0.2
        assert snapshot.cache_size == 2.0
        assert snapshot.data_change_rate == 6.0
        assert snapshot.key_count == 4
        assert snapshot.avg_key_size == 524288.0

    def test_rolling_ratio_uses_deltas(self) -> None:
        clock = FakeClock()
        stats = RollingStats(clock=clock)
        stats.sample(hits=100, misses=100, evictions=0, used_bytes=0)

        clock.advance(30)
        snapshot = stats.sample(hits=130, misses=110, evictions=0, used_bytes=0)

        assert snapshot.hit_ratio == 0.75
        assert snapshot.miss_ratio == 0.25
        assert snapshot.hit_ratio_lifetime == 0.542
        assert snapshot.miss_ratio_lifetime == 0.458

    @pytest.mark.parametrize(("hits", "misses"), [(1, 2), (7, 3), (1, 0), (0, 9), (333, 667)])
    def test_rolling_ratios_sum_to_one(self, hits: int, misses: int) -> None:
        snapshot = RollingStats().sample(hits=hits, misses=misses, evictions=0, used_bytes=0)
        assert snapshot.hit_ratio + snapshot.miss_ratio == pytest.approx(1.0, abs=0.001)

    def test_no_traffic_gives_zero_ratios(self) -> None:
        stats = RollingStats()
        stats.sample(hits=10, misses=10, evictions=0, used_bytes=0)
        snapshot = stats.sample(hits=10, misses=10, evictions=0, used_bytes=0)

        assert snapshot.hit_ratio == 0.0
        assert snapshot.miss_ratio == 0.0
        assert snapshot.hit_ratio_lifetime == 0.5

    def test_counter_reset_clamps_delta_to_zero(self) -> None:
        """A backend restart makes cumulative counters go backwards."""
        clock = FakeClock()
        stats = RollingStats(clock=clock)
        stats.sample(hits=500, misses=100, evictions=50, used_bytes=0)
        assert stats.previous.hits == 500

        clock.advance(60)
        snapshot = stats.sample(hits=10, misses=120, evictions=5, used_bytes=0)

        # hits delta clamps to 0, misses delta is 20
        assert snapshot.hit_ratio == 0.0
        assert snapshot.miss_ratio == 1.0
        assert snapshot.data_change_rate == 0.0
        assert stats.previous.hits == 10

    def test_change_rate_is_zero_without_elapsed_time(self) -> None:
        clock = FakeClock()
        stats = RollingStats(clock=clock)
        snapshot = stats.sample(hits=0, misses=0, evictions=100, used_bytes=0)
        assert snapshot.data_change_rate == 0.0

    def test_change_rate_per_minute(self) -> None:
        clock = FakeClock()
        stats = RollingStats(clock=clock)
        stats.sample(hits=0, misses=0, evictions=10, used_bytes=0)

        clock.advance(120)
        snapshot = stats.sample(hits=0, misses=0, evictions=40, used_bytes=0)
        assert snapshot.data_change_rate == 15.0

    def test_garbage_counters_coerce_to_zero(self) -> None:
        snapshot = RollingStats().sample(hits="n/a", misses=None, evictions=-5, used_bytes=math.nan, key_count="x")

        assert snapshot.hit_ratio == 0.0
        assert snapshot.hit_ratio_lifetime == 0.0
        assert snapshot.cache_size == 0.0
        assert snapshot.key_count == 0
        assert snapshot.avg_key_size == 0.0


class TestMetricsSnapshot:
    def test_record_uses_camel_case(self) -> None:
        record = MetricsSnapshot(hit_ratio_lifetime=0.5, cache_size=1.25).to_record()

        assert record["hitRatioLifetime"] == 0.5
        assert record["cacheSize"] == 1.25
        assert "dataChangeRate" in record
        assert "timestamp" in record

    def test_record_round_trips(self) -> None:
        snapshot = MetricsSnapshot(hit_ratio=0.9, key_count=3)
        assert MetricsSnapshot.model_validate(snapshot.to_record()) == snapshot

    def test_ttl_features_order(self) -> None:
        snapshot = MetricsSnapshot(
            hit_ratio_lifetime=0.8,
            miss_ratio_lifetime=0.2,
            cache_size=1024,
            data_change_rate=0.05,
        )
        assert snapshot.ttl_features() == (0.8, 0.2, 1024, 0.05)
