"""
Cachetron - TTL Predictor Tests

Checks the linear model and its floor/rounding post-processing.
"""

import math

import pytest

from cachetron.ml.prediction import MIN_TTL_SECONDS, ModelCoefficients, predict_ttl


class TestPredictTTL:
    """Test suite for predict_ttl."""

    def test_reference_vector(self) -> None:
        """Healthy hit ratio with a 1GB cache gives ~1185.59s, rounded to 1186."""
        assert predict_ttl([0.8, 0.2, 1024, 0.05]) == 1186

    def test_zero_features_floor_to_minimum(self) -> None:
        """A raw prediction of 0 is floored to 60 seconds."""
        assert predict_ttl([0, 0, 0, 0]) == 60

    def test_negative_prediction_uses_absolute_value(self) -> None:
        """All misses: -1501.18 -> abs -> 1501."""
        assert predict_ttl([0.0, 1.0, 0.0, 0.0]) == 1501

    def test_small_positive_prediction_is_floored(self) -> None:
        """0.297697 * 100 = 29.77 is below the floor."""
        assert predict_ttl([0.0, 0.0, 100.0, 0.0]) == MIN_TTL_SECONDS

    def test_small_negative_prediction_is_floored(self) -> None:
        assert predict_ttl([0.0, 0.0, 0.0, 0.1]) == MIN_TTL_SECONDS

    def test_rounds_half_up(self) -> None:
        coefficients = ModelCoefficients(hit_ratio=0, miss_ratio=0, cache_size=1, data_change_rate=0)
        assert predict_ttl([0, 0, 100.5, 0], coefficients) == 101
        assert predict_ttl([0, 0, 100.4, 0], coefficients) == 100

    def test_no_upper_bound(self) -> None:
        """Huge cache sizes produce proportionally huge TTLs."""
        assert predict_ttl([0.0, 0.0, 10_000_000.0, 0.0]) == 2976970

    @pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf])
    def test_non_finite_collapses_to_floor(self, bad: float) -> None:
        assert predict_ttl([bad, 0.0, 0.0, 0.0]) == MIN_TTL_SECONDS

    @pytest.mark.parametrize(
        "features",
        [
            [1.0, 0.0, 0.0, 0.0],
            [0.5, 0.5, 0.0, 0.0],
            [0.1, 0.9, 5.0, 2.0],
            [0.0, 0.0, 0.0, 1000.0],
            [0.999, 0.001, 0.01, 0.0],
        ],
    )
    def test_output_is_integer_at_least_floor(self, features: list[float]) -> None:
        ttl = predict_ttl(features)
        assert isinstance(ttl, int)
        assert ttl >= MIN_TTL_SECONDS

    def test_accepts_tuple_features(self) -> None:
        assert predict_ttl((0.8, 0.2, 1024, 0.05)) == 1186

    def test_wrong_feature_count_raises(self) -> None:
        with pytest.raises(ValueError, match="Expected 4 features"):
            predict_ttl([0.8, 0.2, 1024])
