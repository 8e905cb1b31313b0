"""
Cachetron - TTL Predictor

Pure linear model:

    ttl = 1501.178899 * hit_ratio
        - 1501.178899 * miss_ratio
        + 0.297697    * cache_size_mb
        - 399.212876  * data_change_rate
        + intercept

Post-processing:
1. Non-finite or non-positive results take their absolute value.
2. Anything still below 60 seconds is raised to 60.
3. Round to the nearest integer.

There is no upper bound: a very large cache size yields a very large TTL.
"""

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)

MIN_TTL_SECONDS = 60


@dataclass(frozen=True)
class ModelCoefficients:
    hit_ratio: float = 1501.178899
    miss_ratio: float = -1501.178899
    cache_size: float = 0.297697
    data_change_rate: float = -399.212876
    intercept: float = 0.0


COEFFICIENTS = ModelCoefficients()


def predict_ttl(features: Sequence[float], coefficients: ModelCoefficients = COEFFICIENTS) -> int:
    """
    Predict a TTL in seconds from the metrics feature vector.

    Args:
        features: (hit_ratio_lifetime, miss_ratio_lifetime, cache_size_mb, data_change_rate)
        coefficients: Model weights (defaults to the trained model)

    Returns:
        Integer TTL, always >= MIN_TTL_SECONDS

    Raises:
        ValueError: If features does not have exactly four entries
    """
    if len(features) != 4:
        raise ValueError(f"Expected 4 features, got {len(features)}")

    hit_ratio, miss_ratio, cache_size, change_rate = (float(f) for f in features)

    prediction = (
        coefficients.hit_ratio * hit_ratio
        + coefficients.miss_ratio * miss_ratio
        + coefficients.cache_size * cache_size
        + coefficients.data_change_rate * change_rate
        + coefficients.intercept
    )

    if not math.isfinite(prediction) or prediction <= 0:
        prediction = abs(prediction)
    if not math.isfinite(prediction) or prediction < MIN_TTL_SECONDS:
        prediction = MIN_TTL_SECONDS

    # Half-up rounding; prediction is positive here
    ttl = math.floor(prediction + 0.5)
    logger.debug("Predicted TTL %ss", ttl, extra={"features": list(features), "ttl": ttl})
    return ttl
