"""
Cachetron - TTL Prediction

Linear model mapping rolling cache metrics to a write TTL.
"""

from .prediction import COEFFICIENTS, MIN_TTL_SECONDS, predict_ttl

__all__ = ["predict_ttl", "COEFFICIENTS", "MIN_TTL_SECONDS"]
