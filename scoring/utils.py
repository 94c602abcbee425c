"""
Scoring utility functions.
Numeric helpers shared by the trend, anomaly and health scoring modules.
"""
import math
from typing import Dict, Any, Sequence


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def population_stddev(values: Sequence[float]) -> float:
    """Population standard deviation (divides by N); 0.0 for an empty sequence."""
    if not values:
        return 0.0
    mu = mean(values)
    variance = sum((v - mu) ** 2 for v in values) / len(values)
    return math.sqrt(variance)


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (round() would use banker's rounding)."""
    return int(math.floor(value + 0.5))


def to_score(value: float) -> int:
    """Round and clamp a value into an integer score in [0, 100]."""
    return int(clamp(round_half_up(value)))


def safe_ratio(numerator: float, denominator: float, default: float = 0.0) -> float:
    return numerator / denominator if denominator else default


def compute_weighted_score(metrics: Dict[str, Any], weights: Dict[str, float]) -> float:
    """
    Compute a single aggregate score from individual metric values using provided weights.
    Missing metrics are treated as zero.
    """
    total = 0.0
    for k, w in weights.items():
        val = float(metrics.get(k, 0.0) or 0.0)
        total += val * float(w)
    return total
