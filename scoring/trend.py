"""
Trend analysis: least-squares slope, mean and volatility of a metric series.
"""
from typing import Dict, Iterable, Optional, Sequence

from normalize.models import MetricRecord
from normalize.util import extract_series
from scoring.config import InsightConfig
from scoring.models import TrendResult
from scoring.utils import mean, population_stddev

IMPROVING = 'improving'
DECLINING = 'declining'
STABLE = 'stable'


def linear_slope(values: Sequence[float]) -> float:
    """Ordinary least-squares slope using the sample index (0..N-1) as x. 0 for fewer than 2 samples."""
    n = len(values)
    if n < 2:
        return 0.0
    sum_x = n * (n - 1) / 2
    sum_y = sum(values)
    sum_xy = sum(x * y for x, y in enumerate(values))
    sum_xx = sum(x * x for x in range(n))
    denominator = n * sum_xx - sum_x * sum_x
    if denominator == 0:
        return 0.0
    return (n * sum_xy - sum_x * sum_y) / denominator


def analyze_trend(values: Sequence[float], metric_key: str = 'value') -> TrendResult:
    values = [float(v) for v in values]
    return TrendResult(
        metric_key=metric_key,
        slope=linear_slope(values),
        average=mean(values),
        volatility=population_stddev(values),
        sample_count=len(values),
    )


def classify_trend(result: TrendResult, config: Optional[InsightConfig] = None) -> str:
    config = config or InsightConfig()
    if result.slope > config.trend_slope_threshold:
        return IMPROVING
    if result.slope < -config.trend_slope_threshold:
        return DECLINING
    return STABLE


def volatility_ratio(result: TrendResult) -> float:
    """volatility / average, or 0 when the average is 0 (a flat-zero series is not volatile)."""
    if result.average == 0:
        return 0.0
    return result.volatility / abs(result.average)


def is_volatile(result: TrendResult, config: Optional[InsightConfig] = None) -> bool:
    config = config or InsightConfig()
    return volatility_ratio(result) > config.volatility_ratio_threshold


def analyze_trends(records: Sequence[MetricRecord], metric_keys: Iterable[str]) -> Dict[str, TrendResult]:
    """Run the trend analyzer for each metric key over the records (ordered by period)."""
    trends: Dict[str, TrendResult] = {}
    for key in metric_keys:
        _, values = extract_series(records, key)
        trends[key] = analyze_trend(values, key)
    return trends


def overall_direction(classifications: Iterable[str]) -> str:
    """Any improving metric makes the scope improving; otherwise any declining one makes it declining."""
    labels = list(classifications)
    if IMPROVING in labels:
        return IMPROVING
    if DECLINING in labels:
        return DECLINING
    return STABLE
