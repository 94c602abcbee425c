"""
Z-score anomaly detection over per-period metric series.
"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Union

from normalize.models import MetricRecord
from normalize.util import extract_series
from scoring.config import InsightConfig
from scoring.models import Anomaly, InsufficientData
from scoring.utils import mean, population_stddev

logger = logging.getLogger(__name__)

SPIKE = 'spike'
DROP = 'drop'
HIGH = 'high'
MEDIUM = 'medium'


def detect_anomalies(
    values: Sequence[float],
    periods: Optional[Sequence[datetime]] = None,
    metric_key: str = 'value',
    config: Optional[InsightConfig] = None,
) -> Union[List[Anomaly], InsufficientData]:
    """
    Flag points whose distance from the series mean exceeds anomaly_z_threshold standard deviations.

    Returns InsufficientData when the series is shorter than min_anomaly_window, and an empty list
    when the series has zero variance.
    """
    config = config or InsightConfig()
    values = [float(v) for v in values]
    n = len(values)
    if n < config.min_anomaly_window:
        return InsufficientData('anomalies', required=config.min_anomaly_window, available=n)
    if periods is not None and len(periods) != n:
        raise ValueError(f"{metric_key}: {len(periods)} periods for {n} values")

    mu = mean(values)
    sigma = population_stddev(values)
    if sigma == 0:
        logger.debug('%s: zero variance across %d points, no anomalies possible', metric_key, n)
        return []

    anomalies: List[Anomaly] = []
    for index, value in enumerate(values):
        z = abs(value - mu) / sigma
        if z <= config.anomaly_z_threshold:
            continue
        anomalies.append(Anomaly(
            period=periods[index] if periods is not None else None,
            metric_key=metric_key,
            value=value,
            expected=mu,
            z_score=z,
            severity=HIGH if z > config.anomaly_high_z else MEDIUM,
            direction=SPIKE if value > mu else DROP,
        ))
    return anomalies


def detect_series_anomalies(
    records: Sequence[MetricRecord],
    metric_keys: Iterable[str],
    config: Optional[InsightConfig] = None,
) -> Union[List[Anomaly], InsufficientData]:
    """Detect anomalies independently per metric; ordered by period, then metric key."""
    config = config or InsightConfig()
    if len(records) < config.min_anomaly_window:
        return InsufficientData('anomalies', required=config.min_anomaly_window, available=len(records))
    found: List[Anomaly] = []
    for key in metric_keys:
        periods, values = extract_series(records, key)
        result = detect_anomalies(values, periods, key, config)
        if isinstance(result, list):
            found.extend(result)
    return sorted(found, key=lambda a: (a.period, a.metric_key))
