import pytest

from scoring.config import InsightConfig
from scoring.models import TrendResult
from scoring.trend import (
    DECLINING,
    IMPROVING,
    STABLE,
    analyze_trend,
    classify_trend,
    is_volatile,
    linear_slope,
    overall_direction,
    volatility_ratio,
)


def test_linear_series():
    result = analyze_trend([1, 2, 3, 4, 5], 'opened')
    assert result.slope == pytest.approx(1.0)
    assert result.average == pytest.approx(3.0)
    assert result.volatility == pytest.approx(2 ** 0.5)
    assert result.sample_count == 5
    assert classify_trend(result) == IMPROVING


def test_constant_series_has_zero_slope_and_volatility():
    result = analyze_trend([4] * 10)
    assert result.slope == 0
    assert result.volatility == 0
    assert classify_trend(result) == STABLE
    assert not is_volatile(result)


def test_empty_and_single_sample():
    empty = analyze_trend([])
    assert empty.sample_count == 0
    assert not empty.has_data
    assert empty.average == 0
    assert empty.slope == 0
    single = analyze_trend([7])
    assert single.slope == 0
    assert single.average == 7


def test_slope_scales_with_affine_transform():
    values = [3, 1, 4, 1, 5, 9, 2, 6]
    base = linear_slope(values)
    assert linear_slope([2 * v + 3 for v in values]) == pytest.approx(2 * base)
    assert analyze_trend([v + 10 for v in values]).volatility == pytest.approx(analyze_trend(values).volatility)


def test_declining_classification_uses_threshold():
    config = InsightConfig(trend_slope_threshold=0.5)
    assert classify_trend(analyze_trend([5, 4, 3, 2, 1]), config) == DECLINING
    assert classify_trend(analyze_trend([1.0, 1.3, 1.6]), config) == STABLE


def test_zero_average_is_not_volatile():
    result = TrendResult('opened', slope=0.0, average=0.0, volatility=1.0, sample_count=3)
    assert volatility_ratio(result) == 0.0
    assert not is_volatile(result)


def test_step_series_is_improving_and_volatile():
    result = analyze_trend([1] * 7 + [5] * 7)
    assert result.slope > 0.1
    assert result.volatility == pytest.approx(2.0)
    assert is_volatile(result)


def test_overall_direction():
    assert overall_direction([STABLE, DECLINING, IMPROVING]) == IMPROVING
    assert overall_direction([STABLE, DECLINING]) == DECLINING
    assert overall_direction([]) == STABLE
