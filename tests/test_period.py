from datetime import datetime, timezone

import pytest

from normalize.models import COUNT_KEYS, MetricRecord, Scope
from scoring.period import confidence, data_points, period_scores, with_period_scores

PERIOD = datetime(2025, 1, 6, tzinfo=timezone.utc)


def _record(kind, scores=None, **counts):
    full = {k: 0.0 for k in COUNT_KEYS}
    full.update(counts)
    return MetricRecord(period=PERIOD, scope=Scope(kind, 'x' if kind != 'team' else None), counts=full, scores=scores)


def test_user_productivity_formula():
    scores = period_scores(_record('user', opened=2, commits=5, reviews_given=4, merged=1))
    assert scores['productivity'] == 50
    # merge rate 50% contributes half
    assert scores['quality'] == 25
    assert scores['collaboration'] == 20


def test_scores_are_clamped():
    scores = period_scores(_record('user', opened=50, commits=100))
    assert scores['productivity'] == 100


def test_repository_and_team_neutral_merge_rate():
    assert period_scores(_record('repository'))['quality'] == 50
    assert period_scores(_record('team'))['quality'] == 50
    assert period_scores(_record('team', opened=10, commits=10))['productivity'] == 24


def test_supplied_scores_are_kept():
    supplied = _record('user', scores={'productivity': 7.0}, opened=5)
    (completed,) = with_period_scores([supplied])
    assert completed.scores['productivity'] == 7.0
    assert 'quality' in completed.scores
    assert supplied.scores == {'productivity': 7.0}


def test_confidence():
    record = _record('team', opened=1, commits=3)
    assert data_points(record) == 2
    assert confidence(record) == pytest.approx(2 / len(COUNT_KEYS))
