"""
Per-period productivity / quality / collaboration scores.

Records may arrive with pre-computed scores; when they don't, these derive them from the period's
counts so score-based trends still have data. The multipliers are fixed per scope kind.
"""
from dataclasses import replace
from typing import Dict, List, Sequence

from normalize.models import COUNT_KEYS, OPTIONAL_COUNT_KEYS, SCORE_KEYS, MetricRecord
from scoring.utils import clamp, round_half_up, safe_ratio


def user_period_scores(counts: Dict[str, float]) -> Dict[str, float]:
    opened = counts.get('opened', 0.0)
    merge_rate = safe_ratio(counts.get('merged', 0.0), opened) * 100
    productivity = opened * 10 + counts.get('commits', 0.0) * 2 + counts.get('reviews_given', 0.0) * 5
    quality = merge_rate * 0.5 + counts.get('avg_reviews_per_pr', 0.0) * 10 + counts.get('approval_rate', 0.0) * 0.3
    collaboration = (
        counts.get('reviews_given', 0.0) * 5
        + counts.get('comments_given', 0.0) * 2
        + counts.get('unique_collaborators', 0.0) * 10
    )
    return {
        'productivity': round_half_up(clamp(productivity)),
        'quality': round_half_up(clamp(quality)),
        'collaboration': round_half_up(clamp(collaboration)),
    }


def repository_period_scores(counts: Dict[str, float]) -> Dict[str, float]:
    collaborators = counts.get('unique_collaborators', 0.0)
    activity = counts.get('opened', 0.0) * 5 + counts.get('commits', 0.0) * 2 + collaborators * 10
    merge_rate = safe_ratio(counts.get('merged', 0.0), counts.get('opened', 0.0), default=0.5) * 100
    return {
        'productivity': round_half_up(clamp(activity)),
        'quality': round_half_up(clamp(merge_rate)),
        'collaboration': round_half_up(clamp(collaborators * 10)),
    }


def team_period_scores(counts: Dict[str, float]) -> Dict[str, float]:
    velocity = clamp(counts.get('opened', 0.0) * 2 + counts.get('commits', 0.0))
    merge_rate = safe_ratio(counts.get('merged', 0.0), counts.get('opened', 0.0), default=0.5) * 100
    return {
        'productivity': round_half_up(velocity * 0.8),
        'quality': round_half_up(clamp(merge_rate)),
        'collaboration': round_half_up(clamp(counts.get('unique_collaborators', 0.0) * 5)),
    }


_SCORERS = {
    'user': user_period_scores,
    'repository': repository_period_scores,
    'team': team_period_scores,
}


def period_scores(record: MetricRecord) -> Dict[str, float]:
    return _SCORERS[record.scope.kind](record.counts)


def with_period_scores(records: Sequence[MetricRecord]) -> List[MetricRecord]:
    """Return copies of records with any missing score filled in. Supplied scores are kept as-is."""
    completed: List[MetricRecord] = []
    for record in records:
        existing = record.scores or {}
        if all(k in existing for k in SCORE_KEYS):
            completed.append(record)
            continue
        derived = period_scores(record)
        completed.append(replace(record, scores={**derived, **existing}))
    return completed


def data_points(record: MetricRecord) -> int:
    """Number of non-zero count fields."""
    return sum(1 for v in record.counts.values() if v)


def confidence(record: MetricRecord) -> float:
    """Share of known count fields that carry data, in [0, 1]."""
    total_fields = len(COUNT_KEYS) + sum(1 for k in OPTIONAL_COUNT_KEYS if k in record.counts)
    return safe_ratio(data_points(record), total_fields)
