"""
Composite health scoring and code-quality metrics.

Every function here is a pure function of its numeric inputs: identical inputs give identical scores.
The reference instant for staleness is passed in by the caller (the end of the analysed date range),
never read from the clock.
"""
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional, Sequence

from normalize.models import CommitRecord, PullRequestRecord, ReviewRecord
from scoring.config import InsightConfig
from scoring.models import HealthInputs, HealthScore, QualityMetrics
from scoring.utils import clamp, compute_weighted_score, mean, round_half_up, safe_ratio, to_score


def activity_score(activity_count: float, config: InsightConfig) -> float:
    """Saturating linear mapping of activity units onto [0, 100]."""
    return clamp(config.activity_weight * max(0.0, activity_count))


def staleness_score(stale_count: int, config: InsightConfig) -> float:
    return clamp(100.0 - config.staleness_penalty * max(0, stale_count))


def responsiveness_score(latency_hours: Sequence[float], config: InsightConfig) -> float:
    """100 minus the mean latency in hours; neutral when there are no samples."""
    if not latency_hours:
        return float(config.neutral_score)
    return clamp(100.0 - mean([max(0.0, float(h)) for h in latency_hours]))


def merge_rate_score(merged_count: int, total_count: int, config: InsightConfig) -> float:
    if total_count <= 0:
        return float(config.neutral_score)
    return clamp(100.0 * merged_count / total_count)


def compute_health_score(inputs: HealthInputs, config: Optional[InsightConfig] = None, scope_ref: str = '') -> HealthScore:
    """Combine the four sub-scores with the configured weights into one bounded score."""
    config = config or InsightConfig()
    subscores = {
        'activity': activity_score(inputs.activity_count, config),
        'staleness': staleness_score(inputs.stale_count, config),
        'responsiveness': responsiveness_score(inputs.latency_hours, config),
        'merge_rate': merge_rate_score(inputs.merged_count, inputs.total_count, config),
    }
    overall = compute_weighted_score(subscores, config.score_weights)
    avg_latency = mean(inputs.latency_hours) if inputs.latency_hours else None
    return HealthScore(
        scope_ref=scope_ref,
        overall=to_score(overall),
        activity=to_score(subscores['activity']),
        staleness=to_score(subscores['staleness']),
        responsiveness=to_score(subscores['responsiveness']),
        merge_rate=to_score(subscores['merge_rate']),
        stats={
            'total_prs': inputs.total_count,
            'merged_prs': inputs.merged_count,
            'commits': inputs.commit_count,
            'stale_prs': inputs.stale_count,
            'avg_response_hours': round(avg_latency, 1) if avg_latency is not None else None,
        },
    )


def is_stale(pr: PullRequestRecord, reference_time: datetime, config: InsightConfig) -> bool:
    """An open, unmerged PR whose last update is older than stale_after_days before reference_time."""
    if pr.merged or pr.state != 'open':
        return False
    last_touched = pr.updated_at or pr.created_at
    if last_touched is None:
        return False
    return last_touched < reference_time - timedelta(days=config.stale_after_days)


def derive_health_inputs(
    pull_requests: Sequence[PullRequestRecord],
    commits: Sequence[CommitRecord],
    reference_time: datetime,
    config: Optional[InsightConfig] = None,
) -> HealthInputs:
    """Aggregate raw PR/commit records into the scorer's inputs."""
    config = config or InsightConfig()
    total = len(pull_requests)
    activity = total * config.pull_request_activity_units + len(commits) * config.commit_activity_units
    return HealthInputs(
        activity_count=activity,
        stale_count=sum(1 for pr in pull_requests if is_stale(pr, reference_time, config)),
        latency_hours=tuple(pr.first_review_hours for pr in pull_requests if pr.first_review_hours is not None),
        total_count=total,
        merged_count=sum(1 for pr in pull_requests if pr.merged),
        commit_count=len(commits),
    )


def compute_quality_metrics(
    pull_requests: Sequence[PullRequestRecord],
    reviews: Sequence[ReviewRecord],
    commits: Sequence[CommitRecord],
) -> QualityMetrics:
    total_prs = len(pull_requests)
    merged = sum(1 for pr in pull_requests if pr.merged)
    approved = sum(1 for r in reviews if r.state == 'APPROVED')
    metrics = QualityMetrics(
        merge_rate=safe_ratio(merged, total_prs) * 100,
        avg_pr_size=safe_ratio(sum(pr.size for pr in pull_requests), total_prs),
        avg_reviews_per_pr=safe_ratio(sum(pr.reviews_count for pr in pull_requests), total_prs),
        avg_comments_per_pr=safe_ratio(sum(pr.comments_count for pr in pull_requests), total_prs),
        approval_rate=safe_ratio(approved, len(reviews)) * 100,
        avg_commit_size=safe_ratio(sum(c.size for c in commits), len(commits)),
        pull_requests=total_prs,
        reviews=len(reviews),
        commits=len(commits),
    )
    return replace(metrics, score=quality_score(metrics))


def quality_score(metrics: QualityMetrics) -> int:
    """Mean of merge, PR-size, review-depth and approval scores, each in [0, 100]."""
    merge = clamp(metrics.merge_rate)
    size = clamp(100.0 - metrics.avg_pr_size / 10.0)
    review = clamp(metrics.avg_reviews_per_pr * 50.0)
    approval = clamp(metrics.approval_rate)
    return int(clamp(round_half_up((merge + size + review + approval) / 4.0)))
