"""
Rule tables that turn computed numbers into narrative insights and recommendations.

A rule compares one field of an analysis context against a threshold. The threshold is a number,
the name of an InsightConfig attribute, or a callable taking the config. Messages are str.format
templates rendered against the context, so tables can change without touching the composer.
A context value of None never matches: analyses use it for "not observed".
"""
import operator
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from normalize.models import SCOPE_KINDS
from scoring.config import InsightConfig

OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    '>': operator.gt,
    '>=': operator.ge,
    '<': operator.lt,
    '<=': operator.le,
    '==': operator.eq,
}

Threshold = Union[float, int, str, Callable[[InsightConfig], float]]


@dataclass(frozen=True)
class Rule:
    name: str
    field: str
    op: str
    threshold: Threshold
    message: Optional[str] = None
    recommendation: Optional[str] = None
    scopes: Tuple[str, ...] = SCOPE_KINDS

    def __post_init__(self):
        if self.op not in OPERATORS:
            raise ValueError(f"Rule {self.name}: unknown operator {self.op!r}")

    def resolve_threshold(self, config: InsightConfig) -> float:
        if callable(self.threshold):
            return self.threshold(config)
        if isinstance(self.threshold, str):
            return getattr(config, self.threshold)
        return self.threshold

    def matches(self, context: Dict[str, Any], config: InsightConfig, scope_kind: Optional[str] = None) -> bool:
        if scope_kind is not None and scope_kind not in self.scopes:
            return False
        value = context.get(self.field)
        if value is None:
            return False
        return OPERATORS[self.op](value, self.resolve_threshold(config))

    def render(self, context: Dict[str, Any], config: InsightConfig) -> Tuple[Optional[str], Optional[str]]:
        values = dict(context, threshold=self.resolve_threshold(config))
        message = self.message.format(**values) if self.message else None
        recommendation = self.recommendation.format(**values) if self.recommendation else None
        return message, recommendation


def evaluate_rules(
    rules: Iterable[Rule],
    contexts: Iterable[Dict[str, Any]],
    config: InsightConfig,
    scope_kind: Optional[str] = None,
) -> Tuple[List[str], List[str]]:
    """Apply every rule to every context, in order. Duplicate recommendations are kept once."""
    rules = list(rules)
    insights: List[str] = []
    recommendations: List[str] = []
    for context in contexts:
        for rule in rules:
            if not rule.matches(context, config, scope_kind):
                continue
            message, recommendation = rule.render(context, config)
            if message:
                insights.append(message)
            if recommendation and recommendation not in recommendations:
                recommendations.append(recommendation)
    return insights, recommendations


TREND_RULES = (
    Rule('upward_trend', 'slope', '>', 'trend_slope_threshold',
         '{metric} is showing an upward trend (+{slope:.2f} per period)'),
    Rule('downward_trend', 'slope', '<', lambda c: -c.trend_slope_threshold,
         '{metric} is showing a downward trend ({slope:.2f} per period)',
         'Consider investigating factors affecting {metric} performance'),
    Rule('high_volatility', 'volatility_ratio', '>', 'volatility_ratio_threshold',
         '{metric} shows high volatility (std dev {volatility:.2f} around a mean of {average:.2f})',
         'Work on stabilizing {metric} performance'),
)

ANOMALY_RULES = (
    Rule('spikes', 'spikes', '>', 0, 'Detected {spikes} productivity spikes'),
    Rule('drops', 'drops', '>', 0, 'Detected {drops} productivity drops',
         'Investigate causes of productivity drops'),
    Rule('high_severity', 'high_severity', '>', 0, None,
         'Review high-severity anomalies for potential issues'),
)

COLLABORATION_RULES = (
    Rule('collaborators', 'counterpart_count', '>=', 0,
         'Collaborates with {counterpart_count} team members', scopes=('user',)),
    Rule('participants', 'counterpart_count', '>=', 0,
         '{counterpart_count} contributors took part in reviews and discussion',
         scopes=('repository', 'team')),
    Rule('average_interactions', 'counterpart_count', '>', 0,
         'Average {avg_interactions:.1f} interactions per collaborator'),
    Rule('narrow_network', 'counterpart_count', '<', 'min_collaborators', None,
         'Consider expanding collaboration network', scopes=('user',)),
)

QUALITY_RULES = (
    Rule('low_merge_rate', 'merge_rate', '<', 'low_merge_rate',
         'Low merge rate: {merge_rate:.1f}%',
         'Review PR rejection reasons and improve code quality'),
    Rule('large_prs', 'avg_pr_size', '>', 'large_pr_size',
         'Large average PR size: {avg_pr_size:.0f} lines changed',
         'Consider breaking down large PRs into smaller, reviewable chunks'),
    Rule('low_review_depth', 'avg_reviews_per_pr', '<', 'low_reviews_per_pr',
         'Low review participation: {avg_reviews_per_pr:.1f} reviews per PR',
         'Encourage more thorough code review practices'),
)

HEALTH_RULES = (
    Rule('low_merge_rate', 'observed_merge_rate', '<', 'low_merge_rate',
         '{scope_ref}: low merge rate ({merge_rate}/100)',
         'Review PR rejection causes in {scope_ref}'),
    Rule('stale_work', 'staleness', '<', 'low_staleness_score',
         '{scope_ref}: {stale_prs} stale pull requests',
         'Triage or close stale pull requests in {scope_ref}'),
    Rule('slow_reviews', 'observed_responsiveness', '<', 'low_responsiveness_score',
         '{scope_ref}: slow first review (average {avg_response_hours} hours)',
         'Agree on a review turnaround target for {scope_ref}'),
    Rule('unhealthy', 'overall', '<', 'low_health_score',
         '{scope_ref}: overall health {overall}/100',
         'Prioritize maintenance work in {scope_ref}'),
)

TEAM_RULES = (
    Rule('low_reciprocity', 'reciprocity', '<', 'low_reciprocity',
         'Only {reciprocity:.0%} of reviewing pairs review each other',
         'Pair reviewers so review load flows both ways'),
    Rule('review_concentration', 'review_concentration', '>', 'high_review_concentration',
         '{top_reviewer} gives {review_concentration:.0%} of all reviews',
         'Spread review responsibility to reduce single-reviewer risk'),
    Rule('isolated_members', 'isolated_count', '>', 0,
         '{isolated_count} team members never review others',
         'Involve {isolated_list} in code review'),
)

DEFAULT_RULES: Dict[str, Tuple[Rule, ...]] = {
    'trends': TREND_RULES,
    'anomalies': ANOMALY_RULES,
    'collaboration': COLLABORATION_RULES,
    'quality': QUALITY_RULES,
    'team_dynamics': TEAM_RULES,
    'health': HEALTH_RULES,
}
