"""
Insight composer.

Runs the requested analyses for one scope and date range and assembles the results into an
InsightBundle. Each insight type is computed in isolation: a failure in one is logged and recorded
as an error entry while the others still complete. Unknown types are rejected before any analysis.
"""
import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from correlate.network import analyze_team_dynamics, build_network, build_participation
from insights.errors import UnknownInsightTypeError
from insights.models import InsightBundle, InsightRequest, InsightResult, ScopeData
from insights.rules import DEFAULT_RULES, Rule, evaluate_rules
from normalize.models import DateRange, Scope
from scoring.anomaly import DROP, HIGH, SPIKE, detect_series_anomalies
from scoring.config import InsightConfig
from scoring.health import compute_health_score, compute_quality_metrics, derive_health_inputs
from scoring.models import HealthScore, InsufficientData
from scoring.period import confidence, with_period_scores
from scoring.trend import analyze_trends, classify_trend, is_volatile, overall_direction, volatility_ratio
from scoring.utils import mean, round_half_up

logger = logging.getLogger(__name__)

INSIGHT_TYPES = ('trends', 'anomalies', 'collaboration', 'quality', 'team_dynamics', 'health')


def validate_insight_types(insight_types: Iterable[str]) -> List[str]:
    """Return the requested types in order, without duplicates. Raises on the first unknown type."""
    validated: List[str] = []
    for t in insight_types:
        if t not in INSIGHT_TYPES:
            raise UnknownInsightTypeError(t, INSIGHT_TYPES)
        if t not in validated:
            validated.append(t)
    return validated


class InsightComposer:
    def __init__(self, config: Optional[InsightConfig] = None, rules: Optional[Mapping[str, Sequence[Rule]]] = None):
        self.config = config or InsightConfig()
        self.rules: Dict[str, Sequence[Rule]] = {**DEFAULT_RULES, **(rules or {})}
        self._analyzers: Dict[str, Callable[[InsightRequest], InsightResult]] = {
            'trends': self.trends,
            'anomalies': self.anomalies,
            'collaboration': self.collaboration,
            'quality': self.quality,
            'team_dynamics': self.team_dynamics,
            'health': self.health,
        }

    def generate(self, request: InsightRequest) -> InsightBundle:
        types = validate_insight_types(request.insight_types)
        scope_label = request.scope.label()
        logger.info('Generating %s insights for %s', ', '.join(types) or 'no', scope_label)
        results: Dict[str, InsightResult] = {}
        for insight_type in types:
            try:
                results[insight_type] = self._analyzers[insight_type](request)
            except Exception as exc:
                logger.exception('Error generating %s insights for %s', insight_type, scope_label)
                results[insight_type] = InsightResult.failed(exc)
        return InsightBundle(scope=request.scope, date_range=request.date_range, insights=results)

    def generate_many(self, requests: Sequence[InsightRequest], max_workers: Optional[int] = None) -> List[InsightBundle]:
        """Analyse several scopes on a thread pool. Bundles come back in request order."""
        for request in requests:
            validate_insight_types(request.insight_types)
        if not requests:
            return []

        def run(request: InsightRequest) -> InsightBundle:
            try:
                return self.generate(request)
            except Exception as exc:
                logger.exception('Error generating insights for %s', request.scope.label())
                return InsightBundle.failed(
                    request.scope, request.date_range, validate_insight_types(request.insight_types), exc,
                )

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(executor.map(run, requests))

    # individual analyses

    def _evaluate(self, insight_type: str, contexts: Iterable[Dict[str, Any]], scope: Scope):
        return evaluate_rules(self.rules.get(insight_type, ()), contexts, self.config, scope.kind)

    def trends(self, request: InsightRequest) -> InsightResult:
        records = with_period_scores(request.data.records)
        if not records:
            return InsightResult.insufficient(InsufficientData('trends', required=1, available=0))

        trends = analyze_trends(records, self.config.trend_metrics)
        contexts = []
        classified: Dict[str, Dict[str, Any]] = {}
        for key, result in trends.items():
            direction = classify_trend(result, self.config)
            contexts.append({
                'metric': key,
                'slope': result.slope,
                'average': result.average,
                'volatility': result.volatility,
                'volatility_ratio': volatility_ratio(result),
            })
            classified[key] = dict(result.to_dict(), direction=direction, volatile=is_volatile(result, self.config))

        insights, recommendations = self._evaluate('trends', contexts, request.scope)
        direction = overall_direction(c['direction'] for c in classified.values())
        data = {
            'direction': direction,
            'periods': len(records),
            'data_confidence': round(mean([confidence(r) for r in records]), 2),
            'metrics': classified,
        }
        return InsightResult.ok(f'Overall performance trend: {direction}', data, insights, recommendations)

    def anomalies(self, request: InsightRequest) -> InsightResult:
        records = with_period_scores(request.data.records)
        found = detect_series_anomalies(records, self.config.anomaly_metrics, self.config)
        if isinstance(found, InsufficientData):
            return InsightResult.insufficient(found)

        spikes = sum(1 for a in found if a.direction == SPIKE)
        drops = sum(1 for a in found if a.direction == DROP)
        context = {
            'total': len(found),
            'spikes': spikes,
            'drops': drops,
            'high_severity': sum(1 for a in found if a.severity == HIGH),
        }
        insights, recommendations = self._evaluate('anomalies', [context], request.scope)
        data = dict(context, periods=len(records), anomalies=[a.to_dict() for a in found])
        summary = f'Found {len(found)} anomalies ({spikes} spikes, {drops} drops)'
        return InsightResult.ok(summary, data, insights, recommendations)

    def collaboration(self, request: InsightRequest) -> InsightResult:
        scope = request.scope
        events = request.data.interactions
        if scope.kind == 'user':
            if not scope.id:
                raise ValueError('user scope requires an id for collaboration analysis')
            network = build_network(events, scope.id)
            summary = f'Active collaboration with {network.counterpart_count} team members'
        else:
            network = build_participation(events)
            summary = (f'{network.counterpart_count} active participants across '
                       f'{network.total_interactions} interactions')

        context = {
            'counterpart_count': network.counterpart_count,
            'avg_interactions': network.avg_interactions,
            'total_interactions': network.total_interactions,
        }
        insights, recommendations = self._evaluate('collaboration', [context], scope)
        return InsightResult.ok(summary, network.to_dict(), insights, recommendations)

    def quality(self, request: InsightRequest) -> InsightResult:
        data: ScopeData = request.data
        if not (data.pull_requests or data.reviews or data.commits):
            return InsightResult.insufficient(InsufficientData(
                'quality', required=1, available=0, reason='No pull requests, reviews or commits in range'))

        metrics = compute_quality_metrics(data.pull_requests, data.reviews, data.commits)
        context = metrics.to_dict()
        if not metrics.pull_requests:
            # PR-based ratios are meaningless without PRs
            context.update(merge_rate=None, avg_pr_size=None, avg_reviews_per_pr=None)
        insights, recommendations = self._evaluate('quality', [context], request.scope)
        return InsightResult.ok(f'Code quality score: {metrics.score}/100', metrics.to_dict(), insights, recommendations)

    def team_dynamics(self, request: InsightRequest) -> InsightResult:
        if request.scope.kind != 'team':
            return InsightResult.not_applicable('Team dynamics insights are only available for team scope')
        if not request.data.interactions:
            return InsightResult.insufficient(InsufficientData(
                'team_dynamics', required=1, available=0, reason='No interaction events in range'))

        dynamics = analyze_team_dynamics(request.data.interactions)
        context = {
            'reciprocity': dynamics.reciprocity if dynamics.top_reviewers else None,
            'review_concentration': dynamics.review_concentration,
            'top_reviewer': dynamics.top_reviewer,
            'isolated_count': dynamics.isolated_count,
            'isolated_list': ', '.join(dynamics.isolated_actors),
        }
        insights, recommendations = self._evaluate('team_dynamics', [context], request.scope)
        summary = (f'{dynamics.active_actors} active members in {dynamics.pair_count} collaborating pairs '
                   f'(density {dynamics.density:.2f})')
        return InsightResult.ok(summary, dynamics.to_dict(), insights, recommendations)

    def health(self, request: InsightRequest) -> InsightResult:
        scores = self._health_scores(request)
        contexts = []
        for score in scores:
            ctx = dict(score.subscores, scope_ref=score.scope_ref, overall=score.overall, **score.stats)
            ctx['observed_merge_rate'] = score.merge_rate if score.stats.get('total_prs') else None
            ctx['observed_responsiveness'] = (
                score.responsiveness if score.stats.get('avg_response_hours') is not None else None)
            contexts.append(ctx)
        insights, recommendations = self._evaluate('health', contexts, request.scope)

        if len(scores) == 1:
            overall = scores[0].overall
            summary = f'Health score: {overall}/100'
        else:
            overall = int(round_half_up(mean([s.overall for s in scores])))
            summary = f'Average health score {overall}/100 across {len(scores)} repositories'
        data = {'overall': overall, 'scores': [s.to_dict() for s in scores]}
        return InsightResult.ok(summary, data, insights, recommendations)

    def _health_scores(self, request: InsightRequest) -> List[HealthScore]:
        data = request.data
        label = request.scope.label()
        if data.health is not None:
            return [compute_health_score(data.health, self.config, label)]

        reference_time = request.date_range.end
        if request.scope.kind != 'team':
            inputs = derive_health_inputs(data.pull_requests, data.commits, reference_time, self.config)
            return [compute_health_score(inputs, self.config, label)]

        # team scope: one score per repository that had activity
        prs_by_repo = defaultdict(list)
        commits_by_repo = defaultdict(list)
        for pr in data.pull_requests:
            prs_by_repo[pr.repository_id].append(pr)
        for commit in data.commits:
            commits_by_repo[commit.repository_id].append(commit)
        repos = sorted(set(prs_by_repo) | set(commits_by_repo))
        if len(repos) <= 1:
            inputs = derive_health_inputs(data.pull_requests, data.commits, reference_time, self.config)
            return [compute_health_score(inputs, self.config, label)]
        return [
            compute_health_score(
                derive_health_inputs(prs_by_repo[repo], commits_by_repo[repo], reference_time, self.config),
                self.config,
                f'repository:{repo}' if repo else 'unattributed',
            )
            for repo in repos
        ]


def generate_insights(
    scope: Scope,
    date_range: DateRange,
    insight_types: Sequence[str],
    data: Optional[ScopeData] = None,
    config: Optional[InsightConfig] = None,
) -> InsightBundle:
    """Convenience wrapper: one scope, default rules."""
    request = InsightRequest(scope=scope, date_range=date_range, insight_types=tuple(insight_types),
                             data=data or ScopeData())
    return InsightComposer(config).generate(request)


def generate_insights_for_scopes(
    requests: Sequence[InsightRequest],
    max_workers: Optional[int] = None,
    config: Optional[InsightConfig] = None,
) -> List[InsightBundle]:
    return InsightComposer(config).generate_many(requests, max_workers=max_workers)
