"""
Request and result shapes of the insight composer.
"""
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from normalize.models import (
    CommitRecord,
    DateRange,
    InteractionEvent,
    MetricRecord,
    PullRequestRecord,
    ReviewRecord,
    Scope,
)
from normalize.util import (
    normalize_commit,
    normalize_date_range,
    normalize_health_inputs,
    normalize_interactions,
    normalize_metric_records,
    normalize_pull_request,
    normalize_review,
    normalize_scope,
)
from scoring.models import HealthInputs, InsufficientData

OK = 'ok'
INSUFFICIENT_DATA = 'insufficient_data'
NOT_APPLICABLE = 'not_applicable'
ERROR = 'error'


@dataclass(frozen=True)
class ScopeData:
    """
    Everything the caller already queried for one scope and date range.
    `health` short-circuits health input derivation when the caller has the aggregates.
    """
    records: Tuple[MetricRecord, ...] = ()
    interactions: Tuple[InteractionEvent, ...] = ()
    pull_requests: Tuple[PullRequestRecord, ...] = ()
    reviews: Tuple[ReviewRecord, ...] = ()
    commits: Tuple[CommitRecord, ...] = ()
    health: Optional[HealthInputs] = None


@dataclass(frozen=True)
class InsightRequest:
    scope: Scope
    date_range: DateRange
    insight_types: Tuple[str, ...]
    data: ScopeData = field(default_factory=ScopeData)


@dataclass
class InsightResult:
    """
    Outcome of one insight type. Exactly one of: populated (ok), insufficient_data,
    not_applicable or error.
    """
    status: str
    summary: str = ''
    data: Dict[str, Any] = field(default_factory=dict)
    insights: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def ok(cls, summary: str, data: Dict[str, Any], insights=(), recommendations=()) -> 'InsightResult':
        return cls(status=OK, summary=summary, data=data, insights=list(insights), recommendations=list(recommendations))

    @classmethod
    def insufficient(cls, marker: InsufficientData) -> 'InsightResult':
        detail = marker.to_dict()
        return cls(status=INSUFFICIENT_DATA, summary=detail['reason'], data={'insufficient_data': detail})

    @classmethod
    def not_applicable(cls, reason: str) -> 'InsightResult':
        return cls(status=NOT_APPLICABLE, summary=reason)

    @classmethod
    def failed(cls, exc: BaseException) -> 'InsightResult':
        message = str(exc) or exc.__class__.__name__
        return cls(status=ERROR, summary='Analysis failed', error=message)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            'status': self.status,
            'summary': self.summary,
            'data': self.data,
            'insights': list(self.insights),
            'recommendations': list(self.recommendations),
        }
        if self.error is not None:
            d['error'] = self.error
        return d


@dataclass
class InsightBundle:
    """
    date_range is None only for an export entry whose date range could not be read.
    """
    scope: Scope
    date_range: Optional[DateRange]
    insights: Dict[str, InsightResult] = field(default_factory=dict)

    @classmethod
    def failed(cls, scope: Scope, date_range: Optional[DateRange], insight_types: Sequence[str],
               exc: BaseException) -> 'InsightBundle':
        """Every requested type marked as error with the same cause."""
        return cls(scope=scope, date_range=date_range, insights={t: InsightResult.failed(exc) for t in insight_types})

    @property
    def errors(self) -> Dict[str, str]:
        return {t: r.error for t, r in self.insights.items() if r.status == ERROR}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'scope': {'kind': self.scope.kind, 'id': self.scope.id},
            'date_range': {
                'start': self.date_range.start.isoformat() if self.date_range else None,
                'end': self.date_range.end.isoformat() if self.date_range else None,
            },
            'insights': {t: r.to_dict() for t, r in self.insights.items()},
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)


def request_from_dict(raw: Dict[str, Any], insight_types: Sequence[str]) -> InsightRequest:
    """Build an InsightRequest from one scope entry of a JSON export."""
    scope = normalize_scope(raw.get('scope'))
    health_raw = raw.get('health')
    data = ScopeData(
        records=tuple(normalize_metric_records(raw.get('records') or [], default_scope=scope)),
        interactions=tuple(normalize_interactions(raw.get('interactions') or [])),
        pull_requests=tuple(normalize_pull_request(p) for p in raw.get('pull_requests') or []),
        reviews=tuple(normalize_review(r) for r in raw.get('reviews') or []),
        commits=tuple(normalize_commit(c) for c in raw.get('commits') or []),
        health=normalize_health_inputs(health_raw) if isinstance(health_raw, dict) else None,
    )
    return InsightRequest(
        scope=scope,
        date_range=normalize_date_range(raw.get('date_range') or {}),
        insight_types=tuple(insight_types),
        data=data,
    )
