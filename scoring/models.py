"""
Result models produced by the scoring modules.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class InsufficientData:
    """
    Explicit "not enough data" outcome of an analysis. Returned as a value, never raised.
    """
    analysis: str
    required: int
    available: int
    reason: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'analysis': self.analysis,
            'required': self.required,
            'available': self.available,
            'reason': self.reason or f"{self.analysis} needs at least {self.required} data points, got {self.available}",
        }


@dataclass(frozen=True)
class TrendResult:
    """
    Linear trend and volatility of one metric series.
    sample_count == 0 means there was no data; average, slope and volatility are then 0.
    """
    metric_key: str
    slope: float
    average: float
    volatility: float
    sample_count: int

    @property
    def has_data(self) -> bool:
        return self.sample_count > 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Anomaly:
    period: datetime
    metric_key: str
    value: float
    expected: float
    z_score: float
    severity: str  # "medium", "high"
    direction: str  # "spike", "drop"

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d['period'] = self.period.isoformat() if self.period else None
        return d


@dataclass(frozen=True)
class HealthInputs:
    """
    Scope-level aggregates the composite scorer works from.
    activity_count is already expressed in activity units (see derive_health_inputs).
    """
    activity_count: float = 0.0
    stale_count: int = 0
    latency_hours: Tuple[float, ...] = ()
    total_count: int = 0
    merged_count: int = 0
    commit_count: int = 0


@dataclass(frozen=True)
class HealthScore:
    scope_ref: str
    overall: int
    activity: int
    staleness: int
    responsiveness: int
    merge_rate: int
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def subscores(self) -> Dict[str, int]:
        return {
            'activity': self.activity,
            'staleness': self.staleness,
            'responsiveness': self.responsiveness,
            'merge_rate': self.merge_rate,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'scope_ref': self.scope_ref,
            'overall': self.overall,
            'subscores': self.subscores,
            'stats': dict(self.stats),
        }


@dataclass(frozen=True)
class QualityMetrics:
    merge_rate: float = 0.0
    avg_pr_size: float = 0.0
    avg_reviews_per_pr: float = 0.0
    avg_comments_per_pr: float = 0.0
    approval_rate: float = 0.0
    avg_commit_size: float = 0.0
    pull_requests: int = 0
    reviews: int = 0
    commits: int = 0
    score: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
