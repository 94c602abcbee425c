"""
Unified data models for the records handed to the insight engine.
All records are frozen: the engine never mutates its input.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Tuple

SCOPE_KINDS = ('user', 'repository', 'team')

# count keys every MetricRecord carries (missing values are coerced to 0)
COUNT_KEYS = (
    'opened',
    'merged',
    'reviews_given',
    'comments_given',
    'commits',
    'lines_added',
    'lines_deleted',
)

# optional counts kept when the collaborator supplies them
OPTIONAL_COUNT_KEYS = (
    'reviews_received',
    'comments_received',
    'unique_collaborators',
    'avg_reviews_per_pr',
    'approval_rate',
)

SCORE_KEYS = ('productivity', 'quality', 'collaboration')

INTERACTION_KINDS = ('review_given', 'review_received', 'comment_given')


@dataclass(frozen=True)
class Scope:
    """
    Subject of an analysis: a contributor, a repository, or the whole team.
    """
    kind: str
    id: Optional[str] = None

    def __post_init__(self):
        if self.kind not in SCOPE_KINDS:
            raise ValueError(f"Unknown scope kind: {self.kind!r} (expected one of {', '.join(SCOPE_KINDS)})")

    def label(self) -> str:
        return f"{self.kind}:{self.id}" if self.id else self.kind


@dataclass(frozen=True)
class ActorRef:
    """
    Opaque actor identity. Only `id` takes part in equality and ordering.
    """
    id: str
    display_name: str = field(default='', compare=False)
    avatar_url: str = field(default='', compare=False)


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class MetricRecord:
    """
    Per-period activity counts for one scope, with optional pre-computed scores.
    `issues` names the numeric fields that were missing or malformed in the raw input
    and were read as 0.
    """
    period: datetime
    scope: Scope
    counts: Dict[str, float]
    scores: Optional[Dict[str, float]] = None
    issues: Tuple[str, ...] = ()

    def value(self, key: str) -> float:
        """Return a count or score by key; unknown keys read as 0."""
        if key in self.counts:
            return float(self.counts[key])
        if self.scores and key in self.scores:
            return float(self.scores[key])
        return 0.0


@dataclass(frozen=True)
class InteractionEvent:
    """
    A review or comment exchanged between two actors.
    from_actor is always the initiator (reviewer/commenter), to_actor the PR author.
    """
    kind: str
    from_actor: ActorRef
    to_actor: ActorRef
    timestamp: Optional[datetime] = None
    id: str = ''

    @property
    def is_review(self) -> bool:
        return self.kind in ('review_given', 'review_received')

    @property
    def is_self_interaction(self) -> bool:
        return self.from_actor.id == self.to_actor.id


@dataclass(frozen=True)
class PullRequestRecord:
    """
    Normalized pull request entity used by quality and health analyses.
    """
    id: str
    repository_id: str = ''
    author_id: str = ''
    state: str = 'open'
    merged: bool = False
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0
    reviews_count: int = 0
    comments_count: int = 0
    first_review_hours: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def size(self) -> int:
        return self.additions + self.deletions


@dataclass(frozen=True)
class ReviewRecord:
    reviewer_id: str
    state: str = ''
    comments_count: int = 0


@dataclass(frozen=True)
class CommitRecord:
    author_id: str = ''
    repository_id: str = ''
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0

    @property
    def size(self) -> int:
        return self.additions + self.deletions
