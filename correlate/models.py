"""
Data models for collaboration network results.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from normalize.models import ActorRef


@dataclass
class CounterpartStats:
    """
    Running interaction counts between the subject and one counterpart.
    """
    actor: ActorRef
    reviews_given: int = 0
    reviews_received: int = 0
    comments: int = 0

    @property
    def total(self) -> int:
        return self.reviews_given + self.reviews_received + self.comments

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.actor.id,
            'display_name': self.actor.display_name,
            'reviews_given': self.reviews_given,
            'reviews_received': self.reviews_received,
            'comments': self.comments,
            'total': self.total,
        }


@dataclass(frozen=True)
class CollaborationNetwork:
    """
    Counterparts ranked by interaction volume (desc), ties broken by counterpart id (asc).
    subject_id is None for the participant view of a repository or the team.
    """
    subject_id: Optional[str]
    counterparts: Tuple[CounterpartStats, ...]
    total_interactions: int
    reviews_given: int
    reviews_received: int
    comments: int

    @property
    def counterpart_count(self) -> int:
        return len(self.counterparts)

    @property
    def avg_interactions(self) -> float:
        if not self.counterparts:
            return 0.0
        return self.total_interactions / len(self.counterparts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'subject_id': self.subject_id,
            'counterpart_count': self.counterpart_count,
            'total_interactions': self.total_interactions,
            'avg_interactions': self.avg_interactions,
            'counterparts': [c.to_dict() for c in self.counterparts],
            'communication': {
                'reviews_given': self.reviews_given,
                'reviews_received': self.reviews_received,
                'comments': self.comments,
            },
        }


@dataclass
class NetworkEdge:
    """
    Directed edge A -> B: A reviewed B (reviews_given), B reviewed A (reviews_received),
    A commented on B's work (comments).
    """
    actor_a: str
    actor_b: str
    reviews_given: int = 0
    reviews_received: int = 0
    comments: int = 0

    @property
    def total(self) -> int:
        return self.reviews_given + self.reviews_received + self.comments

    def to_dict(self) -> Dict[str, Any]:
        return {
            'actor_a': self.actor_a,
            'actor_b': self.actor_b,
            'reviews_given': self.reviews_given,
            'reviews_received': self.reviews_received,
            'comments': self.comments,
        }


@dataclass(frozen=True)
class TeamDynamics:
    active_actors: int
    pair_count: int
    density: float
    reciprocity: float
    review_concentration: float
    top_reviewers: Tuple[Tuple[str, int], ...]
    isolated_actors: Tuple[str, ...]
    edges: Tuple[NetworkEdge, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'active_actors': self.active_actors,
            'pair_count': self.pair_count,
            'density': self.density,
            'reciprocity': self.reciprocity,
            'review_concentration': self.review_concentration,
            'top_reviewers': [{'id': actor_id, 'reviews': count} for actor_id, count in self.top_reviewers],
            'isolated_actors': list(self.isolated_actors),
            'edges': [e.to_dict() for e in self.edges],
        }

    @property
    def top_reviewer(self) -> str:
        return self.top_reviewers[0][0] if self.top_reviewers else ''

    @property
    def isolated_count(self) -> int:
        return len(self.isolated_actors)


def rank_counterparts(stats: List[CounterpartStats]) -> Tuple[CounterpartStats, ...]:
    return tuple(sorted(stats, key=lambda c: (-c.total, c.actor.id)))
