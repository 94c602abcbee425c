"""
Collaboration network builder.
Aggregates review/comment interaction events into per-counterpart counts and a directed team graph.

Self-interactions are ignored and events sharing a non-empty id are counted once, so the same review
reported from both the reviewer's and the author's side does not double count.
"""
from collections import Counter, defaultdict
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from correlate.models import CollaborationNetwork, CounterpartStats, NetworkEdge, TeamDynamics, rank_counterparts
from normalize.models import ActorRef, InteractionEvent

TOP_REVIEWERS = 5


def unique_events(events: Iterable[InteractionEvent]) -> Iterator[InteractionEvent]:
    seen: Set[str] = set()
    for ev in events:
        if ev.is_self_interaction:
            continue
        if ev.id:
            if ev.id in seen:
                continue
            seen.add(ev.id)
        yield ev


def _stats_for(network: Dict[str, CounterpartStats], actor: ActorRef) -> CounterpartStats:
    stats = network.get(actor.id)
    if stats is None:
        stats = CounterpartStats(actor=actor)
        network[actor.id] = stats
    elif not stats.actor.display_name and actor.display_name:
        stats.actor = actor
    return stats


def build_network(events: Iterable[InteractionEvent], subject_id: str) -> CollaborationNetwork:
    """Counterpart view of one actor: who they review, who reviews them, whose work they discuss."""
    network: Dict[str, CounterpartStats] = {}
    given = received = comments = 0
    for ev in unique_events(events):
        if ev.from_actor.id == subject_id:
            stats = _stats_for(network, ev.to_actor)
            if ev.is_review:
                stats.reviews_given += 1
                given += 1
            else:
                stats.comments += 1
                comments += 1
        elif ev.to_actor.id == subject_id:
            stats = _stats_for(network, ev.from_actor)
            if ev.is_review:
                stats.reviews_received += 1
                received += 1
            else:
                stats.comments += 1
                comments += 1

    ranked = rank_counterparts(list(network.values()))
    return CollaborationNetwork(
        subject_id=subject_id,
        counterparts=ranked,
        total_interactions=sum(c.total for c in ranked),
        reviews_given=given,
        reviews_received=received,
        comments=comments,
    )


def build_participation(events: Iterable[InteractionEvent]) -> CollaborationNetwork:
    """Participant view of a repository or team: every actor with the interactions they took part in."""
    network: Dict[str, CounterpartStats] = {}
    reviews = comments = 0
    for ev in unique_events(events):
        initiator = _stats_for(network, ev.from_actor)
        recipient = _stats_for(network, ev.to_actor)
        if ev.is_review:
            initiator.reviews_given += 1
            recipient.reviews_received += 1
            reviews += 1
        else:
            initiator.comments += 1
            recipient.comments += 1
            comments += 1

    ranked = rank_counterparts(list(network.values()))
    return CollaborationNetwork(
        subject_id=None,
        counterparts=ranked,
        total_interactions=reviews + comments,
        reviews_given=reviews,
        reviews_received=reviews,
        comments=comments,
    )


def build_edges(events: Iterable[InteractionEvent]) -> List[NetworkEdge]:
    """Directed edges for every ordered pair with an interaction, sorted by (actor_a, actor_b)."""
    edges: Dict[Tuple[str, str], NetworkEdge] = {}

    def edge(a: str, b: str) -> NetworkEdge:
        if (a, b) not in edges:
            edges[(a, b)] = NetworkEdge(actor_a=a, actor_b=b)
        return edges[(a, b)]

    for ev in unique_events(events):
        a, b = ev.from_actor.id, ev.to_actor.id
        if ev.is_review:
            edge(a, b).reviews_given += 1
            edge(b, a).reviews_received += 1
        else:
            edge(a, b).comments += 1
    return [edges[k] for k in sorted(edges)]


def analyze_team_dynamics(events: Iterable[InteractionEvent], top_n: Optional[int] = TOP_REVIEWERS) -> TeamDynamics:
    """Whole-team graph measures: density, review reciprocity, reviewer concentration, isolated actors."""
    events = list(unique_events(events))
    edges = build_edges(events)

    actors: Set[str] = set()
    pairs: Set[Tuple[str, str]] = set()
    review_directions: Dict[Tuple[str, str], Set[str]] = defaultdict(set)
    reviews_by_actor: Counter = Counter()
    for ev in events:
        a, b = ev.from_actor.id, ev.to_actor.id
        actors.update((a, b))
        pair = (a, b) if a < b else (b, a)
        pairs.add(pair)
        if ev.is_review:
            reviews_by_actor[a] += 1
            review_directions[pair].add(a)

    n = len(actors)
    possible_pairs = n * (n - 1) / 2
    total_reviews = sum(reviews_by_actor.values())
    reciprocated = sum(1 for reviewers in review_directions.values() if len(reviewers) == 2)
    ranked_reviewers = sorted(reviews_by_actor.items(), key=lambda item: (-item[1], item[0]))

    return TeamDynamics(
        active_actors=n,
        pair_count=len(pairs),
        density=len(pairs) / possible_pairs if possible_pairs else 0.0,
        reciprocity=reciprocated / len(review_directions) if review_directions else 0.0,
        review_concentration=ranked_reviewers[0][1] / total_reviews if total_reviews else 0.0,
        top_reviewers=tuple(ranked_reviewers[:top_n] if top_n else ranked_reviewers),
        isolated_actors=tuple(sorted(a for a in actors if reviews_by_actor[a] == 0)),
        edges=tuple(edges),
    )
