"""
Normalization utility helpers.
Small helpers to normalize raw collaborator payloads (dicts decoded from JSON) into normalize.models entities.

Numeric fields that are missing or malformed are read as 0 instead of rejecting the record, so one bad
row never aborts a whole batch. Every such coercion is logged and listed in the record's `issues`.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from normalize.models import (
    COUNT_KEYS,
    OPTIONAL_COUNT_KEYS,
    SCORE_KEYS,
    ActorRef,
    CommitRecord,
    DateRange,
    InteractionEvent,
    MetricRecord,
    PullRequestRecord,
    ReviewRecord,
    Scope,
)
from scoring.models import HealthInputs

logger = logging.getLogger(__name__)

# accepted spellings per canonical field, first match wins
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    'opened': ('opened', 'pullRequestsOpened', 'pull_requests_opened'),
    'merged': ('merged', 'pullRequestsMerged', 'pull_requests_merged'),
    'reviews_given': ('reviews_given', 'reviewsGiven'),
    'comments_given': ('comments_given', 'commentsGiven'),
    'commits': ('commits', 'commitsCount', 'commits_count'),
    'lines_added': ('lines_added', 'linesAdded'),
    'lines_deleted': ('lines_deleted', 'linesDeleted'),
    'reviews_received': ('reviews_received', 'reviewsReceived'),
    'comments_received': ('comments_received', 'commentsReceived'),
    'unique_collaborators': ('unique_collaborators', 'uniqueCollaborators'),
    'avg_reviews_per_pr': ('avg_reviews_per_pr', 'avgReviewsPerPR'),
    'approval_rate': ('approval_rate', 'approvalRate'),
    'productivity': ('productivity', 'productivityScore', 'productivity_score'),
    'quality': ('quality', 'qualityScore', 'quality_score'),
    'collaboration': ('collaboration', 'collaborationScore', 'collaboration_score'),
}

INTERACTION_KIND_ALIASES = {
    'review_given': 'review_given',
    'reviewGiven': 'review_given',
    'review_received': 'review_received',
    'reviewReceived': 'review_received',
    'comment_given': 'comment_given',
    'commentGiven': 'comment_given',
    'comment': 'comment_given',
    'review': 'review_given',
}

_MISSING = object()


def _first_present(raw: Dict[str, Any], keys: Iterable[str], default: Any = _MISSING) -> Any:
    if not isinstance(raw, dict):
        return default
    for k in keys:
        if k in raw and raw[k] is not None:
            return raw[k]
    return default


def _to_number(value: Any) -> Optional[float]:
    """Return value as float, or None when it is not a usable number."""
    if isinstance(value, bool):
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    if num != num or num in (float('inf'), float('-inf')):
        return None
    return num


_TRUE_STRINGS = ('true', 'yes', 'y', '1')


def _to_bool(value: Any) -> bool:
    """Read JSON booleans, numbers and 'true'/'false' style strings."""
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (or datetime) into a timezone-aware UTC datetime."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def normalize_scope(raw: Any) -> Scope:
    """Create a Scope from a dict like {'kind': 'user', 'id': 'u1'} or a bare kind string."""
    if isinstance(raw, Scope):
        return raw
    if isinstance(raw, str):
        return Scope(kind=raw)
    raw = raw or {}
    kind = raw.get('kind') or raw.get('type') or 'team'
    scope_id = raw.get('id') or raw.get('targetId') or raw.get('target_id')
    return Scope(kind=kind, id=str(scope_id) if scope_id is not None else None)


def normalize_date_range(raw: Dict[str, Any]) -> DateRange:
    raw = raw or {}
    start = parse_timestamp(_first_present(raw, ('start', 'startDate', 'start_date'), None))
    end = parse_timestamp(_first_present(raw, ('end', 'endDate', 'end_date'), None))
    if start is None or end is None:
        raise ValueError('date_range requires both start and end')
    return DateRange(start=start, end=end)


def normalize_actor(raw: Any) -> ActorRef:
    """Create an ActorRef from an id string or a provider dict."""
    if isinstance(raw, ActorRef):
        return raw
    if isinstance(raw, dict):
        actor_id = raw.get('id') or raw.get('accountId') or raw.get('login') or raw.get('username') or ''
        display_name = raw.get('displayName') or raw.get('display_name') or raw.get('name') or raw.get('login') or ''
        avatar_url = raw.get('avatarUrl') or raw.get('avatar_url') or ''
        return ActorRef(id=str(actor_id), display_name=display_name, avatar_url=avatar_url)
    return ActorRef(id=str(raw or ''))


def _read_numeric(raw: Dict[str, Any], key: str, issues: List[str], required: bool) -> Optional[float]:
    value = _first_present(raw, FIELD_ALIASES.get(key, (key,)))
    if value is _MISSING:
        if required:
            issues.append(key)
            return 0.0
        return None
    num = _to_number(value)
    if num is None:
        issues.append(key)
        return 0.0
    return num


def normalize_metric_record(raw: Dict[str, Any], default_scope: Optional[Scope] = None) -> MetricRecord:
    """Create a MetricRecord from a raw dict.

    Counts may be nested under 'counts' or given at the top level. Missing or malformed numeric
    fields are read as 0 and listed in `issues`; a missing period is an error since the record
    cannot be placed in a series.
    """
    period = parse_timestamp(_first_present(raw, ('period', 'date', 'timestamp'), None))
    if period is None:
        raise ValueError('metric record has no period')

    scope_raw = raw.get('scope')
    scope = normalize_scope(scope_raw) if scope_raw else (default_scope or Scope(kind='team'))

    counts_raw = raw.get('counts') if isinstance(raw.get('counts'), dict) else raw
    issues: List[str] = []
    counts: Dict[str, float] = {}
    for key in COUNT_KEYS:
        counts[key] = _read_numeric(counts_raw, key, issues, required=True)
    for key in OPTIONAL_COUNT_KEYS:
        val = _read_numeric(counts_raw, key, issues, required=False)
        if val is not None:
            counts[key] = val

    scores_raw = raw.get('scores') if isinstance(raw.get('scores'), dict) else raw
    scores: Dict[str, float] = {}
    for key in SCORE_KEYS:
        val = _read_numeric(scores_raw, key, issues, required=False)
        if val is not None:
            scores[key] = val

    if issues:
        logger.warning('Metric record for %s at %s: fields %s missing or invalid, read as 0',
                       scope.label(), period.isoformat(), ', '.join(issues))
    return MetricRecord(period=period, scope=scope, counts=counts, scores=scores or None, issues=tuple(issues))


def normalize_metric_records(raws: Iterable[Dict[str, Any]], default_scope: Optional[Scope] = None) -> List[MetricRecord]:
    """Normalize and sort records by period. Records are never dropped for being out of range."""
    records = [normalize_metric_record(r, default_scope) for r in raws or []]
    return sort_records(records)


def normalize_interaction(raw: Dict[str, Any]) -> Optional[InteractionEvent]:
    """Create an InteractionEvent, or None for self-interactions and events missing an actor."""
    kind_raw = _first_present(raw, ('kind', 'type'), 'review_given')
    kind = INTERACTION_KIND_ALIASES.get(str(kind_raw))
    if kind is None:
        raise ValueError(f"Unknown interaction kind: {kind_raw!r}")
    from_actor = normalize_actor(_first_present(raw, ('from_actor', 'fromActor', 'from', 'reviewer', 'author'), None))
    to_actor = normalize_actor(_first_present(raw, ('to_actor', 'toActor', 'to', 'recipient'), None))
    if not from_actor.id or not to_actor.id:
        logger.warning('Skipping interaction without both actors: %r', raw)
        return None
    if from_actor.id == to_actor.id:
        return None
    timestamp = parse_timestamp(_first_present(raw, ('timestamp', 'submittedAt', 'createdAt', 'created_at'), None))
    return InteractionEvent(kind=kind, from_actor=from_actor, to_actor=to_actor, timestamp=timestamp, id=str(raw.get('id') or ''))


def normalize_interactions(raws: Iterable[Dict[str, Any]]) -> List[InteractionEvent]:
    events: List[InteractionEvent] = []
    for raw in raws or []:
        ev = normalize_interaction(raw)
        if ev is not None:
            events.append(ev)
    return events


def _int_field(raw: Dict[str, Any], keys: Sequence[str], label: str, issues: List[str]) -> int:
    value = _first_present(raw, keys, 0)
    num = _to_number(value)
    if num is None:
        issues.append(label)
        return 0
    return int(num)


def normalize_pull_request(raw: Dict[str, Any]) -> PullRequestRecord:
    issues: List[str] = []
    additions = _int_field(raw, ('additions',), 'additions', issues)
    deletions = _int_field(raw, ('deletions',), 'deletions', issues)
    changed_files = _int_field(raw, ('changed_files', 'changedFiles'), 'changed_files', issues)
    reviews_count = _int_field(raw, ('reviews_count', 'reviewsCount'), 'reviews_count', issues)
    comments_count = _int_field(raw, ('comments_count', 'commentsCount'), 'comments_count', issues)
    first_review = _first_present(raw, ('first_review_hours', 'firstReviewHours'), None)
    if first_review is None and raw.get('timeToFirstReview') is not None:
        # stored upstream in minutes
        minutes = _to_number(raw.get('timeToFirstReview'))
        first_review = minutes / 60.0 if minutes is not None else None
    first_review_hours = _to_number(first_review) if first_review is not None else None
    pr_id = str(_first_present(raw, ('id', 'number'), ''))
    if issues:
        logger.warning('Pull request %s: fields %s invalid, read as 0', pr_id, ', '.join(issues))
    return PullRequestRecord(
        id=pr_id,
        repository_id=str(_first_present(raw, ('repository_id', 'repositoryId'), '')),
        author_id=str(_first_present(raw, ('author_id', 'authorId'), '')),
        state=str(raw.get('state') or 'open').lower(),
        merged=_to_bool(raw.get('merged')),
        additions=additions,
        deletions=deletions,
        changed_files=changed_files,
        reviews_count=reviews_count,
        comments_count=comments_count,
        first_review_hours=first_review_hours,
        created_at=parse_timestamp(_first_present(raw, ('created_at', 'githubCreatedAt', 'createdAt'), None)),
        updated_at=parse_timestamp(_first_present(raw, ('updated_at', 'githubUpdatedAt', 'updatedAt'), None)),
    )


def normalize_review(raw: Dict[str, Any]) -> ReviewRecord:
    issues: List[str] = []
    review = ReviewRecord(
        reviewer_id=str(_first_present(raw, ('reviewer_id', 'reviewerId'), '')),
        state=str(raw.get('state') or '').upper(),
        comments_count=_int_field(raw, ('comments_count', 'commentsCount'), 'comments_count', issues),
    )
    if issues:
        logger.warning('Review by %s: fields %s invalid, read as 0', review.reviewer_id, ', '.join(issues))
    return review


def normalize_commit(raw: Dict[str, Any]) -> CommitRecord:
    issues: List[str] = []
    commit = CommitRecord(
        author_id=str(_first_present(raw, ('author_id', 'authorId'), '')),
        repository_id=str(_first_present(raw, ('repository_id', 'repositoryId'), '')),
        additions=_int_field(raw, ('additions',), 'additions', issues),
        deletions=_int_field(raw, ('deletions',), 'deletions', issues),
        changed_files=_int_field(raw, ('changed_files', 'changedFiles'), 'changed_files', issues),
    )
    if issues:
        logger.warning('Commit by %s: fields %s invalid, read as 0', commit.author_id, ', '.join(issues))
    return commit


def normalize_health_inputs(raw: Dict[str, Any]) -> HealthInputs:
    """Create HealthInputs from pre-aggregated counts. Invalid numbers read as 0, unusable latency samples are dropped."""
    issues: List[str] = []

    def count(key: str) -> float:
        value = raw.get(key)
        if value is None:
            return 0.0
        num = _to_number(value)
        if num is None:
            issues.append(key)
            return 0.0
        return num

    latency_raw = raw.get('latency_hours') or ()
    if isinstance(latency_raw, (str, bytes)) or not isinstance(latency_raw, (list, tuple)):
        latency_raw = (latency_raw,)
    latencies = []
    for sample in latency_raw:
        num = _to_number(sample)
        if num is None:
            issues.append('latency_hours')
            continue
        latencies.append(num)

    inputs = HealthInputs(
        activity_count=count('activity_count'),
        stale_count=int(count('stale_count')),
        latency_hours=tuple(latencies),
        total_count=int(count('total_count')),
        merged_count=int(count('merged_count')),
        commit_count=int(count('commit_count')),
    )
    if issues:
        logger.warning('Health inputs: fields %s invalid, read as 0 or dropped', ', '.join(sorted(set(issues))))
    return inputs


def sort_records(records: Iterable[MetricRecord]) -> List[MetricRecord]:
    """Return records ordered by period ascending (stable for equal periods)."""
    return sorted(records, key=lambda r: r.period)


def extract_series(records: Sequence[MetricRecord], key: str) -> Tuple[List[datetime], List[float]]:
    """Return (periods, values) for one metric, ordered by period."""
    ordered = sort_records(records)
    return [r.period for r in ordered], [r.value(key) for r in ordered]
