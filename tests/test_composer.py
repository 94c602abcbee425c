import unittest
from datetime import datetime, timedelta, timezone
from unittest import mock

import pytest

import insights.composer as composer_module
from insights.composer import InsightComposer, generate_insights, generate_insights_for_scopes
from insights.errors import UnknownInsightTypeError
from insights.models import InsightRequest, ScopeData
from normalize.models import (
    COUNT_KEYS,
    ActorRef,
    DateRange,
    InteractionEvent,
    MetricRecord,
    PullRequestRecord,
    Scope,
)

START = datetime(2025, 1, 6, tzinfo=timezone.utc)
RANGE = DateRange(start=START, end=START + timedelta(weeks=14))
USER = Scope('user', 'u1')
TEAM = Scope('team')


def _series_records(scope=USER, **series):
    n = len(next(iter(series.values())))
    records = []
    for i in range(n):
        counts = {k: 0.0 for k in COUNT_KEYS}
        counts.update({k: float(v[i]) for k, v in series.items()})
        records.append(MetricRecord(period=START + timedelta(weeks=i), scope=scope, counts=counts))
    return tuple(records)


def _records(values, key='opened', scope=USER):
    return _series_records(scope, **{key: values})


def _review(a, b, ev_id=''):
    return InteractionEvent(kind='review_given', from_actor=ActorRef(a), to_actor=ActorRef(b), id=ev_id)


def _request(scope, types, **data):
    return InsightRequest(scope=scope, date_range=RANGE, insight_types=tuple(types), data=ScopeData(**data))


class TestEndToEnd(unittest.TestCase):
    def test_step_series_trend_up_without_anomalies(self):
        bundle = generate_insights(USER, RANGE, ['trends', 'anomalies'], ScopeData(records=_records([1] * 7 + [5] * 7)))

        trends = bundle.insights['trends']
        self.assertEqual(trends.status, 'ok')
        self.assertEqual(trends.data['direction'], 'improving')
        self.assertEqual(trends.data['metrics']['opened']['direction'], 'improving')
        self.assertGreater(trends.data['metrics']['opened']['slope'], 0)
        self.assertTrue(any(i.startswith('opened is showing an upward trend') for i in trends.insights))
        self.assertIn('Work on stabilizing opened performance', trends.recommendations)

        anomalies = bundle.insights['anomalies']
        self.assertEqual(anomalies.status, 'ok')
        self.assertEqual(anomalies.data['anomalies'], [])
        self.assertEqual(anomalies.summary, 'Found 0 anomalies (0 spikes, 0 drops)')

    def test_spike_and_drop_narratives(self):
        bundle = generate_insights(USER, RANGE, ['anomalies'], ScopeData(records=_series_records(
            opened=[10] * 13 + [50],
            reviews_given=[10] * 13 + [0],
        )))
        result = bundle.insights['anomalies']
        self.assertEqual((result.data['spikes'], result.data['drops']), (1, 1))
        self.assertIn('Detected 1 productivity spikes', result.insights)
        self.assertIn('Detected 1 productivity drops', result.insights)
        self.assertIn('Investigate causes of productivity drops', result.recommendations)

    def test_declining_trend_recommendation(self):
        bundle = generate_insights(USER, RANGE, ['trends'], ScopeData(records=_records([9, 8, 7, 6, 5, 4, 3])))
        result = bundle.insights['trends']
        self.assertEqual(result.data['direction'], 'declining')
        self.assertIn('Consider investigating factors affecting opened performance', result.recommendations)


class TestOutcomes(unittest.TestCase):
    def test_short_series_is_insufficient(self):
        bundle = generate_insights(USER, RANGE, ['anomalies'], ScopeData(records=_records([1, 2, 3])))
        result = bundle.insights['anomalies']
        self.assertEqual(result.status, 'insufficient_data')
        self.assertEqual(result.data['insufficient_data']['required'], 7)
        self.assertEqual(result.data['insufficient_data']['available'], 3)

    def test_no_records_is_insufficient_for_trends(self):
        bundle = generate_insights(USER, RANGE, ['trends'])
        self.assertEqual(bundle.insights['trends'].status, 'insufficient_data')

    def test_team_dynamics_not_applicable_outside_team(self):
        bundle = generate_insights(USER, RANGE, ['team_dynamics'], ScopeData(interactions=(_review('u1', 'u2'),)))
        self.assertEqual(bundle.insights['team_dynamics'].status, 'not_applicable')

    def test_health_without_data_is_neutral(self):
        result = generate_insights(Scope('repository', 'r1'), RANGE, ['health']).insights['health']
        self.assertEqual(result.status, 'ok')
        self.assertEqual(result.data['overall'], 45)
        self.assertEqual(result.summary, 'Health score: 45/100')
        # neutral merge and responsiveness scores are not observations
        self.assertEqual(result.insights, ['repository:r1: overall health 45/100'])

    def test_team_health_per_repository(self):
        prs = (
            PullRequestRecord(id='1', repository_id='r2', merged=True, state='closed'),
            PullRequestRecord(id='2', repository_id='r1', state='open', updated_at=START),
        )
        result = generate_insights(TEAM, RANGE, ['health'], ScopeData(pull_requests=prs)).insights['health']
        refs = [s['scope_ref'] for s in result.data['scores']]
        self.assertEqual(refs, ['repository:r1', 'repository:r2'])
        self.assertTrue(result.summary.endswith('across 2 repositories'))
        self.assertIn('repository:r1: low merge rate (0/100)', result.insights)
        self.assertIn('Review PR rejection causes in repository:r1', result.recommendations)

    def test_collaboration_for_user(self):
        events = (_review('u1', 'u2', 'a'), _review('u3', 'u1', 'b'))
        result = generate_insights(USER, RANGE, ['collaboration'], ScopeData(interactions=events)).insights['collaboration']
        self.assertEqual(result.summary, 'Active collaboration with 2 team members')
        self.assertIn('Collaborates with 2 team members', result.insights)
        self.assertIn('Average 1.0 interactions per collaborator', result.insights)
        self.assertEqual(result.recommendations, ['Consider expanding collaboration network'])

    def test_quality_rules(self):
        prs = tuple(PullRequestRecord(id=str(i), merged=True, additions=600, reviews_count=2) for i in range(3))
        result = generate_insights(USER, RANGE, ['quality'], ScopeData(pull_requests=prs)).insights['quality']
        self.assertEqual(result.status, 'ok')
        self.assertEqual(result.insights, ['Large average PR size: 600 lines changed'])
        self.assertEqual(result.recommendations, ['Consider breaking down large PRs into smaller, reviewable chunks'])

    def test_team_dynamics_rules(self):
        events = (_review('a', 'b'), _review('a', 'c'), _review('a', 'b'), _review('b', 'a'))
        result = generate_insights(TEAM, RANGE, ['team_dynamics'], ScopeData(interactions=events)).insights['team_dynamics']
        self.assertEqual(result.status, 'ok')
        self.assertIn('a gives 75% of all reviews', result.insights)
        self.assertIn('1 team members never review others', result.insights)
        self.assertIn('Involve c in code review', result.recommendations)


class TestIsolation(unittest.TestCase):
    def test_unknown_type_rejected_before_analysis(self):
        composer = InsightComposer()
        with mock.patch.object(composer_module, 'analyze_trends') as analyze:
            with self.assertRaises(UnknownInsightTypeError) as ctx:
                composer.generate(_request(USER, ['trends', 'sentiment'], records=_records([1] * 7)))
        analyze.assert_not_called()
        self.assertEqual(ctx.exception.insight_type, 'sentiment')
        self.assertIsInstance(ctx.exception, ValueError)

    def test_failure_in_one_type_keeps_siblings(self):
        request = _request(USER, ['trends', 'anomalies', 'health'], records=_records([1] * 7 + [5] * 7))
        with mock.patch.object(composer_module, 'detect_series_anomalies', side_effect=RuntimeError('boom')):
            with self.assertLogs('insights.composer', level='ERROR'):
                bundle = InsightComposer().generate(request)
        self.assertEqual(bundle.insights['anomalies'].status, 'error')
        self.assertEqual(bundle.insights['anomalies'].error, 'boom')
        self.assertEqual(bundle.insights['trends'].status, 'ok')
        self.assertEqual(bundle.insights['health'].status, 'ok')
        self.assertEqual(bundle.errors, {'anomalies': 'boom'})

    def test_results_follow_requested_order(self):
        bundle = InsightComposer().generate(_request(USER, ['health', 'trends', 'health']))
        self.assertEqual(list(bundle.insights), ['health', 'trends'])


def test_generation_is_idempotent():
    data = ScopeData(
        records=_records([3, 1, 4, 1, 5, 9, 2, 6, 5, 3]),
        interactions=(_review('u1', 'u2', 'a'), _review('u2', 'u1', 'b')),
        pull_requests=(PullRequestRecord(id='1', merged=True, first_review_hours=3.0),),
    )
    request = InsightRequest(scope=USER, date_range=RANGE, insight_types=composer_module.INSIGHT_TYPES, data=data)
    composer = InsightComposer()
    assert composer.generate(request).to_json() == composer.generate(request).to_json()


def test_multi_scope_keeps_request_order():
    requests = [
        _request(Scope('user', f'u{i}'), ['trends'], records=_records([i] * 7, scope=Scope('user', f'u{i}')))
        for i in range(6)
    ]
    bundles = generate_insights_for_scopes(requests, max_workers=3)
    assert [b.scope.id for b in bundles] == [f'u{i}' for i in range(6)]
    assert all(b.insights['trends'].status == 'ok' for b in bundles)


def test_multi_scope_validates_types_up_front():
    with pytest.raises(UnknownInsightTypeError):
        generate_insights_for_scopes([_request(USER, ['trends']), _request(TEAM, ['bogus'])])


def test_multi_scope_failure_becomes_error_bundle():
    composer = InsightComposer()
    requests = [_request(USER, ['trends'], records=_records([1] * 7)), _request(TEAM, ['trends', 'health'])]
    original = composer.generate

    def flaky(request):
        if request.scope.kind == 'team':
            raise RuntimeError('scope failed')
        return original(request)

    with mock.patch.object(composer, 'generate', side_effect=flaky):
        bundles = composer.generate_many(requests, max_workers=2)
    assert bundles[0].insights['trends'].status == 'ok'
    assert {t: r.status for t, r in bundles[1].insights.items()} == {'trends': 'error', 'health': 'error'}
