import json
import sys
import webbrowser
from pathlib import Path

import pytest

from cli import _write_report_file, load_requests, main, parse_types
from insights.composer import INSIGHT_TYPES
from insights.errors import UnknownInsightTypeError
from insights.models import InsightBundle, InsightRequest

SCOPE_EXPORT = {
    'scope': {'kind': 'user', 'id': 'u1'},
    'date_range': {'start': '2025-01-01', 'end': '2025-03-31'},
    'records': [{'period': f'2025-01-{d:02d}', 'pullRequestsOpened': v, 'commitsCount': 2}
                for d, v in zip(range(1, 29, 3), [1, 1, 1, 1, 5, 5, 5, 5, 5, 5])],
    'interactions': [{'kind': 'review_given', 'from': 'u1', 'to': 'u2', 'id': 'r1'}],
    'pull_requests': [{'id': 1, 'repositoryId': 'r1', 'state': 'closed', 'merged': True, 'additions': 40}],
}


def _write_input(tmp_path, payload):
    path = tmp_path / 'export.json'
    path.write_text(json.dumps(payload), encoding='utf-8')
    return str(path)


def test_write_report_file_creates_file(tmp_path):
    base = str(tmp_path / 'out_report')
    _write_report_file(base, 'txt', 'hello world', open_html=False)
    p = Path(f"{base}.txt")
    assert p.exists()
    assert p.read_text(encoding='utf-8') == 'hello world'


def test_write_report_file_opens_html(monkeypatch, tmp_path):
    called = {}

    def fake_open(url):
        called['url'] = url
        return True

    monkeypatch.setattr(webbrowser, 'open', fake_open)
    _write_report_file(str(tmp_path / 'r.html'), 'html', '<html></html>', open_html=True)
    assert (tmp_path / 'r.html').exists()
    assert called['url'].startswith('file://')


def test_parse_types():
    assert parse_types('all') == list(INSIGHT_TYPES)
    assert parse_types('') == list(INSIGHT_TYPES)
    assert parse_types('health, trends') == ['health', 'trends']
    with pytest.raises(UnknownInsightTypeError):
        parse_types('trends,velocity')


def test_load_requests_single_and_multi():
    (single,) = load_requests(SCOPE_EXPORT, ['trends'])
    assert single.scope.id == 'u1'
    assert len(single.data.records) == 10
    assert single.data.pull_requests[0].merged
    multi = load_requests({'scopes': [SCOPE_EXPORT, dict(SCOPE_EXPORT, scope={'kind': 'team'})]}, ['health'])
    assert [r.scope.kind for r in multi] == ['user', 'team']


def test_load_requests_reads_loose_health_aggregates():
    (request,) = load_requests(dict(SCOPE_EXPORT, health={'stale_count': '2.0', 'latency_hours': ['n/a', 3]}), ['health'])
    assert isinstance(request, InsightRequest)
    assert request.data.health.stale_count == 2
    assert request.data.health.latency_hours == (3.0,)


def test_cli_json_to_file(tmp_path, monkeypatch):
    out = tmp_path / 'insights.json'
    monkeypatch.setattr(sys, 'argv', ['cli.py', '--input', _write_input(tmp_path, SCOPE_EXPORT),
                                      '--types', 'trends,anomalies,collaboration',
                                      '--output', 'json', '--out-file', str(out)])
    main()
    parsed = json.loads(out.read_text(encoding='utf-8'))
    assert list(parsed['insights']) == ['anomalies', 'collaboration', 'trends']
    assert parsed['insights']['trends']['status'] == 'ok'
    assert parsed['insights']['collaboration']['summary'] == 'Active collaboration with 1 team members'


def test_cli_text_to_stdout(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(sys, 'argv', ['cli.py', '--input', _write_input(tmp_path, SCOPE_EXPORT), '--types', 'health'])
    main()
    assert '[health] ok: Health score:' in capsys.readouterr().out


def test_cli_export_all_multi_scope(tmp_path, monkeypatch):
    payload = {'scopes': [SCOPE_EXPORT, dict(SCOPE_EXPORT, scope={'kind': 'team'})]}
    base = str(tmp_path / 'report_cli')
    monkeypatch.setattr(sys, 'argv', ['cli.py', '--input', _write_input(tmp_path, payload), '--export-all',
                                      '--out-file', base, '--workers', '2'])
    main()
    for ext in ('html', 'md', 'csv', 'json'):
        assert Path(f"{base}.{ext}").exists()
    bundles = json.loads(Path(f"{base}.json").read_text(encoding='utf-8'))
    assert [b['scope']['kind'] for b in bundles] == ['user', 'team']


BAD_ENTRY = {
    'scope': {'kind': 'team', 'id': 't9'},
    'date_range': {'start': '2025-01-01', 'end': '2025-03-31'},
    'interactions': [{'kind': 'like', 'from': 'a', 'to': 'b'}],
}


def test_load_requests_keeps_going_past_unreadable_entry():
    loaded = load_requests({'scopes': [BAD_ENTRY, SCOPE_EXPORT, {'scope': {'kind': 'user', 'id': 'u3'}}]},
                           ['trends', 'health'])
    assert isinstance(loaded[1], InsightRequest)
    failed, _, undated = loaded
    assert isinstance(failed, InsightBundle)
    assert failed.scope.label() == 'team:t9'
    assert failed.date_range.start.isoformat().startswith('2025-01-01')
    assert {t: r.status for t, r in failed.insights.items()} == {'trends': 'error', 'health': 'error'}
    assert 'like' in failed.errors['trends']
    assert undated.scope.label() == 'user:u3'
    assert undated.date_range is None


def test_cli_bad_scope_entry_does_not_abort_batch(tmp_path, monkeypatch):
    out = tmp_path / 'multi.json'
    payload = {'scopes': [SCOPE_EXPORT, BAD_ENTRY]}
    monkeypatch.setattr(sys, 'argv', ['cli.py', '--input', _write_input(tmp_path, payload),
                                      '--types', 'trends,collaboration', '--output', 'json', '--out-file', str(out)])
    main()
    good, bad = json.loads(out.read_text(encoding='utf-8'))
    assert good['scope'] == {'kind': 'user', 'id': 'u1'}
    assert good['insights']['trends']['status'] == 'ok'
    assert bad['scope'] == {'kind': 'team', 'id': 't9'}
    assert {r['status'] for r in bad['insights'].values()} == {'error'}


def test_cli_unreadable_single_entry_renders_error_bundle(tmp_path, monkeypatch, capsys):
    payload = {'scope': {'kind': 'user', 'id': 'u7'}, 'records': [{'pullRequestsOpened': 3}]}
    monkeypatch.setattr(sys, 'argv', ['cli.py', '--input', _write_input(tmp_path, payload), '--types', 'trends'])
    main()
    out = capsys.readouterr().out
    assert '== user:u7 (unknown .. unknown) ==' in out
    assert '[trends] error: Analysis failed' in out



def test_cli_unknown_type_exits(tmp_path, monkeypatch):
    monkeypatch.setattr(sys, 'argv', ['cli.py', '--input', _write_input(tmp_path, SCOPE_EXPORT), '--types', 'bogus'])
    with pytest.raises(SystemExit):
        main()


def test_cli_unknown_preset_exits(tmp_path, monkeypatch):
    monkeypatch.setattr(sys, 'argv', ['cli.py', '--input', _write_input(tmp_path, SCOPE_EXPORT), '--preset', 'nope'])
    with pytest.raises(SystemExit):
        main()


def test_cli_list_presets(monkeypatch, capsys):
    monkeypatch.delenv('INSIGHTS_CONFIG', raising=False)
    monkeypatch.setattr(sys, 'argv', ['cli.py', '--list-presets'])
    main()
    assert 'quality_focused' in capsys.readouterr().out


def test_cli_bad_input_file(tmp_path, monkeypatch, capsys):
    bad = tmp_path / 'bad.json'
    bad.write_text('{not json', encoding='utf-8')
    monkeypatch.setattr(sys, 'argv', ['cli.py', '--input', str(bad)])
    main()
    assert 'Failed to read input file' in capsys.readouterr().out
