"""
Report renderer: text / Markdown / HTML / CSV / JSON views of one or more InsightBundles.
HTML and Markdown go through the Jinja2 templates in report/templates/.
"""

import csv
import io
import json
import os
from typing import Any, Dict, List, Optional, Sequence, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from insights.models import InsightBundle

TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), 'templates')

CSV_HEADER = ['scope_kind', 'scope_id', 'start', 'end', 'insight_type', 'status', 'summary', 'insights', 'recommendations', 'error']

Bundles = Union[InsightBundle, Sequence[InsightBundle]]


def _as_list(bundles: Bundles) -> List[InsightBundle]:
    if isinstance(bundles, InsightBundle):
        return [bundles]
    return list(bundles)


def _environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(TEMPLATE_DIR),
        autoescape=select_autoescape(['html', 'xml', 'html.j2']),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters['title_case'] = lambda s: str(s).replace('_', ' ').title()
    return env


def _template_context(bundles: List[InsightBundle], generated_at: Optional[str]) -> Dict[str, Any]:
    return {
        'bundles': [b.to_dict() for b in bundles],
        'generated_at': generated_at,
    }


def render_text(bundles: Bundles) -> str:
    """Plain-text summary, one block per scope."""
    lines: List[str] = []
    for bundle in _as_list(bundles):
        d = bundle.to_dict()
        start, end = d['date_range']['start'] or 'unknown', d['date_range']['end'] or 'unknown'
        lines.append(f"== {bundle.scope.label()} ({start} .. {end}) ==")
        for insight_type, result in d['insights'].items():
            lines.append(f"[{insight_type}] {result['status']}: {result['summary']}")
            for item in result['insights']:
                lines.append(f"  - {item}")
            for rec in result['recommendations']:
                lines.append(f"  > {rec}")
            if result.get('error'):
                lines.append(f"  ! {result['error']}")
        lines.append('')
    return '\n'.join(lines).rstrip('\n')


def render_markdown(bundles: Bundles, generated_at: Optional[str] = None) -> str:
    tmpl = _environment().get_template('bundle.md.j2')
    return tmpl.render(**_template_context(_as_list(bundles), generated_at))


def render_html(bundles: Bundles, generated_at: Optional[str] = None) -> str:
    tmpl = _environment().get_template('bundle.html.j2')
    return tmpl.render(**_template_context(_as_list(bundles), generated_at))


def render_csv(bundles: Bundles) -> str:
    """One row per (scope, insight type). Multi-valued cells are joined with ' | '."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_HEADER)
    for bundle in _as_list(bundles):
        d = bundle.to_dict()
        for insight_type, result in d['insights'].items():
            writer.writerow([
                bundle.scope.kind,
                bundle.scope.id or '',
                d['date_range']['start'] or '',
                d['date_range']['end'] or '',
                insight_type,
                result['status'],
                result['summary'],
                ' | '.join(result['insights']),
                ' | '.join(result['recommendations']),
                result.get('error') or '',
            ])
    return output.getvalue()


def render_json(bundles: Bundles) -> str:
    """A single bundle renders as its own object; several render as a list."""
    if isinstance(bundles, InsightBundle):
        return bundles.to_json()
    return json.dumps([b.to_dict() for b in bundles], indent=2, sort_keys=True)


def render(bundles: Bundles, fmt: str = 'text', generated_at: Optional[str] = None) -> str:
    """Main render function. Unknown formats fall back to text."""
    fmt_l = (fmt or 'text').lower()
    if fmt_l in ('md', 'markdown'):
        return render_markdown(bundles, generated_at)
    if fmt_l == 'csv':
        return render_csv(bundles)
    if fmt_l in ('html', 'htm'):
        return render_html(bundles, generated_at)
    if fmt_l in ('json', 'js'):
        return render_json(bundles)
    return render_text(bundles)
