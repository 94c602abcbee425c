"""
CLI entry point for eng-insights. Wires the pipeline: JSON export -> normalize -> compose -> report
"""

import argparse
import json
import logging
import os
import webbrowser
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence, Union

from insights.composer import INSIGHT_TYPES, InsightComposer, validate_insight_types
from insights.errors import ConfigError, UnknownInsightTypeError
from insights.models import InsightBundle, InsightRequest, request_from_dict
from normalize.models import Scope
from normalize.util import normalize_date_range, normalize_scope
from report.renderer import render
from scoring.config import list_presets, load_config

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ('html', 'md', 'csv', 'json')


def _print_json(obj):
    print(json.dumps(obj, indent=2, default=str))


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%SZ')


def _open_file_in_browser(path: str):
    """Open a file URL in the system default web browser."""
    webbrowser.open("file://" + os.path.abspath(path))


def _load_json_file(path: str, description: str):
    """Attempt to load a JSON file and return the parsed object or None on failure.
    The failure is printed here; callers just check for None.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        print(f"Failed to read {description} {path}: {e}")
        return None


def parse_types(value: str) -> List[str]:
    """Comma separated insight types; 'all' (or empty) selects every type."""
    names = [t.strip() for t in (value or '').split(',') if t.strip()]
    if not names or names == ['all']:
        return list(INSIGHT_TYPES)
    return validate_insight_types(names)


def _failed_entry(entry: Any, index: int, insight_types: Sequence[str], exc: Exception) -> InsightBundle:
    """Error bundle for an export entry that could not be read. Scope and date range are kept when they parse."""
    raw = entry if isinstance(entry, dict) else {}
    try:
        scope = normalize_scope(raw.get('scope'))
    except (ValueError, TypeError, AttributeError):
        scope = Scope('team', f'entry-{index}')
    try:
        date_range = normalize_date_range(raw.get('date_range') or {})
    except (ValueError, TypeError, AttributeError):
        date_range = None
    return InsightBundle.failed(scope, date_range, insight_types, exc)


def load_requests(raw: Any, insight_types: Sequence[str]) -> List[Union[InsightRequest, InsightBundle]]:
    """Build requests from an export: a single scope object, or {"scopes": [...]}.

    An entry that cannot be read becomes an error bundle in its place, so the other scopes still run.
    """
    if isinstance(raw, dict) and isinstance(raw.get('scopes'), list):
        entries = raw['scopes']
    elif isinstance(raw, list):
        entries = raw
    else:
        entries = [raw]
    loaded: List[Union[InsightRequest, InsightBundle]] = []
    for index, entry in enumerate(entries):
        try:
            loaded.append(request_from_dict(entry, insight_types))
        except (ValueError, TypeError, AttributeError) as exc:
            logger.exception('Invalid scope entry %d in export', index)
            loaded.append(_failed_entry(entry, index, insight_types, exc))
    return loaded


def generate_bundles(composer: InsightComposer, loaded: Sequence[Union[InsightRequest, InsightBundle]],
                     max_workers: Optional[int] = None) -> List[InsightBundle]:
    """Run the readable requests and put the bundles back in export order."""
    requests = [item for item in loaded if isinstance(item, InsightRequest)]
    if len(requests) == 1:
        generated = iter([composer.generate(requests[0])])
    else:
        generated = iter(composer.generate_many(requests, max_workers=max_workers))
    return [next(generated) if isinstance(item, InsightRequest) else item for item in loaded]


def _render_bundles_report(fmt_name: str, bundles: List[InsightBundle]) -> str:
    """Render the bundles for one format with a common generated_at stamp."""
    return render(
        bundles[0] if len(bundles) == 1 else bundles,
        fmt=fmt_name,
        generated_at=datetime.now(timezone.utc).isoformat(),
    )


def _default_base(bundles: List[InsightBundle]) -> str:
    if len(bundles) == 1:
        label = bundles[0].scope.label().replace(':', '_')
        return f"insights_report_{label}_{_timestamp()}"
    return f"insights_report_multi_{_timestamp()}"


def _write_report_file(path_base: str, ext: str, content: str, open_html: bool = False):
    """Write the rendered content to a file and optionally open HTML in the browser."""
    out_path = path_base if path_base.lower().endswith(f".{ext}") else f"{path_base}.{ext}"
    out_dir = os.path.dirname(out_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    # newline='' is safe for CSV on Windows and harmless for other formats
    with open(out_path, 'w', encoding='utf-8', newline='') as fh:
        fh.write(content)
    print(f"Wrote report to {out_path}")
    if open_html:
        try:
            _open_file_in_browser(out_path)
        except webbrowser.Error:
            print('Failed to open browser automatically; file saved at', out_path)
    return out_path


def write_output(fmt: str, rendered: str, args, bundles: List[InsightBundle]):
    """Write file formats (html/md/csv) or an explicit --out-file to disk; print everything else."""
    out_file = (args.out_file or '').strip()
    if fmt in ('html', 'md', 'csv') or out_file:
        base = out_file or _default_base(bundles)
        _write_report_file(base, fmt, rendered, open_html=(args.open and fmt == 'html'))
    else:
        print(rendered)


def export_all(args, bundles: List[InsightBundle]) -> List[str]:
    base = (args.out_file or '').strip() or _default_base(bundles)
    paths = []
    for fmt in EXPORT_FORMATS:
        content = _render_bundles_report(fmt, bundles)
        paths.append(_write_report_file(base, fmt, content, open_html=(fmt == 'html' and args.open)))
    return paths


def _configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Engineering insights from exported activity data")
    parser.add_argument("--input", type=str, default="", help="Path to JSON export (one scope, or {\"scopes\": [...]})")
    parser.add_argument("--types", type=str, default="all", help=f"Comma separated insight types ({', '.join(INSIGHT_TYPES)}) or 'all'")
    parser.add_argument("--output", type=str, help="Output format (text, md, html, csv, json)", default="text")
    parser.add_argument("--out-file", type=str, default="", help="Output file path. If omitted html/md/csv get a default name, text/json go to stdout")
    parser.add_argument("--export-all", action="store_true", help="Write HTML, MD, CSV and JSON copies of the report")
    parser.add_argument("--open", action="store_true", help="Open the generated HTML report in the default browser")
    # configuration: --config overrides the INSIGHTS_CONFIG env var, which overrides config/insights.yaml
    parser.add_argument("--config", type=str, default=None, help="Path to YAML configuration file")
    parser.add_argument("--preset", type=str, default=None, help="Named preset from the configuration file")
    parser.add_argument("--list-presets", action="store_true", help="List presets available in the configuration file and exit")
    parser.add_argument("--workers", type=int, default=None, help="Worker threads for multi-scope exports")
    parser.add_argument("--verbose", action="store_true", help="Log progress at INFO level")
    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()
    _configure_logging(args.verbose)

    if args.list_presets:
        try:
            _print_json(list_presets(args.config))
        except ConfigError as exc:
            parser.error(str(exc))
        return

    if not args.input:
        parser.error('--input is required')

    try:
        types = parse_types(args.types)
        config = load_config(args.config, preset=args.preset)
    except (UnknownInsightTypeError, ConfigError) as exc:
        parser.error(str(exc))

    raw = _load_json_file(args.input, 'input file')
    if raw is None:
        return
    bundles = generate_bundles(InsightComposer(config), load_requests(raw, types), max_workers=args.workers)
    for bundle in bundles:
        for insight_type, error in bundle.errors.items():
            logger.warning('%s: %s insights failed: %s', bundle.scope.label(), insight_type, error)

    if args.export_all:
        export_all(args, bundles)
        return

    fmt = (args.output or 'text').lower()
    write_output(fmt, _render_bundles_report(fmt, bundles), args, bundles)


if __name__ == "__main__":
    main()
