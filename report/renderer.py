"""
Report renderer: generate text/Markdown/CSV/JSON/HTML summaries of a contributor-history comparison.
Supports optional Jinja2-based HTML rendering using report/templates/history.html.j2 when available.
"""

from typing import Optional, List, Dict, Any
from normalize.models import ChartSettings, Comparison, ContributorDataPoint, RepoContributorSeries
from series.builder import format_elapsed_label, normalize_to_relative_start
import os
import html
import importlib.util
import json
import io
import csv

APPROXIMATE_NOTE = "Contributor counts are approximate."


def _display_series(s: RepoContributorSeries, timeline: bool) -> List[ContributorDataPoint]:
    return normalize_to_relative_start(s.data) if timeline else list(s.data)


def _point_label(point: ContributorDataPoint, timeline: bool) -> str:
    if timeline:
        return format_elapsed_label(point.date)
    return point.date.strftime('%Y-%m-%d')


def _rows(s: RepoContributorSeries, timeline: bool) -> List[Dict[str, Any]]:
    return [
        {'label': _point_label(p, timeline), 'cumulative_contributors': p.cumulative_contributors}
        for p in _display_series(s, timeline)
    ]


def _visible(comparison: Comparison) -> List[RepoContributorSeries]:
    return [s for s in comparison.series if s.visible]


def render_text(comparison: Comparison, settings: ChartSettings) -> str:
    """Render a plain-text summary: one block per repository plus any errors."""
    lines = []
    for s in _visible(comparison):
        lines.append(f"{s.repo}: {s.total_contributors:,} contributors")
        for row in _rows(s, settings.timeline_mode):
            lines.append(f"  {row['label']:<12} {row['cumulative_contributors']}")
    for repo, message in comparison.errors.items():
        lines.append(f"{repo}: error: {message}")
    if comparison.series:
        lines.append(APPROXIMATE_NOTE)
    return "\n".join(lines)


def render_markdown(comparison: Comparison, settings: ChartSettings) -> str:
    md = ["# Contributor History\n"]
    axis = 'Elapsed' if settings.timeline_mode else 'Week'
    for s in _visible(comparison):
        md.append(f"## {s.repo}\n")
        md.append(f"- Total contributors: **{s.total_contributors:,}**\n")
        md.append(f"| {axis} | Contributors |")
        md.append("| --- | ---: |")
        for row in _rows(s, settings.timeline_mode):
            md.append(f"| {row['label']} | {row['cumulative_contributors']} |")
        md.append("")
    if comparison.errors:
        md.append("## Errors\n")
        for repo, message in comparison.errors.items():
            md.append(f"- `{repo}`: {message}")
        md.append("")
    md.append(f"_{APPROXIMATE_NOTE}_")
    return "\n".join(md)


def render_csv(comparison: Comparison, settings: ChartSettings) -> str:
    """One row per data point, with a header."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(['repo', 'elapsed' if settings.timeline_mode else 'date', 'cumulative_contributors'])
    for s in _visible(comparison):
        for row in _rows(s, settings.timeline_mode):
            writer.writerow([s.repo, row['label'], row['cumulative_contributors']])
    return output.getvalue()


def _serialize_point(point: ContributorDataPoint, timeline: bool) -> Dict[str, Any]:
    if timeline:
        return {'elapsed_days': point.date.days, 'cumulative_contributors': point.cumulative_contributors}
    return {'date': point.date.isoformat(), 'cumulative_contributors': point.cumulative_contributors}


def render_json(comparison: Comparison, settings: ChartSettings) -> str:
    """Export every series (hidden ones included, flagged by 'visible') and the errors as JSON."""
    serializable = []
    for s in comparison.series:
        serializable.append({
            'repo': s.repo,
            'color': s.color,
            'visible': s.visible,
            'total_contributors': s.total_contributors,
            'data': [_serialize_point(p, settings.timeline_mode) for p in _display_series(s, settings.timeline_mode)],
        })
    return json.dumps({'series': serializable, 'errors': comparison.errors, 'settings': settings._asdict()}, indent=2)


def render_html_fallback(comparison: Comparison, settings: ChartSettings) -> str:
    """Simple HTML fallback renderer used when Jinja2 is not installed."""
    parts = ["<html><body>", "<h1>Contributor History</h1>"]
    for s in _visible(comparison):
        parts.append(f'<h2 style="color: {html.escape(s.color)}">{html.escape(s.repo)}</h2>')
        parts.append(f"<p>Total contributors: {s.total_contributors:,}</p>")
        parts.append("<table>")
        for row in _rows(s, settings.timeline_mode):
            parts.append(f"<tr><td>{row['label']}</td><td>{row['cumulative_contributors']}</td></tr>")
        parts.append("</table>")
    for repo, message in comparison.errors.items():
        parts.append(f"<p class=\"error\">{html.escape(repo)}: {html.escape(message)}</p>")
    if not comparison.series:
        parts.append("<p>No contributor data available.</p>")
    parts.append(f"<footer>{APPROXIMATE_NOTE}</footer>")
    parts.append("</body></html>")
    return "\n".join(parts)


def _render_html_choice(comparison: Comparison, settings: ChartSettings, generated_at: Optional[str], share: Optional[Dict[str, str]]) -> str:
    """Attempt Jinja2 rendering when available, otherwise fall back to simple HTML renderer."""
    if importlib.util.find_spec('jinja2') is not None:
        from jinja2 import Environment, FileSystemLoader, select_autoescape

        tmpl_dir = os.path.join(os.path.dirname(__file__), 'templates')
        env = Environment(loader=FileSystemLoader(tmpl_dir), autoescape=select_autoescape(['html', 'xml', 'j2']))
        tmpl = env.get_template('history.html.j2')
        context = {
            'series': [{'repo': s.repo, 'color': s.color, 'total': s.total_contributors, 'rows': _rows(s, settings.timeline_mode)} for s in _visible(comparison)],
            'errors': comparison.errors,
            'settings': settings,
            'generated_at': generated_at,
            'share': share,
            'note': APPROXIMATE_NOTE,
        }
        return tmpl.render(**context)
    return render_html_fallback(comparison, settings)


def render_embed_snippets(url: str) -> Dict[str, str]:
    """Markdown and HTML snippets embedding a shared chart link."""
    return {
        'url': url,
        'markdown': f"[![Contributor History]({url})]({url})",
        'html': f'<a href="{url}"><img src="{url}" alt="Contributor History" /></a>',
    }


def render(
    comparison: Comparison,
    fmt: str = 'text',
    settings: Optional[ChartSettings] = None,
    generated_at: Optional[str] = None,
    share: Optional[Dict[str, str]] = None,
) -> str:
    """Main render function. Unknown formats render as text."""
    settings = settings or ChartSettings()
    fmt_l = (fmt or 'text').lower()
    if fmt_l in ('md', 'markdown'):
        return render_markdown(comparison, settings)
    if fmt_l == 'csv':
        return render_csv(comparison, settings)
    if fmt_l in ('html', 'htm'):
        return _render_html_choice(comparison, settings, generated_at, share)
    if fmt_l in ('json', 'js'):
        return render_json(comparison, settings)
    return render_text(comparison, settings)
