"""
CLI entry point for contributor history. Wires the pipeline: fetch -> build -> reconcile -> report
"""

import argparse
import logging
import webbrowser
import os
import sys
from datetime import datetime, timezone
from ingest.github import GitHubStatsClient
from normalize.models import ChartSettings, RepoEntry
from pipeline import ComparisonRunner, RECONCILE_METHODS
from report.renderer import render, render_embed_snippets
from series.url_state import is_valid_repo, parse_hash, share_url
from settings import load_settings

OUTPUT_FORMATS = ('text', 'md', 'csv', 'json', 'html')


def _configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _resolve_token(args) -> str:
    """CLI flag takes precedence over the GITHUB_TOKEN environment variable; empty means anonymous."""
    return args.token if args.token else (os.getenv('GITHUB_TOKEN') or '')


def _collect_repos(args):
    """Merge positional repos with the ones decoded from --hash, dropping invalid names.

    Repos named by --hide are kept but flagged not visible. Returns (RepoEntry list, ChartSettings).
    """
    hidden = {h.strip() for h in (args.hide or [])}
    entries = [RepoEntry(r.strip()) for r in args.repos]
    hash_settings = ChartSettings()
    if args.hash:
        hash_repos, hash_settings = parse_hash(args.hash)
        entries.extend(hash_repos)

    repos = []
    seen = set()
    for entry in entries:
        if not is_valid_repo(entry.repo):
            print(f"Skipping invalid repository name: {entry.repo!r} (expected owner/name)")
            continue
        if entry.repo not in seen:
            seen.add(entry.repo)
            repos.append(RepoEntry(entry.repo, visible=entry.repo not in hidden))
    settings = ChartSettings(
        timeline_mode=args.timeline or hash_settings.timeline_mode,
        xkcd_style=args.xkcd or hash_settings.xkcd_style,
    )
    return repos, settings


def _print_retry(repo: str, attempt: int):
    print(f"GitHub is computing stats for {repo}; retrying (attempt {attempt})...", file=sys.stderr)


def _open_file_in_browser(path: str):
    """Open a file URL in the system default web browser."""
    webbrowser.open("file://" + os.path.abspath(path))


def write_output(fmt: str, rendered: str, args):
    """Write output to file or stdout and optionally open HTML in browser."""
    if not args.out_file:
        print(rendered)
        return
    out_path = args.out_file.strip()
    out_dir = os.path.dirname(out_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    with open(out_path, "w", encoding="utf-8", newline='') as f:
        f.write(rendered)
    print(f"Wrote report to {out_path}")
    if args.open and fmt == "html":
        try:
            _open_file_in_browser(out_path)
        except webbrowser.Error:
            print("Failed to open browser automatically; file saved at", out_path)


def build_client(args, settings: dict) -> GitHubStatsClient:
    return GitHubStatsClient(
        token=_resolve_token(args) or None,
        max_attempts=args.max_retries if args.max_retries is not None else settings['max_retries'],
        retry_delay=args.retry_delay if args.retry_delay is not None else settings['retry_delay'],
        page_size=args.page_size if args.page_size is not None else settings['page_size'],
        max_pages=args.max_pages if args.max_pages is not None else settings['max_pages'],
        timeout=settings['request_timeout'],
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Cumulative unique-contributor history for GitHub repositories")
    parser.add_argument("repos", nargs="*", help="Repositories in owner/name form")
    parser.add_argument("--hash", type=str, default="", help="Shared state string, e.g. '#facebook%%2Freact&timeline'")
    parser.add_argument("--timeline", action="store_true", help="Align series on days since first contribution")
    parser.add_argument("--xkcd", action="store_true", help="Hand-drawn style flag (carried into HTML and share links)")
    parser.add_argument("--hide", action="append", default=[], metavar="OWNER/NAME", help="Fetch a repository but hide it from the report (repeatable)")
    parser.add_argument("--token", type=str, default="", help="GitHub token (or set GITHUB_TOKEN env var)")
    parser.add_argument("--output", type=str, choices=OUTPUT_FORMATS, default=None, help="Output format (default from settings: text)")
    parser.add_argument("--out-file", type=str, default="", help="Write the report to this path instead of stdout")
    parser.add_argument("--open", action="store_true", help="Open the generated HTML report in the default browser")
    parser.add_argument("--reconcile", type=str, choices=RECONCILE_METHODS, default=None, help="How to correct the capped series toward the true total")
    parser.add_argument("--config", type=str, default="", help="Path to a YAML settings file")
    # retry/pagination knobs: optional CLI overrides of the settings file and HISTORY_* env defaults
    parser.add_argument("--max-retries", type=int, default=None, help="Stats requests per repository while GitHub computes statistics")
    parser.add_argument("--retry-delay", type=float, default=None, help="Base backoff seconds (wait = delay * attempt)")
    parser.add_argument("--page-size", type=int, default=None, help="Page size for the contributor listing")
    parser.add_argument("--max-pages", type=int, default=None, help="Maximum contributor listing pages to walk")
    parser.add_argument("--share", action="store_true", help="Print the share link and embed snippets")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv=None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    settings = load_settings(args.config or None)
    repos, chart_settings = _collect_repos(args)
    if not repos:
        parser.error("no valid repositories given (positional owner/name or --hash)")

    client = build_client(args, settings)
    runner = ComparisonRunner(
        client,
        method=args.reconcile or settings['reconcile'],
        max_workers=settings['max_workers'],
        on_retry=_print_retry,
    )
    comparison = runner.run(repos)

    share = render_embed_snippets(share_url(repos, chart_settings)) if args.share else None
    fmt = (args.output or settings['output']).lower()
    rendered = render(
        comparison,
        fmt=fmt,
        settings=chart_settings,
        generated_at=datetime.now(timezone.utc).isoformat(),
        share=share,
    )
    write_output(fmt, rendered, args)

    if share and fmt != 'html':
        print(f"Share link: {share['url']}")
        print(f"Markdown:   {share['markdown']}")
        print(f"HTML:       {share['html']}")
    for repo, message in comparison.errors.items():
        print(f"Error for {repo}: {message}", file=sys.stderr)
    return 0 if comparison.series else 1


if __name__ == "__main__":
    sys.exit(main())
