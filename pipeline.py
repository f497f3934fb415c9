"""
Pipeline logic: fetch the three contributor resources for a repository, build the cumulative series,
reconcile it with the true total, and compare several repositories in parallel.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Union

from ingest.errors import FetchCancelledError, GitHubStatsError
from ingest.github import GitHubStatsClient
from normalize.models import Comparison, FetchResult, RepoContributorSeries, RepoEntry, Series, WeeklyCommitRecord
from series.builder import reconcile_with_total, rescale_to_total, to_cumulative_series
from series.colors import assign_colors, get_color

logger = logging.getLogger(__name__)

RECONCILE_METHODS = ('distribute', 'rescale', 'none')
DEFAULT_MAX_WORKERS = 4


class RepoInputs(NamedTuple):
    weekly: List[WeeklyCommitRecord]
    contributors: FetchResult
    true_total: FetchResult


def fetch_repo_inputs(
    client: GitHubStatsClient,
    repo: str,
    on_retry: Optional[Callable[[int], None]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> RepoInputs:
    """
    Issue the three requests concurrently and wait for all of them.
    Weekly-stats errors propagate; the other two fetches report failures in their FetchResult.
    """
    with ThreadPoolExecutor(max_workers=3) as executor:
        weekly_future = executor.submit(client.fetch_weekly_stats, repo, on_retry, cancel_event)
        contributors_future = executor.submit(client.fetch_all_contributors, repo)
        total_future = executor.submit(client.fetch_true_total, repo)
        weekly = weekly_future.result()
        return RepoInputs(weekly, contributors_future.result(), total_future.result())


def resolve_total(inputs: RepoInputs) -> int:
    """True total when known, otherwise the larger of the listed and the capped weekly counts."""
    if inputs.true_total.ok and inputs.true_total.value is not None:
        return int(inputs.true_total.value)
    listed = len(inputs.contributors.value) if inputs.contributors.ok else 0
    logger.info("true total unknown (%s); falling back to listed/capped counts", inputs.true_total.error)
    return max(listed, len(inputs.weekly))


def apply_correction(series: Series, inputs: RepoInputs, total: int, method: str = 'distribute') -> Series:
    if method == 'distribute':
        summaries = inputs.contributors.value if inputs.contributors.ok else []
        known_total = inputs.true_total.value if inputs.true_total.ok else None
        return reconcile_with_total(series, summaries, known_total)
    if method == 'rescale':
        return rescale_to_total(series, total)
    return list(series)


def build_repo_series(
    client: GitHubStatsClient,
    repo: str,
    color: Optional[str] = None,
    method: str = 'distribute',
    on_retry: Optional[Callable[[int], None]] = None,
    cancel_event: Optional[threading.Event] = None,
    visible: bool = True,
) -> Optional[RepoContributorSeries]:
    """Build the finalized series for one repository.

    Returns None when the repository was cancelled while its data was in flight; raises the
    weekly-stats errors from ingest.errors otherwise.
    """
    if method not in RECONCILE_METHODS:
        raise ValueError(f"unknown reconcile method: {method}")
    inputs = fetch_repo_inputs(client, repo, on_retry=on_retry, cancel_event=cancel_event)
    series = to_cumulative_series(inputs.weekly)
    total = resolve_total(inputs)
    data = apply_correction(series, inputs, total, method)
    if cancel_event is not None and cancel_event.is_set():
        logger.info("discarding stale result for %s", repo)
        return None
    return RepoContributorSeries(
        repo=repo, data=data, total_contributors=total, color=color or get_color(0), visible=visible
    )


class ComparisonRunner:
    """
    Processes several repositories in parallel. Each repository gets its own cancel event, so one can be
    abandoned without touching the others, and one repository's failure is recorded without aborting the rest.
    """

    def __init__(
        self,
        client: GitHubStatsClient,
        method: str = 'distribute',
        max_workers: int = DEFAULT_MAX_WORKERS,
        on_retry: Optional[Callable[[str, int], None]] = None,
    ):
        self.client = client
        self.method = method
        self.max_workers = max(1, int(max_workers))
        self.on_retry = on_retry
        self._cancel_events: Dict[str, threading.Event] = {}

    def cancel(self, repo: str) -> bool:
        event = self._cancel_events.get(repo)
        if event is None:
            return False
        event.set()
        return True

    def _run_one(self, entry: RepoEntry, color: str) -> Optional[RepoContributorSeries]:
        repo = entry.repo
        progress = None
        if self.on_retry is not None:
            def progress(attempt: int):
                self.on_retry(repo, attempt)
        return build_repo_series(
            self.client, repo, color=color, method=self.method, on_retry=progress,
            cancel_event=self._cancel_events[repo], visible=entry.visible,
        )

    def run(self, repos: Iterable[Union[str, RepoEntry]]) -> Comparison:
        """Repositories may be plain names or RepoEntry values; hidden entries are built but flagged not visible."""
        entries: Dict[str, RepoEntry] = {}
        for item in repos:
            entry = item if isinstance(item, RepoEntry) else RepoEntry(item)
            entries.setdefault(entry.repo, entry)
        unique = list(entries)
        if not unique:
            return Comparison(series=[], errors={})
        colors = assign_colors(unique)
        self._cancel_events = {repo: threading.Event() for repo in unique}

        series: List[RepoContributorSeries] = []
        errors: Dict[str, str] = {}
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(unique))) as executor:
            futures = {repo: executor.submit(self._run_one, entries[repo], colors[repo]) for repo in unique}
            for repo, future in futures.items():
                try:
                    result = future.result()
                except FetchCancelledError:
                    logger.info("fetch for %s cancelled", repo)
                    continue
                except GitHubStatsError as ex:
                    logger.warning("failed to build series for %s: %s", repo, ex.message)
                    errors[repo] = ex.message
                    continue
                except Exception as ex:
                    logger.exception("unexpected failure for %s", repo)
                    errors[repo] = str(ex)
                    continue
                if result is not None:
                    series.append(result)
        series.sort(key=lambda s: s.repo)
        return Comparison(series=series, errors=errors)


def compare_repositories(client: GitHubStatsClient, repos: Iterable[Union[str, RepoEntry]], method: str = 'distribute') -> Comparison:
    return ComparisonRunner(client, method=method).run(repos)
