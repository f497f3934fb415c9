"""
GitHub statistics client used by the pipeline and tests.

Three resources are read for one repository:
- /stats/contributors: weekly commit activity per contributor (dated, capped at roughly 100 contributors),
  computed asynchronously by GitHub and polled through storage.retry;
- /contributors: the paginated, uncapped contributor listing (commit counts, no dates);
- /contributors?per_page=1: the same listing, read only for its Link header to learn the total count.
"""
import os
import logging
import threading
from typing import List, Dict, Any, Optional, Callable
from urllib.parse import urlparse, parse_qs
import requests
from storage.retry import (
    StatsRetryMachine,
    RetryExhausted,
    RetryCancelled,
    run_with_backoff,
    parse_rate_limit_reset,
)
from normalize.models import FetchResult, WeeklyCommitRecord
from normalize.util import normalize_weekly_records, normalize_contributor_summary
from ingest.errors import (
    RepositoryNotFoundError,
    RateLimitedError,
    StatsNotReadyError,
    MalformedResponseError,
    UnexpectedStatusError,
    FetchCancelledError,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = os.getenv("GITHUB_API_URL", "https://api.github.com")
DEFAULT_PAGE_SIZE = int(os.getenv("HISTORY_PAGE_SIZE", "100"))
# bounds API quota spent on the best-effort contributor walk
DEFAULT_MAX_PAGES = int(os.getenv("HISTORY_MAX_PAGES", "50"))
DEFAULT_TIMEOUT = float(os.getenv("HISTORY_REQUEST_TIMEOUT", "30"))

RATE_LIMIT_STATUSES = (403, 429)


def parse_last_page(link_header: Any) -> Optional[int]:
    """Extract the page number of the rel="last" entry of a Link header, or None."""
    if not isinstance(link_header, str):
        return None
    for part in link_header.split(','):
        segments = [s.strip() for s in part.split(';')]
        if len(segments) < 2 or 'rel="last"' not in segments[1:]:
            continue
        target = segments[0].strip('<>')
        pages = parse_qs(urlparse(target).query).get('page')
        if not pages:
            return None
        try:
            return int(pages[0])
        except ValueError:
            return None
    return None


class GitHubStatsClient:
    """Client for the contributor statistics of public GitHub repositories."""

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: str = None,
        max_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
        timeout: Optional[float] = None,
        sleep: Optional[Callable[[float], Any]] = None,
    ):
        """
        Parameters:
            token (str): optional GitHub token, sent as a bearer credential.
            base_url (str): API root, defaults to GITHUB_API_URL or https://api.github.com.
            max_attempts (int): stats requests per repository before giving up.
            retry_delay (float): base backoff in seconds (delay = retry_delay * attempt).
            page_size (int) / max_pages (int): contributor listing walk settings.
            sleep (callable): replaces real waiting during backoff (used by tests).
        """
        self.token = token
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip('/')
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.page_size = int(page_size or DEFAULT_PAGE_SIZE)
        self.max_pages = int(max_pages or DEFAULT_MAX_PAGES)
        self.timeout = float(timeout or DEFAULT_TIMEOUT)
        self.sleep = sleep
        self.headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            self.headers["Authorization"] = f"Bearer {self.token}"

    def _get(self, url: str, params: Dict[str, Any] = None):
        return requests.get(url, headers=self.headers, params=params or {}, timeout=self.timeout)

    def _classify_stats_response(self, repo: str, resp):
        status = resp.status_code
        if status == 200:
            try:
                body = resp.json()
            except ValueError as ex:
                raise MalformedResponseError(repo, 'Response body is not valid JSON') from ex
            if isinstance(body, list):
                return 'ready', body
            # GitHub sometimes returns {} instead of 202 while computing
            if isinstance(body, dict) and not body:
                return 'not_ready', None
            raise MalformedResponseError(repo)
        if status == 202:
            return 'not_ready', None
        if status == 204:
            # empty repository
            return 'ready', []
        if status in RATE_LIMIT_STATUSES:
            raise RateLimitedError(repo, parse_rate_limit_reset(resp.headers), status)
        if status == 404:
            raise RepositoryNotFoundError(repo)
        raise UnexpectedStatusError(repo, status, getattr(resp, 'reason', '') or '')

    def fetch_weekly_stats(
        self,
        repo: str,
        on_retry: Optional[Callable[[int], Any]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[WeeklyCommitRecord]:
        """Fetch weekly contributor statistics, polling while GitHub computes them.

        Records come back in the server's order. Raises a GitHubStatsError subclass on failure.
        """
        url = f"{self.base_url}/repos/{repo}/stats/contributors"
        machine = StatsRetryMachine(
            self.max_attempts, self.retry_delay, sleep=self.sleep, cancel_event=cancel_event, on_retry=on_retry
        )

        def _request_once(attempt: int):
            logger.debug("GET %s (attempt %d)", url, attempt)
            try:
                resp = self._get(url)
            except requests.RequestException as ex:
                raise UnexpectedStatusError(repo, 0, str(ex)) from ex
            return self._classify_stats_response(repo, resp)

        try:
            raw = run_with_backoff(_request_once, machine)
        except RetryExhausted as ex:
            raise StatsNotReadyError(repo, ex.attempts) from ex
        except RetryCancelled as ex:
            raise FetchCancelledError(repo) from ex
        return normalize_weekly_records(raw)

    def _stop_early(self, repo: str, collected: list, reason: str) -> FetchResult:
        if collected:
            logger.warning("contributor listing for %s stopped early (%s); keeping %d entries", repo, reason, len(collected))
            return FetchResult.partial(collected, reason)
        logger.warning("contributor listing for %s failed (%s)", repo, reason)
        return FetchResult.failed(reason)

    def fetch_all_contributors(self, repo: str) -> FetchResult:
        """Walk the contributor listing page by page.

        Never raises: a rate limit or any other failure mid-walk returns what was collected as PARTIAL
        (FAILED when nothing was collected). Reaching max_pages also yields PARTIAL.
        """
        url = f"{self.base_url}/repos/{repo}/contributors"
        contributors = []
        for page in range(1, self.max_pages + 1):
            params = {"per_page": self.page_size, "page": page, "anon": "1"}
            try:
                resp = self._get(url, params)
            except requests.RequestException as ex:
                return self._stop_early(repo, contributors, f"request failed on page {page}: {ex}")
            status = resp.status_code
            if status == 204:
                break
            if status != 200:
                reason = 'rate limited' if status in RATE_LIMIT_STATUSES else f'status {status}'
                return self._stop_early(repo, contributors, f"{reason} on page {page}")
            try:
                data = resp.json()
            except ValueError:
                return self._stop_early(repo, contributors, f"undecodable page {page}")
            if not isinstance(data, list):
                return self._stop_early(repo, contributors, f"unexpected format on page {page}")
            if not data:
                break
            contributors.extend(normalize_contributor_summary(c) for c in data if isinstance(c, dict))
            if len(data) < self.page_size:
                break
        else:
            logger.warning("contributor listing for %s hit the %d page limit", repo, self.max_pages)
            return FetchResult.partial(contributors, f"page limit {self.max_pages} reached")
        return FetchResult.definite(contributors)

    def fetch_true_total(self, repo: str) -> FetchResult:
        """Learn the total contributor count from one minimal request.

        Reads the last page number from the Link header (per_page=1, so last page == count); without a
        Link header there is a single page and its elements are counted. Never raises.
        """
        url = f"{self.base_url}/repos/{repo}/contributors"
        try:
            resp = self._get(url, {"per_page": 1, "anon": "1"})
        except requests.RequestException as ex:
            logger.info("total contributor count for %s unavailable: %s", repo, ex)
            return FetchResult.failed(str(ex))
        status = resp.status_code
        if status == 204:
            return FetchResult.definite(0)
        if status != 200:
            logger.info("total contributor count for %s unavailable: status %s", repo, status)
            return FetchResult.failed(f"status {status}")

        link = (resp.headers or {}).get('Link')
        if link:
            last = parse_last_page(link)
            if last is None:
                return FetchResult.failed('unparseable Link header')
            return FetchResult.definite(last)
        try:
            data = resp.json()
        except ValueError:
            return FetchResult.failed('undecodable response')
        if isinstance(data, list):
            return FetchResult.definite(len(data))
        return FetchResult.failed('unexpected response format')


__all__ = ["GitHubStatsClient", "parse_last_page"]
