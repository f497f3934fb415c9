"""
Error taxonomy for the GitHub statistics client.
Only fetch_weekly_stats raises these; the best-effort fetches report failures through FetchResult.
"""
from datetime import datetime
from typing import Optional


class GitHubStatsError(Exception):
    """Base class: carries the repository and the HTTP status that produced the failure."""

    def __init__(self, message: str, repo: str, status: int = 0):
        super().__init__(message)
        self.message = message
        self.repo = repo
        self.status = status


class RepositoryNotFoundError(GitHubStatsError):
    def __init__(self, repo: str):
        super().__init__(f'Repository "{repo}" not found. Check the name and ensure it\'s public.', repo, 404)


class RateLimitedError(GitHubStatsError):
    """Rate limit hit; reset_at is None when the server did not say when the window resets."""

    def __init__(self, repo: str, reset_at: Optional[datetime] = None, status: int = 403):
        reset_text = reset_at.strftime('%H:%M:%S UTC') if reset_at else 'unknown'
        super().__init__(
            f"Rate limited. Resets at {reset_text}. Supply a GitHub token or try again later.", repo, status
        )
        self.reset_at = reset_at


class StatsNotReadyError(GitHubStatsError):
    def __init__(self, repo: str, attempts: int):
        super().__init__(f'GitHub is still computing stats for "{repo}". Try again in a moment.', repo, 202)
        self.attempts = attempts


class MalformedResponseError(GitHubStatsError):
    def __init__(self, repo: str, detail: str = 'Unexpected response format'):
        super().__init__(detail, repo, 200)


class UnexpectedStatusError(GitHubStatsError):
    """Any other non-success outcome; status 0 means the request never got a response."""

    def __init__(self, repo: str, status: int, reason: str = ''):
        super().__init__(f"GitHub API error: {status} {reason}".rstrip(), repo, status)
        self.reason = reason


class FetchCancelledError(GitHubStatsError):
    def __init__(self, repo: str):
        super().__init__(f'Fetch for "{repo}" was cancelled.', repo, 0)


__all__ = [
    "GitHubStatsError",
    "RepositoryNotFoundError",
    "RateLimitedError",
    "StatsNotReadyError",
    "MalformedResponseError",
    "UnexpectedStatusError",
    "FetchCancelledError",
]
