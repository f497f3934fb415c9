"""
Shareable state: the compared repositories and display flags encoded as one hash string,
e.g. "#facebook%2Freact&vercel%2Fnext.js&timeline&xkcd".
"""
import re
from typing import Iterable, List, Tuple, Union
from urllib.parse import quote, unquote

from normalize.models import ChartSettings, RepoEntry

TIMELINE_TOKEN = 'timeline'
XKCD_TOKEN = 'xkcd'
TOKEN_SEPARATOR = '&'
DEFAULT_BASE_URL = 'https://contributor-history.dev/'

_REPO_RE = re.compile(r'^[a-zA-Z0-9._-]+/[a-zA-Z0-9._-]+$')


def is_valid_repo(repo: str) -> bool:
    """Validate an owner/name repository identifier."""
    return bool(isinstance(repo, str) and _REPO_RE.match(repo.strip()))


def _repo_name(repo: Union[str, RepoEntry]) -> str:
    return repo.repo if isinstance(repo, RepoEntry) else str(repo)


def build_hash(repos: Iterable[Union[str, RepoEntry]], settings: ChartSettings) -> str:
    """Encode repos and settings; empty state encodes to an empty string."""
    parts = [quote(_repo_name(r), safe='') for r in repos]
    if settings.timeline_mode:
        parts.append(TIMELINE_TOKEN)
    if settings.xkcd_style:
        parts.append(XKCD_TOKEN)
    return f"#{TOKEN_SEPARATOR.join(parts)}" if parts else ''


def parse_hash(value: str) -> Tuple[List[RepoEntry], ChartSettings]:
    """Decode a hash string. Tokens may come in any order; unrecognized tokens are ignored."""
    if not value:
        return [], ChartSettings()
    raw = value[1:] if value.startswith('#') else value

    repos: List[RepoEntry] = []
    seen = set()
    timeline = False
    xkcd = False
    for part in filter(None, raw.split(TOKEN_SEPARATOR)):
        if part == TIMELINE_TOKEN:
            timeline = True
        elif part == XKCD_TOKEN:
            xkcd = True
        else:
            repo = unquote(part).strip()
            if is_valid_repo(repo) and repo not in seen:
                seen.add(repo)
                repos.append(RepoEntry(repo))
    return repos, ChartSettings(timeline_mode=timeline, xkcd_style=xkcd)


def share_url(repos: Iterable[Union[str, RepoEntry]], settings: ChartSettings, base_url: str = DEFAULT_BASE_URL) -> str:
    return f"{base_url}{build_hash(repos, settings)}"


__all__ = ["is_valid_repo", "build_hash", "parse_hash", "share_url", "DEFAULT_BASE_URL"]
