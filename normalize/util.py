"""
Normalization utility helpers.
Small helpers to turn raw GitHub payloads into normalize.models records.
"""
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional
from normalize.models import WeekBucket, WeeklyCommitRecord, ContributorSummary


def epoch_to_datetime(value: Any) -> Optional[datetime]:
    """Convert Unix-epoch seconds to an aware UTC datetime; None when the value is not numeric."""
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def _contributor_identifier(raw: Dict[str, Any]) -> str:
    """Stable identifier for a contributor entry: login, then id, then email/name for anonymous entries."""
    author = raw.get('author') if isinstance(raw.get('author'), dict) else raw
    if not isinstance(author, dict):
        return ''
    ident = author.get('login') or author.get('id') or author.get('email') or author.get('name') or ''
    return str(ident)


def normalize_week(raw: Dict[str, Any]) -> Optional[WeekBucket]:
    week_start = epoch_to_datetime(raw.get('w'))
    if week_start is None:
        return None
    try:
        commits = max(0, int(raw.get('c') or 0))
    except (TypeError, ValueError):
        commits = 0
    return WeekBucket(week_start=week_start, commits=commits)


def normalize_weekly_record(raw: Dict[str, Any]) -> WeeklyCommitRecord:
    """Create a WeeklyCommitRecord from one element of the stats/contributors response.

    Weeks with an unusable timestamp are dropped; commit counts below zero are clamped to zero.
    """
    weeks = []
    for w in raw.get('weeks') or []:
        if not isinstance(w, dict):
            continue
        bucket = normalize_week(w)
        if bucket is not None:
            weeks.append(bucket)
    try:
        total = int(raw.get('total') or 0)
    except (TypeError, ValueError):
        total = 0
    return WeeklyCommitRecord(contributor=_contributor_identifier(raw), weeks=tuple(weeks), total=total)


def normalize_weekly_records(raw_list: List[Dict[str, Any]]) -> List[WeeklyCommitRecord]:
    return [normalize_weekly_record(r) for r in raw_list if isinstance(r, dict)]


def normalize_contributor_summary(raw: Dict[str, Any]) -> ContributorSummary:
    """Create a ContributorSummary from one element of the /contributors listing."""
    try:
        contributions = max(0, int(raw.get('contributions') or 0))
    except (TypeError, ValueError):
        contributions = 0
    return ContributorSummary(contributor=_contributor_identifier(raw), contributions=contributions)
