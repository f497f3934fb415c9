"""
Immutable value records shared by the stats client, the series builder and the report layer.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Tuple, Union


class WeekBucket(NamedTuple):
    """
    One week of commit activity for a single contributor.
    """
    week_start: datetime
    commits: int


class WeeklyCommitRecord(NamedTuple):
    """
    Per-week commit activity of one contributor, weeks ordered oldest to newest.
    All records of one stats response share the same week starts.
    """
    contributor: str
    weeks: Tuple[WeekBucket, ...]
    total: int = 0


class ContributorSummary(NamedTuple):
    """
    Undated contributor entry from the paginated contributor listing.
    """
    contributor: str
    contributions: int


class ContributorDataPoint(NamedTuple):
    # date is a datetime for calendar series, a timedelta once normalized
    date: Union[datetime, timedelta]
    cumulative_contributors: int


Series = List[ContributorDataPoint]


class FetchStatus(Enum):
    DEFINITE = "definite"
    PARTIAL = "partial"
    FAILED = "failed"


class FetchResult(NamedTuple):
    """
    Outcome of a best-effort fetch.

    DEFINITE carries a complete value, PARTIAL whatever was collected before the walk stopped,
    FAILED carries no usable value (value is None) and a short description in error.
    """
    status: FetchStatus
    value: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is not FetchStatus.FAILED

    @classmethod
    def definite(cls, value: Any) -> "FetchResult":
        return cls(FetchStatus.DEFINITE, value)

    @classmethod
    def partial(cls, value: Any, error: Optional[str] = None) -> "FetchResult":
        return cls(FetchStatus.PARTIAL, value, error)

    @classmethod
    def failed(cls, error: str) -> "FetchResult":
        return cls(FetchStatus.FAILED, None, error)


class RepoEntry(NamedTuple):
    repo: str
    visible: bool = True


class ChartSettings(NamedTuple):
    """
    Display flags carried in the shareable state.
    """
    timeline_mode: bool = False
    xkcd_style: bool = False


class RepoContributorSeries(NamedTuple):
    """
    Finalized series for one repository, ready for the chart/report layer.
    """
    repo: str
    data: Series
    total_contributors: int
    color: str
    visible: bool = True


class Comparison(NamedTuple):
    """
    Result of processing several repositories: the built series plus per-repo error messages.
    """
    series: List[RepoContributorSeries]
    errors: Dict[str, str]
