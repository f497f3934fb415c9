"""
Series building: turn weekly contributor statistics into a cumulative unique-contributor series
and reconcile it with the true contributor total.

All functions are pure. They return new lists and never raise for well-typed input; empty input
yields an empty series.
"""
import math
import logging
from datetime import timedelta
from typing import Optional, Sequence

from normalize.models import ContributorDataPoint, ContributorSummary, Series, WeeklyCommitRecord

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _final_value(series: Sequence[ContributorDataPoint]) -> int:
    return series[-1].cumulative_contributors if series else 0


def weeks_aligned(records: Sequence[WeeklyCommitRecord]) -> bool:
    """True when every record carries the same week starts as the first one."""
    if not records:
        return True
    reference = [w.week_start for w in records[0].weeks]
    return all([w.week_start for w in r.weeks] == reference for r in records[1:])


def _first_commit_week(record: WeeklyCommitRecord):
    for week in record.weeks:
        if week.commits > 0:
            return week.week_start
    return None


def to_cumulative_series(records: Sequence[WeeklyCommitRecord]) -> Series:
    """
    Count, week by week, how many contributors have made their first commit so far.

    Contributors who never committed are left out, and weeks before the first contributor are
    omitted rather than emitted as zero. Weeks are keyed by their start so that a response whose
    records are not aligned still groups correctly; the misalignment is logged.
    """
    if not records:
        return []
    if weeks_aligned(records):
        timeline = [w.week_start for w in records[0].weeks]
    else:
        logger.warning("weekly records are not aligned on the same weeks; grouping by week start")
        timeline = sorted({w.week_start for r in records for w in r.weeks})
    if not timeline:
        return []

    new_per_week = {}
    for record in records:
        first = _first_commit_week(record)
        if first is not None:
            new_per_week[first] = new_per_week.get(first, 0) + 1

    series: Series = []
    cumulative = 0
    for week_start in timeline:
        cumulative += new_per_week.get(week_start, 0)
        if cumulative > 0:
            series.append(ContributorDataPoint(week_start, cumulative))
    return series


def rescale_to_total(series: Sequence[ContributorDataPoint], true_total: Optional[int]) -> Series:
    """
    Scale every cumulative value by true_total / final value, preserving the curve's shape.
    No-op when the series is empty, the total is unknown or not above the final value.
    """
    data = list(series)
    if not data or not true_total or true_total <= 0:
        return data
    api_total = _final_value(data)
    if api_total <= 0 or api_total >= true_total:
        return data
    scale = true_total / api_total
    return [ContributorDataPoint(p.date, _round_half_up(p.cumulative_contributors * scale)) for p in data]


def reconcile_with_total(
    series: Sequence[ContributorDataPoint],
    summaries: Optional[Sequence[ContributorSummary]],
    true_total: Optional[int],
) -> Series:
    """
    Distribute the contributors missing from the capped weekly statistics across existing weeks.

    Each week receives a share of the shortfall proportional to the number of known contributors who
    first appeared that week; the last week takes the remainder so the final value equals the true
    total exactly. An unknown true total means no correction.

    This is an estimate: it assumes uncounted contributors joined at the same pace as the top ones.
    """
    data = list(series)
    if not data or true_total is None or true_total <= 0:
        return data
    shortfall = true_total - _final_value(data)
    if shortfall <= 0:
        return data

    increments = []
    previous = 0
    for point in data:
        increments.append(point.cumulative_contributors - previous)
        previous = point.cumulative_contributors
    # increments sum to the final value
    known = sum(increments)
    if known <= 0:
        return data

    result: Series = []
    assigned = 0
    last = len(data) - 1
    for i, (point, increment) in enumerate(zip(data, increments)):
        if i == last:
            extra = shortfall - assigned
        else:
            # clamp so rounding never pushes the running extra past the shortfall
            extra = min(max(0, _round_half_up(increment / known * shortfall)), shortfall - assigned)
        assigned += extra
        result.append(ContributorDataPoint(point.date, point.cumulative_contributors + assigned))
    return result


def normalize_to_relative_start(series: Sequence[ContributorDataPoint]) -> Series:
    """Re-express dates as time elapsed since the first point (the first point becomes zero)."""
    if not series:
        return []
    start = series[0].date
    return [ContributorDataPoint(p.date - start, p.cumulative_contributors) for p in series]


def format_elapsed_label(elapsed: timedelta) -> str:
    """'Day n' below a year, 'Year n.n' from then on."""
    days = elapsed // timedelta(days=1)
    if days < DAYS_PER_YEAR:
        return f"Day {days}"
    return f"Year {days / DAYS_PER_YEAR:.1f}"


__all__ = [
    "weeks_aligned",
    "to_cumulative_series",
    "rescale_to_total",
    "reconcile_with_total",
    "normalize_to_relative_start",
    "format_elapsed_label",
]
