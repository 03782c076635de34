"""Day, week and overtime aggregation over completed time entries.

Every function here is pure: the wall-clock instant and the live elapsed time
of a running timer are passed in by the caller. Calendar decisions (which day
an entry belongs to, whether that day is a Sunday, which ISO week it falls
into) are made in the reference timezone, while durations are computed on
absolute instants.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable, Optional

from .config import AggregationSettings
from .models import Company, StatsSummary, TimeEntry

SUNDAY = 7


@dataclass(frozen=True, slots=True)
class DayHistory:
    """Completed entries of one reference-zone calendar day."""

    day: date
    raw_seconds: int
    adjusted_seconds: int
    is_sick_day: bool
    company_seconds: dict[Company, int] = field(default_factory=dict)
    entries: tuple[TimeEntry, ...] = ()


def entry_duration_seconds(entry: TimeEntry) -> int:
    return entry.duration_seconds


def local_date(moment: datetime, tz: tzinfo) -> date:
    return moment.astimezone(tz).date()


def week_start(day: date) -> date:
    """Monday of the ISO week containing ``day``."""
    return day - timedelta(days=day.weekday())


def group_by_day(
    entries: Iterable[TimeEntry], tz: tzinfo
) -> dict[date, list[TimeEntry]]:
    """Bucket completed entries by the local date of their start time."""
    buckets: defaultdict[date, list[TimeEntry]] = defaultdict(list)
    for entry in entries:
        if not entry.is_completed:
            continue
        buckets[local_date(entry.start_time, tz)].append(entry)
    return dict(buckets)


def adjusted_day_seconds(
    day: date,
    entries: Iterable[TimeEntry],
    settings: Optional[AggregationSettings] = None,
) -> int:
    """Net credited seconds for one day bucket.

    A sick-day entry anywhere in the bucket credits the fixed sick-day amount
    and skips both the pause deduction and Sunday doubling.
    """
    settings = settings or AggregationSettings()
    bucket = list(entries)
    if any(entry.is_sick_day for entry in bucket):
        return settings.sick_day_seconds

    raw = sum(entry_duration_seconds(entry) for entry in bucket)
    adjusted = raw
    if raw >= settings.pause_threshold:
        adjusted = max(0, raw - settings.pause_seconds)
    if day.isoweekday() == SUNDAY:
        adjusted *= 2
    return adjusted


def count_weekdays(first: date, last: date) -> int:
    """Number of Monday-Friday dates in ``[first, last]``."""
    if last < first:
        return 0
    span = (last - first).days + 1
    full_weeks, remainder = divmod(span, 7)
    count = full_weeks * 5
    tail_start = first + timedelta(days=full_weeks * 7)
    for offset in range(remainder):
        if (tail_start + timedelta(days=offset)).weekday() < 5:
            count += 1
    return count


def daily_totals(
    entries: Iterable[TimeEntry], settings: Optional[AggregationSettings] = None
) -> dict[date, int]:
    settings = settings or AggregationSettings()
    return {
        day: adjusted_day_seconds(day, bucket, settings)
        for day, bucket in group_by_day(entries, settings.timezone).items()
    }


def compute_stats(
    entries: Iterable[TimeEntry],
    now: datetime,
    live_elapsed_seconds: float = 0,
    settings: Optional[AggregationSettings] = None,
) -> StatsSummary:
    """Summarize the full entry history as seen at ``now``.

    ``now`` must be timezone-aware. ``live_elapsed_seconds`` is the running
    time of an open entry, if any; it only reduces the remaining seconds for
    the current week.
    """
    settings = settings or AggregationSettings()
    today = local_date(now, settings.timezone)
    daily = daily_totals(entries, settings)

    total_seconds = sum(daily.values())

    current_week = week_start(today)
    current_week_end = current_week + timedelta(days=6)
    kw_seconds = sum(
        seconds
        for day, seconds in daily.items()
        if current_week <= day <= current_week_end
    )

    weekdays = 0
    if daily:
        weekdays = count_weekdays(min(daily), min(max(daily), today))
    avg_per_day = total_seconds / max(weekdays, 1)

    to_go = max(
        0, settings.weekly_target - kw_seconds - int(live_elapsed_seconds)
    )

    return StatsSummary(
        total_seconds=total_seconds,
        current_iso_week=today.isocalendar()[1],
        kw_seconds=kw_seconds,
        avg_per_day_seconds=avg_per_day,
        to_go_seconds=to_go,
        overtime_balance_seconds=overtime_balance(daily, current_week, settings),
    )


def overtime_balance(
    daily: dict[date, int],
    current_week: date,
    settings: Optional[AggregationSettings] = None,
) -> int:
    """Fold every closed ISO week into the carried overtime balance.

    Weeks run from the one holding the earliest day up to, but excluding,
    ``current_week``; weeks without entries count as fully missed.
    """
    settings = settings or AggregationSettings()
    balance = settings.initial_overtime_carry
    if not daily:
        return balance

    weekly: defaultdict[date, int] = defaultdict(int)
    for day, seconds in daily.items():
        weekly[week_start(day)] += seconds

    week = week_start(min(daily))
    while week < current_week:
        balance += weekly.get(week, 0) - settings.weekly_target
        week += timedelta(days=7)
    return balance


def daily_history(
    entries: Iterable[TimeEntry], settings: Optional[AggregationSettings] = None
) -> list[DayHistory]:
    """Per-day history rows, newest day first."""
    settings = settings or AggregationSettings()
    rows: list[DayHistory] = []
    for day, bucket in group_by_day(entries, settings.timezone).items():
        company_seconds: defaultdict[Company, int] = defaultdict(int)
        for entry in bucket:
            company_seconds[entry.company] += entry_duration_seconds(entry)
        rows.append(
            DayHistory(
                day=day,
                raw_seconds=sum(company_seconds.values()),
                adjusted_seconds=adjusted_day_seconds(day, bucket, settings),
                is_sick_day=any(entry.is_sick_day for entry in bucket),
                company_seconds=dict(company_seconds),
                entries=tuple(sorted(bucket, key=lambda entry: entry.start_time)),
            )
        )
    rows.sort(key=lambda row: row.day, reverse=True)
    return rows
