"""Pull-request metrics: before/after comparison and monthly rollup."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Protocol


class PullRequestLike(Protocol):
    created_at: datetime
    merged_at: datetime | None
    first_review_at: datetime | None


@dataclass
class PRStats:
    pr_count_before: int
    pr_count_after: int
    merged_count_before: int
    merged_count_after: int
    avg_merge_time_before: float
    avg_merge_time_after: float
    avg_review_time_before: float
    avg_review_time_after: float


@dataclass
class MonthlyPRStats:
    month: str
    pr_count: int = 0
    merged_count: int = 0
    avg_merge_time: float = 0.0


def to_pivot_datetime(pivot: date | datetime) -> datetime:
    """Normalise a pivot date to an aware UTC datetime (midnight for dates)."""
    if isinstance(pivot, datetime):
        return pivot if pivot.tzinfo else pivot.replace(tzinfo=timezone.utc)
    return datetime(pivot.year, pivot.month, pivot.day, tzinfo=timezone.utc)


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _merge_hours(prs: list[PullRequestLike]) -> list[float]:
    return [hours_between(pr.created_at, pr.merged_at) for pr in prs if pr.merged_at]


def _review_hours(prs: list[PullRequestLike]) -> list[float]:
    return [hours_between(pr.created_at, pr.first_review_at) for pr in prs if pr.first_review_at]


def calculate_pr_stats(prs: Iterable[PullRequestLike], pivot: date | datetime) -> PRStats:
    """Compare PR throughput, merge time and review latency around *pivot*.

    PRs created strictly before the pivot are "before"; the rest "after".
    Averages are in hours and are 0 when the partition has no samples.
    """
    pivot_at = to_pivot_datetime(pivot)
    before: list[PullRequestLike] = []
    after: list[PullRequestLike] = []
    for pr in prs:
        (before if pr.created_at < pivot_at else after).append(pr)

    return PRStats(
        pr_count_before=len(before),
        pr_count_after=len(after),
        merged_count_before=sum(1 for pr in before if pr.merged_at),
        merged_count_after=sum(1 for pr in after if pr.merged_at),
        avg_merge_time_before=_mean(_merge_hours(before)),
        avg_merge_time_after=_mean(_merge_hours(after)),
        avg_review_time_before=_mean(_review_hours(before)),
        avg_review_time_after=_mean(_review_hours(after)),
    )


def prs_by_month(prs: Iterable[PullRequestLike]) -> list[MonthlyPRStats]:
    """Group PRs by UTC calendar month of ``created_at`` (``YYYY-MM``), ascending."""
    months: dict[str, MonthlyPRStats] = {}
    merge_totals: dict[str, float] = {}
    for pr in prs:
        created = pr.created_at.astimezone(timezone.utc)
        key = f"{created.year:04d}-{created.month:02d}"
        bucket = months.setdefault(key, MonthlyPRStats(month=key))
        bucket.pr_count += 1
        if pr.merged_at:
            bucket.merged_count += 1
            merge_totals[key] = merge_totals.get(key, 0.0) + hours_between(
                pr.created_at, pr.merged_at
            )

    for key, bucket in months.items():
        if bucket.merged_count:
            bucket.avg_merge_time = merge_totals[key] / bucket.merged_count
    return [months[key] for key in sorted(months)]
