"""Dashboard summary: improvement percentages, time saved, cost savings."""

from __future__ import annotations

from dataclasses import dataclass

from pulseboard.engines.analytics.pr_stats import PRStats
from pulseboard.engines.analytics.sprint_stats import SprintStats

HOURS_PER_WORKDAY = 8
HOURS_PER_WORKWEEK = 40


@dataclass
class TimeSaved:
    per_item: float
    total_hours: float
    total_days: float
    total_weeks: float


@dataclass
class Improvements:
    pr_count: float
    merge_time: float
    review_time: float
    completion_rate: float
    story_points: float


@dataclass
class Summary:
    improvements: Improvements
    time_saved: TimeSaved
    cost_savings: float
    overall_improvement: float


def calculate_improvement(before: float, after: float, lower_is_better: bool = False) -> float:
    """Percentage change from *before* to *after*, positive meaning better.

    A zero baseline yields 0 when *after* is also 0, otherwise 100.
    """
    if before == 0:
        return 0.0 if after == 0 else 100.0
    if lower_is_better:
        return (before - after) / before * 100
    return (after - before) / before * 100


def calculate_time_saved(before_hours: float, after_hours: float, count: int) -> TimeSaved:
    per_item = before_hours - after_hours
    total = per_item * count
    return TimeSaved(
        per_item=per_item,
        total_hours=total,
        total_days=total / HOURS_PER_WORKDAY,
        total_weeks=total / HOURS_PER_WORKWEEK,
    )


def calculate_summary(pr: PRStats, sprint: SprintStats, hourly_rate: float = 10.0) -> Summary:
    improvements = Improvements(
        pr_count=calculate_improvement(pr.pr_count_before, pr.pr_count_after),
        merge_time=calculate_improvement(
            pr.avg_merge_time_before, pr.avg_merge_time_after, lower_is_better=True
        ),
        review_time=calculate_improvement(
            pr.avg_review_time_before, pr.avg_review_time_after, lower_is_better=True
        ),
        completion_rate=calculate_improvement(
            sprint.avg_completion_before, sprint.avg_completion_after
        ),
        story_points=calculate_improvement(sprint.avg_points_before, sprint.avg_points_after),
    )
    time_saved = calculate_time_saved(
        pr.avg_merge_time_before, pr.avg_merge_time_after, pr.merged_count_after
    )
    # Review time is reported but left out of the overall score.
    overall = (
        improvements.pr_count
        + improvements.merge_time
        + improvements.completion_rate
        + improvements.story_points
    ) / 4
    return Summary(
        improvements=improvements,
        time_saved=time_saved,
        cost_savings=time_saved.total_hours * hourly_rate,
        overall_improvement=overall,
    )
