"""Sprint metrics and before/after sprint statistics."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Protocol

from pulseboard.engines.analytics.pr_stats import to_pivot_datetime

DONE_STATUS_CATEGORY = "done"


class SprintLike(Protocol):
    end_date: datetime | None
    complete_date: datetime | None
    completed_points: float

    @property
    def completion_rate(self) -> float: ...


@dataclass
class SprintMetrics:
    committed_points: float
    completed_points: float
    completion_rate: float
    issue_count: int


@dataclass
class SprintStats:
    sprint_count_before: int
    sprint_count_after: int
    avg_completion_before: float
    avg_completion_after: float
    avg_points_before: float
    avg_points_after: float
    total_points_before: float
    total_points_after: float


def story_points(issue: dict[str, Any], fields: Sequence[str]) -> float:
    """First non-empty story-point field of *issue* in *fields* order, else 0."""
    values = issue.get("fields") or {}
    for name in fields:
        raw = values.get(name)
        if raw in (None, "", 0):
            continue
        try:
            return float(raw)
        except (TypeError, ValueError):
            continue
    return 0.0


def is_done(issue: dict[str, Any]) -> bool:
    status = (issue.get("fields") or {}).get("status") or {}
    return (status.get("statusCategory") or {}).get("key") == DONE_STATUS_CATEGORY


def calculate_sprint_metrics(
    issues: Sequence[dict[str, Any]], fields: Sequence[str]
) -> SprintMetrics:
    """Committed points over all issues; completed points over done issues."""
    committed = 0.0
    completed = 0.0
    for issue in issues:
        points = story_points(issue, fields)
        committed += points
        if is_done(issue):
            completed += points

    rate = completed / committed * 100 if committed > 0 else 0.0
    return SprintMetrics(
        committed_points=committed,
        completed_points=completed,
        completion_rate=rate,
        issue_count=len(issues),
    )


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def calculate_sprint_stats(sprints: Iterable[SprintLike], pivot: date | datetime) -> SprintStats:
    """Split sprints on ``end_date`` (or ``complete_date``) and compare.

    A sprint without either date counts as "after".
    """
    pivot_at = to_pivot_datetime(pivot)
    before: list[SprintLike] = []
    after: list[SprintLike] = []
    for sprint in sprints:
        ended = sprint.end_date or sprint.complete_date
        if ended is not None and ended < pivot_at:
            before.append(sprint)
        else:
            after.append(sprint)

    points_before = [s.completed_points or 0.0 for s in before]
    points_after = [s.completed_points or 0.0 for s in after]
    return SprintStats(
        sprint_count_before=len(before),
        sprint_count_after=len(after),
        avg_completion_before=_mean([s.completion_rate for s in before]),
        avg_completion_after=_mean([s.completion_rate for s in after]),
        avg_points_before=_mean(points_before),
        avg_points_after=_mean(points_after),
        total_points_before=sum(points_before),
        total_points_after=sum(points_after),
    )
