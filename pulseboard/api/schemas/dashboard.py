"""Dashboard request/response schemas (camelCase on the wire)."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ── cached rows ───────────────────────────────────────────────────────────


class PullRequestItem(CamelModel):
    id: int
    number: int
    repo_name: str
    title: str
    state: str
    author_login: str
    created_at: datetime
    merged_at: datetime | None
    first_review_at: datetime | None
    synced_at: datetime


class SprintItem(CamelModel):
    id: int
    board_id: int
    name: str
    state: str
    start_date: datetime | None
    end_date: datetime | None
    complete_date: datetime | None
    committed_points: float
    completed_points: float
    completion_rate: float
    issue_count: int
    synced_at: datetime


# ── member stats ──────────────────────────────────────────────────────────


class BusiestWeek(CamelModel):
    week_start: str | None
    count: int


class CommitFrequency(CamelModel):
    total: int
    active_days: int
    current_streak: int
    longest_streak: int
    commits_per_week: float
    busiest_week: BusiestWeek


class WorkingPattern(CamelModel):
    by_day_of_week: list[int]
    by_hour: list[int]
    peak_day: int
    peak_day_name: str
    peak_hour: int


class MemberPRMetrics(CamelModel):
    created: int
    merged: int
    merge_rate: float
    avg_merge_time: float
    created_before: int
    created_after: int
    merged_before: int
    merged_after: int
    avg_merge_time_before: float
    avg_merge_time_after: float


class Ranking(CamelModel):
    rank: int
    percent_of_team: float


class CommitRef(CamelModel):
    sha: str
    message: str
    url: str | None


class MemberStatsItem(CamelModel):
    username: str
    display_name: str
    avatar: str | None
    commit_frequency: CommitFrequency
    pr_metrics: MemberPRMetrics
    working_pattern: WorkingPattern
    ranking: Ranking
    heatmap: dict[str, int]
    commits_by_date: dict[str, dict[str, list[CommitRef]]]


# ── analytics ─────────────────────────────────────────────────────────────


class PRStats(CamelModel):
    pr_count_before: int
    pr_count_after: int
    merged_count_before: int
    merged_count_after: int
    avg_merge_time_before: float
    avg_merge_time_after: float
    avg_review_time_before: float
    avg_review_time_after: float


class MonthlyPRStats(CamelModel):
    month: str
    pr_count: int
    merged_count: int
    avg_merge_time: float


class SprintStats(CamelModel):
    sprint_count_before: int
    sprint_count_after: int
    avg_completion_before: float
    avg_completion_after: float
    avg_points_before: float
    avg_points_after: float
    total_points_before: float
    total_points_after: float


class Improvements(CamelModel):
    pr_count: float
    merge_time: float
    review_time: float
    completion_rate: float
    story_points: float


class TimeSaved(CamelModel):
    per_item: float
    total_hours: float
    total_days: float
    total_weeks: float


class Summary(CamelModel):
    improvements: Improvements
    time_saved: TimeSaved
    cost_savings: float
    overall_improvement: float


class Analytics(CamelModel):
    pivot_date: date
    pr_stats: PRStats
    prs_by_month: list[MonthlyPRStats]
    sprint_stats: SprintStats
    summary: Summary


# ── sync status ───────────────────────────────────────────────────────────


class SyncError(CamelModel):
    source: str
    message: str


class SourceStatus(CamelModel):
    source: str
    status: str
    last_sync_at: datetime | None
    error_msg: str | None
    errors: list[SyncError] = []
    duration_ms: int | None
    is_stale: bool


class DashboardDataResponse(CamelModel):
    pull_requests: list[PullRequestItem]
    sprints: list[SprintItem]
    member_stats: list[MemberStatsItem]
    analytics: Analytics
    sync_status: dict[str, SourceStatus]


class SyncStatusResponse(CamelModel):
    syncing: dict[str, bool]
    sources: dict[str, SourceStatus]


class SyncRequest(CamelModel):
    source: str | None = None


class SyncAcceptedResponse(CamelModel):
    accepted: bool
    message: str
    syncing: dict[str, bool]


# ── progress stream ───────────────────────────────────────────────────────


class SourceSyncResult(CamelModel):
    source: str
    status: str
    message: str
    duration_ms: int | None
    items: int


class SyncAllResult(CamelModel):
    status: str
    errors: list[SyncError]
    results: list[SourceSyncResult]
    duration_ms: int | None


class ProgressEvent(CamelModel):
    step: str
    status: str
    message: str
    result: SyncAllResult | None = None
