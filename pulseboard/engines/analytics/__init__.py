"""Pure metric functions over PRs, sprints and commits."""

from pulseboard.engines.analytics.members import MemberStats, compute_member_stats
from pulseboard.engines.analytics.pr_stats import PRStats, calculate_pr_stats, prs_by_month
from pulseboard.engines.analytics.sprint_stats import (
    SprintStats,
    calculate_sprint_metrics,
    calculate_sprint_stats,
)
from pulseboard.engines.analytics.summary import Summary, calculate_summary

__all__ = [
    "MemberStats",
    "PRStats",
    "SprintStats",
    "Summary",
    "calculate_pr_stats",
    "calculate_sprint_metrics",
    "calculate_sprint_stats",
    "calculate_summary",
    "compute_member_stats",
    "prs_by_month",
]
