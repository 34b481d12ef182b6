"""Tests for the pure analytics functions."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from pulseboard.engines.analytics.members import (
    HEATMAP_DAYS,
    build_heatmap,
    busiest_week,
    commit_member_key,
    commits_per_week,
    compute_member_stats,
    current_streak,
    gmt7_date,
    is_bot,
    longest_streak,
    member_pr_metrics,
    working_pattern,
)
from pulseboard.engines.analytics.pr_stats import calculate_pr_stats, prs_by_month
from pulseboard.engines.analytics.sprint_stats import (
    calculate_sprint_metrics,
    calculate_sprint_stats,
    story_points,
)
from pulseboard.engines.analytics.summary import (
    calculate_improvement,
    calculate_summary,
    calculate_time_saved,
)
from pulseboard.engines.sources.models import FetchedCommit

PIVOT = date(2025, 7, 1)
# 12:00 on 2025-08-10 in GMT+7
NOW = datetime(2025, 8, 10, 5, 0, tzinfo=timezone.utc)


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def _pr(created, merged=None, reviewed=None, author="alice"):
    return SimpleNamespace(
        created_at=created, merged_at=merged, first_review_at=reviewed, author_login=author
    )


def _sprint(end=None, complete=None, committed=20.0, completed=15.0):
    rate = completed / committed * 100 if committed else 0.0
    return SimpleNamespace(
        end_date=end,
        complete_date=complete,
        committed_points=committed,
        completed_points=completed,
        completion_rate=rate,
    )


def _commit(authored_at, login="alice", sha=None, repo="acme/web", email=None, name=None):
    return FetchedCommit(
        sha=sha or f"sha-{authored_at.isoformat()}",
        repo_name=repo,
        message="change",
        url=None,
        authored_at=authored_at,
        author_login=login,
        author_email=email,
        author_name=name,
    )


def _issue(points, done):
    category = "done" if done else "new"
    return {
        "fields": {
            "customfield_10031": points,
            "status": {"statusCategory": {"key": category}},
        }
    }


# ── PR stats ──────────────────────────────────────────────────────────────


class TestPRStats:
    def test_before_after_example(self):
        prs = [
            _pr(_utc(2025, 6, 1)),
            _pr(_utc(2025, 8, 1), merged=_utc(2025, 8, 3)),
        ]
        stats = calculate_pr_stats(prs, PIVOT)
        assert stats.pr_count_before == 1
        assert stats.pr_count_after == 1
        assert stats.avg_merge_time_after == pytest.approx(48.0)
        assert stats.avg_merge_time_before == 0
        assert stats.merged_count_before == 0
        assert stats.merged_count_after == 1

    def test_pivot_instant_counts_as_after(self):
        stats = calculate_pr_stats([_pr(_utc(2025, 7, 1))], PIVOT)
        assert (stats.pr_count_before, stats.pr_count_after) == (0, 1)

    def test_review_time(self):
        prs = [_pr(_utc(2025, 8, 1), reviewed=_utc(2025, 8, 1, 6))]
        assert calculate_pr_stats(prs, PIVOT).avg_review_time_after == pytest.approx(6.0)

    def test_empty(self):
        stats = calculate_pr_stats([], PIVOT)
        assert stats.pr_count_before == stats.pr_count_after == 0
        assert stats.avg_merge_time_after == 0

    def test_prs_by_month(self):
        prs = [
            _pr(_utc(2025, 8, 20), merged=_utc(2025, 8, 21)),
            _pr(_utc(2025, 6, 2)),
            _pr(_utc(2025, 8, 1), merged=_utc(2025, 8, 4)),
        ]
        months = prs_by_month(prs)
        assert [m.month for m in months] == ["2025-06", "2025-08"]
        june, august = months
        assert (june.pr_count, june.merged_count, june.avg_merge_time) == (1, 0, 0.0)
        assert august.pr_count == 2
        assert august.merged_count == 2
        assert august.avg_merge_time == pytest.approx(48.0)


# ── sprint stats ──────────────────────────────────────────────────────────


class TestSprintMetrics:
    def test_completion_example(self):
        issues = [_issue(5, True), _issue(10, True), _issue(5, False)]
        metrics = calculate_sprint_metrics(issues, ["customfield_10031"])
        assert metrics.committed_points == 20
        assert metrics.completed_points == 15
        assert metrics.completion_rate == 75.0
        assert metrics.issue_count == 3

    def test_no_points(self):
        metrics = calculate_sprint_metrics([_issue(None, True)], ["customfield_10031"])
        assert metrics.completion_rate == 0.0

    def test_completion_rate_bounds(self):
        issues = [_issue(3, True), _issue(2, True)]
        rate = calculate_sprint_metrics(issues, ["customfield_10031"]).completion_rate
        assert 0 <= rate <= 100

    def test_story_points_skips_empty_values(self):
        issue = {"fields": {"a": None, "b": "", "c": 0, "d": "3"}}
        assert story_points(issue, ["a", "b", "c", "d"]) == 3.0

    def test_story_points_skips_non_numeric(self):
        issue = {"fields": {"a": "large", "b": 2}}
        assert story_points(issue, ["a", "b"]) == 2.0

    def test_story_points_missing_fields(self):
        assert story_points({}, ["a"]) == 0.0


class TestSprintStats:
    def test_partition(self):
        sprints = [
            _sprint(end=_utc(2025, 6, 14)),
            _sprint(complete=_utc(2025, 6, 28), completed=10.0),
            _sprint(end=_utc(2025, 7, 14), completed=20.0),
            _sprint(),
        ]
        stats = calculate_sprint_stats(sprints, PIVOT)
        assert stats.sprint_count_before == 2
        assert stats.sprint_count_after == 2
        assert stats.avg_completion_before == pytest.approx(62.5)
        assert stats.avg_points_before == pytest.approx(12.5)
        assert stats.total_points_after == 35.0

    def test_empty(self):
        stats = calculate_sprint_stats([], PIVOT)
        assert stats.avg_completion_after == 0.0


# ── summary ───────────────────────────────────────────────────────────────


class TestSummary:
    def test_improvement(self):
        assert calculate_improvement(10, 15) == pytest.approx(50.0)
        assert calculate_improvement(10, 5, lower_is_better=True) == pytest.approx(50.0)
        assert calculate_improvement(0, 0) == 0.0
        assert calculate_improvement(0, 5) == 100.0

    def test_time_saved(self):
        saved = calculate_time_saved(48.0, 24.0, 10)
        assert saved.per_item == 24.0
        assert saved.total_hours == 240.0
        assert saved.total_days == 30.0
        assert saved.total_weeks == 6.0

    def test_summary(self):
        pr_stats = calculate_pr_stats(
            [
                _pr(_utc(2025, 6, 1), merged=_utc(2025, 6, 3)),
                _pr(_utc(2025, 8, 1), merged=_utc(2025, 8, 2)),
                _pr(_utc(2025, 8, 5), merged=_utc(2025, 8, 6)),
            ],
            PIVOT,
        )
        sprint_stats = calculate_sprint_stats(
            [_sprint(end=_utc(2025, 6, 1)), _sprint(end=_utc(2025, 8, 1))], PIVOT
        )
        summary = calculate_summary(pr_stats, sprint_stats, hourly_rate=10.0)
        assert summary.improvements.pr_count == pytest.approx(100.0)
        assert summary.improvements.merge_time == pytest.approx(50.0)
        assert summary.time_saved.total_hours == pytest.approx(48.0)
        assert summary.cost_savings == pytest.approx(480.0)
        assert summary.overall_improvement == pytest.approx(37.5)


# ── member analytics ──────────────────────────────────────────────────────


class TestIdentity:
    def test_is_bot(self):
        assert is_bot("dependabot[bot]")
        assert is_bot("Renovate-Bot")
        assert is_bot("github-actions")
        assert is_bot("copilot-swe-agent")
        assert not is_bot("alice")

    def test_member_key_prefers_login(self):
        assert commit_member_key(_commit(NOW, login="Alice", email="x@y.z")) == "alice"

    def test_member_key_email_fallback(self):
        assert commit_member_key(_commit(NOW, login=None, email="Carol@Example.com")) == "carol"

    def test_member_key_unknown(self):
        assert commit_member_key(_commit(NOW, login=None)) is None


class TestStreaks:
    TODAY = date(2025, 8, 10)

    def test_consecutive_run_ending_today(self):
        dates = [self.TODAY - timedelta(days=i) for i in range(5)]
        assert current_streak(dates, self.TODAY) == 5

    def test_gap_caps_current_streak(self):
        dates = [date(2025, 8, 1), date(2025, 8, 2), date(2025, 8, 4), date(2025, 8, 5)]
        assert current_streak(dates, date(2025, 8, 5)) == 2
        assert longest_streak(dates) == 2

    def test_run_ending_yesterday_still_counts(self):
        dates = [date(2025, 8, 8), date(2025, 8, 9)]
        assert current_streak(dates, self.TODAY) == 2

    def test_run_ended_two_days_ago(self):
        assert current_streak([date(2025, 8, 8)], self.TODAY) == 0

    def test_duplicates_ignored(self):
        dates = [self.TODAY, self.TODAY, self.TODAY - timedelta(days=1)]
        assert current_streak(dates, self.TODAY) == 2

    def test_longest_streak(self):
        dates = [date(2025, 1, d) for d in (1, 2, 3, 10, 11, 20)]
        assert longest_streak(dates) == 3
        assert longest_streak([]) == 0


class TestFrequency:
    def test_commits_per_week(self):
        dates = [date(2025, 8, 1), date(2025, 8, 8), date(2025, 8, 15)]
        assert commits_per_week(dates) == 1.5

    def test_commits_per_week_minimum_one_week(self):
        assert commits_per_week([date(2025, 8, 1)] * 4) == 4.0
        assert commits_per_week([]) == 0.0

    def test_busiest_week(self):
        stamps = [_utc(2025, 8, 4, 9), _utc(2025, 8, 5, 9), _utc(2025, 8, 11, 9)]
        week = busiest_week(stamps)
        assert week.week_start == "2025-08-04"
        assert week.count == 2

    def test_busiest_week_tie_goes_to_first_seen(self):
        week = busiest_week([_utc(2025, 8, 11, 9), _utc(2025, 8, 4, 9)])
        assert week.week_start == "2025-08-11"

    def test_busiest_week_empty(self):
        assert busiest_week([]).week_start is None


class TestHeatmapAndPattern:
    def test_gmt7_shift_crosses_midnight(self):
        assert gmt7_date(_utc(2025, 8, 9, 20)) == date(2025, 8, 10)

    def test_heatmap_window(self):
        today = date(2025, 8, 10)
        commits = [
            _commit(_utc(2025, 8, 9, 20), sha="a"),
            _commit(_utc(2025, 8, 10, 1), sha="b", repo="acme/api"),
            _commit(_utc(2020, 1, 1), sha="old"),
        ]
        heatmap, by_date = build_heatmap(commits, today)
        assert len(heatmap) == HEATMAP_DAYS
        assert list(heatmap)[-1] == "2025-08-10"
        assert heatmap["2025-08-10"] == 2
        assert sum(heatmap.values()) == 2
        assert set(by_date["2025-08-10"]) == {"acme/web", "acme/api"}
        assert by_date["2025-08-10"]["acme/web"][0].sha == "a"

    def test_working_pattern(self):
        # 2025-08-09T20:00Z is Sunday 03:00 in GMT+7
        stamps = [_utc(2025, 8, 9, 20), _utc(2025, 8, 9, 20, 30), _utc(2025, 8, 11, 2)]
        pattern = working_pattern(stamps)
        assert pattern.by_day_of_week[6] == 2
        assert pattern.by_day_of_week[0] == 1
        assert pattern.peak_day == 6
        assert pattern.peak_day_name == "Sunday"
        assert pattern.by_hour[3] == 2
        assert pattern.peak_hour == 3
        assert sum(pattern.by_hour) == 3


class TestMemberStats:
    def test_pr_metrics_split_by_pivot(self):
        prs = [
            _pr(_utc(2025, 6, 1), merged=_utc(2025, 6, 2)),
            _pr(_utc(2025, 8, 1), merged=_utc(2025, 8, 3)),
            _pr(_utc(2025, 8, 5)),
        ]
        metrics = member_pr_metrics(prs, PIVOT)
        assert metrics.created == 3
        assert metrics.merged == 2
        assert metrics.merge_rate == 66.7
        assert metrics.avg_merge_time == 36.0
        assert (metrics.created_before, metrics.created_after) == (1, 2)
        assert (metrics.merged_before, metrics.merged_after) == (1, 1)
        assert metrics.avg_merge_time_before == 24.0
        assert metrics.avg_merge_time_after == 48.0

    def test_ranking_and_bot_filter(self):
        commits = [
            _commit(_utc(2025, 8, 10, 1), login="alice", sha="a1", name="Alice A"),
            _commit(_utc(2025, 8, 9, 1), login="Alice", sha="a2"),
            _commit(_utc(2025, 8, 8, 1), login="alice", sha="a3"),
            _commit(_utc(2025, 8, 8, 1), login="bob", sha="b1"),
            _commit(_utc(2025, 8, 8, 1), login="dependabot[bot]", sha="d1"),
            _commit(_utc(2025, 8, 8, 1), login=None, email="carol@example.com", sha="c1"),
        ]
        prs = [_pr(_utc(2025, 8, 1), author="dave"), _pr(_utc(2025, 8, 1), author="renovate[bot]")]

        members = compute_member_stats(commits, prs, PIVOT, now=NOW)

        assert [m.username for m in members] == ["alice", "bob", "carol", "dave"]
        alice = members[0]
        assert alice.display_name == "Alice A"
        assert alice.ranking.rank == 1
        assert alice.ranking.percent_of_team == 60.0
        assert alice.commit_frequency.total == 3
        assert alice.commit_frequency.active_days == 3
        assert alice.commit_frequency.current_streak == 3
        assert members[1].ranking.percent_of_team == 20.0
        dave = members[3]
        assert dave.commit_frequency.total == 0
        assert dave.ranking.rank == 4
        assert dave.ranking.percent_of_team == 0.0
        assert dave.pr_metrics.created == 1

    def test_blob_is_json_ready(self):
        members = compute_member_stats([_commit(_utc(2025, 8, 10, 1))], [], PIVOT, now=NOW)
        blob = members[0].to_dict()
        assert blob["username"] == "alice"
        assert blob["commit_frequency"]["busiest_week"]["week_start"] == "2025-08-04"
        assert blob["commits_by_date"]["2025-08-10"]["acme/web"][0]["message"] == "change"

    def test_empty_inputs(self):
        assert compute_member_stats([], [], PIVOT, now=NOW) == []
