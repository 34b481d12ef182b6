"""Per-member contribution analytics over commits and pull requests.

All calendar bucketing uses a fixed GMT+7 offset (no DST), matching the
team's working timezone. Pure functions only; callers supply ``now``.
"""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any

from pulseboard.engines.analytics.pr_stats import PullRequestLike, hours_between, to_pivot_datetime
from pulseboard.engines.sources.models import FetchedCommit

GMT7_OFFSET = timedelta(hours=7)
HEATMAP_DAYS = 730
BOT_MARKERS = ("[bot]", "bot", "copilot", "dependabot", "renovate", "github-actions")
DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


@dataclass
class BusiestWeek:
    week_start: str | None = None
    count: int = 0


@dataclass
class CommitFrequency:
    total: int = 0
    active_days: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    commits_per_week: float = 0.0
    busiest_week: BusiestWeek = field(default_factory=BusiestWeek)


@dataclass
class WorkingPattern:
    by_day_of_week: list[int] = field(default_factory=lambda: [0] * 7)
    by_hour: list[int] = field(default_factory=lambda: [0] * 24)
    peak_day: int = 0
    peak_day_name: str = DAY_NAMES[0]
    peak_hour: int = 0


@dataclass
class MemberPRMetrics:
    created: int = 0
    merged: int = 0
    merge_rate: float = 0.0
    avg_merge_time: float = 0.0
    created_before: int = 0
    created_after: int = 0
    merged_before: int = 0
    merged_after: int = 0
    avg_merge_time_before: float = 0.0
    avg_merge_time_after: float = 0.0


@dataclass
class Ranking:
    rank: int = 0
    percent_of_team: float = 0.0


@dataclass
class CommitRef:
    sha: str
    message: str
    url: str | None


@dataclass
class MemberStats:
    username: str
    display_name: str
    avatar: str | None = None
    commit_frequency: CommitFrequency = field(default_factory=CommitFrequency)
    pr_metrics: MemberPRMetrics = field(default_factory=MemberPRMetrics)
    working_pattern: WorkingPattern = field(default_factory=WorkingPattern)
    ranking: Ranking = field(default_factory=Ranking)
    heatmap: dict[str, int] = field(default_factory=dict)
    commits_by_date: dict[str, dict[str, list[CommitRef]]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ── time helpers ─────────────────────────────────────────────────────────


def to_gmt7(ts: datetime) -> datetime:
    """Shift *ts* to a naive GMT+7 wall-clock datetime."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).replace(tzinfo=None) + GMT7_OFFSET


def gmt7_date(ts: datetime) -> date:
    return to_gmt7(ts).date()


# ── identity ─────────────────────────────────────────────────────────────


def is_bot(login: str) -> bool:
    lowered = login.lower()
    return any(marker in lowered for marker in BOT_MARKERS)


def commit_member_key(commit: FetchedCommit) -> str | None:
    """Normalised author identity: login, else the local part of the email."""
    if commit.author_login:
        return commit.author_login.lower()
    if commit.author_email and "@" in commit.author_email:
        return commit.author_email.split("@", 1)[0].lower()
    return None


# ── commit frequency ─────────────────────────────────────────────────────


def current_streak(dates: Iterable[date], today: date) -> int:
    """Consecutive days with commits, counting back from *today*.

    The run may start yesterday (a gap of one day to *today* is allowed);
    the first gap larger than one day ends it.
    """
    streak = 0
    previous = today
    for day in sorted(set(dates), reverse=True):
        if (previous - day).days > 1:
            break
        streak += 1
        previous = day
    return streak


def longest_streak(dates: Iterable[date]) -> int:
    ordered = sorted(set(dates))
    if not ordered:
        return 0
    longest = run = 1
    for prev, day in zip(ordered, ordered[1:]):
        run = run + 1 if (day - prev).days == 1 else 1
        longest = max(longest, run)
    return longest


def commits_per_week(dates: Sequence[date]) -> float:
    """Total commits over the active span in weeks (at least one week)."""
    if not dates:
        return 0.0
    span_days = (max(dates) - min(dates)).days
    weeks = max(1, math.ceil(span_days / 7))
    return round(len(dates) / weeks, 1)


def busiest_week(timestamps: Iterable[datetime]) -> BusiestWeek:
    """Week (Monday start, UTC author date) with the most commits.

    Ties go to the week seen first.
    """
    buckets: dict[date, int] = {}
    for ts in timestamps:
        day = ts.astimezone(timezone.utc).date()
        week_start = day - timedelta(days=day.weekday())
        buckets[week_start] = buckets.get(week_start, 0) + 1
    if not buckets:
        return BusiestWeek()
    week_start, count = max(buckets.items(), key=lambda item: item[1])
    return BusiestWeek(week_start=week_start.isoformat(), count=count)


# ── heatmap / working pattern ────────────────────────────────────────────


def heatmap_window(today: date, days: int = HEATMAP_DAYS) -> dict[str, int]:
    """Zero-filled ``{YYYY-MM-DD: 0}`` for the trailing *days*, oldest first."""
    start = today - timedelta(days=days - 1)
    return {(start + timedelta(days=i)).isoformat(): 0 for i in range(days)}


def build_heatmap(
    commits: Iterable[FetchedCommit], today: date
) -> tuple[dict[str, int], dict[str, dict[str, list[CommitRef]]]]:
    """Daily commit counts plus per-date, per-repo commit listings.

    Commits outside the trailing window are ignored.
    """
    heatmap = heatmap_window(today)
    by_date: dict[str, dict[str, list[CommitRef]]] = {}
    for commit in commits:
        key = gmt7_date(commit.authored_at).isoformat()
        if key not in heatmap:
            continue
        heatmap[key] += 1
        by_date.setdefault(key, {}).setdefault(commit.repo_name, []).append(
            CommitRef(sha=commit.sha, message=commit.message, url=commit.url)
        )
    return heatmap, by_date


def _argmax(values: Sequence[int]) -> int:
    return max(range(len(values)), key=lambda i: values[i])


def working_pattern(timestamps: Iterable[datetime]) -> WorkingPattern:
    pattern = WorkingPattern()
    for ts in timestamps:
        local = to_gmt7(ts)
        pattern.by_day_of_week[local.weekday()] += 1
        pattern.by_hour[local.hour] += 1
    pattern.peak_day = _argmax(pattern.by_day_of_week)
    pattern.peak_day_name = DAY_NAMES[pattern.peak_day]
    pattern.peak_hour = _argmax(pattern.by_hour)
    return pattern


# ── pull requests ────────────────────────────────────────────────────────


def _avg_merge_hours(prs: list[PullRequestLike]) -> float:
    hours = [hours_between(pr.created_at, pr.merged_at) for pr in prs if pr.merged_at]
    return round(sum(hours) / len(hours), 1) if hours else 0.0


def member_pr_metrics(prs: Sequence[PullRequestLike], pivot: date | datetime) -> MemberPRMetrics:
    pivot_at = to_pivot_datetime(pivot)
    before = [pr for pr in prs if pr.created_at < pivot_at]
    after = [pr for pr in prs if pr.created_at >= pivot_at]
    merged = sum(1 for pr in prs if pr.merged_at)
    return MemberPRMetrics(
        created=len(prs),
        merged=merged,
        merge_rate=round(merged / len(prs) * 100, 1) if prs else 0.0,
        avg_merge_time=_avg_merge_hours(list(prs)),
        created_before=len(before),
        created_after=len(after),
        merged_before=sum(1 for pr in before if pr.merged_at),
        merged_after=sum(1 for pr in after if pr.merged_at),
        avg_merge_time_before=_avg_merge_hours(before),
        avg_merge_time_after=_avg_merge_hours(after),
    )


# ── ranking ──────────────────────────────────────────────────────────────


def rank_members(members: Iterable[MemberStats]) -> list[MemberStats]:
    """Sort by commit count (stable) and fill in rank and share of team commits."""
    ranked = sorted(members, key=lambda m: m.commit_frequency.total, reverse=True)
    team_total = sum(m.commit_frequency.total for m in ranked)
    for position, member in enumerate(ranked, start=1):
        share = member.commit_frequency.total / team_total * 100 if team_total else 0.0
        member.ranking = Ranking(rank=position, percent_of_team=round(share, 1))
    return ranked


# ── entry point ──────────────────────────────────────────────────────────


def _pr_avatar(pr: Any) -> str | None:
    payload = getattr(pr, "raw_payload", None) or {}
    return (payload.get("user") or {}).get("avatar_url")


def compute_member_stats(
    commits: Iterable[FetchedCommit],
    prs: Iterable[PullRequestLike],
    pivot: date | datetime,
    now: datetime | None = None,
) -> list[MemberStats]:
    """Build the ranked, bot-free member list from commits and PRs."""
    today = gmt7_date(now or datetime.now(timezone.utc))

    commits_by_member: dict[str, list[FetchedCommit]] = defaultdict(list)
    for commit in commits:
        key = commit_member_key(commit)
        if key:
            commits_by_member[key].append(commit)

    prs_by_member: dict[str, list[PullRequestLike]] = defaultdict(list)
    for pr in prs:
        login = getattr(pr, "author_login", "") or ""
        if login:
            prs_by_member[login.lower()].append(pr)

    usernames = list(commits_by_member)
    usernames += [name for name in prs_by_member if name not in commits_by_member]

    members: list[MemberStats] = []
    for username in usernames:
        if is_bot(username):
            continue
        member_commits = commits_by_member.get(username, [])
        member_prs = prs_by_member.get(username, [])
        timestamps = [c.authored_at for c in member_commits]
        dates = [gmt7_date(ts) for ts in timestamps]

        display_name = next((c.author_name for c in member_commits if c.author_name), username)
        avatar = next((c.avatar_url for c in member_commits if c.avatar_url), None)
        if avatar is None:
            avatar = next((a for a in map(_pr_avatar, member_prs) if a), None)

        heatmap, by_date = build_heatmap(member_commits, today)
        members.append(
            MemberStats(
                username=username,
                display_name=display_name,
                avatar=avatar,
                commit_frequency=CommitFrequency(
                    total=len(member_commits),
                    active_days=len(set(dates)),
                    current_streak=current_streak(dates, today),
                    longest_streak=longest_streak(dates),
                    commits_per_week=commits_per_week(dates),
                    busiest_week=busiest_week(timestamps),
                ),
                pr_metrics=member_pr_metrics(member_prs, pivot),
                working_pattern=working_pattern(timestamps),
                heatmap=heatmap,
                commits_by_date=by_date,
            )
        )

    return rank_members(members)
