"""Records produced by the source clients. Pure data, no DB dependencies."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class FetchedPullRequest:
    """One GitHub pull request, tagged with its ``owner/repo``."""

    id: int
    number: int
    repo_name: str
    title: str
    state: str
    author_login: str
    created_at: datetime
    merged_at: datetime | None = None
    first_review_at: datetime | None = None
    raw_payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class FetchedCommit:
    """One commit on a repository's default branch."""

    sha: str
    repo_name: str
    message: str
    url: str | None
    authored_at: datetime
    author_login: str | None = None
    author_email: str | None = None
    author_name: str | None = None
    avatar_url: str | None = None


@dataclass
class FetchedSprint:
    """One Jira sprint reduced to its story-point totals."""

    id: int
    board_id: int
    name: str
    state: str
    start_date: datetime | None
    end_date: datetime | None
    complete_date: datetime | None
    committed_points: float = 0.0
    completed_points: float = 0.0
    issue_count: int = 0
    raw_payload: dict[str, Any] = field(default_factory=dict)

    @property
    def completion_rate(self) -> float:
        if not self.committed_points:
            return 0.0
        return self.completed_points / self.committed_points * 100


def parse_datetime(value: str | None) -> datetime | None:
    """Parse an ISO-8601 datetime string, returning None on failure."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
