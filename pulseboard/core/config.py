"""Runtime settings from environment variables (optionally loaded from ``.env``)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date
from functools import lru_cache

from dotenv import load_dotenv

from pulseboard.core.github import parse_repo_url

DEFAULT_STORY_POINT_FIELDS = (
    "customfield_10031",  # Story Points
    "customfield_10016",  # Story point estimate
    "customfield_10100",  # Original story points
)


def _env_list(key: str, default: str = "") -> list[str]:
    raw = os.environ.get(key, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_bool(key: str, default: bool) -> bool:
    raw = os.environ.get(key)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Immutable application settings."""

    database_url: str = "sqlite+aiosqlite:///data/dashboard.db"
    github_token: str | None = None
    github_repos: tuple[tuple[str, str], ...] = ()
    jira_base_url: str | None = None
    jira_api_token: str | None = None
    jira_email: str | None = None
    jira_project_key: str = "AAP"
    story_point_fields: tuple[str, ...] = DEFAULT_STORY_POINT_FIELDS
    stale_hours: float = 6.0
    pivot_date: date = date(2025, 7, 1)
    member_stats_enabled: bool = True
    block_on_empty: bool = False
    refresh_interval: float = 900.0
    hourly_rate: float = 10.0
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:5173"])

    @property
    def github_configured(self) -> bool:
        return bool(self.github_token)

    @property
    def jira_configured(self) -> bool:
        return bool(self.jira_base_url and self.jira_api_token)

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from the process environment.

        ``PULSEBOARD_GITHUB_REPOS`` accepts ``owner/repo`` entries or full
        GitHub URLs. Raises ValueError for entries that cannot be parsed.
        """
        repos = [parse_repo_url(entry) for entry in _env_list("PULSEBOARD_GITHUB_REPOS")]
        pivot_raw = os.environ.get("PULSEBOARD_PIVOT_DATE")
        return cls(
            database_url=os.environ.get("PULSEBOARD_DATABASE_URL", cls.database_url),
            github_token=os.environ.get("GITHUB_TOKEN") or None,
            github_repos=tuple(repos),
            jira_base_url=(os.environ.get("JIRA_BASE_URL") or "").rstrip("/") or None,
            jira_api_token=os.environ.get("JIRA_API_TOKEN") or None,
            jira_email=os.environ.get("JIRA_EMAIL") or None,
            jira_project_key=os.environ.get("JIRA_PROJECT_KEY", cls.jira_project_key),
            story_point_fields=tuple(
                _env_list("PULSEBOARD_STORY_POINT_FIELDS", ",".join(DEFAULT_STORY_POINT_FIELDS))
            ),
            stale_hours=float(os.environ.get("PULSEBOARD_STALE_HOURS", cls.stale_hours)),
            pivot_date=date.fromisoformat(pivot_raw) if pivot_raw else cls.pivot_date,
            member_stats_enabled=_env_bool("PULSEBOARD_MEMBER_STATS", True),
            block_on_empty=_env_bool("PULSEBOARD_BLOCK_ON_EMPTY", False),
            refresh_interval=float(
                os.environ.get("PULSEBOARD_REFRESH_INTERVAL", cls.refresh_interval)
            ),
            hourly_rate=float(os.environ.get("PULSEBOARD_HOURLY_RATE", cls.hourly_rate)),
            cors_origins=_env_list("PULSEBOARD_CORS_ORIGINS", "http://localhost:5173"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load ``.env`` (if present) and return the process-wide settings."""
    load_dotenv()
    return Settings.from_env()
