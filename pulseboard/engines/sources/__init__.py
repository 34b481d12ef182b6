"""Source clients — GitHub and Jira fetches without DB access."""

from pulseboard.engines.sources.github_client import GitHubClient
from pulseboard.engines.sources.jira_client import JiraClient
from pulseboard.engines.sources.models import (
    FetchedCommit,
    FetchedPullRequest,
    FetchedSprint,
    parse_datetime,
)

__all__ = [
    "FetchedCommit",
    "FetchedPullRequest",
    "FetchedSprint",
    "GitHubClient",
    "JiraClient",
    "parse_datetime",
]
