"""SQLAlchemy ORM models — one file per table."""

from pulseboard.models.cached_data import CachedData
from pulseboard.models.pull_request import PullRequest
from pulseboard.models.sprint import Sprint
from pulseboard.models.sync_metadata import SyncMetadata

__all__ = [
    "CachedData",
    "PullRequest",
    "Sprint",
    "SyncMetadata",
]
