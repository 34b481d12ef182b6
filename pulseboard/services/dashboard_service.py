"""DashboardService — read facade over the cache, with freshness triggers."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import asdict
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from pulseboard.core.config import Settings
from pulseboard.dao.base import BaseDAO
from pulseboard.dao.cached_data_dao import CachedDataDAO
from pulseboard.dao.pull_request_dao import PullRequestDAO
from pulseboard.dao.sprint_dao import SprintDAO
from pulseboard.engines.analytics.pr_stats import calculate_pr_stats, prs_by_month
from pulseboard.engines.analytics.sprint_stats import calculate_sprint_stats
from pulseboard.engines.analytics.summary import calculate_summary
from pulseboard.engines.sync.models import ProgressEvent
from pulseboard.engines.sync.orchestrator import SyncOrchestrator
from pulseboard.models.cached_data import MEMBER_STATS_KEY
from pulseboard.models.pull_request import PullRequest
from pulseboard.models.sprint import Sprint
from pulseboard.models.sync_metadata import SYNC_SOURCES
from pulseboard.services import NotFoundError, ValidationError
from pulseboard.services.sync_status_service import SyncStatusService

log = structlog.get_logger("pulseboard.services")


class DashboardService:
    """Single entry point for dashboard reads and sync triggers."""

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        settings: Settings,
        pull_request_dao: PullRequestDAO,
        sprint_dao: SprintDAO,
        cached_data_dao: CachedDataDAO,
        status_service: SyncStatusService,
    ) -> None:
        self._orchestrator = orchestrator
        self._settings = settings
        self._pr_dao = pull_request_dao
        self._sprint_dao = sprint_dao
        self._cached_dao = cached_data_dao
        self._status = status_service
        self._source_daos: dict[str, BaseDAO[Any]] = {
            "github": pull_request_dao,
            "jira": sprint_dao,
        }

    # ── reads ─────────────────────────────────────────────────────────────

    async def get_data(self, session: AsyncSession) -> dict[str, Any]:
        """Cached PRs, sprints, member stats and analytics, plus sync status.

        Empty sources are synced first (blocking, or joining a sync already
        running) or in the background, depending on ``block_on_empty``;
        stale ones refresh in the background.
        """
        await self._ensure_fresh(session)

        prs = await self._pr_dao.list_all(session)
        sprints = await self._sprint_dao.list_all(session)
        members = await self._cached_dao.get(session, MEMBER_STATS_KEY) or []
        status = await self._status.describe(session)

        return {
            "pull_requests": prs,
            "sprints": sprints,
            "member_stats": members,
            "analytics": self._analytics(prs, sprints),
            "sync_status": {source: status[source] for source in SYNC_SOURCES},
        }

    async def _ensure_fresh(self, session: AsyncSession) -> None:
        for source in SYNC_SOURCES:
            metadata = await self._status.get(session, source)
            has_data = await self._source_daos[source].count(session) > 0
            never_succeeded = metadata is None or metadata.status != "success"

            if not has_data and never_succeeded:
                if self._settings.block_on_empty:
                    log.info("dashboard.blocking_sync", source=source)
                    await self._orchestrator.sync_or_wait(source)
                else:
                    log.info("dashboard.background_sync", source=source, reason="empty")
                    self._orchestrator.trigger_background(source)
            elif await self._status.is_stale(session, source):
                log.info("dashboard.background_sync", source=source, reason="stale")
                self._orchestrator.trigger_background(source)

    def _analytics(self, prs: list[PullRequest], sprints: list[Sprint]) -> dict[str, Any]:
        pivot = self._settings.pivot_date
        pr_stats = calculate_pr_stats(prs, pivot)
        sprint_stats = calculate_sprint_stats(sprints, pivot)
        summary = calculate_summary(pr_stats, sprint_stats, self._settings.hourly_rate)
        return {
            "pivot_date": pivot,
            "pr_stats": asdict(pr_stats),
            "prs_by_month": [asdict(month) for month in prs_by_month(prs)],
            "sprint_stats": asdict(sprint_stats),
            "summary": asdict(summary),
        }

    async def list_members(self, session: AsyncSession) -> list[dict[str, Any]]:
        return await self._cached_dao.get(session, MEMBER_STATS_KEY) or []

    async def get_member(self, session: AsyncSession, username: str) -> dict[str, Any]:
        """Return one member's stats by (case-insensitive) username.

        Raises :class:`NotFoundError` if the member is unknown.
        """
        wanted = username.lower()
        for member in await self.list_members(session):
            if member.get("username") == wanted:
                return member
        raise NotFoundError(f"member {username!r} not found")

    async def get_sync_status(self, session: AsyncSession) -> dict[str, Any]:
        return {
            "syncing": self._orchestrator.syncing(),
            "sources": await self._status.describe(session),
        }

    # ── sync triggers ─────────────────────────────────────────────────────

    def trigger_sync(self, source: str | None = None) -> dict[str, Any]:
        """Start a background sync and return immediately.

        Raises :class:`ValidationError` for an unknown source.
        """
        if source is not None and source not in SYNC_SOURCES:
            raise ValidationError(
                f"invalid source {source!r}; expected one of {', '.join(SYNC_SOURCES)}"
            )
        self._orchestrator.trigger_background(source)
        target = source or "all sources"
        return {
            "accepted": True,
            "message": f"Sync started for {target}",
            "syncing": self._orchestrator.syncing(),
        }

    def stream_sync(self) -> AsyncIterator[ProgressEvent]:
        return self._orchestrator.stream_sync_all()
