"""Tests for the DashboardService facade (real store, mocked orchestrator)."""

from __future__ import annotations

import asyncio
import dataclasses
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import update

from pulseboard.dao.cached_data_dao import CachedDataDAO
from pulseboard.dao.pull_request_dao import PullRequestDAO
from pulseboard.dao.sprint_dao import SprintDAO
from pulseboard.dao.sync_metadata_dao import SyncMetadataDAO
from pulseboard.engines.sources.models import FetchedPullRequest
from pulseboard.engines.sync.orchestrator import SyncOrchestrator
from pulseboard.models.sync_metadata import SyncMetadata
from pulseboard.services import NotFoundError, ValidationError
from pulseboard.services.dashboard_service import DashboardService
from pulseboard.services.sync_status_service import SyncStatusService

CREATED = datetime(2025, 8, 1, tzinfo=timezone.utc)


def _make_orchestrator() -> MagicMock:
    orch = MagicMock()
    orch.sync_or_wait = AsyncMock()
    orch.trigger_background = MagicMock()
    orch.syncing = MagicMock(return_value={"github": False, "jira": False})
    orch.stream_sync_all = MagicMock()
    return orch


def _make_service(settings, orch=None) -> DashboardService:
    return DashboardService(
        orch or _make_orchestrator(),
        settings,
        PullRequestDAO(),
        SprintDAO(),
        CachedDataDAO(),
        SyncStatusService(SyncMetadataDAO(), settings.stale_hours),
    )


async def _seed(session) -> None:
    await PullRequestDAO().batch_upsert(
        session,
        [
            {
                "id": 1,
                "number": 1,
                "repo_name": "acme/web",
                "title": "first",
                "state": "closed",
                "author_login": "alice",
                "created_at": CREATED,
                "merged_at": CREATED + timedelta(hours=48),
                "first_review_at": None,
                "raw_payload": {},
            }
        ],
    )
    await SprintDAO().batch_upsert(
        session,
        [
            {
                "id": 5,
                "board_id": 1,
                "name": "S5",
                "state": "closed",
                "start_date": CREATED,
                "end_date": CREATED + timedelta(days=14),
                "complete_date": None,
                "committed_points": 20.0,
                "completed_points": 15.0,
                "issue_count": 3,
                "raw_payload": {},
            }
        ],
    )
    await CachedDataDAO().put(session, "member_stats", [{"username": "alice"}])
    meta = SyncMetadataDAO()
    await meta.set_status(session, "github", "success")
    await meta.set_status(session, "jira", "success")


class TestGetData:
    async def test_fresh_data_no_sync(self, session, settings):
        await _seed(session)
        orch = _make_orchestrator()
        svc = _make_service(settings, orch)

        data = await svc.get_data(session)

        orch.trigger_background.assert_not_called()
        orch.sync_or_wait.assert_not_awaited()
        assert [pr.number for pr in data["pull_requests"]] == [1]
        assert [s.id for s in data["sprints"]] == [5]
        assert data["member_stats"] == [{"username": "alice"}]
        assert data["analytics"]["pr_stats"]["avg_merge_time_after"] == pytest.approx(48.0)
        assert data["analytics"]["sprint_stats"]["avg_completion_after"] == 75.0
        assert data["sync_status"]["github"]["is_stale"] is False
        assert set(data["sync_status"]) == {"github", "jira"}

    async def test_empty_store_triggers_background(self, session, settings):
        orch = _make_orchestrator()
        svc = _make_service(settings, orch)

        data = await svc.get_data(session)

        assert [c.args for c in orch.trigger_background.call_args_list] == [("github",), ("jira",)]
        orch.sync_or_wait.assert_not_awaited()
        assert data["pull_requests"] == []
        assert data["sync_status"]["jira"]["is_stale"] is True

    async def test_empty_store_blocks_when_configured(self, session, settings):
        orch = _make_orchestrator()
        svc = _make_service(dataclasses.replace(settings, block_on_empty=True), orch)

        await svc.get_data(session)

        assert [c.args for c in orch.sync_or_wait.await_args_list] == [("github",), ("jira",)]
        orch.trigger_background.assert_not_called()

    async def test_stale_triggers_background(self, session, settings):
        await _seed(session)
        await session.execute(
            update(SyncMetadata).values(last_sync_at=datetime.now(timezone.utc) - timedelta(hours=7))
        )
        orch = _make_orchestrator()
        svc = _make_service(settings, orch)

        await svc.get_data(session)

        assert orch.trigger_background.call_count == 2


class TestMembers:
    async def test_get_member_case_insensitive(self, session, settings):
        await CachedDataDAO().put(session, "member_stats", [{"username": "alice"}])
        svc = _make_service(settings)
        assert await svc.get_member(session, "Alice") == {"username": "alice"}

    async def test_unknown_member(self, session, settings):
        svc = _make_service(settings)
        with pytest.raises(NotFoundError):
            await svc.get_member(session, "nobody")

    async def test_list_members_empty(self, session, settings):
        assert await _make_service(settings).list_members(session) == []


class TestTriggerSync:
    def test_invalid_source(self, settings):
        orch = _make_orchestrator()
        svc = _make_service(settings, orch)
        with pytest.raises(ValidationError):
            svc.trigger_sync("gitlab")
        orch.trigger_background.assert_not_called()

    def test_single_source(self, settings):
        orch = _make_orchestrator()
        result = _make_service(settings, orch).trigger_sync("jira")
        orch.trigger_background.assert_called_once_with("jira")
        assert result["accepted"] is True
        assert result["syncing"] == {"github": False, "jira": False}

    def test_all_sources(self, settings):
        orch = _make_orchestrator()
        _make_service(settings, orch).trigger_sync()
        orch.trigger_background.assert_called_once_with(None)


class TestSyncStatus:
    async def test_get_sync_status(self, session, settings):
        await SyncMetadataDAO().set_status(session, "github", "in_progress")
        result = await _make_service(settings).get_sync_status(session)
        assert result["syncing"] == {"github": False, "jira": False}
        assert result["sources"]["github"]["status"] == "in_progress"
        assert result["sources"]["jira"]["status"] == "never"


# ── against a real orchestrator ───────────────────────────────────────────


def _slow_clients(release: asyncio.Event) -> tuple[MagicMock, MagicMock]:
    async def fetch_prs(owner, repo):
        await release.wait()
        return [
            FetchedPullRequest(
                id=555,
                number=7,
                repo_name="acme/web",
                title="Add login",
                state="open",
                author_login="alice",
                created_at=CREATED,
            )
        ]

    github = MagicMock()
    github.fetch_pull_requests = AsyncMock(side_effect=fetch_prs)
    github.first_review_at = AsyncMock(return_value=None)
    github.fetch_commits = AsyncMock(return_value=[])
    jira = MagicMock()
    jira.fetch_sprints_with_issues = AsyncMock(return_value=[])
    return github, jira


def _real_service(session_factory, settings, release):
    github, jira = _slow_clients(release)
    orch = SyncOrchestrator(session_factory, settings, github_client=github, jira_client=jira)
    return orch, _make_service(settings, orch), github


class TestWithRunningSync:
    async def test_trigger_reports_started_source(self, session_factory, settings):
        release = asyncio.Event()
        orch, svc, _ = _real_service(session_factory, settings, release)

        result = svc.trigger_sync("github")

        assert result["syncing"] == {"github": True, "jira": False}
        release.set()
        await orch.wait_idle()
        assert orch.syncing() == {"github": False, "jira": False}

    async def test_trigger_all_reports_first_source(self, session_factory, settings):
        release = asyncio.Event()
        orch, svc, _ = _real_service(session_factory, settings, release)

        result = svc.trigger_sync()

        assert result["syncing"]["github"] is True
        release.set()
        await orch.wait_idle()

    async def test_blocking_read_joins_running_sync(self, session_factory, settings):
        release = asyncio.Event()
        blocking = dataclasses.replace(settings, block_on_empty=True)
        orch, svc, github = _real_service(session_factory, blocking, release)

        orch.trigger_background("github")
        loop = asyncio.get_running_loop()
        loop.call_later(0.05, release.set)

        async with session_factory() as session:
            data = await asyncio.wait_for(svc.get_data(session), timeout=2.0)

        assert [pr.number for pr in data["pull_requests"]] == [7]
        assert github.fetch_pull_requests.await_count == 1
        await orch.wait_idle()
