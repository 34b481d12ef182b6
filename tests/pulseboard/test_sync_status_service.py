"""Tests for staleness evaluation and status reporting."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy.exc import OperationalError

from pulseboard.dao.sync_metadata_dao import SyncMetadataDAO
from pulseboard.models.sync_metadata import SyncMetadata
from pulseboard.services.sync_status_service import SyncStatusService, is_stale

NOW = datetime(2025, 8, 1, 12, 0, tzinfo=timezone.utc)


def _meta(hours_ago: float, status: str = "success") -> SyncMetadata:
    return SyncMetadata(
        source="github", status=status, last_sync_at=NOW - timedelta(hours=hours_ago)
    )


class TestIsStale:
    def test_older_than_window(self):
        assert is_stale(_meta(7), 6, NOW) is True

    def test_within_window(self):
        assert is_stale(_meta(5), 6, NOW) is False

    def test_missing_row(self):
        assert is_stale(None, 6, NOW) is True

    def test_exact_boundary_is_fresh(self):
        assert is_stale(_meta(6), 6, NOW) is False


class TestSyncStatusService:
    async def test_is_stale_reads_store(self, session):
        dao = SyncMetadataDAO()
        svc = SyncStatusService(dao, stale_hours=6)
        assert await svc.is_stale(session, "github") is True
        await dao.set_status(session, "github", "success")
        assert await svc.is_stale(session, "github") is False
        later = datetime.now(timezone.utc) + timedelta(hours=7)
        assert await svc.is_stale(session, "github", now=later) is True

    async def test_storage_error_counts_as_stale(self):
        dao = MagicMock()
        dao.get = AsyncMock(side_effect=OperationalError("stmt", {}, Exception("locked")))
        svc = SyncStatusService(dao)
        assert await svc.is_stale(MagicMock(), "github") is True

    async def test_describe(self, session):
        dao = SyncMetadataDAO()
        await dao.set_status(session, "github", "error", error_msg="boom", duration_ms=40)
        await dao.set_status(
            session, "all", "partial", error_msg='[{"source": "github", "message": "boom"}]'
        )
        status = await SyncStatusService(dao).describe(session)

        assert set(status) == {"github", "jira", "all"}
        assert status["github"]["status"] == "error"
        assert status["github"]["error_msg"] == "boom"
        assert status["github"]["is_stale"] is False
        assert status["jira"]["status"] == "never"
        assert status["jira"]["is_stale"] is True
        assert status["all"]["errors"] == [{"source": "github", "message": "boom"}]
