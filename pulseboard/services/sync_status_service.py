"""SyncStatusService — staleness checks and status reporting per source."""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pulseboard.core.database import utcnow
from pulseboard.dao.sync_metadata_dao import SyncMetadataDAO
from pulseboard.models.sync_metadata import AGGREGATE_SOURCE, SYNC_SOURCES, SyncMetadata

log = structlog.get_logger("pulseboard.services")

DEFAULT_STALE_HOURS = 6.0


def is_stale(
    metadata: SyncMetadata | None, stale_hours: float, now: datetime | None = None
) -> bool:
    """True when no sync was ever recorded or the last one is older than the window."""
    if metadata is None or metadata.last_sync_at is None:
        return True
    now = now or utcnow()
    return now - metadata.last_sync_at > timedelta(hours=stale_hours)


class SyncStatusService:
    def __init__(
        self, sync_metadata_dao: SyncMetadataDAO, stale_hours: float = DEFAULT_STALE_HOURS
    ) -> None:
        self._dao = sync_metadata_dao
        self._stale_hours = stale_hours

    @property
    def stale_hours(self) -> float:
        return self._stale_hours

    async def get(self, session: AsyncSession, source: str) -> SyncMetadata | None:
        return await self._dao.get(session, source)

    async def is_stale(
        self, session: AsyncSession, source: str, now: datetime | None = None
    ) -> bool:
        """Staleness of *source*; a storage failure counts as stale."""
        try:
            metadata = await self._dao.get(session, source)
        except SQLAlchemyError as exc:
            log.warning("sync_status.read_failed", source=source, error=str(exc))
            return True
        return is_stale(metadata, self._stale_hours, now)

    async def describe(
        self, session: AsyncSession, now: datetime | None = None
    ) -> dict[str, dict[str, Any]]:
        """Status of every source plus the aggregate run, keyed by source name.

        Sources that never synced are reported with status ``never``.
        """
        now = now or utcnow()
        rows = {row.source: row for row in await self._dao.list_all(session)}
        result: dict[str, dict[str, Any]] = {}
        for source in (*SYNC_SOURCES, AGGREGATE_SOURCE):
            row = rows.get(source)
            result[source] = {
                "source": source,
                "status": row.status if row else "never",
                "last_sync_at": row.last_sync_at if row else None,
                "error_msg": row.error_msg if row else None,
                "errors": _aggregate_errors(row) if source == AGGREGATE_SOURCE else [],
                "duration_ms": row.duration_ms if row else None,
                "is_stale": is_stale(row, self._stale_hours, now),
            }
        return result


def _aggregate_errors(row: SyncMetadata | None) -> list[dict[str, str]]:
    """Decode the ``[{source, message}]`` list stored on the aggregate row."""
    if row is None or not row.error_msg:
        return []
    try:
        errors = json.loads(row.error_msg)
    except ValueError:
        return [{"source": AGGREGATE_SOURCE, "message": row.error_msg}]
    return errors if isinstance(errors, list) else []
