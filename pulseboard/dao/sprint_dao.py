"""SprintDAO — sprints table operations."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import AsyncSession

from pulseboard.core.database import utcnow
from pulseboard.dao.base import BaseDAO, chunked
from pulseboard.models.sprint import Sprint

_MUTABLE_COLUMNS = (
    "board_id",
    "name",
    "state",
    "start_date",
    "end_date",
    "complete_date",
    "committed_points",
    "completed_points",
    "issue_count",
    "raw_payload",
    "synced_at",
)


class SprintDAO(BaseDAO[Sprint]):
    model = Sprint

    async def list_all(self, session: AsyncSession) -> list[Sprint]:
        """Return every sprint ordered by start date (oldest first)."""
        stmt = (
            select(Sprint)
            .order_by(Sprint.start_date.asc(), Sprint.id.asc())
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def batch_upsert(self, session: AsyncSession, rows: list[dict[str, Any]]) -> int:
        """Insert or fully overwrite sprints keyed by ``id``."""
        if not rows:
            return 0

        synced_at = utcnow()
        written = 0
        for chunk in chunked([{**row, "synced_at": synced_at} for row in rows]):
            stmt = insert(Sprint).values(chunk)
            stmt = stmt.on_conflict_do_update(
                index_elements=[Sprint.id],
                set_={col: stmt.excluded[col] for col in _MUTABLE_COLUMNS},
            )
            await session.execute(stmt)
            written += len(chunk)
        return written
