"""SyncMetadataDAO — per-source sync status rows."""

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import AsyncSession

from pulseboard.core.database import utcnow
from pulseboard.dao.base import BaseDAO
from pulseboard.models.sync_metadata import SyncMetadata


class SyncMetadataDAO(BaseDAO[SyncMetadata]):
    model = SyncMetadata

    async def get(self, session: AsyncSession, source: str) -> SyncMetadata | None:
        # Core upserts bypass the identity map; always reload from the row.
        return await session.get(SyncMetadata, source, populate_existing=True)

    async def list_all(self, session: AsyncSession) -> list[SyncMetadata]:
        stmt = (
            select(SyncMetadata)
            .order_by(SyncMetadata.source)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def set_status(
        self,
        session: AsyncSession,
        source: str,
        status: str,
        error_msg: str | None = None,
        duration_ms: int | None = None,
    ) -> None:
        """Upsert the row for *source*; ``last_sync_at`` is always refreshed."""
        values = {
            "source": source,
            "last_sync_at": utcnow(),
            "status": status,
            "error_msg": error_msg,
            "duration_ms": duration_ms,
        }
        stmt = insert(SyncMetadata).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[SyncMetadata.source],
            set_={key: stmt.excluded[key] for key in values if key != "source"},
        )
        await session.execute(stmt)
