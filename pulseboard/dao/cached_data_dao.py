"""CachedDataDAO — computed JSON blobs."""

from typing import Any

from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import AsyncSession

from pulseboard.core.database import utcnow
from pulseboard.dao.base import BaseDAO
from pulseboard.models.cached_data import CachedData


class CachedDataDAO(BaseDAO[CachedData]):
    model = CachedData

    async def get(self, session: AsyncSession, key: str) -> Any | None:
        """Return the stored blob for *key*, or None."""
        row = await session.get(CachedData, key, populate_existing=True)
        return row.data if row is not None else None

    async def put(self, session: AsyncSession, key: str, data: Any) -> None:
        """Replace the blob stored under *key*."""
        stmt = insert(CachedData).values(key=key, data=data, updated_at=utcnow())
        stmt = stmt.on_conflict_do_update(
            index_elements=[CachedData.key],
            set_={"data": stmt.excluded.data, "updated_at": stmt.excluded.updated_at},
        )
        await session.execute(stmt)
