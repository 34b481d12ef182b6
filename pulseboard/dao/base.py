"""Generic base DAO — primary-key reads, counts, and batch-write helpers."""

from collections.abc import Iterator, Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pulseboard.core.database import Base

ModelT = TypeVar("ModelT", bound=Base)

# SQLite caps bound parameters per statement (32766 on modern builds);
# keep multi-row VALUES well below that.
BATCH_CHUNK_SIZE = 500


def chunked(rows: Sequence[dict[str, Any]], size: int = BATCH_CHUNK_SIZE) -> Iterator[list[dict[str, Any]]]:
    """Yield *rows* in lists of at most *size* items."""
    for start in range(0, len(rows), size):
        yield list(rows[start : start + size])


class BaseDAO(Generic[ModelT]):
    """Base data-access object. Subclasses set ``model`` class attribute.

    DAOs never open or commit transactions; callers wrap calls in
    ``async with session.begin()`` so a batch lands atomically.
    """

    model: type[ModelT]

    @staticmethod
    def _require_pk(pk: Any) -> None:
        """Raise ValueError if *pk* is None."""
        if pk is None:
            raise ValueError("pk must not be None")

    async def get_by_id(self, session: AsyncSession, pk: Any) -> ModelT | None:
        self._require_pk(pk)
        return await session.get(self.model, pk)

    async def get_by_field(self, session: AsyncSession, **filters: Any) -> ModelT | None:
        """Return the first row matching all *filters*, or None.

        Raises ``ValueError`` if called without any filters.
        """
        if not filters:
            raise ValueError("get_by_field() requires at least one filter")
        stmt = select(self.model)
        for key, val in filters.items():
            stmt = stmt.where(getattr(self.model, key) == val)
        result = await session.execute(stmt)
        return result.scalars().first()

    async def count(self, session: AsyncSession, query: Select | None = None) -> int:
        """Return the row count for *query*, or total rows if query is None."""
        if query is None:
            query = select(func.count()).select_from(self.model.__table__)
        else:
            query = select(func.count()).select_from(query.subquery())

        result = await session.execute(query)
        return result.scalar_one()
