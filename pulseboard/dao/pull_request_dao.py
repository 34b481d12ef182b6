"""PullRequestDAO — pull_requests table operations."""

from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import AsyncSession

from pulseboard.core.database import utcnow
from pulseboard.dao.base import BaseDAO, chunked
from pulseboard.models.pull_request import PullRequest


class PullRequestDAO(BaseDAO[PullRequest]):
    model = PullRequest

    # ── read ──────────────────────────────────────────────────────────────

    async def list_all(self, session: AsyncSession) -> list[PullRequest]:
        """Return every PR, newest first."""
        stmt = (
            select(PullRequest)
            .order_by(PullRequest.created_at.desc(), PullRequest.id.desc())
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def review_index(self, session: AsyncSession) -> dict[tuple[str, int], datetime | None]:
        """Map ``(repo_name, number)`` to the stored ``first_review_at``.

        Lets the sync skip review fetches for PRs that already have one.
        """
        stmt = select(PullRequest.repo_name, PullRequest.number, PullRequest.first_review_at)
        result = await session.execute(stmt)
        return {(row.repo_name, row.number): row.first_review_at for row in result}

    # ── write ─────────────────────────────────────────────────────────────

    async def batch_upsert(self, session: AsyncSession, rows: list[dict[str, Any]]) -> int:
        """Insert or update PRs keyed by ``(repo_name, number)``.

        On conflict only the mutable columns change; ``id``, ``created_at``
        and ``author_login`` keep their first-seen values. ``first_review_at``
        is COALESCEd so a known review time is never reset to NULL.
        Returns the number of rows written.
        """
        if not rows:
            return 0

        synced_at = utcnow()
        written = 0
        for chunk in chunked([{**row, "synced_at": synced_at} for row in rows]):
            stmt = insert(PullRequest).values(chunk)
            stmt = stmt.on_conflict_do_update(
                index_elements=[PullRequest.repo_name, PullRequest.number],
                set_={
                    "title": stmt.excluded.title,
                    "state": stmt.excluded.state,
                    "merged_at": stmt.excluded.merged_at,
                    "first_review_at": func.coalesce(
                        stmt.excluded.first_review_at, PullRequest.first_review_at
                    ),
                    "raw_payload": stmt.excluded.raw_payload,
                    "synced_at": stmt.excluded.synced_at,
                },
            )
            await session.execute(stmt)
            written += len(chunk)
        return written
