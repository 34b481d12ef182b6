"""pull_requests table."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, BigInteger, Index, Integer, Text, desc
from sqlalchemy.orm import Mapped, mapped_column

from pulseboard.core.database import Base, UTCDateTime, utcnow


class PullRequest(Base):
    __tablename__ = "pull_requests"

    repo_name: Mapped[str] = mapped_column(Text, primary_key=True)
    number: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    # GitHub's global PR id; stored and indexed, not unique.
    id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    state: Mapped[str] = mapped_column(Text, nullable=False)
    author_login: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    merged_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    first_review_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    raw_payload: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)
    synced_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_pull_requests_github_id", "id"),
        Index("idx_pull_requests_created", desc("created_at")),
    )
