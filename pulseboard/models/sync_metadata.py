"""One sync status row per source."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from pulseboard.core.database import Base, UTCDateTime

SYNC_SOURCES = ("github", "jira")
AGGREGATE_SOURCE = "all"

SYNC_STATUSES = ("never", "pending", "in_progress", "success", "partial", "error")


class SyncMetadata(Base):
    __tablename__ = "sync_metadata"

    source: Mapped[str] = mapped_column(Text, primary_key=True)
    last_sync_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    error_msg: Mapped[Optional[str]] = mapped_column(Text)
    duration_ms: Mapped[Optional[int]] = mapped_column(Integer)
