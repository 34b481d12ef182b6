"""Computed JSON blobs keyed by name."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Text
from sqlalchemy.orm import Mapped, mapped_column

from pulseboard.core.database import Base, UTCDateTime, utcnow

MEMBER_STATS_KEY = "member_stats"


class CachedData(Base):
    __tablename__ = "cached_data"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    data: Mapped[Any] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
