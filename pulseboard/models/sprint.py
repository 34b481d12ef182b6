"""sprints table."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, BigInteger, Double, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from pulseboard.core.database import Base, UTCDateTime, utcnow


class Sprint(Base):
    __tablename__ = "sprints"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    board_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    state: Mapped[str] = mapped_column(Text, nullable=False)
    start_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    end_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    complete_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    committed_points: Mapped[float] = mapped_column(Double, nullable=False, default=0.0)
    completed_points: Mapped[float] = mapped_column(Double, nullable=False, default=0.0)
    issue_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    raw_payload: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)
    synced_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (Index("idx_sprints_start", "start_date"),)

    @property
    def completion_rate(self) -> float:
        """Completed / committed points as a percentage (0 when nothing was committed)."""
        if not self.committed_points:
            return 0.0
        return self.completed_points / self.committed_points * 100
