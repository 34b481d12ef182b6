"""Data models for the sync orchestrator."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

ProgressStatus = Literal["syncing", "done", "error"]
SourceStatus = Literal["success", "error", "skipped"]

COMPLETE_STEP = "complete"


@dataclass
class ProgressEvent:
    """One step notification; the final event has ``step == "complete"``."""

    step: str
    status: ProgressStatus
    message: str = ""
    result: dict[str, Any] | None = None

    @property
    def is_complete(self) -> bool:
        return self.step == COMPLETE_STEP

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SourceSyncResult:
    """Outcome of syncing a single source."""

    source: str
    status: SourceStatus
    message: str = ""
    duration_ms: int | None = None
    items: int = 0


@dataclass
class SyncAllResult:
    """Aggregate of a full run; ``partial`` when any source failed."""

    status: Literal["success", "partial"]
    errors: list[dict[str, str]] = field(default_factory=list)
    results: list[SourceSyncResult] = field(default_factory=list)
    duration_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
