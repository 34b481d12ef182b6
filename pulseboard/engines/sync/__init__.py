"""Guarded per-source syncs with progress reporting."""

from pulseboard.engines.sync.guard import SyncGuard
from pulseboard.engines.sync.models import ProgressEvent, SourceSyncResult, SyncAllResult
from pulseboard.engines.sync.orchestrator import SourceNotConfiguredError, SyncOrchestrator

__all__ = [
    "ProgressEvent",
    "SourceNotConfiguredError",
    "SourceSyncResult",
    "SyncAllResult",
    "SyncGuard",
    "SyncOrchestrator",
]
