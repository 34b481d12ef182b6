"""SyncOrchestrator — source clients → DAO writes, status bookkeeping, progress."""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Coroutine
from dataclasses import asdict
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pulseboard.core.config import Settings
from pulseboard.dao.cached_data_dao import CachedDataDAO
from pulseboard.dao.pull_request_dao import PullRequestDAO
from pulseboard.dao.sprint_dao import SprintDAO
from pulseboard.dao.sync_metadata_dao import SyncMetadataDAO
from pulseboard.engines.analytics.members import compute_member_stats
from pulseboard.engines.sources.github_client import GitHubClient
from pulseboard.engines.sources.jira_client import JiraClient
from pulseboard.engines.sources.models import FetchedCommit, FetchedPullRequest
from pulseboard.engines.sync.guard import SyncGuard
from pulseboard.engines.sync.models import (
    COMPLETE_STEP,
    ProgressEvent,
    SourceSyncResult,
    SyncAllResult,
)
from pulseboard.models.cached_data import MEMBER_STATS_KEY
from pulseboard.models.sync_metadata import AGGREGATE_SOURCE, SYNC_SOURCES
from pulseboard.services.sync_status_service import SyncStatusService

log = structlog.get_logger("pulseboard.sync")

ProgressCallback = Callable[[ProgressEvent], Awaitable[None]]

_REVIEW_CONCURRENCY = 5


class SourceNotConfiguredError(RuntimeError):
    """Credentials for a source are missing."""


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _error_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


async def _no_progress(_event: ProgressEvent) -> None:
    return None


class SyncOrchestrator:
    """Runs per-source syncs under a :class:`SyncGuard`.

    Every sync writes ``in_progress`` first and ``success`` or ``error``
    last. Each DB write uses its own short-lived session, so a batch
    upsert commits entirely or not at all.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
        *,
        github_client: GitHubClient | None = None,
        jira_client: JiraClient | None = None,
        pull_request_dao: PullRequestDAO | None = None,
        sprint_dao: SprintDAO | None = None,
        sync_metadata_dao: SyncMetadataDAO | None = None,
        cached_data_dao: CachedDataDAO | None = None,
        status_service: SyncStatusService | None = None,
        guard: SyncGuard | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings
        self._github = github_client
        self._jira = jira_client
        self._pr_dao = pull_request_dao or PullRequestDAO()
        self._sprint_dao = sprint_dao or SprintDAO()
        self._metadata_dao = sync_metadata_dao or SyncMetadataDAO()
        self._cached_dao = cached_data_dao or CachedDataDAO()
        self._status = status_service or SyncStatusService(
            self._metadata_dao, settings.stale_hours
        )
        self.guard = guard or SyncGuard()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._runners: dict[str, Callable[[], Awaitable[tuple[int, str]]]] = {
            "github": self._sync_github,
            "jira": self._sync_jira,
        }

    # ── per-source sync ───────────────────────────────────────────────────

    async def sync_github(self) -> SourceSyncResult:
        return await self.sync_source("github")

    async def sync_jira(self) -> SourceSyncResult:
        return await self.sync_source("jira")

    async def sync_source(self, source: str) -> SourceSyncResult:
        """Sync one source; failures become an ``error`` result, never an exception."""
        self._check_source(source)
        if not self.guard.try_acquire(source):
            return self._skipped(source)
        return await self._run_acquired(source)

    async def sync_or_wait(self, source: str) -> SourceSyncResult | None:
        """Sync *source*, or wait for the sync already running to finish.

        Returns None when it joined a running sync.
        """
        self._check_source(source)
        if self.guard.try_acquire(source):
            return await self._run_acquired(source)
        log.info("sync.waiting", source=source)
        await self.guard.wait_released(source)
        return None

    def _check_source(self, source: str) -> None:
        if source not in self._runners:
            raise ValueError(f"unknown sync source: {source!r}")

    @staticmethod
    def _skipped(source: str) -> SourceSyncResult:
        log.info("sync.skipped", source=source, reason="already_running")
        return SourceSyncResult(
            source=source, status="skipped", message=f"{source} sync already in progress"
        )

    async def _run_acquired(self, source: str) -> SourceSyncResult:
        """Run a sync whose guard the caller already holds; releases it."""
        started = time.perf_counter()
        log.info("sync.started", source=source)
        try:
            await self._set_status(source, "in_progress")
            items, message = await self._runners[source]()
            duration_ms = _elapsed_ms(started)
            await self._set_status(source, "success", duration_ms=duration_ms)
            log.info(
                "sync.completed",
                source=source,
                items=items,
                duration_ms=duration_ms,
            )
            return SourceSyncResult(
                source=source,
                status="success",
                message=message,
                duration_ms=duration_ms,
                items=items,
            )
        except Exception as exc:
            duration_ms = _elapsed_ms(started)
            message = _error_message(exc)
            log.exception("sync.failed", source=source, duration_ms=duration_ms)
            await self._record_error(source, message, duration_ms)
            return SourceSyncResult(
                source=source, status="error", message=message, duration_ms=duration_ms
            )
        finally:
            self.guard.release(source)

    async def _sync_github(self) -> tuple[int, str]:
        client = self._github
        if client is None:
            raise SourceNotConfiguredError("GitHub token is not configured")
        repos = self._settings.github_repos

        async with self._session_factory() as session:
            known_reviews = await self._pr_dao.review_index(session)

        fetched: list[FetchedPullRequest] = []
        for owner, repo in repos:
            prs = await client.fetch_pull_requests(owner, repo)
            await self._fill_first_reviews(client, owner, repo, prs, known_reviews)
            fetched.extend(prs)

        async with self._session_factory() as session:
            async with session.begin():
                written = await self._pr_dao.batch_upsert(session, [asdict(pr) for pr in fetched])

        message = f"Synced {written} pull requests from {len(repos)} repositories"
        if self._settings.member_stats_enabled:
            members = await self._refresh_member_stats(client)
            message += f", {members} members"
        return written, message

    async def _fill_first_reviews(
        self,
        client: GitHubClient,
        owner: str,
        repo: str,
        prs: list[FetchedPullRequest],
        known_reviews: dict[tuple[str, int], Any],
    ) -> None:
        """Look up reviews only for PRs that are new or still lack a review time."""
        pending = [pr for pr in prs if known_reviews.get((pr.repo_name, pr.number)) is None]
        if not pending:
            return
        sem = asyncio.Semaphore(_REVIEW_CONCURRENCY)

        async def _fill(pr: FetchedPullRequest) -> None:
            async with sem:
                pr.first_review_at = await client.first_review_at(owner, repo, pr.number)

        await asyncio.gather(*[_fill(pr) for pr in pending])
        log.info("github.reviews_checked", repo=f"{owner}/{repo}", count=len(pending))

    async def _refresh_member_stats(self, client: GitHubClient) -> int:
        commits: list[FetchedCommit] = []
        for owner, repo in self._settings.github_repos:
            commits.extend(await client.fetch_commits(owner, repo))

        async with self._session_factory() as session:
            async with session.begin():
                prs = await self._pr_dao.list_all(session)
                members = compute_member_stats(commits, prs, self._settings.pivot_date)
                await self._cached_dao.put(
                    session, MEMBER_STATS_KEY, [member.to_dict() for member in members]
                )
        log.info("github.member_stats_updated", members=len(members), commits=len(commits))
        return len(members)

    async def _sync_jira(self) -> tuple[int, str]:
        client = self._jira
        if client is None:
            raise SourceNotConfiguredError("Jira credentials are not configured")

        sprints = await client.fetch_sprints_with_issues(self._settings.jira_project_key)
        if not sprints:
            return 0, "No boards or sprints found"

        async with self._session_factory() as session:
            async with session.begin():
                written = await self._sprint_dao.batch_upsert(
                    session, [asdict(sprint) for sprint in sprints]
                )
        return written, f"Synced {written} sprints"

    # ── status bookkeeping ────────────────────────────────────────────────

    async def _set_status(
        self,
        source: str,
        status: str,
        error_msg: str | None = None,
        duration_ms: int | None = None,
    ) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await self._metadata_dao.set_status(
                    session, source, status, error_msg=error_msg, duration_ms=duration_ms
                )

    async def _record_error(self, source: str, message: str, duration_ms: int) -> None:
        try:
            await self._set_status(source, "error", error_msg=message, duration_ms=duration_ms)
        except Exception:
            log.exception("sync.status_write_failed", source=source)

    # ── full run ──────────────────────────────────────────────────────────

    async def sync_all(self, progress: ProgressCallback | None = None) -> SyncAllResult:
        """Sync every source in order, then emit one completion event.

        One source failing does not stop the others. The aggregate is
        ``success`` only when every source synced in this run; failures are
        listed in ``errors`` and skipped sources appear in ``results``.
        """
        return await self._sync_all(progress)

    async def _sync_all(
        self, progress: ProgressCallback | None = None, *, held: str | None = None
    ) -> SyncAllResult:
        """``held`` names a source whose guard the caller already acquired."""
        emit = progress or _no_progress
        started = time.perf_counter()
        results: list[SourceSyncResult] = []
        errors: list[dict[str, str]] = []

        for source in SYNC_SOURCES:
            await emit(ProgressEvent(step=source, status="syncing", message=f"Syncing {source}"))
            if source == held:
                result = await self._run_acquired(source)
            else:
                result = await self.sync_source(source)
            results.append(result)
            if result.status == "error":
                errors.append({"source": source, "message": result.message})
            step_status = "done" if result.status == "success" else result.status
            await emit(ProgressEvent(step=source, status=step_status, message=result.message))

        skipped = [r.source for r in results if r.status == "skipped"]
        if errors:
            final_message = "Sync completed with errors"
        elif skipped:
            final_message = f"Sync completed; already in progress: {', '.join(skipped)}"
        else:
            final_message = "Sync completed"

        aggregate = SyncAllResult(
            status="partial" if errors or skipped else "success",
            errors=errors,
            results=results,
            duration_ms=_elapsed_ms(started),
        )
        try:
            await self._set_status(
                AGGREGATE_SOURCE,
                aggregate.status,
                error_msg=json.dumps(errors) if errors else None,
                duration_ms=aggregate.duration_ms,
            )
        except Exception:
            log.exception("sync.status_write_failed", source=AGGREGATE_SOURCE)

        log.info(
            "sync.all_completed", status=aggregate.status, errors=len(errors), skipped=skipped
        )
        await emit(
            ProgressEvent(
                step=COMPLETE_STEP,
                status="error" if errors else "done",
                message=final_message,
                result=aggregate.to_dict(),
            )
        )
        return aggregate

    async def stream_sync_all(self) -> AsyncIterator[ProgressEvent]:
        """Yield progress events of a full run as they happen.

        The run itself is a background task; closing this iterator early
        leaves it running to completion.
        """
        queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()

        async def _run() -> None:
            try:
                await self.sync_all(progress=queue.put)
            finally:
                queue.put_nowait(None)

        self._spawn(_run(), name="sync-stream")
        while True:
            event = await queue.get()
            if event is None:
                return
            yield event

    # ── background / staleness ────────────────────────────────────────────

    def trigger_background(self, source: str | None = None) -> asyncio.Task[Any]:
        """Start a sync without waiting; ``None`` means every source.

        The guard of the source that runs first is taken before returning,
        so :meth:`syncing` already reports it.
        """
        if source is None:
            first = SYNC_SOURCES[0]
            held = first if self.guard.try_acquire(first) else None
            return self._spawn(self._sync_all(held=held), name="sync-all")
        self._check_source(source)
        if self.guard.try_acquire(source):
            return self._spawn(self._run_acquired(source), name=f"sync-{source}")
        return self._spawn(self.sync_source(source), name=f"sync-{source}")

    def _spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        task = asyncio.create_task(self._log_failures(coro, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @staticmethod
    async def _log_failures(coro: Coroutine[Any, Any, Any], name: str) -> Any:
        try:
            return await coro
        except Exception:
            log.exception("sync.background_failed", task=name)
            return None

    async def is_stale(self, source: str) -> bool:
        """Staleness check in its own session; never raises."""
        try:
            async with self._session_factory() as session:
                return await self._status.is_stale(session, source)
        except Exception as exc:
            log.warning("sync.stale_check_failed", source=source, error=str(exc))
            return True

    async def refresh_stale(self) -> int:
        """Sync every stale, idle source in turn; returns how many ran."""
        ran = 0
        for source in SYNC_SOURCES:
            if self.guard.is_syncing(source) or not await self.is_stale(source):
                continue
            result = await self.sync_source(source)
            if result.status != "skipped":
                ran += 1
        return ran

    def is_syncing(self, source: str | None = None) -> bool:
        if source is None:
            return any(self.guard.snapshot().values())
        return self.guard.is_syncing(source)

    def syncing(self) -> dict[str, bool]:
        return self.guard.snapshot()

    async def wait_idle(self) -> None:
        """Wait for all background tasks spawned so far."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.wait_idle()
        self._tasks.clear()
