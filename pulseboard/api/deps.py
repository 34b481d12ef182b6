"""Dependency injection — session, sync runtime and service singletons."""

from __future__ import annotations

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from pulseboard.core.config import Settings, get_settings
from pulseboard.core.database import create_engine
from pulseboard.dao.cached_data_dao import CachedDataDAO
from pulseboard.dao.pull_request_dao import PullRequestDAO
from pulseboard.dao.sprint_dao import SprintDAO
from pulseboard.dao.sync_metadata_dao import SyncMetadataDAO
from pulseboard.engines.sources.github_client import GitHubClient
from pulseboard.engines.sources.jira_client import JiraClient
from pulseboard.engines.sync.orchestrator import SyncOrchestrator
from pulseboard.services.dashboard_service import DashboardService
from pulseboard.services.sync_status_service import SyncStatusService

# ---------------------------------------------------------------------------
# DAO singletons
# ---------------------------------------------------------------------------
_pull_request_dao = PullRequestDAO()
_sprint_dao = SprintDAO()
_sync_metadata_dao = SyncMetadataDAO()
_cached_data_dao = CachedDataDAO()

# ---------------------------------------------------------------------------
# Engine / session factory / sync runtime (initialised by app lifespan)
# ---------------------------------------------------------------------------
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None
_github_client: GitHubClient | None = None
_jira_client: JiraClient | None = None
_orchestrator: SyncOrchestrator | None = None
_dashboard_service: DashboardService | None = None


def init_session_factory(database_url: str | None = None) -> async_sessionmaker[AsyncSession]:
    """Create the async engine and session factory. Called once at startup."""
    global _engine, _session_factory  # noqa: PLW0603
    _engine = create_engine(database_url or get_settings().database_url)
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    return _session_factory


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError("call init_session_factory() first")
    return _engine


async def dispose_engine() -> None:
    """Dispose the async engine, closing all pooled connections."""
    global _engine  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def init_services(
    settings: Settings, session_factory: async_sessionmaker[AsyncSession]
) -> SyncOrchestrator:
    """Build source clients, the orchestrator and the dashboard facade.

    A client is only created when its credentials are configured; syncing
    an unconfigured source records an ``error`` status.
    """
    global _github_client, _jira_client, _orchestrator, _dashboard_service  # noqa: PLW0603
    _github_client = GitHubClient(settings.github_token) if settings.github_configured else None
    _jira_client = (
        JiraClient(
            settings.jira_base_url,
            settings.jira_api_token,
            email=settings.jira_email,
            story_point_fields=settings.story_point_fields,
        )
        if settings.jira_configured
        else None
    )
    status_service = SyncStatusService(_sync_metadata_dao, settings.stale_hours)
    _orchestrator = SyncOrchestrator(
        session_factory,
        settings,
        github_client=_github_client,
        jira_client=_jira_client,
        pull_request_dao=_pull_request_dao,
        sprint_dao=_sprint_dao,
        sync_metadata_dao=_sync_metadata_dao,
        cached_data_dao=_cached_data_dao,
        status_service=status_service,
    )
    _dashboard_service = DashboardService(
        _orchestrator,
        settings,
        _pull_request_dao,
        _sprint_dao,
        _cached_data_dao,
        status_service,
    )
    return _orchestrator


async def shutdown_services() -> None:
    """Cancel background syncs and close the source clients."""
    global _github_client, _jira_client, _orchestrator, _dashboard_service  # noqa: PLW0603
    if _orchestrator is not None:
        await _orchestrator.shutdown()
    for client in (_github_client, _jira_client):
        if client is not None:
            await client.close()
    _github_client = _jira_client = None
    _orchestrator = None
    _dashboard_service = None


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a per-request session with automatic commit/rollback."""
    if _session_factory is None:
        raise RuntimeError("call init_session_factory() before handling requests")
    async with _session_factory() as session:
        async with session.begin():
            yield session


# ---------------------------------------------------------------------------
# Service getters (for Depends())
# ---------------------------------------------------------------------------


def get_dashboard_service() -> DashboardService:
    if _dashboard_service is None:
        raise RuntimeError("call init_services() before handling requests")
    return _dashboard_service
