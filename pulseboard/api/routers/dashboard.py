"""Dashboard router — cached data, sync triggers, progress stream, members."""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from pulseboard.api.deps import get_dashboard_service, get_session
from pulseboard.api.schemas.dashboard import (
    DashboardDataResponse,
    MemberStatsItem,
    ProgressEvent,
    SyncAcceptedResponse,
    SyncRequest,
    SyncStatusResponse,
)
from pulseboard.services.dashboard_service import DashboardService

router = APIRouter()


@router.get("/data", response_model=DashboardDataResponse)
async def get_data(
    session: AsyncSession = Depends(get_session),
    svc: DashboardService = Depends(get_dashboard_service),
) -> DashboardDataResponse:
    result = await svc.get_data(session)
    return DashboardDataResponse.model_validate(result)


@router.post("/sync", response_model=SyncAcceptedResponse, status_code=status.HTTP_202_ACCEPTED)
async def trigger_sync(
    body: SyncRequest | None = Body(None),
    svc: DashboardService = Depends(get_dashboard_service),
) -> SyncAcceptedResponse:
    result = svc.trigger_sync(body.source if body else None)
    return SyncAcceptedResponse.model_validate(result)


@router.get("/sync/status", response_model=SyncStatusResponse)
async def get_sync_status(
    session: AsyncSession = Depends(get_session),
    svc: DashboardService = Depends(get_dashboard_service),
) -> SyncStatusResponse:
    result = await svc.get_sync_status(session)
    return SyncStatusResponse.model_validate(result)


@router.get("/sync/stream")
async def stream_sync(
    svc: DashboardService = Depends(get_dashboard_service),
) -> StreamingResponse:
    """Start a full sync and report its progress as server-sent events.

    ``progress`` events precede exactly one ``complete`` event. A client
    disconnecting does not stop the sync.
    """

    async def _events() -> AsyncIterator[str]:
        async for event in svc.stream_sync():
            name = "complete" if event.is_complete else "progress"
            payload = ProgressEvent.model_validate(event).model_dump_json(by_alias=True)
            yield f"event: {name}\ndata: {payload}\n\n"

    return StreamingResponse(
        _events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/members", response_model=list[MemberStatsItem])
async def list_members(
    session: AsyncSession = Depends(get_session),
    svc: DashboardService = Depends(get_dashboard_service),
) -> list[MemberStatsItem]:
    members = await svc.list_members(session)
    return [MemberStatsItem.model_validate(m) for m in members]


@router.get("/members/{username}", response_model=MemberStatsItem)
async def get_member(
    username: str,
    session: AsyncSession = Depends(get_session),
    svc: DashboardService = Depends(get_dashboard_service),
) -> MemberStatsItem:
    member = await svc.get_member(session, username)
    return MemberStatsItem.model_validate(member)
