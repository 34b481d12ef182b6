"""Async Jira Agile client — boards, sprints and sprint issues."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import httpx
import structlog

from pulseboard.core.config import DEFAULT_STORY_POINT_FIELDS
from pulseboard.engines.analytics.sprint_stats import calculate_sprint_metrics
from pulseboard.engines.sources.models import FetchedSprint, parse_datetime

log = structlog.get_logger("pulseboard.sources")

SPRINT_STATES = "closed,active"
SPRINT_PAGE_SIZE = 50
MAX_ISSUES_PER_SPRINT = 1000


class JiraClient:
    """Thin async wrapper around the Jira Agile REST API (``/rest/agile/1.0``).

    Like :class:`GitHubClient`, failures raise and nothing is retried.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        email: str | None = None,
        story_point_fields: Sequence[str] = DEFAULT_STORY_POINT_FIELDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        auth: httpx.Auth | None = None
        if email:
            auth = httpx.BasicAuth(email, token)
        else:
            headers["Authorization"] = f"Bearer {token}"
        self._story_point_fields = tuple(story_point_fields)
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            auth=auth,
            timeout=30.0,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> JiraClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── agile resources ───────────────────────────────────────────────────

    async def get_boards(self, project_key: str) -> list[dict[str, Any]]:
        data = await self.get_json("/rest/agile/1.0/board", {"projectKeyOrId": project_key})
        return data.get("values") or []

    async def get_sprints(self, board_id: int) -> list[dict[str, Any]]:
        """All closed and active sprints of a board, following ``isLast``."""
        sprints: list[dict[str, Any]] = []
        start_at = 0
        while True:
            data = await self.get_json(
                f"/rest/agile/1.0/board/{board_id}/sprint",
                {"state": SPRINT_STATES, "startAt": start_at, "maxResults": SPRINT_PAGE_SIZE},
            )
            values = data.get("values") or []
            sprints.extend(values)
            if data.get("isLast", True) or not values:
                break
            start_at += len(values)
        return sprints

    async def get_sprint_issues(self, sprint_id: int) -> list[dict[str, Any]]:
        data = await self.get_json(
            f"/rest/agile/1.0/sprint/{sprint_id}/issue",
            {"maxResults": MAX_ISSUES_PER_SPRINT},
        )
        return data.get("issues") or []

    async def fetch_sprints_with_issues(self, project_key: str) -> list[FetchedSprint]:
        """Sprints of the project's first board, reduced to story-point totals.

        Only the first board returned for the project is read. A project
        without boards yields ``[]``.
        """
        boards = await self.get_boards(project_key)
        if not boards:
            log.warning("jira.no_boards", project=project_key)
            return []
        board_id = boards[0]["id"]
        if len(boards) > 1:
            log.info("jira.extra_boards_ignored", project=project_key, boards=len(boards))

        result: list[FetchedSprint] = []
        for sprint in await self.get_sprints(board_id):
            issues = await self.get_sprint_issues(sprint["id"])
            metrics = calculate_sprint_metrics(issues, self._story_point_fields)
            result.append(
                FetchedSprint(
                    id=sprint["id"],
                    board_id=board_id,
                    name=sprint.get("name") or "",
                    state=sprint.get("state") or "",
                    start_date=parse_datetime(sprint.get("startDate")),
                    end_date=parse_datetime(sprint.get("endDate")),
                    complete_date=parse_datetime(sprint.get("completeDate")),
                    committed_points=metrics.committed_points,
                    completed_points=metrics.completed_points,
                    issue_count=metrics.issue_count,
                    raw_payload=sprint,
                )
            )

        log.info("jira.sprints_fetched", project=project_key, board=board_id, count=len(result))
        return result

    # ── transport ─────────────────────────────────────────────────────────

    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._client.get(path, params=params)
        response.raise_for_status()
        return response.json()
