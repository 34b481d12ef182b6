"""Async GitHub REST client — page-count pagination, rate-limit waits, no retries."""

from __future__ import annotations

import asyncio
import os
import time
from datetime import datetime
from typing import Any

import httpx
import structlog

from pulseboard.core.github import repo_full_name
from pulseboard.engines.sources.models import FetchedCommit, FetchedPullRequest, parse_datetime

log = structlog.get_logger("pulseboard.sources")

PAGE_SIZE = 100
COMMIT_MAX_PAGES = 50
COMMIT_PAGE_TIMEOUT = 10.0  # seconds


class GitHubClient:
    """Thin async wrapper around the GitHub REST API.

    A failed request raises (``httpx.HTTPStatusError`` for non-2xx,
    ``httpx.TransportError`` otherwise); callers decide what a failure means.
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str = "https://api.github.com",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        resolved_token = token or os.environ.get("GITHUB_TOKEN")
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if resolved_token:
            headers["Authorization"] = f"token {resolved_token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=30.0,
            transport=transport,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── pull requests ─────────────────────────────────────────────────────

    async def fetch_pull_requests(self, owner: str, repo: str) -> list[FetchedPullRequest]:
        """Return every PR (open and closed) of ``owner/repo``.

        Pages of 100 are requested until a short or empty page arrives.
        Any failed page aborts the whole fetch.
        """
        repo_name = repo_full_name(owner, repo)
        prs: list[FetchedPullRequest] = []
        page = 1
        while True:
            items = await self.get_json(
                f"/repos/{owner}/{repo}/pulls",
                {"state": "all", "per_page": PAGE_SIZE, "page": page},
            )
            if not items:
                break
            prs.extend(_to_pull_request(item, repo_name) for item in items)
            if len(items) < PAGE_SIZE:
                break
            page += 1

        log.info("github.prs_fetched", repo=repo_name, count=len(prs), pages=page)
        return prs

    async def fetch_reviews(self, owner: str, repo: str, number: int) -> list[dict[str, Any]]:
        """Return the review list of one PR; any failure yields ``[]``."""
        try:
            reviews = await self.get_json(f"/repos/{owner}/{repo}/pulls/{number}/reviews")
        except httpx.HTTPError as exc:
            log.warning(
                "github.reviews_failed",
                repo=repo_full_name(owner, repo),
                number=number,
                error=str(exc),
            )
            return []
        return reviews if isinstance(reviews, list) else []

    async def first_review_at(self, owner: str, repo: str, number: int) -> datetime | None:
        """Earliest ``submitted_at`` across the PR's reviews, or None."""
        reviews = await self.fetch_reviews(owner, repo, number)
        submitted = [parse_datetime(r.get("submitted_at")) for r in reviews]
        submitted = [ts for ts in submitted if ts is not None]
        return min(submitted) if submitted else None

    # ── commits ───────────────────────────────────────────────────────────

    async def fetch_commits(
        self,
        owner: str,
        repo: str,
        *,
        max_pages: int = COMMIT_MAX_PAGES,
        page_timeout: float = COMMIT_PAGE_TIMEOUT,
    ) -> list[FetchedCommit]:
        """Return up to ``max_pages * 100`` commits of the default branch.

        Best effort: a page that times out or fails ends the loop and the
        commits gathered so far are returned.
        """
        repo_name = repo_full_name(owner, repo)
        commits: list[FetchedCommit] = []
        for page in range(1, max_pages + 1):
            try:
                # Deadline covers the whole page, including a slow body.
                async with asyncio.timeout(page_timeout):
                    response = await self._get(
                        f"/repos/{owner}/{repo}/commits",
                        {"per_page": PAGE_SIZE, "page": page},
                    )
                    items = response.json()
            except (httpx.HTTPError, TimeoutError) as exc:
                log.warning(
                    "github.commits_page_failed",
                    repo=repo_name,
                    page=page,
                    kept=len(commits),
                    error=f"{type(exc).__name__}: {exc}",
                )
                break
            await self._check_rate_limit(response)
            if not items:
                break
            for item in items:
                commit = _to_commit(item, repo_name)
                if commit is not None:
                    commits.append(commit)
            if len(items) < PAGE_SIZE:
                break
        else:
            log.info("github.commits_capped", repo=repo_name, max_pages=max_pages)

        log.info("github.commits_fetched", repo=repo_name, count=len(commits))
        return commits

    # ── transport ─────────────────────────────────────────────────────────

    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Single GET returning parsed JSON; raises on non-2xx."""
        response = await self._get(path, params)
        await self._check_rate_limit(response)
        return response.json()

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        response = await self._client.get(path, params=params)
        response.raise_for_status()
        return response

    async def _check_rate_limit(self, response: httpx.Response) -> None:
        """Sleep until rate-limit resets if remaining == 0."""
        remaining = self._parse_header_int(response.headers.get("X-RateLimit-Remaining"))
        if remaining is not None and remaining == 0:
            wait = self._get_rate_limit_wait(response)
            log.warning("github.rate_limit_wait", wait_seconds=wait)
            await asyncio.sleep(wait)

    @staticmethod
    def _get_rate_limit_wait(response: httpx.Response) -> int:
        """Calculate how long to wait based on rate-limit headers."""
        retry_after = response.headers.get("Retry-After")
        if retry_after is not None:
            try:
                return max(int(retry_after), 1)
            except (ValueError, TypeError):
                pass
        reset_ts = response.headers.get("X-RateLimit-Reset")
        if reset_ts is not None:
            try:
                return max(int(reset_ts) - int(time.time()), 1)
            except (ValueError, TypeError):
                pass
        return 60  # conservative fallback

    @staticmethod
    def _parse_header_int(value: str | None) -> int | None:
        """Safely parse an integer header value."""
        if value is None:
            return None
        try:
            return int(value)
        except (ValueError, TypeError):
            return None


def _to_pull_request(item: dict[str, Any], repo_name: str) -> FetchedPullRequest:
    return FetchedPullRequest(
        id=item["id"],
        number=item["number"],
        repo_name=repo_name,
        title=item.get("title") or "",
        state=item.get("state") or "open",
        author_login=(item.get("user") or {}).get("login") or "",
        created_at=parse_datetime(item.get("created_at")),
        merged_at=parse_datetime(item.get("merged_at")),
        raw_payload=item,
    )


def _to_commit(item: dict[str, Any], repo_name: str) -> FetchedCommit | None:
    commit = item.get("commit") or {}
    author_info = commit.get("author") or {}
    authored_at = parse_datetime(author_info.get("date"))
    if authored_at is None:
        return None
    account = item.get("author") or {}
    message = commit.get("message") or ""
    return FetchedCommit(
        sha=item["sha"],
        repo_name=repo_name,
        message=message.split("\n", 1)[0],
        url=item.get("html_url"),
        authored_at=authored_at,
        author_login=account.get("login"),
        author_email=author_info.get("email"),
        author_name=author_info.get("name"),
        avatar_url=account.get("avatar_url"),
    )
