"""
Rate-limited GitHub API client.

Thin wrapper over httpx.AsyncClient that:
- Tracks X-RateLimit-Remaining / X-RateLimit-Reset from every API response
- Sleeps until the quota window resets when remaining < threshold (await_quota)
- Retries exactly once after a fixed cooldown on a 403/429 rate-limit response
- Maps 401/403/404 to the pipeline error taxonomy

Quota counters live on the client instance only. Two clients (or two
processes) hitting the same token do not coordinate.

Usage:
    async with GitHubClient(token) as gh:
        commit = await gh.get_commit("owner", "repo", "main")
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from repoqa.config import (
    GITHUB_API_BASE,
    GITHUB_WEB_BASE,
    HTTP_TIMEOUT_SECONDS,
    RATE_LIMIT_COOLDOWN_SECONDS,
    RATE_LIMIT_RESET_BUFFER_SECONDS,
    RATE_LIMIT_THRESHOLD,
)
from repoqa.errors import RateLimited, RepositoryNotFound, Unauthorized

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[Any]]

GITHUB_ACCEPT = "application/vnd.github+json"


class GitHubClient:
    """Rate-limited client for the GitHub REST API and archive endpoints."""

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        http: Optional[httpx.AsyncClient] = None,
        api_base: str = GITHUB_API_BASE,
        web_base: str = GITHUB_WEB_BASE,
        clock: Clock = time.time,
        sleep: Sleeper = asyncio.sleep,
        threshold: int = RATE_LIMIT_THRESHOLD,
        reset_buffer: float = RATE_LIMIT_RESET_BUFFER_SECONDS,
        cooldown: float = RATE_LIMIT_COOLDOWN_SECONDS,
    ):
        self.token = token or None
        self.api_base = api_base.rstrip("/")
        self.web_base = web_base.rstrip("/")
        self._http = http or httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS, follow_redirects=True)
        self._owns_http = http is None
        self._clock = clock
        self._sleep = sleep
        self.threshold = threshold
        self.reset_buffer = reset_buffer
        self.cooldown = cooldown

        # Last observed quota (None = unknown, no waiting)
        self.remaining: Optional[int] = None
        self.reset_at: Optional[float] = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    @property
    def authenticated(self) -> bool:
        return self.token is not None

    # =========================================================================
    # QUOTA
    # =========================================================================

    def _record_quota(self, response: httpx.Response) -> None:
        remaining = response.headers.get("x-ratelimit-remaining")
        reset = response.headers.get("x-ratelimit-reset")
        if remaining is None:
            return
        try:
            self.remaining = int(remaining)
            self.reset_at = float(reset) if reset is not None else self.reset_at
        except ValueError:
            return
        logger.debug("[github] quota remaining=%s reset_at=%s", self.remaining, self.reset_at)

    async def await_quota(self) -> None:
        """
        Block until the quota window resets if remaining < threshold.

        Called at the top of every request group. Sleeps once for the full
        window; never polls.
        """
        if self.remaining is None or self.remaining >= self.threshold:
            return
        if self.reset_at is None:
            return

        wait = self.reset_at + self.reset_buffer - self._clock()
        if wait > 0:
            logger.info(
                "[github] Rate limit low (%s remaining), sleeping %.1fs until reset",
                self.remaining,
                wait,
            )
            await self._sleep(wait)
        # Window has rolled over; next response refreshes the counters
        self.remaining = None

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        if response.status_code not in (403, 429):
            return False
        if response.status_code == 429:
            return True
        if response.headers.get("x-ratelimit-remaining") == "0":
            return True
        if "retry-after" in response.headers:
            return True
        return "rate limit" in response.text.lower()

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    def _headers(self, accept: Optional[str] = None) -> Dict[str, str]:
        headers = {"Accept": accept or GITHUB_ACCEPT}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @staticmethod
    def _raise_for_status(response: httpx.Response, what: str) -> None:
        if response.status_code == 404:
            raise RepositoryNotFound(f"Repository not found or private: {what}")
        if response.status_code in (401, 403):
            raise Unauthorized(f"Access denied ({response.status_code}): {what}")
        response.raise_for_status()

    async def _get(
        self,
        url: str,
        what: str,
        params: Optional[Dict[str, Any]] = None,
        accept: Optional[str] = None,
    ) -> httpx.Response:
        """
        Quota-aware GET shared by API calls and archive downloads.

        A rate-limit response is retried once after `cooldown` seconds; the
        second consecutive rate-limit response raises RateLimited.
        """
        await self.await_quota()

        for attempt in (1, 2):
            response = await self._http.get(url, params=params, headers=self._headers(accept), follow_redirects=True)
            self._record_quota(response)

            if self._is_rate_limited(response):
                if attempt == 1:
                    logger.warning(
                        "[github] Rate limit hit on %s, waiting %.0fs before retry",
                        what,
                        self.cooldown,
                    )
                    await self._sleep(self.cooldown)
                    continue
                raise RateLimited(f"GitHub rate limit exceeded: {what}", reset_at=self.reset_at)

            self._raise_for_status(response, what)
            return response

        raise RateLimited(f"GitHub rate limit exceeded: {what}", reset_at=self.reset_at)

    async def call(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        accept: Optional[str] = None,
    ) -> httpx.Response:
        """Issue a GET against the API."""
        url = endpoint if endpoint.startswith("http") else f"{self.api_base}{endpoint}"
        return await self._get(url, endpoint, params=params, accept=accept)

    async def head(self, url: str) -> httpx.Response:
        """Metadata-only request (archive size). Never raises on HTTP status."""
        return await self._http.head(url, follow_redirects=True)

    async def download(self, url: str) -> bytes:
        """Download a full response body into memory, under the same quota rules as `call`."""
        response = await self._get(url, url)
        return response.content

    # =========================================================================
    # ENDPOINTS
    # =========================================================================

    async def get_commit(self, owner: str, repo: str, ref: str) -> Dict[str, Any]:
        response = await self.call(f"/repos/{owner}/{repo}/commits/{ref}")
        return response.json()

    async def get_tree(self, owner: str, repo: str, tree_sha: str, recursive: bool = True) -> Dict[str, Any]:
        params = {"recursive": "1"} if recursive else None
        response = await self.call(f"/repos/{owner}/{repo}/git/trees/{tree_sha}", params=params)
        return response.json()

    async def get_tree_for_branch(self, owner: str, repo: str, branch: str) -> Dict[str, Any]:
        """Resolve the branch HEAD commit, then fetch its full recursive tree (2 calls)."""
        commit = await self.get_commit(owner, repo, branch)
        tree_sha = commit["commit"]["tree"]["sha"]
        return await self.get_tree(owner, repo, tree_sha, recursive=True)

    async def list_commits(self, owner: str, repo: str, per_page: int = 10, page: int = 1) -> List[Dict[str, Any]]:
        response = await self.call(
            f"/repos/{owner}/{repo}/commits",
            params={"per_page": per_page, "page": page},
        )
        return response.json()

    async def get_commit_diff(self, owner: str, repo: str, sha: str) -> str:
        """Concatenate per-file patches of a commit into a unified-diff-like text."""
        data = await self.get_commit(owner, repo, sha)
        diffs = [
            f"diff --git a/{f['filename']} b/{f['filename']}\n{f.get('patch') or ''}"
            for f in data.get("files") or []
        ]
        return "\n\n".join(diffs) or "No diff available"

    def archive_url(self, owner: str, repo: str, branch: str) -> str:
        """Public bulk-archive URL (no API quota)."""
        return f"{self.web_base}/{owner}/{repo}/archive/{branch}.zip"

    def zipball_url(self, owner: str, repo: str, branch: str) -> str:
        """Authenticated API archive URL (works for private repositories)."""
        return f"{self.api_base}/repos/{owner}/{repo}/zipball/{branch}"
