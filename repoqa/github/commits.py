"""
Commit listing and diff retrieval.

Commit listing degrades in steps rather than failing:
1. Authenticated: newest 10 commits
2. Public API (on auth failure or no token): newest 5 commits
3. A single synthetic "latest" commit when the public API is unusable
   (rate limited, forbidden, network error). Not-found still raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from repoqa.config import COMMITS_PER_POLL_AUTHENTICATED, COMMITS_PER_POLL_PUBLIC
from repoqa.errors import RepoQAError, RepositoryNotFound
from repoqa.github.client import GitHubClient
from repoqa.github.refs import RepositoryReference

logger = logging.getLogger(__name__)

SYNTHETIC_COMMIT_HASH = "latest"
SYNTHETIC_COMMIT_MESSAGE = "Latest repository state"
DIFF_UNAVAILABLE = "Unable to fetch detailed diff"

_FETCH_ERRORS = (RepoQAError, httpx.HTTPError, ValueError, KeyError, TypeError)


@dataclass(frozen=True)
class CommitInfo:
    commit_hash: str
    message: str
    author_name: str
    author_avatar: str
    committed_at: datetime

    @property
    def short_hash(self) -> str:
        return self.commit_hash[:7]


def _parse_date(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.now(timezone.utc)


def commit_from_api(data: Dict[str, Any]) -> CommitInfo:
    """Map one item of GET /repos/{o}/{r}/commits to a CommitInfo."""
    commit = data.get("commit") or {}
    git_author = commit.get("author") or {}
    gh_author = data.get("author") or {}
    login = gh_author.get("login")

    avatar = gh_author.get("avatar_url") or (f"https://github.com/{login}.png" if login else "")
    return CommitInfo(
        commit_hash=data["sha"],
        message=commit.get("message") or "",
        author_name=git_author.get("name") or login or "",
        author_avatar=avatar,
        committed_at=_parse_date(git_author.get("date")),
    )


def synthetic_commit(ref: RepositoryReference) -> CommitInfo:
    return CommitInfo(
        commit_hash=SYNTHETIC_COMMIT_HASH,
        message=SYNTHETIC_COMMIT_MESSAGE,
        author_name=ref.owner,
        author_avatar=f"https://github.com/{ref.owner}.png",
        committed_at=datetime.now(timezone.utc),
    )


# =============================================================================
# LISTING
# =============================================================================

async def fetch_public_commits(client: GitHubClient, ref: RepositoryReference) -> List[CommitInfo]:
    """Newest public commits, or one synthetic commit when the API is unusable."""
    try:
        items = await client.list_commits(ref.owner, ref.repo, per_page=COMMITS_PER_POLL_PUBLIC)
        return [commit_from_api(item) for item in items]
    except RepositoryNotFound:
        raise
    except _FETCH_ERRORS as e:
        logger.warning("[commits] Public commit listing failed for %s (%s), using latest state", ref.full_name, e)
        return [synthetic_commit(ref)]


async def fetch_commits(
    ref: RepositoryReference,
    public_client: GitHubClient,
    auth_client: Optional[GitHubClient] = None,
) -> List[CommitInfo]:
    """List recent commits, newest first, in API order."""
    if auth_client is not None and auth_client.authenticated:
        try:
            items = await auth_client.list_commits(ref.owner, ref.repo, per_page=COMMITS_PER_POLL_AUTHENTICATED)
            return [commit_from_api(item) for item in items]
        except _FETCH_ERRORS as e:
            logger.warning("[commits] Authenticated listing failed for %s (%s), falling back to public API", ref.full_name, e)

    return await fetch_public_commits(public_client, ref)


# =============================================================================
# DIFFS
# =============================================================================

async def fetch_commit_diff(
    ref: RepositoryReference,
    commit_hash: str,
    public_client: GitHubClient,
    auth_client: Optional[GitHubClient] = None,
) -> str:
    """
    Diff text for one commit. Never raises.

    Without a token the public endpoint is tried once; on failure a short
    placeholder naming the commit is returned instead.
    """
    placeholder = f"Changes in commit {commit_hash[:7]} from {ref.url}"
    if commit_hash == SYNTHETIC_COMMIT_HASH:
        return placeholder

    if auth_client is not None and auth_client.authenticated:
        try:
            return await auth_client.get_commit_diff(ref.owner, ref.repo, commit_hash)
        except _FETCH_ERRORS as e:
            logger.warning("[commits] Diff fetch failed for %s@%s: %s", ref.full_name, commit_hash[:7], e)
            return DIFF_UNAVAILABLE

    try:
        return await public_client.get_commit_diff(ref.owner, ref.repo, commit_hash)
    except _FETCH_ERRORS as e:
        logger.info("[commits] Public diff unavailable for %s@%s: %s", ref.full_name, commit_hash[:7], e)
        return placeholder
