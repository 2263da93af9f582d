"""
Commit poller.

poll(project_id):
1. List recent commits (authenticated -> public -> synthetic "latest")
2. Drop hashes already stored for the project
3. For each remaining commit, in API order (newest first):
   fetch diff -> summarize -> persist
   Any per-commit failure persists the commit with its message as summary.
4. Fixed delay between commits

Polling twice in a row persists nothing the second time.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from repoqa.config import COMMIT_DIFF_CHARS, COMMIT_POLL_DELAY_SECONDS
from repoqa.errors import ProjectNotFound, ProviderFailure
from repoqa.github.client import GitHubClient
from repoqa.github.commits import CommitInfo, fetch_commit_diff, fetch_commits
from repoqa.github.refs import parse_repo_url
from repoqa.providers.base import Summarizer
from repoqa.rag.models import CommitRecord, Project

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[Any]]


COMMIT_SUMMARY_PROMPT = """You are an expert programmer summarizing git diffs. \
Reply with concise bullet points only.

Rules:
- Start every line with * (no introduction such as "Here's a summary")
- Format: * action + description + [files]
- Omit file names when more than 2 files changed
- Be concise and technical

Example:
* Added error handling for API requests [lib/api.ts]
* Updated database schema [migrations/001.sql]
* Fixed typo in configuration

Git diff:
{diff}"""


def clean_commit_summary(text: str) -> str:
    """Strip a leading "Here's a summary..." line the model sometimes adds."""
    summary = (text or "").strip()
    if summary.lower().startswith(("here's a summary", "here is a summary")):
        summary = "\n".join(summary.split("\n")[1:]).strip()
    return summary


class CommitPoller:
    def __init__(
        self,
        db: Session,
        summarizer: Summarizer,
        public_client: GitHubClient,
        auth_client: Optional[GitHubClient] = None,
        delay: float = COMMIT_POLL_DELAY_SECONDS,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.db = db
        self.summarizer = summarizer
        self.public_client = public_client
        self.auth_client = auth_client
        self.delay = delay
        self._sleep = sleep

    def existing_hashes(self, project_id: str) -> set:
        rows = self.db.query(CommitRecord.commit_hash).filter(CommitRecord.project_id == project_id).all()
        return {h for (h,) in rows}

    async def summarize_diff(self, diff: str) -> str:
        summary = clean_commit_summary(
            await self.summarizer.summarize(COMMIT_SUMMARY_PROMPT.format(diff=diff[:COMMIT_DIFF_CHARS]))
        )
        if not summary:
            raise ProviderFailure("Empty commit summary", capability="summarize")
        return summary

    def _persist(self, project_id: str, commit: CommitInfo, summary: str) -> Optional[CommitRecord]:
        record = CommitRecord(
            project_id=project_id,
            commit_hash=commit.commit_hash,
            message=commit.message,
            author_name=commit.author_name,
            author_avatar=commit.author_avatar,
            committed_at=commit.committed_at,
            summary=summary,
        )
        self.db.add(record)
        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent poll stored it first
            self.db.rollback()
            logger.info("[commit_poller] %s already stored, skipping", commit.short_hash)
            return None
        return record

    async def poll(self, project_id: str) -> List[CommitRecord]:
        project = self.db.get(Project, project_id)
        if project is None:
            raise ProjectNotFound(f"Project not found: {project_id}")
        ref = parse_repo_url(project.repo_url)

        logger.info(
            "[commit_poller] Polling %s (%s)",
            ref.full_name,
            "token" if self.auth_client is not None and self.auth_client.authenticated else "public",
        )
        commits = await fetch_commits(ref, self.public_client, self.auth_client)
        known = self.existing_hashes(project_id)
        pending = [c for c in commits if c.commit_hash not in known]
        logger.info("[commit_poller] %d commits listed, %d new", len(commits), len(pending))

        saved: List[CommitRecord] = []
        for i, commit in enumerate(pending):
            if i > 0 and self.delay > 0:
                await self._sleep(self.delay)

            try:
                diff = await fetch_commit_diff(ref, commit.commit_hash, self.public_client, self.auth_client)
                summary = await self.summarize_diff(diff)
            except ProviderFailure as e:
                logger.warning("[commit_poller] Summary failed for %s: %s", commit.short_hash, e)
                summary = commit.message

            record = self._persist(project_id, commit, summary)
            if record is not None:
                saved.append(record)

        logger.info("[commit_poller] Stored %d new commits for %s", len(saved), project_id)
        return saved
