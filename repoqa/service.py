"""
RepoQA service facade.

Core API:
    ingest(project_id, repo_url, credential=None) -> IngestResult
    ask(project_id, question) -> AskResult (stream + files referenced)
    poll_commits(project_id, credential=None) -> List[CommitRecord]
    check_credits(repo_url, credential=None) -> int

Write path: acquire -> filter -> summarize/embed -> upsert
Read path:  classify + embed question -> assemble context -> stream answer

One service instance is bound to one DB session; provider chains are built
once at startup and passed in.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import AsyncIterator, Callable, List, Optional

import httpx
from sqlalchemy.orm import Session

from repoqa.errors import (
    InvalidReference,
    ProjectNotFound,
    ProviderFailure,
    RepoQAError,
    RepositoryNotFound,
    Unauthorized,
)
from repoqa.config import CREDIT_FALLBACK_ESTIMATE
from repoqa.github.acquirer import acquire, count_files_precise, estimate_archive
from repoqa.github.client import GitHubClient
from repoqa.github.refs import parse_repo_url
from repoqa.ingestion.generator import generate_file_embeddings
from repoqa.providers.registry import ProviderClients
from repoqa.rag.analysis import RepositoryStats, analyze_repository
from repoqa.rag.answerer import AnswerChunk, AnswerStreamer, build_answer_prompt
from repoqa.rag.classifier import QuestionClassifier
from repoqa.rag.commit_poller import CommitPoller
from repoqa.rag.context_assembler import ContextAssembler
from repoqa.rag.models import CommitRecord, Project
from repoqa.rag.vector_store import RetrievalHit, VectorIndex

logger = logging.getLogger(__name__)

GitHubFactory = Callable[[Optional[str]], GitHubClient]


@dataclass
class IngestResult:
    project_id: str
    file_count: int
    indexed_count: int
    failed_count: int
    exact_count: bool
    branch: str


@dataclass
class AskResult:
    stream: AsyncIterator[AnswerChunk]
    files_referenced: List[RetrievalHit]
    is_broad: bool


@dataclass
class ProjectStatus:
    project_id: str
    repo_url: str
    indexed_files: int
    commits: int


class RepoQAService:
    def __init__(
        self,
        db: Session,
        providers: ProviderClients,
        github_factory: GitHubFactory = GitHubClient,
        default_token: Optional[str] = None,
    ):
        self.db = db
        self.providers = providers
        self.github_factory = github_factory
        self.default_token = default_token or None
        self.index = VectorIndex(db)

    def _token(self, credential: Optional[str]) -> Optional[str]:
        return credential or self.default_token

    def get_project(self, project_id: str) -> Project:
        project = self.db.get(Project, project_id)
        if project is None:
            raise ProjectNotFound(f"Project not found: {project_id}")
        return project

    def _ensure_project(self, project_id: str, name: str, repo_url: str) -> Project:
        project = self.db.get(Project, project_id)
        if project is None:
            project = Project(id=project_id, name=name, repo_url=repo_url)
            self.db.add(project)
        else:
            project.name = name
            project.repo_url = repo_url
        self.db.commit()
        return project

    # =========================================================================
    # INGESTION
    # =========================================================================

    async def ingest(self, project_id: str, repo_url: str, credential: Optional[str] = None) -> IngestResult:
        """
        Acquire, summarize, embed and index a repository.

        Per-file failures are counted, not raised. Raises ProviderFailure only
        when files were found and none could be embedded.
        """
        ref = parse_repo_url(repo_url)

        async with self.github_factory(self._token(credential)) as gh:
            acquired = await acquire(gh, ref)

        files = acquired.files
        logger.info("[service] Ingesting %d files for project %s (%s)", len(files), project_id, ref.full_name)

        results = await generate_file_embeddings(files, self.providers.summarizer, self.providers.embedder)
        embedded = [result for result in results if result.ok]
        failed = len(results) - len(embedded)
        if files and not embedded:
            raise ProviderFailure(
                f"No files could be embedded for {ref.full_name} ({failed} failed)",
                capability="embed",
            )

        # Project row is only written once there is something to index
        self._ensure_project(project_id, ref.repo, ref.url)
        for result in embedded:
            self.index.upsert(project_id, result.file_name, result.summary, result.source_code, result.vector)
        indexed = len(embedded)

        logger.info("[service] Indexed %d/%d files for project %s", indexed, len(files), project_id)
        return IngestResult(
            project_id=project_id,
            file_count=acquired.file_count,
            indexed_count=indexed,
            failed_count=failed,
            exact_count=acquired.exact,
            branch=acquired.reference.branch,
        )

    async def check_credits(self, repo_url: str, credential: Optional[str] = None) -> int:
        """
        Files an ingestion would cost. 0 = not found / private,
        CREDIT_FALLBACK_ESTIMATE when estimation fails for any other reason.
        """
        try:
            ref = parse_repo_url(repo_url)
        except InvalidReference:
            return 0

        token = self._token(credential)
        try:
            async with self.github_factory(token) as gh:
                if gh.authenticated:
                    count, _ = await count_files_precise(gh, ref)
                    return count
                estimate = await estimate_archive(gh, ref)
                return estimate.estimated_files
        except (RepositoryNotFound, Unauthorized) as e:
            logger.info("[service] Credit check: %s not accessible (%s)", ref.full_name, e)
            return 0
        except (RepoQAError, httpx.HTTPError) as e:
            logger.warning("[service] Credit check failed for %s, using fallback estimate: %s", ref.full_name, e)
            return CREDIT_FALLBACK_ESTIMATE

    # =========================================================================
    # QUESTIONS
    # =========================================================================

    async def ask(self, project_id: str, question: str) -> AskResult:
        self.get_project(project_id)

        classification, query_vector = await asyncio.gather(
            QuestionClassifier(self.providers.classifier).classify(question),
            self.providers.embedder.embed(question),
        )
        context = ContextAssembler(self.index).assemble(project_id, query_vector, classification.is_broad)
        prompt = build_answer_prompt(question, context)

        logger.info(
            "[service] Answering (%s) with %d files referenced",
            classification.kind,
            len(context.hits),
        )
        return AskResult(
            stream=AnswerStreamer(self.providers.generator).stream(prompt),
            files_referenced=context.hits,
            is_broad=classification.is_broad,
        )

    # =========================================================================
    # COMMITS
    # =========================================================================

    async def poll_commits(self, project_id: str, credential: Optional[str] = None) -> List[CommitRecord]:
        self.get_project(project_id)
        token = self._token(credential)

        async with AsyncExitStack() as stack:
            public = await stack.enter_async_context(self.github_factory(None))
            auth = await stack.enter_async_context(self.github_factory(token)) if token else None
            poller = CommitPoller(self.db, self.providers.summarizer, public, auth)
            return await poller.poll(project_id)

    def list_commits(self, project_id: str) -> List[CommitRecord]:
        self.get_project(project_id)
        return (
            self.db.query(CommitRecord)
            .filter(CommitRecord.project_id == project_id)
            .order_by(CommitRecord.committed_at.desc())
            .all()
        )

    # =========================================================================
    # PROJECT
    # =========================================================================

    def status(self, project_id: str) -> ProjectStatus:
        project = self.get_project(project_id)
        commits = self.db.query(CommitRecord).filter(CommitRecord.project_id == project_id).count()
        return ProjectStatus(
            project_id=project.id,
            repo_url=project.repo_url,
            indexed_files=self.index.count(project_id),
            commits=commits,
        )

    def analysis(self, project_id: str) -> RepositoryStats:
        self.get_project(project_id)
        rows = self.index.all_rows(project_id)
        return analyze_repository([(row.file_name, row.source_code) for row in rows])

    def delete_project(self, project_id: str) -> None:
        project = self.get_project(project_id)
        self.index.delete_project(project_id)
        self.db.query(CommitRecord).filter(CommitRecord.project_id == project_id).delete(synchronize_session=False)
        self.db.delete(project)
        self.db.commit()
        logger.info("[service] Deleted project %s", project_id)
