"""
FastAPI endpoints for RepoQA.

POST   /projects/{id}/ingest        - Acquire + index a repository
GET    /projects/{id}/credits       - Estimated file count (given URL or the project's own)
POST   /projects/{id}/ask           - Stream a grounded answer (SSE)
POST   /projects/{id}/commits/poll  - Summarize new commits
GET    /projects/{id}/commits       - Stored commit summaries
GET    /projects/{id}/status        - Index / commit counts
GET    /projects/{id}/analysis      - Repository statistics
DELETE /projects/{id}               - Drop a project and everything it owns

SSE events (one JSON object per `data:` line):
    {"type": "files", "files": [...], "is_broad": bool}
    {"type": "token", "text": "..."}
    {"type": "replace", "text": "..."}   full fallback answer; discard earlier tokens
    {"type": "error", "code": "...", "message": "...", ...}
    {"type": "done", "total_length": int}
"""

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from repoqa.config import GITHUB_TOKEN
from repoqa.db import get_db
from repoqa.errors import RepoQAError
from repoqa.providers.registry import ProviderClients, build_provider_clients
from repoqa.schemas import (
    AnalysisResponse,
    AskRequest,
    CommitOut,
    CommitPollRequest,
    CommitPollResponse,
    CreditsResponse,
    FileReference,
    IngestRequest,
    IngestResponse,
    ProjectStatusResponse,
)
from repoqa.service import AskResult, RepoQAService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_providers(request: Request) -> ProviderClients:
    providers = getattr(request.app.state, "providers", None)
    if providers is None:
        providers = build_provider_clients()
        request.app.state.providers = providers
    return providers


def get_service(
    db: Session = Depends(get_db),
    providers: ProviderClients = Depends(get_providers),
) -> RepoQAService:
    return RepoQAService(db, providers, default_token=GITHUB_TOKEN or None)


def _http_error(e: RepoQAError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_http_detail())


def _sse(event: Dict[str, Any]) -> str:
    return "data: " + json.dumps(event) + "\n\n"


# =============================================================================
# INGESTION
# =============================================================================

@router.post("/{project_id}/ingest", response_model=IngestResponse)
async def ingest_repository(
    project_id: str,
    req: IngestRequest,
    service: RepoQAService = Depends(get_service),
):
    try:
        result = await service.ingest(project_id, req.repo_url, credential=req.github_token)
    except RepoQAError as e:
        logger.warning("[router] Ingest %s failed: %s", project_id, e.message)
        raise _http_error(e)

    return IngestResponse(
        project_id=result.project_id,
        file_count=result.file_count,
        indexed_count=result.indexed_count,
        failed_count=result.failed_count,
        exact_count=result.exact_count,
        branch=result.branch,
    )


@router.get("/{project_id}/credits", response_model=CreditsResponse)
async def check_credits(
    project_id: str,
    repo_url: Optional[str] = Query(None),
    github_token: Optional[str] = Query(None),
    service: RepoQAService = Depends(get_service),
):
    """
    0 means the repository is missing or private. Without `repo_url` the
    project's stored repository is checked.
    """
    if not repo_url:
        try:
            repo_url = service.get_project(project_id).repo_url
        except RepoQAError as e:
            raise _http_error(e)
    count = await service.check_credits(repo_url, credential=github_token)
    return CreditsResponse(repo_url=repo_url, file_count=count)


# =============================================================================
# QUESTIONS
# =============================================================================

async def generate_answer_stream(result: AskResult) -> AsyncIterator[str]:
    """Generate SSE events for one answer."""
    files = [FileReference.model_validate(hit).model_dump() for hit in result.files_referenced]
    yield _sse({"type": "files", "files": files, "is_broad": result.is_broad})

    total_length = 0
    try:
        async for chunk in result.stream:
            if chunk.replaces:
                total_length = len(chunk.text)
                yield _sse({"type": "replace", "text": chunk.text})
                continue
            total_length += len(chunk.text)
            yield _sse({"type": "token", "text": chunk.text})
    except RepoQAError as e:
        logger.error("[router] Answer stream failed: %s", e.message)
        yield _sse({"type": "error", **e.to_http_detail()})
        return

    yield _sse({"type": "done", "total_length": total_length})


@router.post("/{project_id}/ask")
async def ask_question(
    project_id: str,
    req: AskRequest,
    service: RepoQAService = Depends(get_service),
):
    try:
        result = await service.ask(project_id, req.question)
    except RepoQAError as e:
        raise _http_error(e)

    return StreamingResponse(
        generate_answer_stream(result),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# =============================================================================
# COMMITS
# =============================================================================

@router.post("/{project_id}/commits/poll", response_model=CommitPollResponse)
async def poll_commits(
    project_id: str,
    req: Optional[CommitPollRequest] = None,
    service: RepoQAService = Depends(get_service),
):
    token = req.github_token if req else None
    try:
        records = await service.poll_commits(project_id, credential=token)
    except RepoQAError as e:
        raise _http_error(e)

    return CommitPollResponse(
        project_id=project_id,
        new_commits=[CommitOut.model_validate(r) for r in records],
    )


@router.get("/{project_id}/commits", response_model=List[CommitOut])
def list_commits(project_id: str, service: RepoQAService = Depends(get_service)):
    try:
        return [CommitOut.model_validate(r) for r in service.list_commits(project_id)]
    except RepoQAError as e:
        raise _http_error(e)


# =============================================================================
# PROJECT
# =============================================================================

@router.get("/{project_id}/status", response_model=ProjectStatusResponse)
def project_status(project_id: str, service: RepoQAService = Depends(get_service)):
    try:
        return ProjectStatusResponse.model_validate(service.status(project_id))
    except RepoQAError as e:
        raise _http_error(e)


@router.get("/{project_id}/analysis", response_model=AnalysisResponse)
def project_analysis(project_id: str, service: RepoQAService = Depends(get_service)):
    try:
        stats = service.analysis(project_id)
    except RepoQAError as e:
        raise _http_error(e)
    return AnalysisResponse(project_id=project_id, stats=stats.to_dict())


@router.delete("/{project_id}")
def delete_project(project_id: str, service: RepoQAService = Depends(get_service)):
    try:
        service.delete_project(project_id)
    except RepoQAError as e:
        raise _http_error(e)
    return {"deleted": project_id}
