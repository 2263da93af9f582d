"""
RepoQA Pydantic schemas.

Request/response contracts for the /projects API.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============ INGESTION ============

class IngestRequest(BaseModel):
    repo_url: str
    github_token: Optional[str] = None


class IngestResponse(BaseModel):
    project_id: str
    file_count: int
    indexed_count: int
    failed_count: int
    exact_count: bool
    branch: str


class CreditsResponse(BaseModel):
    repo_url: str
    file_count: int


# ============ QUESTIONS ============

class AskRequest(BaseModel):
    question: str = Field(..., min_length=1)


class FileReference(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    file_name: str
    source_code: str
    summary: str
    similarity: float


# ============ COMMITS ============

class CommitPollRequest(BaseModel):
    github_token: Optional[str] = None


class CommitOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    commit_hash: str
    message: str
    author_name: str
    author_avatar: str
    committed_at: datetime
    summary: str


class CommitPollResponse(BaseModel):
    project_id: str
    new_commits: List[CommitOut]


# ============ PROJECT ============

class ProjectStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project_id: str
    repo_url: str
    indexed_files: int
    commits: int


class AnalysisResponse(BaseModel):
    project_id: str
    stats: Dict[str, Any]

