"""
Error taxonomy for ingestion, retrieval and commit polling.

Every error carries a stable ``code`` plus a remediation hint so the HTTP layer
can tell the user *what to do* (resubmit with a token, pick a smaller repo,
wait) instead of offering a generic retry.

Per-file embedding failures are NOT exceptions: the generator returns them as
results and the ingestion aggregates them (see repoqa.ingestion.generator).
"""

from typing import Any, Dict, List, Optional


class RepoQAError(Exception):
    """Base class for all pipeline errors."""

    code: str = "ERROR"
    status_code: int = 500
    retryable: bool = False
    remediation: Optional[str] = None

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    def to_http_detail(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "remediation": self.remediation,
        }


class InvalidReference(RepoQAError):
    """Repository URL could not be parsed into owner/repo."""

    code = "INVALID_REFERENCE"
    status_code = 400
    remediation = "fix_url"


class RepositoryTooLarge(RepoQAError):
    """Archive estimate exceeds the direct-processing policy limit."""

    code = "REPOSITORY_TOO_LARGE"
    status_code = 413
    remediation = "needs_token"

    def __init__(self, size_mb: float, limit_mb: float):
        super().__init__(
            f"Repository too large ({size_mb:.1f}MB) for direct processing "
            f"(limit {limit_mb:.0f}MB). Use a smaller repository or provide an access token."
        )
        self.size_mb = size_mb
        self.limit_mb = limit_mb


class RepositoryNotFound(RepoQAError):
    """404 from the source host: missing, or private without a credential."""

    code = "REPOSITORY_NOT_FOUND"
    status_code = 404
    remediation = "needs_token"


class ProjectNotFound(RepoQAError):
    """No project row for the given id (ingest it first)."""

    code = "PROJECT_NOT_FOUND"
    status_code = 404
    remediation = "ingest"


class Unauthorized(RepoQAError):
    """Credential rejected or lacks access."""

    code = "UNAUTHORIZED"
    status_code = 401
    remediation = "needs_token"


class InvalidArchive(RepoQAError):
    """Downloaded archive could not be opened as a zip file."""

    code = "INVALID_ARCHIVE"
    status_code = 502
    retryable = True
    remediation = "retry"


class RateLimited(RepoQAError):
    """Source host quota still exhausted after the internal retry."""

    code = "RATE_LIMITED"
    status_code = 429
    retryable = True
    remediation = "wait"

    def __init__(self, message: str = "", reset_at: Optional[float] = None):
        super().__init__(message or "GitHub API rate limit exceeded")
        self.reset_at = reset_at


class ProviderFailure(RepoQAError):
    """Every provider in a capability chain failed (or a single provider call failed)."""

    code = "PROVIDER_FAILURE"
    status_code = 502
    retryable = True
    remediation = "retry"

    def __init__(
        self,
        message: str = "",
        capability: Optional[str] = None,
        provider: Optional[str] = None,
        errors: Optional[List[BaseException]] = None,
    ):
        super().__init__(message or f"{capability or 'provider'} call failed")
        self.capability = capability
        self.provider = provider
        self.errors = list(errors or [])
