"""Repository reference parsing."""

import re
from dataclasses import dataclass, replace

from repoqa.config import DEFAULT_BRANCH
from repoqa.errors import InvalidReference

# Supported formats:
#   https://github.com/owner/repo(.git)(/tree/...)
#   git@github.com:owner/repo.git
#   owner/repo
_URL_PATTERNS = [
    re.compile(r"github\.com[/:]([^/\s]+)/([^/\s]+?)(?:\.git)?(?:/.*)?$"),
    re.compile(r"^([^/\s:]+)/([^/\s]+?)(?:\.git)?$"),
]


@dataclass(frozen=True)
class RepositoryReference:
    owner: str
    repo: str
    branch: str = DEFAULT_BRANCH

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}"

    def with_branch(self, branch: str) -> "RepositoryReference":
        return replace(self, branch=branch)


def parse_repo_url(url: str, branch: str = DEFAULT_BRANCH) -> RepositoryReference:
    """
    Parse a GitHub URL into a RepositoryReference.

    Raises InvalidReference when owner or repo is missing, so callers fail
    before issuing any network request.
    """
    cleaned = (url or "").strip().rstrip("/")
    for pattern in _URL_PATTERNS:
        match = pattern.search(cleaned)
        if match:
            owner, repo = match.group(1).strip(), match.group(2).strip()
            if owner and repo:
                return RepositoryReference(owner=owner, repo=repo, branch=branch)
    raise InvalidReference(f"Invalid GitHub URL: {url!r}")
