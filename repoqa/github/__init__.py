"""GitHub access: reference parsing, rate-limited API client, archive acquisition, commits."""

from repoqa.github.client import GitHubClient
from repoqa.github.refs import RepositoryReference, parse_repo_url

__all__ = ["GitHubClient", "RepositoryReference", "parse_repo_url"]
