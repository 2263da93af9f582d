"""
Repository acquirer.

Fetches a repository snapshot as a zip archive and unpacks it into
SourceFiles.

Two strategies:
- Anonymous: HEAD the public archive URL, estimate the file count from its
  size (~60 files/MB, clamped to [20, 2000]) and refuse anything over
  MAX_ARCHIVE_MB before downloading a single byte.
- Authenticated: resolve the branch commit, walk the recursive tree and count
  blobs exactly (2 API calls), then pull the authenticated zipball. No size
  policy applies.

Both strategies retry once with `master` when `main` cannot be resolved.
"""

from __future__ import annotations

import io
import logging
import zipfile
from dataclasses import dataclass
from functools import partial
from typing import Iterator, List, Optional, Tuple

import httpx

from repoqa.config import (
    DEFAULT_BRANCH,
    FALLBACK_BRANCH,
    FILES_PER_MB,
    MAX_ARCHIVE_MB,
    MAX_ESTIMATED_FILES,
    MAX_FILES,
    MIN_ESTIMATED_FILES,
    UNPACK_CHUNK_SIZE,
)
from repoqa.errors import InvalidArchive, RepositoryNotFound, RepositoryTooLarge
from repoqa.github.client import GitHubClient
from repoqa.github.refs import RepositoryReference
from repoqa.ingestion.filters import ArchiveEntry, SourceFile, filter_entries

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


@dataclass(frozen=True)
class ArchiveEstimate:
    branch: str
    size_mb: float
    estimated_files: int
    limit_mb: float = MAX_ARCHIVE_MB

    @property
    def too_large(self) -> bool:
        return self.size_mb > self.limit_mb


@dataclass
class AcquiredRepository:
    reference: RepositoryReference
    files: List[SourceFile]
    file_count: int
    exact: bool
    size_mb: Optional[float] = None


def _branch_candidates(branch: str) -> Tuple[str, ...]:
    if branch == DEFAULT_BRANCH:
        return (DEFAULT_BRANCH, FALLBACK_BRANCH)
    return (branch,)


def estimate_files_from_size(size_mb: float) -> int:
    estimated = round(size_mb * FILES_PER_MB)
    return max(MIN_ESTIMATED_FILES, min(MAX_ESTIMATED_FILES, estimated))


# =============================================================================
# ESTIMATION
# =============================================================================

async def estimate_archive(client: GitHubClient, ref: RepositoryReference) -> ArchiveEstimate:
    """
    Estimate archive size and file count from a HEAD request (no API quota).

    Raises RepositoryNotFound when no candidate branch answers.
    """
    last_status = None
    for branch in _branch_candidates(ref.branch):
        response = await client.head(client.archive_url(ref.owner, ref.repo, branch))
        if response.status_code < 400:
            size_mb = int(response.headers.get("content-length") or 0) / BYTES_PER_MB
            estimate = ArchiveEstimate(
                branch=branch,
                size_mb=size_mb,
                estimated_files=estimate_files_from_size(size_mb),
            )
            logger.info(
                "[acquirer] %s@%s archive ~%.2fMB, ~%d files",
                ref.full_name,
                branch,
                size_mb,
                estimate.estimated_files,
            )
            return estimate
        last_status = response.status_code
        logger.info("[acquirer] Archive HEAD for %s@%s returned %s", ref.full_name, branch, last_status)

    raise RepositoryNotFound(f"Repository not found or private: {ref.full_name} (HTTP {last_status})")


async def count_files_precise(client: GitHubClient, ref: RepositoryReference) -> Tuple[int, str]:
    """
    Exact blob count through the Git Trees API.

    Returns (count, resolved_branch). Directories (tree entries) are not counted.
    """
    candidates = _branch_candidates(ref.branch)
    for i, branch in enumerate(candidates):
        try:
            tree = await client.get_tree_for_branch(ref.owner, ref.repo, branch)
        except (RepositoryNotFound, httpx.HTTPStatusError) as e:
            if i + 1 < len(candidates):
                logger.info("[acquirer] Branch %s unresolvable for %s, trying %s", branch, ref.full_name, candidates[i + 1])
                continue
            if isinstance(e, RepositoryNotFound):
                raise
            raise RepositoryNotFound(f"Branch {branch} not found for {ref.full_name}") from e

        count = sum(1 for item in tree.get("tree", []) if item.get("type") == "blob")
        logger.info(
            "[acquirer] Git tree for %s@%s: %d files (truncated=%s)",
            ref.full_name,
            branch,
            count,
            tree.get("truncated", False),
        )
        return count, branch

    raise RepositoryNotFound(f"Repository not found or private: {ref.full_name}")


# =============================================================================
# UNPACKING
# =============================================================================

def open_archive(data: bytes) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise InvalidArchive(f"Downloaded archive is not a valid zip: {e}") from e


def iter_archive_entries(archive: zipfile.ZipFile) -> Iterator[ArchiveEntry]:
    """
    Yield members of an open archive lazily. Each entry's bytes are
    decompressed only when its `load` is called, so the archive must stay open
    until the entries are consumed.
    """
    for info in archive.infolist():
        yield ArchiveEntry(
            name=info.filename,
            is_dir=info.is_dir(),
            load=partial(archive.read, info),
            size=info.file_size,
        )


def unpack_archive(
    data: bytes,
    max_files: int = MAX_FILES,
    chunk_size: int = UNPACK_CHUNK_SIZE,
) -> List[SourceFile]:
    logger.info("[acquirer] Unpacking archive (%.2fMB)", len(data) / BYTES_PER_MB)
    with open_archive(data) as archive:
        return filter_entries(iter_archive_entries(archive), max_files=max_files, chunk_size=chunk_size)


# =============================================================================
# ACQUISITION
# =============================================================================

async def acquire(
    client: GitHubClient,
    ref: RepositoryReference,
    max_files: int = MAX_FILES,
) -> AcquiredRepository:
    """
    Download and unpack a repository.

    Anonymous clients get the size policy: RepositoryTooLarge is raised from the
    HEAD estimate, before any download starts.
    """
    if client.authenticated:
        count, branch = await count_files_precise(client, ref)
        data = await client.download(client.zipball_url(ref.owner, ref.repo, branch))
        files = unpack_archive(data, max_files=max_files)
        return AcquiredRepository(
            reference=ref.with_branch(branch),
            files=files,
            file_count=count,
            exact=True,
            size_mb=len(data) / BYTES_PER_MB,
        )

    estimate = await estimate_archive(client, ref)
    if estimate.too_large:
        logger.warning(
            "[acquirer] %s is %.1fMB (limit %.0fMB), refusing download",
            ref.full_name,
            estimate.size_mb,
            estimate.limit_mb,
        )
        raise RepositoryTooLarge(estimate.size_mb, estimate.limit_mb)

    data = await client.download(client.archive_url(ref.owner, ref.repo, estimate.branch))
    files = unpack_archive(data, max_files=max_files)
    logger.info("[acquirer] Loaded %d files from %s@%s", len(files), ref.full_name, estimate.branch)
    return AcquiredRepository(
        reference=ref.with_branch(estimate.branch),
        files=files,
        file_count=estimate.estimated_files,
        exact=False,
        size_mb=estimate.size_mb,
    )
