"""
File filter / normalizer.

Turns raw archive entries into SourceFile records. Rules, in order:
1. Skip directories
2. Skip ignored paths (lockfiles, VCS/vendor/build dirs, env files, OS/editor artifacts)
3. Keep only allow-listed source/doc/config extensions
4. Skip entries whose reported size exceeds MAX_FILE_BYTES before reading them
5. Skip binary (non UTF-8), empty, and oversized (> MAX_FILE_CHARS) files

Matching is by path segment and suffix only (no regex), and content is loaded
lazily so rejected entries are never decompressed.

Deterministic: the same archive always yields the same files in archive order.
"""

import logging
from dataclasses import dataclass
from itertools import islice
from typing import Callable, FrozenSet, Iterable, Iterator, List, Optional, Tuple

from repoqa.config import MAX_FILE_BYTES, MAX_FILE_CHARS, MAX_FILES, UNPACK_CHUNK_SIZE

logger = logging.getLogger(__name__)


# =============================================================================
# RULES
# =============================================================================

SOURCE_EXTENSIONS: FrozenSet[str] = frozenset({
    ".js", ".jsx", ".ts", ".tsx", ".py", ".java", ".cpp", ".c", ".cs", ".go",
    ".rs", ".php", ".rb", ".swift", ".kt", ".scala", ".sh", ".bat", ".ps1",
    ".html", ".css", ".scss", ".sass", ".less", ".vue", ".svelte", ".astro",
    ".json", ".xml", ".yaml", ".yml", ".toml", ".ini", ".md", ".txt",
})

# Any path segment equal to one of these excludes the file
IGNORED_DIRS: FrozenSet[str] = frozenset({
    "node_modules", ".git", "dist", "build", ".next", ".vercel",
    ".idea", ".vscode", "coverage", "tmp", "__pycache__", ".venv", "venv",
})

IGNORED_FILENAMES: FrozenSet[str] = frozenset({
    "package-lock.json", "bun.lockb", "pnpm-lock.yaml", "yarn.lock",
    ".env", ".DS_Store", "Thumbs.db",
})

IGNORED_SUFFIXES: Tuple[str, ...] = (".log", ".tmp", ".swp", ".swo")


# =============================================================================
# TYPES
# =============================================================================

@dataclass(frozen=True)
class ArchiveEntry:
    """One raw archive member. `load` reads the bytes on demand; `size` is the
    uncompressed size when the archive reports it."""
    name: str
    is_dir: bool
    load: Callable[[], bytes]
    size: Optional[int] = None


@dataclass(frozen=True)
class SourceFile:
    path: str
    content: str


# =============================================================================
# PREDICATES
# =============================================================================

def clean_path(entry_name: str) -> str:
    """Strip the archive's synthetic top directory (e.g. `repo-main/`)."""
    parts = entry_name.split("/")
    return "/".join(parts[1:])


def should_ignore(path: str) -> bool:
    parts = [p for p in path.split("/") if p]
    if not parts:
        return True
    if any(p in IGNORED_DIRS for p in parts[:-1]):
        return True

    filename = parts[-1]
    if filename in IGNORED_FILENAMES or filename.startswith(".env."):
        return True
    return filename.endswith(IGNORED_SUFFIXES)


def is_source_file(path: str) -> bool:
    lower = path.lower()
    dot = lower.rfind(".")
    if dot == -1 or dot < lower.rfind("/"):
        return False
    return lower[dot:] in SOURCE_EXTENSIONS


# =============================================================================
# NORMALIZATION
# =============================================================================

def normalize_entry(entry: ArchiveEntry) -> Optional[SourceFile]:
    """Apply every rule to one entry. Returns None when the entry is dropped."""
    if entry.is_dir:
        return None

    path = clean_path(entry.name)
    if not path or path.endswith("/"):
        return None
    if should_ignore(path) or not is_source_file(path):
        return None
    if entry.size is not None and entry.size > MAX_FILE_BYTES:
        logger.debug("[filters] Skipping oversized file %s (%d bytes)", path, entry.size)
        return None

    try:
        content = entry.load().decode("utf-8")
    except UnicodeDecodeError:
        logger.debug("[filters] Skipping binary file %s", path)
        return None

    if not content or len(content) > MAX_FILE_CHARS:
        return None

    return SourceFile(path=path, content=content)


def _chunks(entries: Iterable[ArchiveEntry], size: int) -> Iterator[List[ArchiveEntry]]:
    it = iter(entries)
    while True:
        chunk = list(islice(it, size))
        if not chunk:
            return
        yield chunk


def filter_entries(
    entries: Iterable[ArchiveEntry],
    max_files: int = MAX_FILES,
    chunk_size: int = UNPACK_CHUNK_SIZE,
) -> List[SourceFile]:
    """
    Filter archive entries into SourceFiles, at most `max_files`.

    Entries are consumed in chunks of `chunk_size` so large archives are never
    materialized as a whole.
    """
    files: List[SourceFile] = []
    for chunk in _chunks(entries, chunk_size):
        for entry in chunk:
            if len(files) >= max_files:
                break
            source = normalize_entry(entry)
            if source is not None:
                files.append(source)
        if len(files) >= max_files:
            logger.info("[filters] Reached file cap (%d), stopping", max_files)
            break

    logger.info("[filters] Kept %d source files", len(files))
    return files
