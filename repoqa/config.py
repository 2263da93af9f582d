"""
RepoQA configuration.

All tunables in one place for easy adjustment. Every value can be overridden
through the environment (a .env file is loaded by main.py before import).
"""

import os
from typing import Tuple


def _float_env(name: str, default: float) -> float:
    v = os.getenv(name, "").strip()
    if not v:
        return default
    try:
        return float(v)
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    v = os.getenv(name, "").strip()
    if not v:
        return default
    try:
        return int(v)
    except ValueError:
        return default


# ============================================================================
# DATABASE
# ============================================================================

DATABASE_URL: str = os.getenv("REPOQA_DATABASE_URL", "sqlite:///./data/repoqa.db")

# ============================================================================
# SOURCE HOST (GitHub)
# ============================================================================

GITHUB_API_BASE: str = os.getenv("GITHUB_API_BASE", "https://api.github.com")
GITHUB_WEB_BASE: str = os.getenv("GITHUB_WEB_BASE", "https://github.com")
GITHUB_TOKEN: str = os.getenv("GITHUB_TOKEN", "")
HTTP_TIMEOUT_SECONDS: float = _float_env("REPOQA_HTTP_TIMEOUT", 30.0)

# Rate limiting
RATE_LIMIT_THRESHOLD: int = _int_env("REPOQA_RATE_LIMIT_THRESHOLD", 10)
RATE_LIMIT_RESET_BUFFER_SECONDS: float = _float_env("REPOQA_RATE_LIMIT_BUFFER", 1.0)
RATE_LIMIT_COOLDOWN_SECONDS: float = _float_env("REPOQA_RATE_LIMIT_COOLDOWN", 60.0)

# Branches tried in order when resolving a repository
DEFAULT_BRANCH: str = "main"
FALLBACK_BRANCH: str = "master"

# ============================================================================
# ACQUISITION
# ============================================================================

# Archive size estimation (empirical: ~60 files per MB of zip)
FILES_PER_MB: int = 60
MIN_ESTIMATED_FILES: int = 20
MAX_ESTIMATED_FILES: int = 2000
MAX_ARCHIVE_MB: float = _float_env("REPOQA_MAX_ARCHIVE_MB", 15.0)

# Credit check fallbacks
CREDIT_FALLBACK_ESTIMATE: int = 200

# Unpacking
MAX_FILES: int = _int_env("REPOQA_MAX_FILES", 1000)
UNPACK_CHUNK_SIZE: int = 100

# ============================================================================
# FILTERING
# ============================================================================

MAX_FILE_CHARS: int = 100_000
# Uncompressed size above which an entry is skipped without decompressing it
MAX_FILE_BYTES: int = MAX_FILE_CHARS * 4

# ============================================================================
# SUMMARIES + EMBEDDINGS
# ============================================================================

SUMMARY_CODE_CHARS: int = 10_000
EMBEDDING_DIM: int = 768
EMBEDDING_CONCURRENCY: int = _int_env("REPOQA_EMBEDDING_CONCURRENCY", 3)

# Provider endpoints
OPENROUTER_BASE_URL: str = "https://openrouter.ai/api/v1"
GROQ_BASE_URL: str = "https://api.groq.com/openai/v1"
APP_PUBLIC_URL: str = os.getenv("REPOQA_PUBLIC_URL", "http://localhost:8000")
APP_TITLE: str = "RepoQA"

# Models
GROQ_SUMMARY_MODEL: str = os.getenv("REPOQA_GROQ_SUMMARY_MODEL", "llama-3.3-70b-versatile")
OPENROUTER_SUMMARY_MODEL: str = os.getenv(
    "REPOQA_OPENROUTER_SUMMARY_MODEL", "qwen/qwen-2.5-coder-32b-instruct"
)
OPENAI_SUMMARY_MODEL: str = os.getenv("REPOQA_OPENAI_SUMMARY_MODEL", "gpt-4o-mini")
OPENROUTER_EMBEDDING_MODEL: str = os.getenv("REPOQA_OPENROUTER_EMBEDDING_MODEL", "qwen/qwen3-embedding-8b")
OPENAI_EMBEDDING_MODEL: str = os.getenv("REPOQA_OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
CLASSIFIER_MODEL: str = os.getenv("REPOQA_CLASSIFIER_MODEL", "google/gemini-3-flash-preview")
ANSWER_MODEL: str = os.getenv("REPOQA_ANSWER_MODEL", "x-ai/grok-4.1-fast")
ANSWER_FALLBACK_MODEL: str = os.getenv("REPOQA_ANSWER_FALLBACK_MODEL", "qwen/qwen-2.5-coder-32b-instruct")

# ============================================================================
# RETRIEVAL
# ============================================================================

TOP_K: int = 10
CODE_SIMILARITY_FLOOR: float = 0.3
MEETING_SIMILARITY_FLOOR: float = 0.45

# Curated high-signal files pulled in for broad questions
ANCHOR_FILES: Tuple[str, ...] = (
    "README.md",
    "package.json",
    "src/app/page.tsx",
    "index.ts",
    "main.ts",
    "src/index.ts",
    "app.py",
    "main.py",
    "requirements.txt",
)
MAX_ANCHOR_FILES: int = 5
BROAD_FALLBACK_FILES: int = 10
ANCHOR_SIMILARITY: float = 1.0
BROAD_FALLBACK_SIMILARITY: float = 0.5

# Prompt budget
MAX_CONTEXT_CHARS: int = _int_env("REPOQA_MAX_CONTEXT_CHARS", 60_000)
MAX_FILE_LISTING_CHARS: int = 5000

# Answer streaming: max silence between deltas before falling back
ANSWER_STREAM_IDLE_TIMEOUT_SECONDS: float = _float_env("REPOQA_STREAM_IDLE_TIMEOUT", 60.0)

# ============================================================================
# COMMIT POLLING
# ============================================================================

COMMITS_PER_POLL_AUTHENTICATED: int = 10
COMMITS_PER_POLL_PUBLIC: int = 5
COMMIT_POLL_DELAY_SECONDS: float = _float_env("REPOQA_COMMIT_POLL_DELAY", 1.0)
COMMIT_DIFF_CHARS: int = 20_000
