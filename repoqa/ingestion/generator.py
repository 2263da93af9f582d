"""
Summary + embedding generator.

For each SourceFile:
1. Ask the summarizer chain for an onboarding-style explanation (code capped
   at SUMMARY_CODE_CHARS)
2. Embed the summary text (not the raw code)
3. Normalize the vector to EMBEDDING_DIM (done by the embedder chain)

Files are processed with bounded concurrency. Every file yields an
EmbeddingResult; one file failing never aborts the batch.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from repoqa.config import EMBEDDING_CONCURRENCY, SUMMARY_CODE_CHARS
from repoqa.ingestion.filters import SourceFile
from repoqa.providers.base import Embedder, Summarizer

logger = logging.getLogger(__name__)


SUMMARY_PROMPT = """You are a senior software engineer onboarding a junior engineer onto a project.
Explain the purpose of the file `{path}`.

Here is the code:
---
{code}
---

Write a summary of no more than 300 words. Highlight the important pieces of the code: \
function and class names, what they take and return, how control flows through them, \
and what role the file plays in the project."""


def build_summary_prompt(file: SourceFile, max_chars: int = SUMMARY_CODE_CHARS) -> str:
    return SUMMARY_PROMPT.format(path=file.path, code=file.content[:max_chars])


@dataclass
class EmbeddingResult:
    file_name: str
    source_code: str
    summary: Optional[str] = None
    vector: Optional[List[float]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.vector is not None


async def generate_file_embedding(
    file: SourceFile,
    summarizer: Summarizer,
    embedder: Embedder,
) -> EmbeddingResult:
    try:
        summary = await summarizer.summarize(build_summary_prompt(file))
        vector = await embedder.embed(summary)
    except Exception as e:
        logger.warning("[generator] %s failed: %s", file.path, e)
        return EmbeddingResult(file_name=file.path, source_code=file.content, error=str(e))

    return EmbeddingResult(
        file_name=file.path,
        source_code=file.content,
        summary=summary,
        vector=vector,
    )


async def generate_file_embeddings(
    files: Sequence[SourceFile],
    summarizer: Summarizer,
    embedder: Embedder,
    concurrency: int = EMBEDDING_CONCURRENCY,
) -> List[EmbeddingResult]:
    """
    Summarize and embed every file, at most `concurrency` at a time.

    Results come back in input order regardless of completion order.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))
    total = len(files)

    async def _one(index: int, file: SourceFile) -> EmbeddingResult:
        async with semaphore:
            logger.debug("[generator] Processing %d of %d: %s", index + 1, total, file.path)
            return await generate_file_embedding(file, summarizer, embedder)

    results = await asyncio.gather(*(_one(i, f) for i, f in enumerate(files)))

    succeeded = sum(1 for r in results if r.ok)
    logger.info("[generator] Embedded %d/%d files (%d failed)", succeeded, total, total - succeeded)
    return list(results)
