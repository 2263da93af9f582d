"""
Context assembler.

Turns a question vector into the grounded context block for the answer model:

1. Semantic search (top TOP_K, similarity > CODE_SIMILARITY_FLOOR)
2. Broad questions: add anchor files (README, manifests, entrypoints) not
   already hit, at ANCHOR_SIMILARITY
3. Broad question with an empty primary search: add the first indexed files
   at BROAD_FALLBACK_SIMILARITY so the answer is never ungrounded
4. Deduplicate by file name (first occurrence wins)
5. Render file blocks within a character budget, plus the project file listing
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from repoqa.config import (
    ANCHOR_FILES,
    ANCHOR_SIMILARITY,
    BROAD_FALLBACK_FILES,
    BROAD_FALLBACK_SIMILARITY,
    CODE_SIMILARITY_FLOOR,
    MAX_ANCHOR_FILES,
    MAX_CONTEXT_CHARS,
    MAX_FILE_LISTING_CHARS,
    TOP_K,
)
from repoqa.rag.vector_store import RetrievalHit, VectorIndex

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "...(truncated)"


@dataclass
class AssembledContext:
    """Assembled context for the answer prompt."""
    hits: List[RetrievalHit]
    context_text: str
    file_listing: str
    files_included: int
    truncated: bool


def dedupe_hits(hits: Sequence[RetrievalHit]) -> List[RetrievalHit]:
    seen = set()
    out = []
    for hit in hits:
        if hit.file_name in seen:
            continue
        seen.add(hit.file_name)
        out.append(hit)
    return out


def format_hit(hit: RetrievalHit, source_code: Optional[str] = None) -> str:
    code = hit.source_code if source_code is None else source_code
    return f"source:{hit.file_name}\ncode content:{code}\nsummary of file:{hit.summary}\n\n"


def format_file_listing(file_names: Sequence[str], max_chars: int = MAX_FILE_LISTING_CHARS) -> str:
    listing = "\n".join(file_names)
    if len(listing) > max_chars:
        return f"{listing[:max_chars]} {TRUNCATION_MARKER}"
    return listing


class ContextAssembler:
    """Retrieve and assemble file context for one project."""

    def __init__(
        self,
        index: VectorIndex,
        max_chars: int = MAX_CONTEXT_CHARS,
        top_k: int = TOP_K,
        similarity_floor: float = CODE_SIMILARITY_FLOOR,
    ):
        self.index = index
        self.max_chars = max_chars
        self.top_k = top_k
        self.similarity_floor = similarity_floor

    # =========================================================================
    # RETRIEVAL
    # =========================================================================

    def retrieve(self, project_id: str, query_vector: Sequence[float], is_broad: bool) -> List[RetrievalHit]:
        hits = self.index.search(project_id, query_vector, self.similarity_floor, self.top_k)
        logger.info("[context] Vector search: %d hits %s", len(hits), [h.file_name for h in hits])

        if not is_broad:
            return hits

        primary_empty = not hits
        result = list(hits)
        existing = {h.file_name for h in result}

        anchors = self.index.get_by_names(project_id, ANCHOR_FILES)[:MAX_ANCHOR_FILES]
        added = 0
        for row in anchors:
            if row.file_name not in existing:
                result.append(RetrievalHit.from_row(row, ANCHOR_SIMILARITY))
                existing.add(row.file_name)
                added += 1
        logger.info("[context] Added %d anchor files for broad question", added)

        if primary_empty:
            fallback = self.index.first_n(project_id, BROAD_FALLBACK_FILES)
            result.extend(RetrievalHit.from_row(row, BROAD_FALLBACK_SIMILARITY) for row in fallback)
            logger.info("[context] Broad fallback added %d files", len(fallback))

        return dedupe_hits(result)

    # =========================================================================
    # RENDERING
    # =========================================================================

    def render(self, hits: Sequence[RetrievalHit]) -> Tuple[str, int, bool]:
        """
        Render hits into context blocks within the character budget.

        Returns (text, files_included, truncated). The first block is cut to
        fit rather than dropped, so a non-empty hit list never renders empty.
        """
        parts: List[str] = []
        used = 0
        for hit in hits:
            block = format_hit(hit)
            if used + len(block) <= self.max_chars:
                parts.append(block)
                used += len(block)
                continue

            if not parts:
                overhead = len(format_hit(hit, source_code=""))
                room = max(0, self.max_chars - overhead - len(TRUNCATION_MARKER))
                parts.append(format_hit(hit, source_code=hit.source_code[:room] + TRUNCATION_MARKER))
            return "".join(parts), len(parts), True

        return "".join(parts), len(parts), False

    def assemble(self, project_id: str, query_vector: Sequence[float], is_broad: bool) -> AssembledContext:
        hits = self.retrieve(project_id, query_vector, is_broad)
        text, included, truncated = self.render(hits)
        listing = format_file_listing(self.index.list_file_names(project_id))

        if truncated:
            logger.info("[context] Budget reached: %d/%d files rendered", included, len(hits))

        return AssembledContext(
            hits=hits,
            context_text=text,
            file_listing=listing,
            files_included=included,
            truncated=truncated,
        )
