"""
Vector index over per-file summary embeddings.

Storage: FileEmbedding rows, vector as JSON text.
Search: brute-force cosine similarity in Python over one project's rows.
Fine for the <= MAX_FILES rows a project can hold.

Upserts are atomic per (project_id, file_name) through the dialect's
INSERT ... ON CONFLICT DO UPDATE, so concurrent writers for the same file
never produce duplicates.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from repoqa.config import CODE_SIMILARITY_FLOOR, TOP_K
from repoqa.rag.models import FileEmbedding

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetrievalHit:
    file_name: str
    source_code: str
    summary: str
    similarity: float

    @classmethod
    def from_row(cls, row: FileEmbedding, similarity: float) -> "RetrievalHit":
        return cls(
            file_name=row.file_name,
            source_code=row.source_code,
            summary=row.summary,
            similarity=similarity,
        )


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Cosine similarity; 0.0 for mismatched lengths or zero vectors."""
    if len(vec_a) != len(vec_b):
        return 0.0

    dot_product = sum(a * b for a, b in zip(vec_a, vec_b))
    norm_a = math.sqrt(sum(a * a for a in vec_a))
    norm_b = math.sqrt(sum(b * b for b in vec_b))

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return dot_product / (norm_a * norm_b)


def _dialect_insert(dialect: str):
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
        return insert
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
        return insert
    return None


class VectorIndex:
    """Per-project semantic index bound to one DB session."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # WRITE
    # =========================================================================

    def upsert(
        self,
        project_id: str,
        file_name: str,
        summary: str,
        source_code: str,
        vector: Sequence[float],
    ) -> None:
        now = datetime.utcnow()
        values = {
            "project_id": project_id,
            "file_name": file_name,
            "summary": summary,
            "source_code": source_code,
            "embedding": json.dumps(list(vector)),
            "created_at": now,
            "updated_at": now,
        }

        insert = _dialect_insert(self.db.get_bind().dialect.name)
        if insert is not None:
            stmt = insert(FileEmbedding).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["project_id", "file_name"],
                set_={
                    "summary": stmt.excluded.summary,
                    "source_code": stmt.excluded.source_code,
                    "embedding": stmt.excluded.embedding,
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            self.db.execute(stmt)
        else:
            # Dialects without ON CONFLICT: update-then-insert in one transaction
            row = self._get(project_id, file_name)
            if row is None:
                self.db.add(FileEmbedding(**values))
            else:
                row.summary = summary
                row.source_code = source_code
                row.embedding = values["embedding"]
                row.updated_at = now
        self.db.commit()

    def delete_project(self, project_id: str) -> int:
        count = (
            self.db.query(FileEmbedding)
            .filter(FileEmbedding.project_id == project_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        logger.info("[vector_store] Deleted %d embeddings for project %s", count, project_id)
        return count

    # =========================================================================
    # READ
    # =========================================================================

    def _get(self, project_id: str, file_name: str) -> Optional[FileEmbedding]:
        return (
            self.db.query(FileEmbedding)
            .filter(FileEmbedding.project_id == project_id, FileEmbedding.file_name == file_name)
            .first()
        )

    def _rows(self, project_id: str):
        return (
            self.db.query(FileEmbedding)
            .filter(FileEmbedding.project_id == project_id)
            .order_by(FileEmbedding.id)
        )

    def search(
        self,
        project_id: str,
        query_vector: Sequence[float],
        similarity_floor: float = CODE_SIMILARITY_FLOOR,
        top_k: int = TOP_K,
    ) -> List[RetrievalHit]:
        """
        Rows with similarity strictly above `similarity_floor`, best first,
        at most `top_k`. Ties keep insertion order.
        """
        scored = []
        for row in self._rows(project_id):
            try:
                stored = json.loads(row.embedding)
            except (json.JSONDecodeError, TypeError):
                logger.warning("[vector_store] Unreadable vector for %s", row.file_name)
                continue
            similarity = cosine_similarity(query_vector, stored)
            if similarity > similarity_floor:
                scored.append((row, similarity))

        scored.sort(key=lambda x: x[1], reverse=True)
        return [RetrievalHit.from_row(row, sim) for row, sim in scored[:top_k]]

    def get_by_names(self, project_id: str, names: Iterable[str]) -> List[FileEmbedding]:
        """Rows for `names` that exist, in the order the names were given."""
        wanted = list(dict.fromkeys(names))
        if not wanted:
            return []
        rows = (
            self.db.query(FileEmbedding)
            .filter(FileEmbedding.project_id == project_id, FileEmbedding.file_name.in_(wanted))
            .all()
        )
        by_name = {row.file_name: row for row in rows}
        return [by_name[name] for name in wanted if name in by_name]

    def first_n(self, project_id: str, n: int) -> List[FileEmbedding]:
        return self._rows(project_id).limit(n).all()

    def all_rows(self, project_id: str) -> List[FileEmbedding]:
        return self._rows(project_id).all()

    def list_file_names(self, project_id: str) -> List[str]:
        rows = (
            self.db.query(FileEmbedding.file_name)
            .filter(FileEmbedding.project_id == project_id)
            .order_by(FileEmbedding.id)
            .all()
        )
        return [name for (name,) in rows]

    def count(self, project_id: str) -> int:
        return self.db.query(FileEmbedding).filter(FileEmbedding.project_id == project_id).count()
