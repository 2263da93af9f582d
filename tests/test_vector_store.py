# FILE: tests/test_vector_store.py
"""
Tests for repoqa/rag/vector_store.py
"""
import json

import pytest

from repoqa.rag.models import FileEmbedding, Project
from repoqa.rag.vector_store import VectorIndex, cosine_similarity


@pytest.fixture
def index(mock_db):
    mock_db.add(Project(id="p1", name="widgets", repo_url="https://github.com/octo/widgets"))
    mock_db.add(Project(id="p2", name="other", repo_url="https://github.com/octo/other"))
    mock_db.commit()
    return VectorIndex(mock_db)


class TestCosineSimilarity:
    """Test cosine similarity."""

    def test_identical(self):
        """Test identical vectors score 1."""
        assert cosine_similarity([1, 2, 3], [1, 2, 3]) == pytest.approx(1.0)

    def test_orthogonal(self):
        """Test orthogonal vectors score 0."""
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)

    def test_zero_vector(self):
        """Test a zero vector scores 0."""
        assert cosine_similarity([0, 0], [1, 1]) == 0.0

    def test_length_mismatch(self):
        """Test mismatched lengths score 0."""
        assert cosine_similarity([1, 2], [1, 2, 3]) == 0.0


class TestUpsert:
    """Test upsert and delete."""

    def test_upsert_is_idempotent(self, index, mock_db):
        """Test upserting the same file updates in place."""
        index.upsert("p1", "a.py", "first", "x = 1", [1.0, 0.0])
        index.upsert("p1", "a.py", "second", "x = 2", [0.0, 1.0])

        rows = mock_db.query(FileEmbedding).filter(FileEmbedding.project_id == "p1").all()
        assert len(rows) == 1
        mock_db.refresh(rows[0])
        assert rows[0].summary == "second"
        assert rows[0].source_code == "x = 2"
        assert json.loads(rows[0].embedding) == [0.0, 1.0]

    def test_same_file_in_two_projects(self, index):
        """Test the same path is stored per project."""
        index.upsert("p1", "a.py", "s", "c", [1.0])
        index.upsert("p2", "a.py", "s", "c", [1.0])
        assert index.count("p1") == 1
        assert index.count("p2") == 1

    def test_delete_project(self, index):
        """Test deleting a project removes its rows."""
        index.upsert("p1", "a.py", "s", "c", [1.0])
        index.upsert("p1", "b.py", "s", "c", [1.0])
        index.upsert("p2", "a.py", "s", "c", [1.0])

        assert index.delete_project("p1") == 2
        assert index.count("p1") == 0
        assert index.count("p2") == 1


class TestSearch:
    """Test similarity search."""

    def test_sorted_filtered_and_capped(self, index):
        """Test hits are sorted, filtered and capped."""
        index.upsert("p1", "exact.py", "s", "c", [1.0, 0.0])
        index.upsert("p1", "close.py", "s", "c", [0.9, 0.1])
        index.upsert("p1", "far.py", "s", "c", [0.0, 1.0])
        index.upsert("p1", "mid.py", "s", "c", [0.6, 0.4])

        hits = index.search("p1", [1.0, 0.0], similarity_floor=0.3, top_k=2)

        assert [h.file_name for h in hits] == ["exact.py", "close.py"]
        assert hits[0].similarity >= hits[1].similarity

    def test_floor_is_strict(self, index):
        """Test a score equal to the floor is excluded."""
        index.upsert("p1", "a.py", "s", "c", [0.0, 1.0])
        assert index.search("p1", [1.0, 0.0], similarity_floor=0.0) == []

    def test_scoped_to_project(self, index):
        """Test search never crosses projects."""
        index.upsert("p2", "a.py", "s", "c", [1.0, 0.0])
        assert index.search("p1", [1.0, 0.0]) == []

    def test_ties_keep_insertion_order(self, index):
        """Test equal scores keep insertion order."""
        for name in ("first.py", "second.py", "third.py"):
            index.upsert("p1", name, "s", "c", [1.0, 1.0])
        hits = index.search("p1", [1.0, 1.0])
        assert [h.file_name for h in hits] == ["first.py", "second.py", "third.py"]

    def test_hit_carries_row_content(self, index):
        """Test hits carry summary and source code."""
        index.upsert("p1", "a.py", "does a", "print('a')", [1.0, 0.0])
        hit = index.search("p1", [1.0, 0.0])[0]
        assert (hit.file_name, hit.summary, hit.source_code) == ("a.py", "does a", "print('a')")


class TestLookups:
    """Test direct lookups."""

    def test_get_by_names_in_given_order(self, index):
        """Test lookups by name keep the requested order."""
        for name in ("README.md", "main.py", "app.py"):
            index.upsert("p1", name, "s", "c", [1.0])
        rows = index.get_by_names("p1", ["app.py", "missing.md", "README.md"])
        assert [r.file_name for r in rows] == ["app.py", "README.md"]

    def test_first_n_and_listing(self, index):
        """Test the first-files lookup and the path listing."""
        for i in range(5):
            index.upsert("p1", f"f{i}.py", "s", "c", [1.0])
        assert [r.file_name for r in index.first_n("p1", 3)] == ["f0.py", "f1.py", "f2.py"]
        assert index.list_file_names("p1") == [f"f{i}.py" for i in range(5)]
