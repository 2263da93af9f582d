"""
RepoQA database models.

Tables:
- projects: one row per ingested repository
- file_embeddings: per-file summary + vector (unique per project/file_name)
- commits: summarized commits (unique per project/commit_hash)

Vectors are stored as JSON-encoded float arrays in a Text column; similarity
is computed in Python (see vector_store.py).

Deleting a Project deletes its embeddings and commits.
"""

from datetime import datetime

from sqlalchemy import (
    Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from repoqa.db import Base


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    repo_url = Column(String(1024), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    files = relationship(
        "FileEmbedding",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    commits = relationship(
        "CommitRecord",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Project {self.id} {self.repo_url}>"


class FileEmbedding(Base):
    """
    One indexed file.

    summary: model-written explanation (this is what gets embedded)
    embedding: JSON-encoded vector of EMBEDDING_DIM floats
    """
    __tablename__ = "file_embeddings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(
        String(64),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_name = Column(String(1024), nullable=False)
    source_code = Column(Text, nullable=False)
    summary = Column(Text, nullable=False)
    embedding = Column(Text, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    project = relationship("Project", back_populates="files")

    __table_args__ = (
        UniqueConstraint("project_id", "file_name", name="uq_file_embeddings_project_file"),
    )

    def __repr__(self):
        return f"<FileEmbedding {self.project_id}:{self.file_name}>"


class CommitRecord(Base):
    __tablename__ = "commits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(
        String(64),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    commit_hash = Column(String(64), nullable=False)
    message = Column(Text, nullable=False, default="")
    author_name = Column(String(255), nullable=False, default="")
    author_avatar = Column(String(1024), nullable=False, default="")
    committed_at = Column(DateTime, nullable=False)
    summary = Column(Text, nullable=False, default="")

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    project = relationship("Project", back_populates="commits")

    __table_args__ = (
        UniqueConstraint("project_id", "commit_hash", name="uq_commits_project_hash"),
    )

    def __repr__(self):
        return f"<CommitRecord {self.project_id}:{self.commit_hash[:7]}>"
