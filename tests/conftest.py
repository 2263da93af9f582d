# FILE: tests/conftest.py
"""
Pytest configuration for the RepoQA test suite.

Configures:
- pytest-asyncio for async test support
- an in-memory SQLite session with every RepoQA table created
"""
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

pytest_plugins = ["pytest_asyncio"]


@pytest.fixture
def db_engine():
    """One shared in-memory connection, usable from the TestClient thread too."""
    from repoqa.db import Base
    from repoqa.rag import models  # noqa: F401

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def mock_db(db_engine):
    """Session on the in-memory database."""
    SessionLocal = sessionmaker(bind=db_engine, expire_on_commit=False)
    session = SessionLocal()
    yield session
    session.close()
