import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from repoqa.config import DATABASE_URL

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    connect_args=_connect_args,  # Required for SQLite
    echo=False,  # Set True to log SQL statements for debugging
)

# expire_on_commit=False keeps returned records readable after the session closes
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency that yields a DB session and closes it after the request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create all tables. Call once at startup."""
    if DATABASE_URL.startswith("sqlite:///./"):
        os.makedirs(os.path.dirname(DATABASE_URL.replace("sqlite:///", "")) or ".", exist_ok=True)
    # Import models so Base.metadata knows about them
    from repoqa.rag import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
