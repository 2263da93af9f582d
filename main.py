# FILE: main.py
"""
RepoQA Backend - FastAPI Application
Version: 0.3.0

Features:
- GitHub repository ingestion (archive or authenticated zipball)
- Per-file summaries + embeddings with provider fallback chains
- Streaming grounded Q&A over indexed files (SSE)
- Commit polling with diff summaries
- Repository statistics
"""
import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env FIRST before any other imports that might need env vars
load_dotenv()

from repoqa import __version__
from repoqa.db import init_db
from repoqa.providers.registry import build_provider_clients
from repoqa.router import router as projects_router

logging.basicConfig(
    level=os.getenv("REPOQA_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("repoqa")

app = FastAPI(
    title="RepoQA",
    version=__version__,
    description="Retrieval-augmented Q&A over GitHub repositories",
)

# ====== CORS ======

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("REPOQA_CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ====== STARTUP ======

@app.on_event("startup")
def on_startup():
    init_db()
    app.state.providers = build_provider_clients()

    logger.info("[startup] Checking environment variables...")
    for key, purpose in (
        ("OPENROUTER_API_KEY", "embeddings, classifier, answers"),
        ("GROQ_API_KEY", "file summaries"),
        ("OPENAI_API_KEY", "fallback for every capability"),
        ("GITHUB_TOKEN", "private repos, exact file counts"),
    ):
        if os.getenv(key):
            logger.info("[startup] %s: [OK] set (%s)", key, purpose)
        else:
            logger.info("[startup] %s: [X] NOT SET (%s)", key, purpose)


# ====== ROUTERS ======

app.include_router(projects_router)


# ====== PUBLIC ENDPOINTS ======

@app.get("/ping")
def ping():
    """Health check."""
    return {"status": "ok", "version": __version__}
