"""
RepoQA - Retrieval-Augmented Q&A over GitHub repositories.

Ingests a repository, summarizes and embeds every source file, and answers
natural-language questions about the codebase with grounded, streamed answers.

Core API (see repoqa.service):
    RepoQAService.ingest(project_id, repo_url, credential) -> IngestResult
    RepoQAService.ask(project_id, question) -> AskResult
    RepoQAService.poll_commits(project_id, credential) -> list[CommitRecord]
    RepoQAService.check_credits(repo_url, credential) -> int

Data Flow:
    archive / tree API -> filters -> summary + embedding -> file_embeddings table
    question -> classifier + vector search -> context assembler -> answer stream
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
