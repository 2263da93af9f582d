"""
RepoQA RAG - retrieval and grounded answers over indexed repository files.

Modules:
    models            - SQLAlchemy tables (projects, file_embeddings, commits)
    vector_store      - upsert + cosine search over JSON vectors
    classifier        - broad vs specific questions
    context_assembler - search + anchors + broad fallback -> prompt context
    answerer          - streaming answer with one-shot fallback
    commit_poller     - summarize new commits
    analysis          - display-only repository statistics

Note: import models before init_db() creates tables (repoqa.db does this).
"""
