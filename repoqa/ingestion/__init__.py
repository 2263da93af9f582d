"""Write path: archive entries -> SourceFiles -> summaries + embeddings."""
