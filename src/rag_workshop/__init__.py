"""rag-workshop — document ingestion, semantic search and retrieval-augmented chat."""

__version__ = "0.1.0"
