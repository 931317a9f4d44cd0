"""
Retrieval — vector stores, metadata filters, and semantic search.

This package wraps the vector store behind a clean interface so that
the chat layer never needs to know which database backs retrieval.

Public surface
--------------
- :class:`SemanticRetriever` — main entry point for retrieval with citations.
- :class:`VectorStoreBase` — abstract backend.
- :class:`InMemoryVectorStore` — default process-local backend.
- :class:`ChromaVectorStore` — Chroma backend.
- :class:`MetadataFilter`, :class:`FilterGroup`, :func:`parse_filter_expression` — filters.
- :class:`Citation`, :class:`RetrievalResult`, :class:`SearchRequest` — data models.
"""

from rag_workshop.retrieval.base import VectorStoreBase
from rag_workshop.retrieval.filters import (
    FilterGroup,
    FilterSyntaxError,
    MetadataFilter,
    parse_filter_expression,
)
from rag_workshop.retrieval.memory_store import InMemoryVectorStore
from rag_workshop.retrieval.models import Citation, RetrievalResult, SearchRequest
from rag_workshop.retrieval.retriever import SemanticRetriever

__all__ = [
    "Citation",
    "ChromaVectorStore",
    "FilterGroup",
    "FilterSyntaxError",
    "InMemoryVectorStore",
    "MetadataFilter",
    "RetrievalResult",
    "SearchRequest",
    "SemanticRetriever",
    "VectorStoreBase",
    "parse_filter_expression",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorStore to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorStore":
        from rag_workshop.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
