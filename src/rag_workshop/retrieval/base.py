"""Abstract base class for vector-store backends.

Adding a new backend only requires subclassing :class:`VectorStoreBase`
and implementing the abstract methods.  The rest of the retrieval stack
is backend-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from langchain_core.documents import Document

    from rag_workshop.ingestion.embedder import EmbeddingClient
    from rag_workshop.retrieval.filters import FilterNode


class VectorStoreBase(ABC):
    """Backend-agnostic vector-store interface.

    Parameters
    ----------
    collection_name:
        Logical name of the collection / index / namespace.
    embedder:
        Client used to embed documents on write and text queries on read.
        Its ``dimensions`` fix the dimension of every stored vector.
    """

    def __init__(self, collection_name: str, embedder: EmbeddingClient) -> None:
        self.collection_name = collection_name
        self.embedder = embedder

    @property
    def dimensions(self) -> int:
        return self.embedder.dimensions

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def initialize(self) -> None:
        """Create the index / collection.  Must be idempotent."""
        ...

    @abstractmethod
    def add_documents(self, documents: list[Document]) -> list[str]:
        """Embed and persist *documents*, returning one id per document.

        No deduplication: writing the same content twice stores it twice.

        Raises
        ------
        IndexUnavailable
            :meth:`initialize` has not been called.
        """
        ...

    @abstractmethod
    def similarity_search(
        self,
        query_embedding: list[float],
        *,
        k: int = 4,
        filters: FilterNode | None = None,
        score_threshold: float = 0.0,
    ) -> list[dict[str, Any]]:
        """Return up to *k* records most similar to *query_embedding*.

        Each result dict contains:

        * ``"id"`` – chunk identifier
        * ``"content"`` – the textual content
        * ``"score"`` – cosine similarity (higher = more similar)
        * ``"metadata"`` – associated metadata dict

        Results are ordered by descending score, ties by insertion order,
        and only records with ``score >= score_threshold`` that satisfy
        *filters* are returned.

        Raises
        ------
        IndexUnavailable
            :meth:`initialize` has not been called.
        """
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    @abstractmethod
    def count(self) -> int:
        """Number of stored records."""
        ...

    @abstractmethod
    def delete(self, ids: list[str]) -> None:
        """Delete records by id."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Delete every record, keeping the index itself."""
        ...

    # -- shared behaviour -----------------------------------------------------

    def ensure_initialized(self) -> None:
        """Raise :class:`IndexUnavailable` unless the index is ready."""

    def similarity_search_by_text(
        self,
        query: str,
        *,
        k: int = 4,
        filters: FilterNode | None = None,
        score_threshold: float = 0.0,
    ) -> list[dict[str, Any]]:
        """Embed *query* and delegate to :meth:`similarity_search`."""
        self.ensure_initialized()
        embedding = self.embedder.embed_query(query)
        return self.similarity_search(
            embedding, k=k, filters=filters, score_threshold=score_threshold
        )
