"""Semantic retriever: similarity search that returns cited segments.

The RAG graph, the ``/search`` route and the tests all search through
:class:`SemanticRetriever`; none of them talk to a store directly.

Usage::

    retriever = SemanticRetriever(store, default_k=4)
    for result in retriever.search("Iorek's biggest dream", filters="location == 'North Pole'"):
        print(result.citation.short_ref(), result.content[:80])
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from rag_workshop.retrieval.filters import FilterInput, combine
from rag_workshop.retrieval.models import Citation, RetrievalResult, SearchRequest

if TYPE_CHECKING:
    from rag_workshop.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)


class SemanticRetriever:
    """Search front-end for any :class:`VectorStoreBase`.

    Parameters
    ----------
    store:
        Backend holding the stored records.
    default_k:
        Result count used when a call does not pass ``k``.
    score_threshold:
        Minimum score used when a call does not pass one.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        *,
        default_k: int = 4,
        score_threshold: float = 0.0,
    ) -> None:
        if default_k <= 0:
            raise ValueError(f"default_k must be > 0, got {default_k}")
        self._store = store
        self.default_k = default_k
        self.score_threshold = score_threshold

    @property
    def store(self) -> VectorStoreBase:
        return self._store

    def search(
        self,
        query: str,
        *,
        k: int | None = None,
        filters: FilterInput = None,
        score_threshold: float | None = None,
    ) -> list[RetrievalResult]:
        """Embed *query* and return the closest segments, best first.

        Parameters
        ----------
        query:
            Text to search for.
        k:
            Maximum number of results.
        filters:
            Filter tree, list of leaves (all must match) or an expression
            such as ``"location == 'North Pole'"``.
        score_threshold:
            Minimum score for this call only.

        Raises
        ------
        FilterSyntaxError
            *filters* is an expression that does not parse.
        """
        hits = self._store.similarity_search_by_text(
            query,
            k=self.default_k if k is None else k,
            filters=combine(filters),
            score_threshold=self._threshold(score_threshold),
        )
        logger.info("Search for %r matched %d segment(s)", query, len(hits))
        return [_to_result(hit) for hit in hits]

    def search_by_embedding(
        self,
        embedding: list[float],
        *,
        k: int | None = None,
        filters: FilterInput = None,
        score_threshold: float | None = None,
    ) -> list[RetrievalResult]:
        """Like :meth:`search`, for an already embedded query."""
        hits = self._store.similarity_search(
            embedding,
            k=self.default_k if k is None else k,
            filters=combine(filters),
            score_threshold=self._threshold(score_threshold),
        )
        return [_to_result(hit) for hit in hits]

    def run(self, request: SearchRequest) -> list[RetrievalResult]:
        return self.search(
            request.query,
            k=request.top_k,
            filters=request.filter_expression,
            score_threshold=request.similarity_threshold,
        )

    def _threshold(self, override: float | None) -> float:
        return self.score_threshold if override is None else override


def _to_result(hit: dict[str, Any]) -> RetrievalResult:
    metadata = hit.get("metadata", {})
    return RetrievalResult(
        content=hit.get("content", ""),
        citation=Citation(
            document_id=hit.get("id"),
            source=metadata.get("source", "unknown"),
            chunk_index=metadata.get("chunk_index"),
            page=metadata.get("page"),
            score=hit.get("score"),
            metadata=metadata,
        ),
    )
