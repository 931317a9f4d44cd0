"""In-process vector store backed by numpy cosine similarity."""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import numpy as np

from rag_workshop.exceptions import DimensionMismatch, IndexUnavailable
from rag_workshop.retrieval.base import VectorStoreBase

if TYPE_CHECKING:
    from langchain_core.documents import Document

    from rag_workshop.ingestion.embedder import EmbeddingClient
    from rag_workshop.retrieval.filters import FilterNode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Record:
    id: str
    vector: np.ndarray
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    seq: int = 0


class InMemoryVectorStore(VectorStoreBase):
    """Process-local vector store.

    Writes are serialised by a lock and publish a new record list
    (copy-on-write), so searches read a consistent snapshot without
    taking the lock.
    """

    def __init__(self, embedder: EmbeddingClient, collection_name: str = "rag_workshop") -> None:
        super().__init__(collection_name, embedder)
        self._lock = threading.Lock()
        self._records: list[_Record] | None = None
        self._seq = itertools.count()

    # -- VectorStoreBase overrides --------------------------------------------

    def initialize(self) -> None:
        with self._lock:
            if self._records is None:
                self._records = []
                logger.info("Initialised in-memory collection %r (dim=%d)", self.collection_name, self.dimensions)

    def ensure_initialized(self) -> None:
        if self._records is None:
            raise IndexUnavailable(
                f"Collection {self.collection_name!r} is not initialised",
                {"collection": self.collection_name},
            )

    def add_documents(self, documents: list[Document]) -> list[str]:
        self.ensure_initialized()
        if not documents:
            return []

        vectors = self.embedder.embed_documents([doc.page_content for doc in documents])
        with self._lock:
            taken = {r.id for r in self._records}
            new_records = []
            for doc, vector in zip(documents, vectors):
                # a reused id gets a fresh one; records are never merged
                record_id = doc.id if doc.id and doc.id not in taken else uuid4().hex
                taken.add(record_id)
                new_records.append(
                    _Record(
                        id=record_id,
                        vector=np.asarray(vector, dtype=np.float64),
                        content=doc.page_content,
                        metadata=dict(doc.metadata),
                        seq=next(self._seq),
                    )
                )
            self._records = [*self._records, *new_records]
        logger.info("Stored %d record(s) in %r", len(new_records), self.collection_name)
        return [r.id for r in new_records]

    def similarity_search(
        self,
        query_embedding: list[float],
        *,
        k: int = 4,
        filters: FilterNode | None = None,
        score_threshold: float = 0.0,
    ) -> list[dict[str, Any]]:
        self.ensure_initialized()
        if len(query_embedding) != self.dimensions:
            raise DimensionMismatch(self.dimensions, len(query_embedding))

        snapshot = self._records
        candidates = [r for r in snapshot if filters is None or filters.matches(r.metadata)]
        if not candidates or k <= 0:
            return []

        query = np.asarray(query_embedding, dtype=np.float64)
        matrix = np.stack([r.vector for r in candidates])
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        with np.errstate(divide="ignore", invalid="ignore"):
            scores = np.where(norms > 0, matrix @ query / norms, 0.0)

        # candidates are in insertion order and sorted() is stable
        ranked = sorted(
            (
                (float(score), record)
                for score, record in zip(scores, candidates)
                if score >= score_threshold
            ),
            key=lambda pair: -pair[0],
        )
        return [
            {
                "id": record.id,
                "content": record.content,
                "score": score,
                "metadata": dict(record.metadata),
            }
            for score, record in ranked[:k]
        ]

    def health_check(self) -> bool:
        return self._records is not None

    def count(self) -> int:
        self.ensure_initialized()
        return len(self._records)

    def delete(self, ids: list[str]) -> None:
        self.ensure_initialized()
        doomed = set(ids)
        with self._lock:
            self._records = [r for r in self._records if r.id not in doomed]

    def clear(self) -> None:
        self.ensure_initialized()
        with self._lock:
            self._records = []
