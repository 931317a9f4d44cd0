"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import chromadb

from rag_workshop.exceptions import DimensionMismatch, IndexUnavailable
from rag_workshop.retrieval.base import VectorStoreBase
from rag_workshop.retrieval.filters import to_chroma_where

if TYPE_CHECKING:
    from langchain_core.documents import Document

    from rag_workshop.ingestion.embedder import EmbeddingClient
    from rag_workshop.retrieval.filters import FilterNode

logger = logging.getLogger(__name__)

# Insertion sequence, stored alongside user metadata to break score ties.
_SEQ_KEY = "_seq"


def _flatten_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Chroma metadata values must be flat str/int/float/bool."""
    return {k: v for k, v in metadata.items() if isinstance(v, (str, int, float, bool))}


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store.

    Parameters
    ----------
    embedder:
        Embedding client; vectors are computed client-side.
    collection_name:
        Name of the Chroma collection.
    host:
        Chroma server hostname.
    port:
        Chroma server port.
    client:
        Pre-built Chroma client (tests use ``chromadb.EphemeralClient()``).
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        collection_name: str = "rag_workshop",
        *,
        host: str = "localhost",
        port: int = 8000,
        client: Any = None,
    ) -> None:
        super().__init__(collection_name, embedder)
        self._host = host
        self._port = port
        self._client = client
        self._collection: Any = None
        self._write_lock = threading.Lock()
        self._next_seq = 0

    # -- VectorStoreBase overrides --------------------------------------------

    def initialize(self) -> None:
        if self._collection is not None:
            return
        try:
            if self._client is None:
                self._client = chromadb.HttpClient(host=self._host, port=self._port)
            self._collection = self._client.get_or_create_collection(
                self.collection_name,
                metadata={"hnsw:space": "cosine"},
            )
            self._next_seq = self._collection.count()
        except Exception as exc:
            raise IndexUnavailable(
                f"Cannot initialise Chroma collection {self.collection_name!r}: {exc}",
                {"collection": self.collection_name, "host": self._host, "port": self._port},
            ) from exc
        logger.info(
            "Initialised Chroma collection %r (%d existing records)",
            self.collection_name,
            self._next_seq,
        )

    def ensure_initialized(self) -> None:
        if self._collection is None:
            raise IndexUnavailable(
                f"Collection {self.collection_name!r} is not initialised",
                {"collection": self.collection_name},
            )

    def add_documents(self, documents: list[Document]) -> list[str]:
        self.ensure_initialized()
        if not documents:
            return []

        embeddings = self.embedder.embed_documents([doc.page_content for doc in documents])
        with self._write_lock:
            # Chroma ignores an add whose id it already holds
            wanted = [doc.id for doc in documents if doc.id]
            taken = set(self._collection.get(ids=wanted, include=[])["ids"]) if wanted else set()
            ids = []
            metadatas = []
            for doc in documents:
                doc_id = doc.id if doc.id and doc.id not in taken else uuid4().hex
                taken.add(doc_id)
                ids.append(doc_id)
                meta = _flatten_metadata(doc.metadata)
                meta[_SEQ_KEY] = self._next_seq
                self._next_seq += 1
                metadatas.append(meta)
            self._collection.add(
                ids=ids,
                embeddings=embeddings,
                documents=[doc.page_content for doc in documents],
                metadatas=metadatas,
            )
        logger.info("Stored %d record(s) in %r", len(ids), self.collection_name)
        return ids

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
        total = self._collection.count()
        if k <= 0 or total == 0:
            return []

        # Equal scores come back from HNSW in arbitrary order: fetch every
        # candidate, then sort by (score, insertion order) and cut to k.
        results = self._collection.query(
            query_embeddings=[query_embedding],
            n_results=total,
            where=to_chroma_where(filters),
            include=["documents", "metadatas", "distances"],
        )

        hits: list[tuple[int, dict[str, Any]]] = []
        ids = results.get("ids", [[]])[0]
        docs = results.get("documents", [[]])[0]
        metas = results.get("metadatas", [[]])[0]
        distances = results.get("distances", [[]])[0]

        for doc_id, content, meta, dist in zip(ids, docs, metas, distances):
            # cosine space: distance = 1 - cosine similarity
            score = 1.0 - dist
            if score < score_threshold:
                continue
            meta = dict(meta or {})
            seq = meta.pop(_SEQ_KEY, 0)
            if filters is not None and not filters.matches(meta):
                continue
            hits.append(
                (
                    seq,
                    {
                        "id": doc_id,
                        "content": content or "",
                        "score": score,
                        "metadata": meta,
                    },
                )
            )
        hits.sort(key=lambda pair: (-pair[1]["score"], pair[0]))
        return [hit for _, hit in hits[:k]]

    def health_check(self) -> bool:
        if self._client is None:
            return False
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False

    def count(self) -> int:
        self.ensure_initialized()
        return self._collection.count()

    def delete(self, ids: list[str]) -> None:
        self.ensure_initialized()
        if ids:
            self._collection.delete(ids=ids)

    def clear(self) -> None:
        self.ensure_initialized()
        with self._write_lock:
            existing = self._collection.get(include=[])["ids"]
            if existing:
                self._collection.delete(ids=existing)
