"""Unit tests for the in-memory vector store."""

from __future__ import annotations

import pytest
from langchain_core.documents import Document

from rag_workshop.exceptions import DimensionMismatch, IndexUnavailable
from rag_workshop.ingestion.embedder import EmbeddingClient
from rag_workshop.retrieval.filters import MetadataFilter
from rag_workshop.retrieval.memory_store import InMemoryVectorStore


def _docs() -> list[Document]:
    return [
        Document(page_content="Iorek the bear has a dream", metadata={"location": "North Pole"}),
        Document(page_content="A hobbit found a ring", metadata={"location": "Shire"}),
        Document(page_content="The dragon sleeps", metadata={"location": "Lonely Mountain"}),
        Document(page_content="Iorek the bear has a dream", metadata={"location": "South Pole"}),
    ]


def test_store_requires_initialize(embedder: EmbeddingClient) -> None:
    """Reads and writes before initialize() fail."""
    store = InMemoryVectorStore(embedder)
    assert not store.health_check()
    with pytest.raises(IndexUnavailable):
        store.add_documents(_docs())
    with pytest.raises(IndexUnavailable):
        store.similarity_search_by_text("bear")


def test_initialize_is_idempotent(memory_store: InMemoryVectorStore) -> None:
    """A second initialize() keeps stored records."""
    memory_store.add_documents(_docs())
    memory_store.initialize()
    assert memory_store.count() == 4


def test_add_returns_one_id_per_document(memory_store: InMemoryVectorStore) -> None:
    """One distinct id per added document."""
    docs = _docs()
    docs[0].id = "fixed-id"
    ids = memory_store.add_documents(docs)
    assert len(ids) == 4
    assert ids[0] == "fixed-id"
    assert len(set(ids)) == 4
    assert memory_store.count() == 4


def test_empty_store_returns_nothing(memory_store: InMemoryVectorStore) -> None:
    """Searching an empty store returns no hits."""
    assert memory_store.similarity_search_by_text("bear") == []


def test_results_ordered_by_score(memory_store: InMemoryVectorStore) -> None:
    """Hits come back best score first."""
    memory_store.add_documents(_docs())
    hits = memory_store.similarity_search_by_text("hobbit ring", k=4)
    assert hits[0]["content"] == "A hobbit found a ring"
    scores = [h["score"] for h in hits]
    assert scores == sorted(scores, reverse=True)


def test_top_k_limits_results(memory_store: InMemoryVectorStore) -> None:
    """At most k hits are returned."""
    memory_store.add_documents(_docs())
    assert len(memory_store.similarity_search_by_text("bear", k=2)) == 2
    assert len(memory_store.similarity_search_by_text("bear", k=10)) == 4


def test_ties_keep_insertion_order(memory_store: InMemoryVectorStore) -> None:
    """Equal scores keep insertion order."""
    memory_store.add_documents(_docs())
    hits = memory_store.similarity_search_by_text("iorek bear dream", k=2)
    assert hits[0]["score"] == pytest.approx(hits[1]["score"])
    assert [h["metadata"]["location"] for h in hits] == ["North Pole", "South Pole"]


def test_threshold_discards_weak_matches(memory_store: InMemoryVectorStore) -> None:
    """Hits below the score threshold are dropped."""
    memory_store.add_documents(_docs())
    hits = memory_store.similarity_search_by_text("dragon", k=4, score_threshold=0.9)
    assert [h["content"] for h in hits] == ["The dragon sleeps"]


def test_filter_restricts_candidates(memory_store: InMemoryVectorStore) -> None:
    """Only records passing the filter are ranked."""
    memory_store.add_documents(_docs())
    hits = memory_store.similarity_search_by_text(
        "What's Iorek's biggest dream?",
        k=4,
        filters=MetadataFilter.equals("location", "North Pole"),
    )
    assert len(hits) == 1
    assert hits[0]["metadata"]["location"] == "North Pole"


def test_wrong_query_dimension(memory_store: InMemoryVectorStore) -> None:
    """A query vector of the wrong length is rejected."""
    memory_store.add_documents(_docs())
    with pytest.raises(DimensionMismatch):
        memory_store.similarity_search([1.0, 0.0], k=1)


def test_delete_and_clear(memory_store: InMemoryVectorStore) -> None:
    """delete() removes by id and clear() empties the store."""
    ids = memory_store.add_documents(_docs())
    memory_store.delete(ids[:1])
    assert memory_store.count() == 3
    memory_store.clear()
    assert memory_store.count() == 0
    assert memory_store.health_check()


def test_search_results_are_copies(memory_store: InMemoryVectorStore) -> None:
    """Mutating a hit does not change the stored record."""
    memory_store.add_documents(_docs())
    hit = memory_store.similarity_search_by_text("dragon", k=1)[0]
    hit["metadata"]["location"] = "changed"
    again = memory_store.similarity_search_by_text("dragon", k=1)[0]
    assert again["metadata"]["location"] == "Lonely Mountain"


def test_location_filter_example(memory_store: InMemoryVectorStore) -> None:
    """A location filter returns only matching records."""
    memory_store.add_documents(
        [
            Document(page_content="Iorek is an armoured bear.", metadata={"location": "North Pole"}),
            Document(page_content="Iorek once visited Rome.", metadata={"location": "Italy"}),
            Document(page_content="Iorek has no location."),
        ]
    )
    hits = memory_store.similarity_search_by_text(
        "Iorek", k=4, filters=MetadataFilter.equals("location", "North Pole")
    )
    assert [h["content"] for h in hits] == ["Iorek is an armoured bear."]


def test_reused_id_keeps_both_records(memory_store: InMemoryVectorStore) -> None:
    """Re-adding a document with a known id stores a second record."""
    first = memory_store.add_documents([Document(id="x", page_content="Iorek the bear")])
    second = memory_store.add_documents([Document(id="x", page_content="Iorek the bear")])
    assert first == ["x"]
    assert second[0] != "x"
    assert memory_store.count() == 2
    memory_store.delete(["x"])
    assert memory_store.count() == 1
