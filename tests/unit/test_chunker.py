"""Unit tests for the chunker module."""

import pytest
from langchain_core.documents import Document

from rag_workshop.ingestion.chunker import chunk_documents, length_function


def test_chunk_documents_splits_long_text() -> None:
    """A document longer than chunk_size should be split."""
    long_text = "word " * 500  # ~2500 chars
    docs = [Document(page_content=long_text, metadata={"source": "test"})]
    chunks = chunk_documents(docs, chunk_size=256, chunk_overlap=32, length_unit="characters")
    assert len(chunks) > 1
    assert all(len(c.page_content) <= 256 for c in chunks)


def test_chunk_size_counts_tokens_by_default() -> None:
    """Without a length unit, chunk_size is a cl100k_base token count."""
    count_tokens = length_function("tokens")
    text = "Iorek the bear dreams of the north pole. " * 40
    assert len(text) > 512 >= count_tokens(text)

    # fits in 512 tokens although it is far longer than 512 characters
    chunks = chunk_documents([Document(page_content=text)])
    assert [c.page_content for c in chunks] == [text]


def test_token_chunks_respect_the_boundary() -> None:
    """Every split child stays within chunk_size tokens."""
    count_tokens = length_function("tokens")
    text = "Iorek the bear dreams of the north pole. " * 40
    chunks = chunk_documents([Document(page_content=text)], chunk_size=64, chunk_overlap=8)
    assert len(chunks) > 1
    assert all(count_tokens(c.page_content) <= 64 for c in chunks)
    assert any(count_tokens(c.page_content) > 32 for c in chunks)


def test_chunk_documents_preserves_metadata() -> None:
    """Metadata from the source document should be preserved in chunks."""
    docs = [Document(page_content="word " * 200, metadata={"source": "test.md", "location": "North Pole"})]
    chunks = chunk_documents(docs, chunk_size=256, chunk_overlap=0, length_unit="characters")
    assert all(c.metadata.get("source") == "test.md" for c in chunks)
    assert all(c.metadata.get("location") == "North Pole" for c in chunks)


def test_split_children_are_numbered() -> None:
    """Split children carry chunk_index and chunk_count."""
    docs = [Document(page_content="word " * 200, metadata={"source": "test.md"})]
    chunks = chunk_documents(docs, chunk_size=100, chunk_overlap=10, length_unit="characters")
    assert [c.metadata["chunk_index"] for c in chunks] == list(range(len(chunks)))
    assert {c.metadata["chunk_count"] for c in chunks} == {len(chunks)}


def test_short_document_passes_through_unchanged() -> None:
    """A document that already fits is emitted as-is, in order."""
    docs = [
        Document(page_content="First.", metadata={"source": "a"}, id="doc-a"),
        Document(page_content="Second.", metadata={"source": "b"}),
    ]
    chunks = chunk_documents(docs, chunk_size=256, chunk_overlap=0, length_unit="characters")
    assert [c.page_content for c in chunks] == ["First.", "Second."]
    assert chunks[0].id == "doc-a"
    assert chunks[0].metadata == {"source": "a"}
    assert chunks[0] is not docs[0]


def test_chunk_documents_empty_input() -> None:
    """An empty list should return an empty list."""
    assert chunk_documents([]) == []


@pytest.mark.parametrize(("size", "overlap"), [(0, 0), (100, 100), (100, -1)])
def test_invalid_chunk_parameters_rejected(size: int, overlap: int) -> None:
    """Size must be positive and overlap must be smaller than size."""
    with pytest.raises(ValueError):
        chunk_documents([Document(page_content="x")], chunk_size=size, chunk_overlap=overlap)


def test_unknown_length_unit_rejected() -> None:
    """Only characters and tokens are accepted as length units."""
    with pytest.raises(ValueError, match="Unknown length unit"):
        length_function("words")  # type: ignore[arg-type]
