"""Text chunking strategies."""

from __future__ import annotations

from collections.abc import Callable
from typing import Literal

from langchain_core.documents import Document
from langchain_text_splitters import RecursiveCharacterTextSplitter

LengthUnit = Literal["characters", "tokens"]

SEPARATORS = ["\n\n", "\n", ". ", " ", ""]


def length_function(length_unit: LengthUnit = "tokens") -> Callable[[str], int]:
    """Return the measure used to compare a text against ``chunk_size``."""
    if length_unit == "characters":
        return len
    if length_unit == "tokens":
        import tiktoken

        encoding = tiktoken.get_encoding("cl100k_base")
        return lambda text: len(encoding.encode(text))
    raise ValueError(f"Unknown length unit: {length_unit!r}")


def chunk_documents(
    documents: list[Document],
    chunk_size: int = 512,
    chunk_overlap: int = 64,
    length_unit: LengthUnit = "tokens",
) -> list[Document]:
    """Split *documents* into smaller chunks for embedding.

    Parameters
    ----------
    documents:
        Source documents produced by a loader.
    chunk_size:
        Maximum length per chunk, measured in *length_unit*.
    chunk_overlap:
        Overlap between consecutive chunks of the same document.
    length_unit:
        ``"tokens"`` (tiktoken ``cl100k_base``, the default) or ``"characters"``.

    Returns
    -------
    list[Document]
        Chunks in source order.  A document that already fits is returned
        as-is; split children inherit the parent metadata plus
        ``chunk_index`` / ``chunk_count``.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be > 0, got {chunk_size}")
    if not 0 <= chunk_overlap < chunk_size:
        raise ValueError(f"chunk_overlap ({chunk_overlap}) must be < chunk_size ({chunk_size})")

    measure = length_function(length_unit)
    splitter = RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        length_function=measure,
        separators=SEPARATORS,
    )

    chunks: list[Document] = []
    for doc in documents:
        if measure(doc.page_content) <= chunk_size:
            chunks.append(doc.model_copy(deep=True))
            continue

        pieces = splitter.split_text(doc.page_content)
        for index, piece in enumerate(pieces):
            chunks.append(
                Document(
                    page_content=piece,
                    metadata={**doc.metadata, "chunk_index": index, "chunk_count": len(pieces)},
                )
            )
    return chunks
