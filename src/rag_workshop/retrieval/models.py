"""Search request and result models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class SearchRequest(BaseModel):
    """Parameters of one similarity search.

    Attributes
    ----------
    query:
        Natural-language query text.
    top_k:
        Maximum number of results.
    similarity_threshold:
        Minimum cosine score a result must reach.
    filter_expression:
        Optional metadata filter, e.g. ``"location == 'North Pole'"``.
    """

    query: str
    top_k: int = Field(default=4, gt=0)
    similarity_threshold: float = Field(default=0.0, ge=0.0, le=1.0)
    filter_expression: str | None = None


class Citation(BaseModel):
    """Where a retrieved segment came from.

    Attributes
    ----------
    document_id:
        Id of the stored record.
    source:
        Path of the file the segment was loaded from.
    chunk_index:
        Position of the segment among the pieces of its parent document;
        ``None`` when the document was stored whole.
    page:
        Zero-based page number for PDF sources.
    score:
        Cosine similarity to the query.
    metadata:
        Full metadata of the stored record.
    """

    document_id: str | None = None
    source: str = "unknown"
    chunk_index: int | None = None
    page: int | None = None
    score: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def short_ref(self) -> str:
        """``[source§chunk]``, or ``[source]`` for an unsplit document."""
        if self.chunk_index is None:
            return f"[{self.source}]"
        return f"[{self.source}§{self.chunk_index}]"


class RetrievalResult(BaseModel):
    """One retrieved segment and its citation."""

    content: str
    citation: Citation

    def __str__(self) -> str:
        preview = self.content if len(self.content) <= 120 else f"{self.content[:120]}..."
        return f"{self.citation.short_ref()} {preview}"
