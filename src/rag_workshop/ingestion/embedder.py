"""Embedding client — text to fixed-dimension vectors."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rag_workshop.backends import model_call
from rag_workshop.exceptions import DimensionMismatch

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from rag_workshop.config import Settings

logger = logging.getLogger(__name__)


def get_embedding_model(settings: Settings) -> Embeddings:
    """Return the configured LangChain embedding model.

    ``ollama`` talks to the local Ollama server; ``huggingface`` runs a
    sentence-transformer in-process (requires the ``huggingface`` extra).
    """
    if settings.embedding_provider == "huggingface":
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(model_name=settings.embedding_model)

    from langchain_ollama import OllamaEmbeddings

    return OllamaEmbeddings(
        model=settings.embedding_model,
        base_url=settings.ollama_base_url,
        client_kwargs={"timeout": settings.request_timeout_seconds},
    )


class EmbeddingClient:
    """Checked wrapper around a LangChain :class:`Embeddings` model.

    Parameters
    ----------
    embeddings:
        The underlying embedding model.
    dimensions:
        Expected vector length; every returned vector is checked against it.
    """

    def __init__(self, embeddings: Embeddings, dimensions: int) -> None:
        if dimensions <= 0:
            raise ValueError(f"dimensions must be > 0, got {dimensions}")
        self._embeddings = embeddings
        self.dimensions = dimensions

    def embed_query(self, text: str) -> list[float]:
        """Embed a single query string.

        Raises
        ------
        ModelUnavailable
            The embedding backend cannot be reached (``ModelTimeout`` on expiry).
        DimensionMismatch
            The backend returned a vector of the wrong length.
        """
        with model_call("embedding"):
            vector = self._embeddings.embed_query(text)
        return self._check(vector)

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts, preserving order."""
        if not texts:
            return []
        with model_call("embedding"):
            vectors = self._embeddings.embed_documents(texts)
        logger.debug("Embedded %d text(s)", len(vectors))
        return [self._check(v) for v in vectors]

    def _check(self, vector: list[float]) -> list[float]:
        if len(vector) != self.dimensions:
            raise DimensionMismatch(self.dimensions, len(vector))
        return [float(x) for x in vector]
