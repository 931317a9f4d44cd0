"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import re
from collections.abc import AsyncIterator
from typing import Any

import pytest
from langchain_core.embeddings import Embeddings
from langchain_core.messages import AIMessage, AIMessageChunk

from rag_workshop.ingestion.embedder import EmbeddingClient
from rag_workshop.retrieval.memory_store import InMemoryVectorStore

VOCABULARY = ["bear", "iorek", "dream", "north", "pole", "ring", "hobbit", "dragon"]


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fakes ───────────────────────────────────────────────────────────────


class KeywordEmbeddings(Embeddings):
    """Deterministic bag-of-words embeddings over :data:`VOCABULARY`.

    The last dimension is a constant bias so no vector is all zeros.
    """

    def __init__(self, vocabulary: list[str] | None = None) -> None:
        self.vocabulary = vocabulary or VOCABULARY
        self.calls = 0

    @property
    def dimensions(self) -> int:
        return len(self.vocabulary) + 1

    def _embed(self, text: str) -> list[float]:
        words = re.findall(r"[a-z]+", text.lower())
        return [float(words.count(term)) for term in self.vocabulary] + [0.1]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        return [self._embed(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        self.calls += 1
        return self._embed(text)


class ScriptedChatModel:
    """Chat-model stand-in that replays fixed replies and records prompts.

    ``replies`` are returned in order by :meth:`invoke`; the last one is
    repeated once the script runs out.  :meth:`astream` streams the next
    reply word by word.
    """

    def __init__(self, *replies: Any) -> None:
        self.replies = list(replies) or ["ok"]
        self.calls: list[list[Any]] = []
        self.bound_tools: list[Any] = []
        self.closed = False

    def _next(self) -> Any:
        return self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]

    def invoke(self, messages: list[Any]) -> AIMessage:
        self.calls.append(list(messages))
        reply = self._next()
        return reply if isinstance(reply, AIMessage) else AIMessage(content=reply)

    async def astream(self, messages: list[Any]) -> AsyncIterator[AIMessageChunk]:
        self.calls.append(list(messages))
        words = str(self._next()).split(" ")
        try:
            for i, word in enumerate(words):
                yield AIMessageChunk(content=word if i == len(words) - 1 else f"{word} ")
        finally:
            self.closed = True

    def bind_tools(self, tools: list[Any]) -> ScriptedChatModel:
        self.bound_tools = list(tools)
        return self


# ── Fixtures ────────────────────────────────────────────────────────────


@pytest.fixture()
def keyword_embeddings() -> KeywordEmbeddings:
    return KeywordEmbeddings()


@pytest.fixture()
def embedder(keyword_embeddings: KeywordEmbeddings) -> EmbeddingClient:
    return EmbeddingClient(keyword_embeddings, keyword_embeddings.dimensions)


@pytest.fixture()
def memory_store(embedder: EmbeddingClient) -> InMemoryVectorStore:
    store = InMemoryVectorStore(embedder, "test-collection")
    store.initialize()
    return store
