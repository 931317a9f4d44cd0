"""Explicit construction of every service from :class:`Settings`.

One :class:`Services` instance owns the vector store, the conversation
memory and the book catalog; nothing is shared through module globals.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass

from rag_workshop.chat.llm import get_chat_model
from rag_workshop.chat.memory import ConversationMemory
from rag_workshop.chat.service import ChatService, RAGChatService, SafeGuard
from rag_workshop.chat.structured import StructuredOutputService
from rag_workshop.chat.tools import BookCatalog, ToolCallingService
from rag_workshop.config import Settings
from rag_workshop.ingestion.embedder import EmbeddingClient, get_embedding_model
from rag_workshop.ingestion.pipeline import IngestionPipeline, IngestionReport
from rag_workshop.retrieval.base import VectorStoreBase
from rag_workshop.retrieval.memory_store import InMemoryVectorStore
from rag_workshop.retrieval.retriever import SemanticRetriever

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Every collaborator the HTTP layer needs."""

    settings: Settings
    embedder: EmbeddingClient
    store: VectorStoreBase
    retriever: SemanticRetriever
    memory: ConversationMemory
    chat: ChatService
    rag: RAGChatService
    structured: StructuredOutputService
    tools: ToolCallingService
    catalog: BookCatalog
    pipeline: IngestionPipeline


def build_vector_store(settings: Settings, embedder: EmbeddingClient) -> VectorStoreBase:
    """Return the configured (not yet initialised) vector store."""
    if settings.vector_store_backend == "chroma":
        from rag_workshop.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore(
            embedder,
            settings.chroma_collection,
            host=settings.chroma_host,
            port=settings.chroma_port,
        )
    return InMemoryVectorStore(embedder, settings.chroma_collection)


def build_services(
    settings: Settings,
    *,
    embeddings=None,  # noqa: ANN001
    chat_model_factory=None,  # noqa: ANN001
) -> Services:
    """Wire all services together.

    Parameters
    ----------
    settings:
        Validated application settings.
    embeddings:
        LangChain embedding model; defaults to :func:`get_embedding_model`.
    chat_model_factory:
        ``factory(temperature=None, json_mode=False)``; defaults to
        :func:`get_chat_model` bound to *settings*.
    """
    if embeddings is None:
        embeddings = get_embedding_model(settings)
    if chat_model_factory is None:
        chat_model_factory = functools.partial(get_chat_model, settings)

    embedder = EmbeddingClient(embeddings, settings.embedding_dimensions)
    store = build_vector_store(settings, embedder)
    retriever = SemanticRetriever(
        store,
        default_k=settings.search_top_k,
        score_threshold=settings.similarity_threshold,
    )
    memory = ConversationMemory(max_messages=settings.memory_max_messages)
    safeguard = SafeGuard(settings.safeguard_words)

    return Services(
        settings=settings,
        embedder=embedder,
        store=store,
        retriever=retriever,
        memory=memory,
        chat=ChatService(
            chat_model_factory,
            memory,
            safeguard=safeguard,
            stream_timeout=settings.request_timeout_seconds,
        ),
        rag=RAGChatService(
            retriever,
            chat_model_factory(),
            memory=memory,
            top_k=settings.rag_top_k,
            safeguard=safeguard,
        ),
        structured=StructuredOutputService(chat_model_factory),
        tools=ToolCallingService(chat_model_factory(), max_iterations=settings.max_tool_iterations),
        catalog=BookCatalog(),
        pipeline=IngestionPipeline.from_settings(store, settings),
    )


def startup(services: Services) -> IngestionReport | None:
    """Initialise the index and run the configured start-up ingestion."""
    settings = services.settings
    if settings.vector_store_initialize_schema:
        services.store.initialize()
    if settings.ingest_on_startup and settings.ingest_sources:
        report = services.pipeline.run(settings.ingest_sources)
        logger.info(
            "Ingested %d source(s): %d document(s), %d chunk(s)",
            report.sources,
            report.documents,
            report.chunks,
        )
        return report
    return None
