"""FastAPI application exposing chat, search and extraction over HTTP.

Request bodies for the chat, search and extraction routes are plain
text.  Application errors are returned as
``{"error": <type>, "message": ..., "details": {...}}``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from pydantic import BaseModel

from rag_workshop.chat.prompts import BOOKS_BY_AUTHOR_TEMPLATE, PIRATE_SONG_TEMPLATE, PIRATE_SYSTEM, render_template
from rag_workshop.chat.structured import ArtistInfo, ExtractionResult, MusicQuestion
from rag_workshop.chat.tools import build_book_tools
from rag_workshop.config import Settings, configure_logging
from rag_workshop.container import Services, build_services, startup
from rag_workshop.exceptions import (
    DimensionMismatch,
    IndexUnavailable,
    ModelTimeout,
    ModelUnavailable,
    ParseFailure,
    RAGWorkshopError,
    SourceUnavailable,
)
from rag_workshop.retrieval.filters import FilterSyntaxError
from rag_workshop.retrieval.models import SearchRequest

logger = logging.getLogger(__name__)

# Most specific first.
_ERROR_STATUS: list[tuple[type[RAGWorkshopError], int]] = [
    (ModelTimeout, 504),
    (ModelUnavailable, 503),
    (IndexUnavailable, 503),
    (SourceUnavailable, 404),
    (DimensionMismatch, 500),
    (ParseFailure, 422),
]


# ── Response schemas ──────────────────────────────────────────────────


class HealthResponse(BaseModel):
    status: str
    vector_store: bool


class EmbeddingResponse(BaseModel):
    text: str
    dimensions: int


# ── Dependencies ──────────────────────────────────────────────────────


def get_services(request: Request) -> Services:
    return request.app.state.services


async def text_body(request: Request) -> str:
    """The raw request body as UTF-8 text; must not be blank."""
    try:
        body = (await request.body()).decode("utf-8").strip()
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Request body must be UTF-8 text") from None
    if not body:
        raise HTTPException(status_code=400, detail="Request body must not be empty")
    return body


# ── Application factory ───────────────────────────────────────────────


def create_app(services: Services | None = None) -> FastAPI:
    """Build the FastAPI app.

    When *services* is omitted they are built from :class:`Settings` at
    start-up.  Start-up always initialises the vector index (when
    configured) and runs the configured ingestion.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if services is None:
            settings = Settings()
            configure_logging(settings.log_level)
            app.state.services = build_services(settings)
        else:
            app.state.services = services
        startup(app.state.services)
        yield

    app = FastAPI(
        title="RAG Workshop API",
        version="0.1.0",
        description="Chat, semantic search and retrieval-augmented generation over local models.",
        lifespan=lifespan,
    )
    _register_error_handlers(app)
    _register_routes(app)
    return app


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RAGWorkshopError)
    async def _app_error(request: Request, exc: RAGWorkshopError) -> JSONResponse:
        status = next((code for cls, code in _ERROR_STATUS if isinstance(exc, cls)), 500)
        logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
        return JSONResponse(
            status_code=status,
            content={"error": type(exc).__name__, "message": exc.message, "details": exc.details},
        )

    @app.exception_handler(FilterSyntaxError)
    async def _filter_error(request: Request, exc: FilterSyntaxError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "FilterSyntaxError", "message": str(exc), "details": {}},
        )


def _register_routes(app: FastAPI) -> None:
    @app.get("/health", response_model=HealthResponse)
    async def health(services: Services = Depends(get_services)) -> HealthResponse:
        """Liveness probe."""
        return HealthResponse(status="ok", vector_store=services.store.health_check())

    # -- chat -----------------------------------------------------------------

    @app.post("/chat", response_class=PlainTextResponse)
    def chat(query: str = Depends(text_body), services: Services = Depends(get_services)) -> str:
        """Retrieval-augmented answer."""
        return services.rag.chat(query).answer

    @app.post("/chat/stream")
    async def chat_stream(
        question: str = Depends(text_body), services: Services = Depends(get_services)
    ) -> StreamingResponse:
        """Stream the answer as it is generated."""
        fragments = services.chat.stream(question)
        # pull the first fragment here so backend errors map to a status code
        first = await anext(fragments, None)

        async def body() -> AsyncIterator[str]:
            try:
                if first is not None:
                    yield first
                async for fragment in fragments:
                    yield fragment
            finally:
                await fragments.aclose()

        return StreamingResponse(body(), media_type="text/plain")

    @app.post("/chatbot/{chat_id}", response_class=PlainTextResponse)
    def chatbot(
        chat_id: str, text: str = Depends(text_body), services: Services = Depends(get_services)
    ) -> str:
        """Chat that remembers earlier turns of *chat_id*."""
        return services.chat.converse(chat_id, text)

    @app.post("/chat/roles", response_class=PlainTextResponse)
    def chat_roles(text: str = Depends(text_body), services: Services = Depends(get_services)) -> str:
        return services.chat.ask(text, system=PIRATE_SYSTEM)

    @app.post("/chat/template", response_class=PlainTextResponse)
    def chat_template(topic: str = Depends(text_body), services: Services = Depends(get_services)) -> str:
        return services.chat.ask_template(PIRATE_SONG_TEMPLATE, {"topic": topic}, system=PIRATE_SYSTEM)

    @app.get("/chat/books", response_class=PlainTextResponse)
    def chat_books(
        author: str = Query(default="J.R.R. Tolkien"), services: Services = Depends(get_services)
    ) -> str:
        """Function calling against the book catalog."""
        question = render_template(BOOKS_BY_AUTHOR_TEMPLATE, {"author": author})
        return services.tools.ask(question, build_book_tools(services.catalog))

    # -- structured output ----------------------------------------------------

    @app.post("/chat/bean", response_model=ArtistInfo)
    def chat_bean(question: MusicQuestion, services: Services = Depends(get_services)) -> ArtistInfo:
        return services.structured.artist_info(question)

    @app.post("/chat/map")
    def chat_map(question: MusicQuestion, services: Services = Depends(get_services)) -> dict[str, Any]:
        return services.structured.artist_map(question)

    @app.post("/chat/list")
    def chat_list(question: MusicQuestion, services: Services = Depends(get_services)) -> list[str]:
        return services.structured.artist_names(question)

    @app.post("/extract", response_model=ExtractionResult)
    def extract(text: str = Depends(text_body), services: Services = Depends(get_services)) -> ExtractionResult:
        """Extract a patient journal from a free-text visit note."""
        return services.structured.extract(text)

    # -- search & embeddings --------------------------------------------------

    @app.post("/search")
    def search(
        query: str = Depends(text_body),
        top_k: int | None = Query(default=None, gt=0),
        threshold: float | None = Query(default=None, ge=0.0, le=1.0),
        filter_expression: str | None = Query(default=None, alias="filter"),
        services: Services = Depends(get_services),
    ) -> list[str]:
        """Return the text of the most similar stored segments."""
        settings = services.settings
        request = SearchRequest(
            query=query,
            top_k=top_k or settings.search_top_k,
            similarity_threshold=settings.similarity_threshold if threshold is None else threshold,
            filter_expression=filter_expression,
        )
        return [result.content for result in services.retriever.run(request)]

    @app.get("/embed", response_model=EmbeddingResponse)
    def embed(
        text: str = Query(default="And Gandalf yelled: 'You shall not pass!'"),
        services: Services = Depends(get_services),
    ) -> EmbeddingResponse:
        """Size of the embedding vector for *text*."""
        return EmbeddingResponse(text=text, dimensions=len(services.embedder.embed_query(text)))


app = create_app()
