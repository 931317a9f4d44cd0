"""RAG request state — shared across all graph nodes.

The state is the single source of truth that flows through the
per-request graph.  A request moves strictly forward through
``received -> embedded -> retrieved -> prompted -> completed``; each node
records the stage it reached.
"""

from __future__ import annotations

from typing import Annotated, Literal, TypedDict

from langchain_core.messages import BaseMessage

from rag_workshop.retrieval.filters import FilterNode
from rag_workshop.retrieval.models import RetrievalResult

Stage = Literal["received", "embedded", "retrieved", "prompted", "completed"]

STAGES: tuple[Stage, ...] = ("received", "embedded", "retrieved", "prompted", "completed")


def _append_list(existing: list, new: list) -> list:
    """Reducer that appends *new* items to the *existing* list."""
    return existing + new


class RAGState(TypedDict, total=False):
    """Typed state that flows through the RAG graph.

    Attributes
    ----------
    query:
        The user's natural-language question.
    conversation_id:
        Key into conversation memory; ``None`` for a stateless request.
    filters:
        Optional metadata filter applied to retrieval.
    stage:
        Last stage reached.
    stages:
        Every stage reached so far, in order.
    query_embedding:
        Vector for ``query`` (set by ``embed_query``).
    results:
        Retrieved passages with citations (set by ``retrieve``).
    messages:
        The assembled prompt (set by ``build_prompt``).
    answer:
        The model's answer (set by ``generate``).
    """

    query: str
    conversation_id: str | None
    filters: FilterNode | None
    stage: Stage
    stages: Annotated[list[Stage], _append_list]
    query_embedding: list[float]
    results: list[RetrievalResult]
    messages: list[BaseMessage]
    answer: str


def create_initial_state(
    query: str,
    *,
    conversation_id: str | None = None,
    filters: FilterNode | None = None,
) -> RAGState:
    """Build the initial state dict for ``graph.invoke()``."""
    return {
        "query": query,
        "conversation_id": conversation_id,
        "filters": filters,
        "stage": "received",
        "stages": ["received"],
        "query_embedding": [],
        "results": [],
        "messages": [],
        "answer": "",
    }
