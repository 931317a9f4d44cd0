"""Graph nodes — each method is one step of a retrieval-augmented request.

Node contract
-------------
* Accepts the full :class:`RAGState` dict.
* Returns a *partial* dict with **only the keys that changed**, always
  including the new ``stage``.
* Collaborators (retriever, chat model, memory) are injected through
  :class:`RAGNodes`; there is no module-level state.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from rag_workshop.chat.llm import complete
from rag_workshop.chat.prompts import RAG_SYSTEM, build_rag_prompt

if TYPE_CHECKING:
    from rag_workshop.chat.memory import ConversationMemory
    from rag_workshop.chat.state import RAGState
    from rag_workshop.retrieval.retriever import SemanticRetriever

logger = logging.getLogger(__name__)


class RAGNodes:
    """Bound node functions for one RAG graph.

    Parameters
    ----------
    retriever:
        Retriever whose store's embedder embeds the query.
    chat_model:
        LangChain chat model called once per request.
    memory:
        Optional conversation memory replayed into the prompt.
    top_k:
        Number of passages retrieved per request.
    score_threshold:
        Minimum similarity for retrieved passages (``None`` = retriever default).
    system_prompt:
        Instructions placed before the retrieved context.
    """

    def __init__(
        self,
        retriever: SemanticRetriever,
        chat_model: Any,
        *,
        memory: ConversationMemory | None = None,
        top_k: int = 5,
        score_threshold: float | None = None,
        system_prompt: str = RAG_SYSTEM,
    ) -> None:
        self.retriever = retriever
        self.chat_model = chat_model
        self.memory = memory
        self.top_k = top_k
        self.score_threshold = score_threshold
        self.system_prompt = system_prompt

    # ── 1. EMBED ──────────────────────────────────────────────────────

    def embed_query(self, state: RAGState) -> dict[str, Any]:
        embedding = self.retriever.store.embedder.embed_query(state["query"])
        return {"query_embedding": embedding, "stage": "embedded", "stages": ["embedded"]}

    # ── 2. RETRIEVE ───────────────────────────────────────────────────

    def retrieve(self, state: RAGState) -> dict[str, Any]:
        results = self.retriever.search_by_embedding(
            state["query_embedding"],
            k=self.top_k,
            filters=state.get("filters"),
            score_threshold=self.score_threshold,
        )
        logger.info("Retrieved %d passage(s) for %r", len(results), state["query"])
        return {"results": results, "stage": "retrieved", "stages": ["retrieved"]}

    # ── 3. PROMPT ─────────────────────────────────────────────────────

    def build_prompt(self, state: RAGState) -> dict[str, Any]:
        """Combine instructions, context, prior turns and the query.

        Only turns stored under this request's conversation id are read.
        """
        conversation_id = state.get("conversation_id")
        history = []
        if self.memory is not None and conversation_id is not None:
            history = self.memory.get(conversation_id)

        messages = build_rag_prompt(
            state["query"],
            state.get("results", []),
            history=history,
            system=self.system_prompt,
        )
        return {"messages": messages, "stage": "prompted", "stages": ["prompted"]}

    # ── 4. GENERATE ───────────────────────────────────────────────────

    def generate(self, state: RAGState) -> dict[str, Any]:
        answer = complete(self.chat_model, state["messages"])
        return {"answer": answer, "stage": "completed", "stages": ["completed"]}
