"""Chat services — plain chat, conversational chat, streaming and RAG."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from rag_workshop.backends import model_call
from rag_workshop.chat.graph import build_rag_graph
from rag_workshop.chat.llm import complete, message_text
from rag_workshop.chat.nodes import RAGNodes
from rag_workshop.chat.prompts import RAG_SYSTEM, build_chat_prompt, render_template
from rag_workshop.chat.state import create_initial_state
from rag_workshop.retrieval.filters import FilterInput, combine
from rag_workshop.retrieval.models import Citation

if TYPE_CHECKING:
    from rag_workshop.chat.memory import ConversationMemory
    from rag_workshop.retrieval.retriever import SemanticRetriever

logger = logging.getLogger(__name__)

ModelFactory = Callable[..., Any]
"""``factory(temperature=None, json_mode=False) -> BaseChatModel``."""

REFUSAL_MESSAGE = (
    "I'm unable to respond to that due to sensitive content. "
    "Could we rephrase or discuss something else?"
)


class SafeGuard:
    """Refuses input containing any of the configured sensitive words."""

    def __init__(self, sensitive_words: list[str], refusal: str = REFUSAL_MESSAGE) -> None:
        self.sensitive_words = [w.lower() for w in sensitive_words if w.strip()]
        self.refusal = refusal

    def blocks(self, text: str) -> bool:
        lowered = text.lower()
        return any(word in lowered for word in self.sensitive_words)


class ChatAnswer(BaseModel):
    """Answer of a retrieval-augmented request."""

    answer: str
    citations: list[Citation] = Field(default_factory=list)
    conversation_id: str | None = None
    refused: bool = False


class ChatService:
    """Plain chat against the configured model.

    Parameters
    ----------
    model_factory:
        Builds chat models; called with ``temperature=`` overrides.
    memory:
        Conversation memory used by :meth:`converse`.
    safeguard:
        Optional input guard applied to every request.
    stream_timeout:
        Seconds to wait for each streamed fragment.
    """

    def __init__(
        self,
        model_factory: ModelFactory,
        memory: ConversationMemory,
        *,
        safeguard: SafeGuard | None = None,
        stream_timeout: float = 60.0,
    ) -> None:
        self._model_factory = model_factory
        self.memory = memory
        self.safeguard = safeguard
        self.stream_timeout = stream_timeout

    def _model(self, temperature: float | None = None) -> Any:
        return self._model_factory(temperature=temperature)

    def _refused(self, text: str) -> bool:
        if self.safeguard is not None and self.safeguard.blocks(text):
            logger.warning("Safeguard refused a request")
            return True
        return False

    def ask(self, question: str, *, system: str | None = None, temperature: float | None = None) -> str:
        """Single question, single answer."""
        if self._refused(question):
            return self.safeguard.refusal
        logger.info("Chatting with the model")
        return complete(self._model(temperature), build_chat_prompt(question, system=system))

    def ask_template(
        self,
        template: str,
        params: dict[str, Any],
        *,
        system: str | None = None,
        temperature: float | None = None,
    ) -> str:
        """Render *template* with *params* and ask it."""
        return self.ask(render_template(template, params), system=system, temperature=temperature)

    def converse(self, conversation_id: str, text: str) -> str:
        """Answer *text* with the history of *conversation_id*, then record the turn."""
        if self._refused(text):
            return self.safeguard.refusal
        history = self.memory.get(conversation_id)
        answer = complete(self._model(), build_chat_prompt(text, history=history))
        self.memory.append(conversation_id, "user", text)
        self.memory.append(conversation_id, "assistant", answer)
        return answer

    async def stream(
        self,
        question: str,
        *,
        system: str | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[str]:
        """Yield the answer as successive text fragments.

        Closing the iterator early (``aclose()`` or breaking out of
        ``async for``) closes the underlying model stream.

        Raises
        ------
        ModelTimeout
            No fragment arrived within ``stream_timeout`` seconds.
        ModelUnavailable
            The chat backend is unreachable.
        """
        if self._refused(question):
            yield self.safeguard.refusal
            return

        fragments = self._model(temperature).astream(build_chat_prompt(question, system=system))
        try:
            while True:
                with model_call("chat stream"):
                    try:
                        async with asyncio.timeout(self.stream_timeout):
                            chunk = await anext(fragments)
                    except StopAsyncIteration:
                        return
                text = message_text(chunk)
                if text:
                    yield text
        finally:
            await fragments.aclose()


class RAGChatService:
    """Retrieval-augmented chat built on the compiled RAG graph.

    Parameters
    ----------
    retriever:
        Source of context passages.
    chat_model:
        Chat model called once per request.
    memory:
        Optional conversation memory; when set, requests carrying a
        conversation id replay and extend that conversation only.
    top_k:
        Passages retrieved per request.
    safeguard:
        Optional input guard; refused requests never reach the model.
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
        safeguard: SafeGuard | None = None,
    ) -> None:
        self.memory = memory
        self.safeguard = safeguard
        self._graph = build_rag_graph(
            RAGNodes(
                retriever,
                chat_model,
                memory=memory,
                top_k=top_k,
                score_threshold=score_threshold,
                system_prompt=system_prompt,
            )
        )

    def chat(
        self,
        query: str,
        *,
        conversation_id: str | None = None,
        filters: FilterInput = None,
    ) -> ChatAnswer:
        """Answer *query* from retrieved context."""
        if self.safeguard is not None and self.safeguard.blocks(query):
            logger.warning("Safeguard refused a RAG request")
            return ChatAnswer(answer=self.safeguard.refusal, conversation_id=conversation_id, refused=True)

        logger.info("Chatting with AI over retrieved context")
        state = create_initial_state(query, conversation_id=conversation_id, filters=combine(filters))
        result = self._graph.invoke(state)

        answer = result["answer"]
        if self.memory is not None and conversation_id is not None:
            self.memory.append(conversation_id, "user", query)
            self.memory.append(conversation_id, "assistant", answer)

        return ChatAnswer(
            answer=answer,
            citations=[r.citation for r in result.get("results", [])],
            conversation_id=conversation_id,
        )

    def run_graph(self, query: str, **kwargs: Any) -> dict[str, Any]:
        """Invoke the graph and return the full final state (no memory update)."""
        state = create_initial_state(query, **kwargs)
        return self._graph.invoke(state)
