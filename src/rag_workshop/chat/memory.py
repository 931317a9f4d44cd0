"""Conversation memory keyed by conversation id."""

from __future__ import annotations

import logging
import threading
from typing import Literal

from langchain_core.chat_history import InMemoryChatMessageHistory
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

logger = logging.getLogger(__name__)

Role = Literal["user", "assistant", "system"]

_MESSAGE_TYPES: dict[str, type[BaseMessage]] = {
    "user": HumanMessage,
    "assistant": AIMessage,
    "system": SystemMessage,
}


class ConversationMemory:
    """Append-only turn history, one LangChain history per conversation.

    Parameters
    ----------
    max_messages:
        Size of the window returned by :meth:`get`; older turns are kept
        but no longer replayed into prompts.
    """

    def __init__(self, max_messages: int = 100) -> None:
        if max_messages <= 0:
            raise ValueError(f"max_messages must be > 0, got {max_messages}")
        self.max_messages = max_messages
        self._histories: dict[str, InMemoryChatMessageHistory] = {}
        self._lock = threading.Lock()

    def append(self, conversation_id: str, role: Role, text: str) -> None:
        """Record one turn under *conversation_id*."""
        message = _MESSAGE_TYPES[role](content=text)
        with self._lock:
            history = self._histories.setdefault(conversation_id, InMemoryChatMessageHistory())
            history.add_message(message)

    def get(self, conversation_id: str) -> list[BaseMessage]:
        """Return the most recent turns of *conversation_id* (oldest first)."""
        with self._lock:
            history = self._histories.get(conversation_id)
            if history is None:
                return []
            return list(history.messages[-self.max_messages :])

    def turns(self, conversation_id: str) -> list[tuple[str, str]]:
        """``(role, text)`` pairs for the current window."""
        roles = {HumanMessage: "user", AIMessage: "assistant", SystemMessage: "system"}
        return [(roles[type(m)], m.content) for m in self.get(conversation_id)]

    def clear(self, conversation_id: str) -> None:
        with self._lock:
            self._histories.pop(conversation_id, None)
        logger.info("Cleared conversation %r", conversation_id)

    def conversations(self) -> list[str]:
        with self._lock:
            return list(self._histories)
