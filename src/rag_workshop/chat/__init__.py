"""
Chat — chat-model services built on LangChain and LangGraph.

Public API
----------
- :class:`ChatService` — plain, templated, conversational and streaming chat.
- :class:`RAGChatService` — retrieval-augmented chat over the vector store.
- :class:`StructuredOutputService` — schema-driven structured answers.
- :class:`ToolCallingService` — function calling with injected tools.
- :class:`ConversationMemory` — per-conversation turn history.
"""

from rag_workshop.chat.memory import ConversationMemory
from rag_workshop.chat.service import ChatAnswer, ChatService, RAGChatService, SafeGuard
from rag_workshop.chat.structured import StructuredOutputService
from rag_workshop.chat.tools import BookCatalog, ToolCallingService, build_book_tools

__all__ = [
    "BookCatalog",
    "ChatAnswer",
    "ChatService",
    "ConversationMemory",
    "RAGChatService",
    "SafeGuard",
    "StructuredOutputService",
    "ToolCallingService",
    "build_book_tools",
]
