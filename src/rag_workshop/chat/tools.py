"""Function calling — tools the chat model may invoke.

The book catalog is an ordinary object owned by whoever builds it (the
service container in production, a fixture in tests); tools close over
the instance they are built from.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterable
from typing import Any

from langchain_core.messages import HumanMessage, ToolMessage
from langchain_core.tools import BaseTool, StructuredTool, ToolException
from pydantic import BaseModel, Field, ValidationError

from rag_workshop.backends import model_call
from rag_workshop.chat.llm import message_text

logger = logging.getLogger(__name__)


class Book(BaseModel):
    title: str
    author: str


class Author(BaseModel):
    name: str = Field(description="Full name of the author, e.g. 'J.R.R. Tolkien'")


DEFAULT_BOOKS = (
    Book(title="His Dark Materials", author="Philip Pullman"),
    Book(title="Narnia", author="C.S. Lewis"),
    Book(title="The Hobbit", author="J.R.R. Tolkien"),
    Book(title="The Lord of The Rings", author="J.R.R. Tolkien"),
    Book(title="The Silmarillion", author="J.R.R. Tolkien"),
)


class BookCatalog:
    """Thread-safe in-memory library catalog."""

    def __init__(self, books: Iterable[Book] = DEFAULT_BOOKS) -> None:
        self._lock = threading.Lock()
        self._books: list[Book] = list(books)

    def add(self, book: Book) -> None:
        with self._lock:
            self._books.append(book)

    def all(self) -> list[Book]:
        with self._lock:
            return list(self._books)

    def books_by_author(self, name: str) -> list[Book]:
        """Books whose author matches *name* exactly."""
        return [book for book in self.all() if book.author == name]


def build_book_tools(catalog: BookCatalog) -> list[BaseTool]:
    """Return the tools exposing *catalog* to the model."""

    def books_by_author(name: str) -> list[dict[str, str]]:
        logger.info("Calling function booksByAuthor(%r)", name)
        return [book.model_dump() for book in catalog.books_by_author(name)]

    return [
        StructuredTool.from_function(
            func=books_by_author,
            name="booksByAuthor",
            description="Get the list of books written by the given author available in the library",
            args_schema=Author,
        )
    ]


class ToolCallingService:
    """Runs the model/tool exchange until the model answers in text.

    Parameters
    ----------
    chat_model:
        A chat model supporting ``bind_tools``.
    max_iterations:
        Maximum number of tool-call rounds before the last response is
        returned as-is.
    """

    def __init__(self, chat_model: Any, *, max_iterations: int = 5) -> None:
        self._chat_model = chat_model
        self.max_iterations = max_iterations

    def ask(self, question: str, tools: list[BaseTool]) -> str:
        model = self._chat_model.bind_tools(tools)
        registry = {tool.name: tool for tool in tools}
        messages: list[Any] = [HumanMessage(content=question)]

        with model_call("chat"):
            response = model.invoke(messages)

        iteration = 0
        while response.tool_calls and iteration < self.max_iterations:
            iteration += 1
            logger.info("Processing %d tool call(s) (iteration %d)", len(response.tool_calls), iteration)
            messages.append(response)
            for call in response.tool_calls:
                messages.append(
                    ToolMessage(
                        content=self._run_tool(registry, call["name"], call.get("args", {})),
                        tool_call_id=call["id"],
                        name=call["name"],
                    )
                )
            with model_call("chat"):
                response = model.invoke(messages)

        return message_text(response)

    @staticmethod
    def _run_tool(registry: dict[str, BaseTool], name: str, args: dict[str, Any]) -> str:
        tool = registry.get(name)
        if tool is None:
            logger.warning("Model requested unknown tool %r", name)
            return f"Error: Unknown tool '{name}'"
        try:
            result = tool.invoke(args)
        except (ValidationError, ToolException) as exc:
            logger.warning("Tool %s failed: %s", name, exc)
            return f"Error calling tool {name}: {exc}"
        return json.dumps(result)
