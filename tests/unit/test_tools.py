"""Unit tests for the book catalog tools and the tool-calling loop."""

from __future__ import annotations

import json

from langchain_core.messages import AIMessage, ToolMessage

from rag_workshop.chat.tools import Book, BookCatalog, ToolCallingService, build_book_tools

from conftest import ScriptedChatModel


def _tool_call(name: str, args: dict, call_id: str = "call-1") -> AIMessage:
    return AIMessage(content="", tool_calls=[{"name": name, "args": args, "id": call_id}])


def test_catalog_lookup() -> None:
    """Books are looked up by author."""
    catalog = BookCatalog()
    titles = [b.title for b in catalog.books_by_author("J.R.R. Tolkien")]
    assert titles == ["The Hobbit", "The Lord of The Rings", "The Silmarillion"]
    assert catalog.books_by_author("Nobody") == []


def test_catalog_add() -> None:
    """Added books appear in the catalog."""
    catalog = BookCatalog(books=[])
    catalog.add(Book(title="Sabriel", author="Garth Nix"))
    assert catalog.all() == [Book(title="Sabriel", author="Garth Nix")]


def test_tool_schema() -> None:
    """The tool exposes its name, arguments and result."""
    [tool] = build_book_tools(BookCatalog())
    assert tool.name == "booksByAuthor"
    assert "name" in tool.args
    assert tool.invoke({"name": "C.S. Lewis"}) == [{"title": "Narnia", "author": "C.S. Lewis"}]


def test_tool_loop_feeds_results_back() -> None:
    """Tool results are sent back to the model."""
    model = ScriptedChatModel(
        _tool_call("booksByAuthor", {"name": "J.R.R. Tolkien"}),
        "The library has The Hobbit, The Lord of The Rings and The Silmarillion.",
    )
    tools = build_book_tools(BookCatalog())
    answer = ToolCallingService(model).ask("What books by Tolkien are available?", tools)

    assert "The Hobbit" in answer
    assert model.bound_tools == tools
    tool_message = model.calls[1][-1]
    assert isinstance(tool_message, ToolMessage)
    assert tool_message.tool_call_id == "call-1"
    assert [b["title"] for b in json.loads(tool_message.content)][0] == "The Hobbit"


def test_unknown_tool_reports_error() -> None:
    """An unknown tool name is reported to the model."""
    model = ScriptedChatModel(_tool_call("burnLibrary", {}), "Sorry.")
    assert ToolCallingService(model).ask("Burn it", build_book_tools(BookCatalog())) == "Sorry."
    assert "Unknown tool" in model.calls[1][-1].content


def test_invalid_arguments_report_error() -> None:
    """Bad tool arguments are reported to the model."""
    model = ScriptedChatModel(_tool_call("booksByAuthor", {"author": 3}), "Sorry.")
    ToolCallingService(model).ask("Books?", build_book_tools(BookCatalog()))
    assert model.calls[1][-1].content.startswith("Error calling tool booksByAuthor")


def test_iteration_limit() -> None:
    """The loop stops after max_iterations tool rounds."""
    model = ScriptedChatModel(_tool_call("booksByAuthor", {"name": "C.S. Lewis"}))
    ToolCallingService(model, max_iterations=2).ask("Loop forever", build_book_tools(BookCatalog()))
    assert len(model.calls) == 3
