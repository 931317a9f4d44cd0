"""Prompt templates for chat, retrieval-augmented chat and structured output.

Every service that calls the chat model takes its prompt from this
module.  Keeping prompts in one place makes them easy to audit and
version.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.prompts import PromptTemplate

if TYPE_CHECKING:
    from collections.abc import Sequence

    from langchain_core.messages import BaseMessage

    from rag_workshop.retrieval.models import RetrievalResult

# ── 1. Plain chat ─────────────────────────────────────────────────────

PIRATE_SYSTEM = "You are a helpful assistant who always answers like a pirate."

PIRATE_SONG_TEMPLATE = "Compose a short pirate song about {topic}."


def render_template(template: str, params: dict[str, Any]) -> str:
    """Fill ``{placeholders}`` in *template*.  Missing parameters raise ``KeyError``."""
    return PromptTemplate.from_template(template).format(**params)


def build_chat_prompt(
    user_text: str,
    *,
    system: str | None = None,
    history: Sequence[BaseMessage] = (),
) -> list[BaseMessage]:
    """System message (optional) + prior turns + the user message."""
    messages: list[BaseMessage] = []
    if system:
        messages.append(SystemMessage(content=system))
    messages.extend(history)
    messages.append(HumanMessage(content=user_text))
    return messages


# ── 2. Retrieval-augmented chat ───────────────────────────────────────

RAG_SYSTEM = """\
You are a helpful assistant. Answer the user's question using the
context information below and the conversation history, not prior
knowledge. If the answer is not in the context, tell the user that you
can't answer the question.
"""


def format_context(results: Sequence[RetrievalResult]) -> str:
    """Numbered listing of retrieved passages with their source."""
    if not results:
        return "(no context retrieved)"
    parts: list[str] = []
    for i, result in enumerate(results, 1):
        parts.append(f"[{i}] (source={result.citation.source})\n{result.content}")
    return "\n\n".join(parts)


def build_rag_prompt(
    query: str,
    results: Sequence[RetrievalResult],
    *,
    history: Sequence[BaseMessage] = (),
    system: str = RAG_SYSTEM,
) -> list[BaseMessage]:
    """Assemble the prompt for a retrieval-augmented generation call.

    Layout: system instructions with the retrieved context appended, then
    prior turns of the conversation (if any), then the user query.
    """
    context = format_context(results)
    system_text = (
        f"{system}\n"
        "Context information is below.\n"
        "---------------------\n"
        f"{context}\n"
        "---------------------"
    )
    return build_chat_prompt(query, system=system_text, history=history)


# ── 3. Structured output ──────────────────────────────────────────────

ARTIST_INFO_TEMPLATE = """\
Tell me name and band of one musician famous for playing in a {genre} band.
Consider only the musicians that play the {instrument} in that band.
"""

ARTIST_NAMES_TEMPLATE = """\
Tell me the names of three musicians famous for playing in a {genre} band.
Consider only the musicians that play the {instrument} in that band.
"""

JSON_OBJECT_INSTRUCTIONS = (
    "Your response should be a single JSON object, with no markdown fences "
    "and no text before or after it."
)

EXTRACTION_TEMPLATE = """\
Extract structured data from the provided text.
If you do not know the value of a field asked to extract,
do not include any value for the field in the result.

---------------------
TEXT:
{text}
---------------------
"""


def with_format_instructions(user_text: str, instructions: str) -> list[BaseMessage]:
    """User prompt followed by the output-format instructions."""
    return [HumanMessage(content=f"{user_text}\n{instructions}")]


# ── 4. Function calling ───────────────────────────────────────────────

BOOKS_BY_AUTHOR_TEMPLATE = "What books written by {author} are available in the library?"
