"""LangGraph graph definition — the retrieval-augmented chat workflow.

This module wires the nodes defined in :mod:`rag_workshop.chat.nodes`
into a compiled :class:`StateGraph`:

1. **Embed** the user's query.
2. **Retrieve** the top-K similar passages (optionally filtered).
3. **Prompt**: instructions + context + prior turns + query.
4. **Generate** the answer with a single chat-model call.

The graph has no branches or loops; every request walks the four nodes
in order.
"""

from __future__ import annotations

from typing import Any

from langgraph.graph import END, StateGraph

from rag_workshop.chat.nodes import RAGNodes
from rag_workshop.chat.state import RAGState


def build_rag_graph(nodes: RAGNodes) -> Any:
    """Construct and return the compiled RAG graph.

    Graph topology::

        [ START ] -> embed_query -> retrieve -> build_prompt -> generate -> [ END ]

    Returns
    -------
    CompiledGraph
        A compiled LangGraph workflow ready for ``.invoke()``.
    """
    workflow = StateGraph(RAGState)

    # -- Nodes ---------------------------------------------------------------
    workflow.add_node("embed_query", nodes.embed_query)
    workflow.add_node("retrieve", nodes.retrieve)
    workflow.add_node("build_prompt", nodes.build_prompt)
    workflow.add_node("generate", nodes.generate)

    # -- Edges ---------------------------------------------------------------
    workflow.set_entry_point("embed_query")
    workflow.add_edge("embed_query", "retrieve")
    workflow.add_edge("retrieve", "build_prompt")
    workflow.add_edge("build_prompt", "generate")
    workflow.add_edge("generate", END)

    return workflow.compile()
