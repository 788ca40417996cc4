"""Prompt template for grounded policy answers."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from langchain_core.messages import HumanMessage, SystemMessage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

    from policy_rag.retrieval.models import QueryHit

SYSTEM_PROMPT = """\
You are a helpful assistant that answers questions about company policies.
Answer ONLY from the context provided below. If the context does not
contain the answer, say that the policy documents do not cover it; do not
guess or use outside knowledge.
Mention the source document for the facts you use.
"""

NO_CONTEXT_NOTICE = "No relevant context found in the policy documents."


def format_context(hits: Sequence[QueryHit]) -> str:
    """Numbered listing of retrieved chunks, most relevant first."""
    if not hits:
        return NO_CONTEXT_NOTICE
    parts: list[str] = []
    for i, hit in enumerate(hits, 1):
        chunk = hit.chunk_index if hit.chunk_index is not None else "?"
        parts.append(f"[{i}] source={hit.source} §{chunk}\n{hit.document}")
    return "\n\n---\n\n".join(parts)


def build_rag_prompt(query: str, hits: Sequence[QueryHit]) -> list[BaseMessage]:
    """Assemble the messages for one retrieval-augmented generation call.

    Parameters
    ----------
    query:
        The user question.
    hits:
        Retrieved chunks in relevance order; may be empty, in which case
        the prompt says so and the model is expected to decline.

    Returns
    -------
    list[BaseMessage]
        A list of LangChain message objects ready for ``.astream()``.
    """
    user_msg = (
        f"Context:\n{format_context(hits)}\n\n"
        f"Question: {query}\n\n"
        "Answer using only the context above."
    )
    return [
        SystemMessage(content=SYSTEM_PROMPT),
        HumanMessage(content=user_msg),
    ]
