"""Turn ranked documents into the system prompt for the chat model."""

from __future__ import annotations

from docmirror.retrieval.models import RankedDocument

_SEPARATOR = "\n\n---\n\n"


def build_context(ranked: list[RankedDocument]) -> str:
    """One block per document, best first."""
    blocks = [
        f"**{doc.title}** (relevance: {round(doc.max_score * 100)}%)\n{doc.merged_text}"
        for doc in ranked
    ]
    return _SEPARATOR.join(blocks)


def search_summary(ranked: list[RankedDocument]) -> str:
    if not ranked:
        return "No relevant documents were found in the knowledge base."
    return f"Found {len(ranked)} relevant document(s) in the knowledge base."


def build_system_prompt(query: str, ranked: list[RankedDocument]) -> str:
    context = build_context(ranked) or "No specific context is available for this question."
    return f"""You are an assistant that answers questions using documents from a knowledge base.

IMPORTANT: {search_summary(ranked)}

AVAILABLE CONTEXT:
{context}

INSTRUCTIONS:
- Answer only from the context above.
- If the answer is not in the context, say so plainly.
- Be specific and quote the relevant parts of the context.
- If there is not enough information, ask the user to rephrase the question.

USER QUESTION: {query}"""
