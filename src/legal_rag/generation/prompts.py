"""Prompt templates for answer generation.

Keeping prompts in one place makes them easy to audit, version, and A/B
test.
"""

from __future__ import annotations

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

# ── Answer generation ─────────────────────────────────────────────────

ANSWER_SYSTEM = """\
You are a helpful legal AI assistant. Based on the provided legal document
excerpts, answer the user's question in a clear, informative, and
conversational manner.

INSTRUCTIONS:
- Use the document context to provide accurate information
- Write in a clear, professional but conversational tone
- Focus on directly answering the user's specific question
- If the documents contain relevant case details, summarize them helpfully
- If information is limited, acknowledge what you can and cannot determine
  from the documents
- Do not make up information not found in the documents
"""


def build_answer_prompt(question: str, context: str) -> str:
    """Single-string prompt, as sent to text-only generation endpoints."""
    return (
        f"{ANSWER_SYSTEM}\n"
        f"USER QUESTION: {question}\n\n"
        f"LEGAL DOCUMENT CONTEXT:\n{context}\n\n"
        "Please provide a helpful answer based on the above context:"
    )


def build_answer_messages(prompt: str) -> list[BaseMessage]:
    """Wrap a prompt from :func:`build_answer_prompt` for chat-model backends.

    The system instructions are already part of *prompt*; a short system
    message keeps chat models in the same role.
    """
    return [
        SystemMessage(content="You are a helpful legal AI assistant."),
        HumanMessage(content=prompt),
    ]


# ── Canned answers ────────────────────────────────────────────────────

NO_DOCUMENTS_MESSAGE = (
    "I couldn't find any relevant documents for your question. Please try "
    "rephrasing your query or ask about different legal topics."
)

NO_RELEVANT_DOCUMENTS_MESSAGE = (
    "I found some documents, but they don't seem closely related to your "
    "question. Please try rephrasing your query or ask about different legal topics."
)

QUERY_FAILED_MESSAGE = "Failed to process query. Please try again."
