"""Answer composition — context building, backend fallthrough, structured fallback.

Per question the composer walks a small state machine::

    backend[0] ──ok──▶ done
        │ fail
    backend[1] ──ok──▶ done
        │ fail
       ...
        │ all failed
    structured fallback ──▶ done

Each backend is tried exactly once.  The structured fallback is pure text
manipulation over the :class:`ContextExcerpt` list built alongside the
context string; it never calls a remote service, so the system keeps
answering during a generation outage.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict

from legal_rag.generation.backends import GenerationBackend
from legal_rag.generation.prompts import NO_DOCUMENTS_MESSAGE, build_answer_prompt
from legal_rag.retrieval.models import RetrievalMatch

logger = logging.getLogger(__name__)

STRUCTURED_FALLBACK = "structured_fallback"
NO_BACKEND = "none"

_SENTENCE_BOUNDARY = re.compile(r"[.!?]+")
MIN_SENTENCE_CHARS = 20
FALLBACK_PREVIEW_CHARS = 150


class ContextExcerpt(BaseModel):
    """Title and (truncated) text of one match placed in the context."""

    model_config = ConfigDict(frozen=True)

    title: str
    excerpt: str


class Answer(BaseModel):
    """Composed answer and the backend that produced it."""

    text: str
    backend: str
    matches: int = 0

    @property
    def is_fallback(self) -> bool:
        return self.backend == STRUCTURED_FALLBACK


def build_context(
    matches: Sequence[RetrievalMatch],
    *,
    max_matches: int = 5,
    excerpt_chars: int = 800,
) -> tuple[str, list[ContextExcerpt]]:
    """Format up to *max_matches* matches as a prompt context.

    Returns the context string together with the excerpts it was built
    from, so the fallback never has to parse the formatted text back.
    """
    blocks: list[str] = []
    excerpts: list[ContextExcerpt] = []
    for i, match in enumerate(matches[:max_matches], 1):
        excerpt = match.content[:excerpt_chars]
        ellipsis = "..." if len(match.content) > excerpt_chars else ""
        blocks.append(f"[Document {i}: {match.title}]\n{excerpt}{ellipsis}\n---")
        excerpts.append(ContextExcerpt(title=match.title, excerpt=excerpt))
    return "\n".join(blocks), excerpts


def leading_sentence(text: str) -> str:
    """First sentence longer than 20 characters, else the first 150 characters."""
    for sentence in _SENTENCE_BOUNDARY.split(text):
        if len(sentence.strip()) > MIN_SENTENCE_CHARS:
            return sentence.strip()
    return text[:FALLBACK_PREVIEW_CHARS].strip()


def structured_fallback(excerpts: Sequence[ContextExcerpt], question: str) -> str:
    """Deterministic extractive answer built only from *excerpts*."""
    lines = [f'Based on the legal documents, here\'s what I found regarding "{question}":', ""]
    for item in excerpts:
        lines.append(f"📄 **{item.title}**")
        lines.append(leading_sentence(item.excerpt))
        lines.append("")
    lines.append("---")
    lines.append(
        f"💡 This information is extracted directly from {len(excerpts)} relevant "
        "legal document(s). For more detailed analysis, please ensure the AI "
        "service is available."
    )
    return "\n".join(lines)


class AnswerComposer:
    """Turn retrieved matches into an answer.

    Parameters
    ----------
    backends:
        Generation backends in priority order.  May be empty, in which case
        every answer comes from the structured fallback.
    max_context_matches:
        Matches included in the context.
    excerpt_chars:
        Characters kept from each match.
    """

    def __init__(
        self,
        backends: Sequence[GenerationBackend],
        *,
        max_context_matches: int = 5,
        excerpt_chars: int = 800,
    ) -> None:
        self.backends = list(backends)
        self.max_context_matches = max_context_matches
        self.excerpt_chars = excerpt_chars

    def compose(self, matches: Sequence[RetrievalMatch], question: str) -> Answer:
        if not matches:
            return Answer(text=NO_DOCUMENTS_MESSAGE, backend=NO_BACKEND)

        context, excerpts = build_context(
            matches, max_matches=self.max_context_matches, excerpt_chars=self.excerpt_chars
        )
        used = len(excerpts)
        logger.info("Using %d relevant documents for context", used)

        prompt = build_answer_prompt(question, context)
        for backend in self.backends:
            logger.info("Trying generation backend: %s", backend.name)
            try:
                text = backend.generate(prompt)
            except Exception as exc:  # any backend failure falls through
                logger.warning("%s failed: %s", backend.name, exc)
                continue
            if text and text.strip():
                logger.info("Generated answer with %s", backend.name)
                return Answer(text=text.strip(), backend=backend.name, matches=used)
            logger.warning("%s returned an empty answer", backend.name)

        logger.info("All generation backends failed, using structured fallback")
        return Answer(
            text=structured_fallback(excerpts, question),
            backend=STRUCTURED_FALLBACK,
            matches=used,
        )
