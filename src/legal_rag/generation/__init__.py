"""
Generation — answer composition over prioritized generation backends.

Public API
----------
- :class:`AnswerComposer` — context building, backend fallthrough, fallback.
- :func:`structured_fallback` — deterministic extractive answer.
- :func:`build_backends` — backend list from settings.
"""

from legal_rag.generation.backends import (
    GeminiBackend,
    GenerationBackend,
    OpenAICompatibleBackend,
    build_backends,
)
from legal_rag.generation.composer import (
    Answer,
    AnswerComposer,
    ContextExcerpt,
    build_context,
    structured_fallback,
)

__all__ = [
    "Answer",
    "AnswerComposer",
    "ContextExcerpt",
    "GeminiBackend",
    "GenerationBackend",
    "OpenAICompatibleBackend",
    "build_backends",
    "build_context",
    "structured_fallback",
]
