"""Query service — retrieve, then compose; never leaks a raw exception."""

from __future__ import annotations

import logging
from enum import Enum

from pydantic import BaseModel

from legal_rag.config import Settings
from legal_rag.exceptions import LegalRagError, ValidationError
from legal_rag.generation.composer import AnswerComposer
from legal_rag.generation.prompts import (
    NO_DOCUMENTS_MESSAGE,
    NO_RELEVANT_DOCUMENTS_MESSAGE,
    QUERY_FAILED_MESSAGE,
)
from legal_rag.retrieval.models import RetrievalStatus
from legal_rag.retrieval.retriever import Retriever

logger = logging.getLogger(__name__)


class QueryErrorKind(str, Enum):
    """Why a query produced no answer; the HTTP layer maps it to a status."""

    VALIDATION = "validation"
    INTERNAL = "internal"
    UNAVAILABLE = "unavailable"


class QueryResponse(BaseModel):
    """Answer returned to the caller."""

    success: bool
    answer: str
    matches: int = 0
    backend: str | None = None
    error: QueryErrorKind | None = None

    @classmethod
    def failed(cls, error: QueryErrorKind, answer: str = QUERY_FAILED_MESSAGE) -> QueryResponse:
        return cls(success=False, answer=answer, error=error)


class QueryService:
    """Glue between :class:`Retriever` and :class:`AnswerComposer`."""

    def __init__(self, retriever: Retriever, composer: AnswerComposer) -> None:
        self.retriever = retriever
        self.composer = composer

    def document_count(self) -> int:
        return self.retriever.store.count()

    def answer(self, question: str) -> QueryResponse:
        try:
            result = self.retriever.retrieve(question)
        except ValidationError as exc:
            return QueryResponse.failed(QueryErrorKind.VALIDATION, exc.message)
        except LegalRagError as exc:
            logger.error("Query error: %s", exc)
            return QueryResponse.failed(QueryErrorKind.INTERNAL)
        except Exception:
            logger.exception("Unexpected query error")
            return QueryResponse.failed(QueryErrorKind.INTERNAL)

        if result.is_empty:
            message = (
                NO_RELEVANT_DOCUMENTS_MESSAGE
                if result.status is RetrievalStatus.NO_RELEVANT_DOCUMENTS
                else NO_DOCUMENTS_MESSAGE
            )
            return QueryResponse(success=True, answer=message, matches=0)

        answer = self.composer.compose(result.matches, question.strip())
        return QueryResponse(
            success=True, answer=answer.text, matches=len(result.matches), backend=answer.backend
        )


def build_query_service(settings: Settings) -> QueryService:
    """Wire the production query path from *settings*."""
    from legal_rag.generation.backends import build_backends
    from legal_rag.ingestion.embedder import EmbeddingClient
    from legal_rag.retrieval.chroma_store import ChromaVectorStore

    store = ChromaVectorStore.from_settings(settings)
    retriever = Retriever(
        store,
        EmbeddingClient.from_settings(settings),
        default_k=settings.retrieval_k,
        distance_threshold=settings.distance_threshold,
    )
    return QueryService(retriever, AnswerComposer(build_backends(settings)))
