"""Question → nearest chunks, filtered by a distance threshold.

Usage::

    from legal_rag.retrieval.retriever import Retriever

    retriever = Retriever(store, embedder)
    result = retriever.retrieve("What are the remedies for breach of contract?")
    if result.is_empty:
        ...  # explicit "nothing relevant" signal, not an error
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from legal_rag.exceptions import ValidationError
from legal_rag.ingestion.embedder import Embedder
from legal_rag.retrieval.base import VectorStoreBase
from legal_rag.retrieval.models import RetrievalMatch, RetrievalResult, RetrievalStatus

logger = logging.getLogger(__name__)

DEFAULT_DISTANCE_THRESHOLD = 1.5


def filter_by_distance(
    matches: Sequence[RetrievalMatch], threshold: float = DEFAULT_DISTANCE_THRESHOLD
) -> list[RetrievalMatch]:
    """Keep matches strictly closer than *threshold*, preserving rank order."""
    return [m for m in matches if m.distance < threshold]


class Retriever:
    """Embed a question and fetch the closest chunks from the store.

    Parameters
    ----------
    store:
        Vector store populated by the ingestion pipeline.
    embedder:
        Must be the same model the index was built with.
    default_k:
        Number of nearest neighbours requested when ``k`` is not given.
    distance_threshold:
        Matches at or above this distance are discarded.
    min_question_length:
        Questions shorter than this (after trimming) are rejected.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: Embedder,
        *,
        default_k: int = 5,
        distance_threshold: float = DEFAULT_DISTANCE_THRESHOLD,
        min_question_length: int = 3,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self.default_k = default_k
        self.distance_threshold = distance_threshold
        self.min_question_length = min_question_length

    @property
    def store(self) -> VectorStoreBase:
        return self._store

    def validate(self, question: str | None) -> str:
        """Return the trimmed question or raise :class:`ValidationError`."""
        if not isinstance(question, str) or len(question.strip()) < self.min_question_length:
            raise ValidationError(
                f"Question must be at least {self.min_question_length} characters long",
                field="question",
            )
        return question.strip()

    def retrieve(self, question: str, k: int | None = None) -> RetrievalResult:
        """Return the relevant matches for *question*.

        Raises
        ------
        ValidationError
            If the question is too short; no embedding call is made.
        EmbeddingError
            If the question cannot be embedded.
        """
        question = self.validate(question)
        k = k or self.default_k

        logger.info("Searching for: %r", question)
        embedding = self._embedder.embed(question)
        candidates = self._store.query(embedding, k)
        logger.info("Found %d matches", len(candidates))

        if not candidates:
            return RetrievalResult(status=RetrievalStatus.NO_DOCUMENTS)

        relevant = filter_by_distance(candidates, self.distance_threshold)
        if not relevant:
            logger.info(
                "No match below distance %.2f (closest %.3f)",
                self.distance_threshold,
                min(m.distance for m in candidates),
            )
            return RetrievalResult(
                total_candidates=len(candidates),
                status=RetrievalStatus.NO_RELEVANT_DOCUMENTS,
            )

        return RetrievalResult(
            matches=relevant,
            total_candidates=len(candidates),
            status=RetrievalStatus.FOUND,
        )
