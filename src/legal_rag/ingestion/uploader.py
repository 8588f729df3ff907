"""Embed chunks and write them to the vector store in small batches.

Each sub-batch is all-or-nothing: if any embedding in it fails, or the
store write still fails after ``max_retries`` attempts, the sub-batch
reports zero chunks and the uploader moves on to the next one.

Embeddings inside a sub-batch are generated strictly one after the other
and paced by an :class:`~legal_rag.ratelimit.IntervalRateLimiter`, so the
upstream API sees a single throttled stream per document.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from tenacity import RetryError, Retrying, stop_after_attempt, wait_incrementing

from legal_rag.exceptions import EmbeddingError, IndexWriteError
from legal_rag.ingestion.embedder import Embedder
from legal_rag.ingestion.models import Chunk
from legal_rag.ratelimit import IntervalRateLimiter
from legal_rag.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)

# Pause between the sub-batches of a single document.
SUB_BATCH_PAUSE = 0.1


def clean_metadata(metadata: Mapping[str, Any]) -> dict[str, str | int | float | bool]:
    """Make *metadata* acceptable to the vector store.

    ``None`` values are dropped; str / int / float / bool are kept as-is;
    anything else is converted with ``str()``.
    """
    cleaned: dict[str, str | int | float | bool] = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            cleaned[key] = value
        else:
            cleaned[key] = str(value)
    return cleaned


def build_metadata(chunk: Chunk, processed_at: datetime) -> dict[str, str | int | float | bool]:
    return clean_metadata(
        {
            "filename": chunk.filename,
            "source": chunk.source,
            "title": chunk.title,
            "chunk_index": chunk.chunk_index,
            "total_chunks": chunk.total_chunks,
            "processed_at": processed_at.isoformat(),
        }
    )


class BatchUploader:
    """Group chunks, embed each one and write every group to the store.

    Parameters
    ----------
    store:
        Target vector store.
    embedder:
        Anything with an ``embed(text) -> list[float]`` method.
    batch_size:
        Chunks per sub-batch.
    max_retries:
        Total attempts for each store write.
    embedding_interval:
        Minimum seconds between consecutive embedding calls of one
        :meth:`upload` call.  Each upload gets its own limiter, so
        documents processed in parallel are paced independently.
    clock:
        Monotonic clock handed to the limiter.
    sleep:
        Sleep used for pacing, write back-off and sub-batch pauses.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: Embedder,
        *,
        batch_size: int = 10,
        max_retries: int = 3,
        embedding_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.store = store
        self.embedder = embedder
        self.batch_size = batch_size
        self.max_retries = max(1, max_retries)
        self.embedding_interval = embedding_interval
        self._clock = clock
        self._sleep = sleep

    def new_limiter(self) -> IntervalRateLimiter:
        return IntervalRateLimiter(self.embedding_interval, clock=self._clock, sleep=self._sleep)

    def upload(self, chunks: Sequence[Chunk]) -> int:
        """Upload *chunks* in index order; return how many were written."""
        limiter = self.new_limiter()
        total_added = 0
        for start in range(0, len(chunks), self.batch_size):
            batch = chunks[start : start + self.batch_size]
            total_added += self.upload_batch(batch, limiter=limiter)
            if start + self.batch_size < len(chunks):
                self._sleep(SUB_BATCH_PAUSE)
        return total_added

    def upload_batch(
        self, chunks: Sequence[Chunk], *, limiter: IntervalRateLimiter | None = None
    ) -> int:
        """Embed and write one sub-batch; returns ``0`` or ``len(chunks)``."""
        if not chunks:
            return 0
        try:
            embeddings = self._embed_all(chunks, limiter or self.new_limiter())
            self._write(chunks, embeddings)
        except (EmbeddingError, IndexWriteError) as exc:
            logger.error(
                "Failed to process chunk batch %s[%d-%d]: %s",
                chunks[0].filename,
                chunks[0].chunk_index,
                chunks[-1].chunk_index,
                exc,
            )
            return 0
        logger.info("Added batch of %d chunks from %s", len(chunks), chunks[0].filename)
        return len(chunks)

    # -- internals ------------------------------------------------------------

    def _embed_all(
        self, chunks: Sequence[Chunk], limiter: IntervalRateLimiter
    ) -> list[list[float]]:
        logger.debug("Generating embeddings for %d chunks", len(chunks))
        embeddings: list[list[float]] = []
        for i, chunk in enumerate(chunks, 1):
            limiter.acquire()
            try:
                embeddings.append(self.embedder.embed(chunk.text))
            except EmbeddingError:
                logger.error("Failed to generate embedding for chunk %d/%d", i, len(chunks))
                raise
            logger.debug("Generated embedding %d/%d", i, len(chunks))
        return embeddings

    def _write(self, chunks: Sequence[Chunk], embeddings: list[list[float]]) -> None:
        processed_at = datetime.now(timezone.utc)
        ids = [c.chunk_id for c in chunks]
        documents = [c.text for c in chunks]
        metadatas = [build_metadata(c, processed_at) for c in chunks]

        retryer = Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_incrementing(start=1, increment=1),
            before_sleep=lambda state: logger.warning(
                "Retry %d/%d for vector store batch: %s",
                state.attempt_number,
                self.max_retries,
                state.outcome.exception() if state.outcome else None,
            ),
            sleep=self._sleep,
        )
        try:
            retryer(self.store.add, ids, embeddings, documents, metadatas)
        except RetryError as exc:
            cause = exc.last_attempt.exception()
            raise IndexWriteError(
                f"Vector store write failed after {self.max_retries} attempts: {cause}",
                details={"first_id": ids[0], "size": len(ids)},
            ) from cause
