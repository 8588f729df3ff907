"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import chromadb

from legal_rag.config import Settings
from legal_rag.exceptions import VectorStoreUnavailableError
from legal_rag.retrieval.base import VectorStoreBase
from legal_rag.retrieval.models import RetrievalMatch

logger = logging.getLogger(__name__)


def _first_row(results: dict[str, Any], key: str) -> list[Any]:
    """Chroma returns one row per query embedding; we always send one."""
    rows = results.get(key) or [[]]
    return list(rows[0] or [])


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store holding pre-computed embeddings.

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection.
    host:
        Chroma server hostname.
    port:
        Chroma server port.
    distance_metric:
        ``"l2"`` | ``"cosine"`` | ``"ip"``, applied when the collection is
        (re)created.
    client:
        Pre-built Chroma client; an ``HttpClient`` is created when omitted.
    """

    def __init__(
        self,
        collection_name: str,
        *,
        host: str = "localhost",
        port: int = 8000,
        distance_metric: str = "l2",
        client: Any | None = None,
    ) -> None:
        super().__init__(collection_name)
        self._host = host
        self._port = port
        self.distance_metric = distance_metric
        self._client = client if client is not None else self._connect(host, port)
        self._collection: Any | None = None

    @staticmethod
    def _connect(host: str, port: int) -> Any:
        try:
            return chromadb.HttpClient(host=host, port=port)
        except Exception as exc:  # HttpClient raises ValueError when the server is down
            raise VectorStoreUnavailableError(
                f"Could not connect to Chroma at {host}:{port}: {exc}",
                details={"host": host, "port": port},
            ) from exc

    @classmethod
    def from_settings(cls, settings: Settings) -> ChromaVectorStore:
        return cls(
            settings.chroma_collection,
            host=settings.chroma_host,
            port=settings.chroma_port,
            distance_metric=settings.distance_metric,
        )

    @property
    def collection(self) -> Any:
        """The Chroma collection, fetched (or created) on first use."""
        if self._collection is None:
            self._collection = self._client.get_or_create_collection(
                self.collection_name,
                metadata={"hnsw:space": self.distance_metric},
            )
        return self._collection

    # -- VectorStoreBase overrides --------------------------------------------

    def reset(self) -> None:
        try:
            self._client.delete_collection(name=self.collection_name)
            logger.info("Deleted existing collection %r for a fresh start", self.collection_name)
        except Exception as exc:  # chromadb raises different types per version
            logger.info("No existing collection %r found (%s)", self.collection_name, exc)

        try:
            self._collection = self._client.create_collection(
                name=self.collection_name,
                metadata={"hnsw:space": self.distance_metric},
            )
        except Exception as exc:
            raise VectorStoreUnavailableError(
                f"Could not create collection {self.collection_name!r}: {exc}",
                details={"host": self._host, "port": self._port},
            ) from exc
        logger.info("Created collection %r (space=%s)", self.collection_name, self.distance_metric)

    def add(
        self,
        ids: Sequence[str],
        embeddings: Sequence[Sequence[float]],
        documents: Sequence[str],
        metadatas: Sequence[dict[str, Any]],
    ) -> None:
        if not (len(ids) == len(embeddings) == len(documents) == len(metadatas)):
            raise ValueError("ids, embeddings, documents and metadatas must have equal length")
        self.collection.upsert(
            ids=list(ids),
            embeddings=[list(e) for e in embeddings],
            documents=list(documents),
            metadatas=list(metadatas),
        )

    def query(self, embedding: Sequence[float], k: int = 5) -> list[RetrievalMatch]:
        results = self.collection.query(
            query_embeddings=[list(embedding)],
            n_results=k,
            include=["documents", "metadatas", "distances"],
        )

        ids = _first_row(results, "ids")
        docs = _first_row(results, "documents")
        metas = _first_row(results, "metadatas")
        distances = _first_row(results, "distances")

        matches: list[RetrievalMatch] = []
        for rank, (content, dist) in enumerate(zip(docs, distances)):
            matches.append(
                RetrievalMatch(
                    id=ids[rank] if rank < len(ids) else None,
                    content=content or "",
                    metadata=dict(metas[rank] or {}) if rank < len(metas) else {},
                    # Rounding can push an exact match slightly below zero.
                    distance=max(0.0, float(dist)),
                )
            )
        return matches

    def count(self) -> int:
        return int(self.collection.count())

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False
