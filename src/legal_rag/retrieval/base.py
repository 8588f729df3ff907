"""Abstract base class for vector-store backends.

The ingestion and query pipelines only talk to :class:`VectorStoreBase`;
the index's own storage and search internals stay behind it.  Adding a
backend means subclassing and implementing the abstract methods.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from legal_rag.retrieval.models import RetrievalMatch


class VectorStoreBase(ABC):
    """Backend-agnostic vector-store interface.

    Parameters
    ----------
    collection_name:
        Logical name of the collection / index / namespace.
    """

    def __init__(self, collection_name: str) -> None:
        self.collection_name = collection_name

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def reset(self) -> None:
        """Drop the collection if it exists, then create it empty."""
        ...

    @abstractmethod
    def add(
        self,
        ids: Sequence[str],
        embeddings: Sequence[Sequence[float]],
        documents: Sequence[str],
        metadatas: Sequence[dict[str, Any]],
    ) -> None:
        """Write entries; existing ids are overwritten.

        All four sequences are parallel and must have the same length.
        """
        ...

    @abstractmethod
    def query(self, embedding: Sequence[float], k: int = 5) -> list[RetrievalMatch]:
        """Return up to *k* nearest entries, closest first."""
        ...

    @abstractmethod
    def count(self) -> int:
        """Number of entries in the collection."""
        ...

    # -- optional overrides ---------------------------------------------------

    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        try:
            self.count()
        except Exception:
            return False
        return True
