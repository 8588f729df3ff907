"""
Retrieval — vector store access and distance-filtered search.

Public surface
--------------
- :class:`Retriever` — embeds a question and returns filtered matches.
- :class:`VectorStoreBase` — abstract backend.
- :class:`ChromaVectorStore` — default Chroma backend.
- :class:`RetrievalMatch`, :class:`RetrievalResult` — data models.
"""

from legal_rag.retrieval.base import VectorStoreBase
from legal_rag.retrieval.models import RetrievalMatch, RetrievalResult, RetrievalStatus
from legal_rag.retrieval.retriever import Retriever, filter_by_distance

__all__ = [
    "ChromaVectorStore",
    "RetrievalMatch",
    "RetrievalResult",
    "RetrievalStatus",
    "Retriever",
    "VectorStoreBase",
    "filter_by_distance",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorStore to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorStore":
        from legal_rag.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
