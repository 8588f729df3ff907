"""Shared pytest configuration, fakes and fixtures."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pytest

from legal_rag.exceptions import EmbeddingError
from legal_rag.retrieval.base import VectorStoreBase
from legal_rag.retrieval.models import RetrievalMatch


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fakes ─────────────────────────────────────────────────────────────


class FakeVectorStore(VectorStoreBase):
    """In-memory store; ``query`` returns canned matches."""

    def __init__(self, matches: list[RetrievalMatch] | None = None) -> None:
        super().__init__("test-collection")
        self.entries: dict[str, dict[str, Any]] = {}
        self.matches: list[RetrievalMatch] = matches or []
        self.add_calls: list[list[str]] = []
        self.query_calls: list[tuple[list[float], int]] = []
        self.reset_calls = 0
        self.fail_adds = 0

    def reset(self) -> None:
        self.reset_calls += 1
        self.entries.clear()

    def add(
        self,
        ids: Sequence[str],
        embeddings: Sequence[Sequence[float]],
        documents: Sequence[str],
        metadatas: Sequence[dict[str, Any]],
    ) -> None:
        self.add_calls.append(list(ids))
        if self.fail_adds:
            self.fail_adds -= 1
            raise ConnectionError("vector store unavailable")
        for id_, emb, doc, meta in zip(ids, embeddings, documents, metadatas):
            self.entries[id_] = {"embedding": list(emb), "document": doc, "metadata": meta}

    def query(self, embedding: Sequence[float], k: int = 5) -> list[RetrievalMatch]:
        self.query_calls.append((list(embedding), k))
        return self.matches[:k]

    def count(self) -> int:
        return len(self.entries)


class FakeEmbedder:
    """Deterministic 3-d embeddings; fails for texts containing ``fail_on``."""

    def __init__(self, fail_on: str | None = None) -> None:
        self.fail_on = fail_on
        self.calls: list[str] = []

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail_on and self.fail_on in text:
            raise EmbeddingError("embedding backend down")
        return [float(len(text)), float(text.count(" ")), 1.0]


def no_sleep(seconds: float) -> None:
    """Sleep replacement that returns immediately."""


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture()
def fake_store() -> FakeVectorStore:
    return FakeVectorStore()


@pytest.fixture()
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture()
def sample_matches() -> list[RetrievalMatch]:
    return [
        RetrievalMatch(
            id="Smith_v_Jones.pdf_chunk_0",
            content=(
                "The court held that the contract was void for lack of consideration. "
                "Further analysis followed."
            ),
            metadata={"title": "Smith v Jones", "filename": "Smith_v_Jones.pdf"},
            distance=0.2,
        ),
        RetrievalMatch(
            id="Doe_v_Roe.pdf_chunk_3",
            content="Damages were awarded for breach of the lease agreement by the tenant.",
            metadata={"title": "Doe v Roe", "filename": "Doe_v_Roe.pdf"},
            distance=0.8,
        ),
        RetrievalMatch(
            id="Far_Away.pdf_chunk_1",
            content="Unrelated maritime salvage discussion.",
            metadata={"title": "Far Away"},
            distance=1.6,
        ),
        RetrievalMatch(
            id="Further.pdf_chunk_2",
            content="Entirely unrelated tax matter.",
            metadata={"title": "Further"},
            distance=2.0,
        ),
    ]
