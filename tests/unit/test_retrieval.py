"""Unit tests for the retrieval layer — models, Chroma store and Retriever."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from conftest import FakeEmbedder, FakeVectorStore

from legal_rag.exceptions import EmbeddingError, ValidationError, VectorStoreUnavailableError
from legal_rag.retrieval import chroma_store as chroma_store_module
from legal_rag.retrieval.chroma_store import ChromaVectorStore
from legal_rag.retrieval.models import RetrievalMatch, RetrievalStatus
from legal_rag.retrieval.retriever import Retriever, filter_by_distance


@pytest.fixture()
def retriever(sample_matches: list[RetrievalMatch], fake_embedder: FakeEmbedder) -> Retriever:
    return Retriever(FakeVectorStore(matches=sample_matches), fake_embedder)


# ── Models ──────────────────────────────────────────────────────────────


class TestRetrievalMatch:
    def test_title_from_metadata(self) -> None:
        match = RetrievalMatch(content="x", metadata={"title": "Doe v Roe"}, distance=0.1)
        assert match.title == "Doe v Roe"

    def test_title_falls_back_to_filename(self) -> None:
        match = RetrievalMatch(content="x", metadata={"filename": "a.pdf"}, distance=0.1)
        assert match.title == "a.pdf"

    def test_untitled(self) -> None:
        assert RetrievalMatch(content="x", distance=0.1).title == "Untitled"

    def test_negative_distance_rejected(self) -> None:
        with pytest.raises(ValueError):
            RetrievalMatch(content="x", distance=-0.5)


class TestFilterByDistance:
    def test_keeps_close_matches_in_order(self, sample_matches: list[RetrievalMatch]) -> None:
        kept = filter_by_distance(sample_matches, 1.5)
        assert [m.distance for m in kept] == [0.2, 0.8]

    def test_threshold_is_exclusive(self) -> None:
        match = RetrievalMatch(content="x", distance=1.5)
        assert filter_by_distance([match], 1.5) == []


# ── Retriever ───────────────────────────────────────────────────────────


class TestRetriever:
    def test_returns_relevant_matches(self, retriever: Retriever) -> None:
        result = retriever.retrieve("What is consideration in contract law?")
        assert result.status is RetrievalStatus.FOUND
        assert [m.title for m in result.matches] == ["Smith v Jones", "Doe v Roe"]
        assert result.total_candidates == 4

    def test_question_is_embedded_trimmed(
        self, retriever: Retriever, fake_embedder: FakeEmbedder
    ) -> None:
        retriever.retrieve("   breach of lease   ")
        assert fake_embedder.calls == ["breach of lease"]

    @pytest.mark.parametrize("question", ["", "  ", "ab", " a "])
    def test_short_question_rejected_without_embedding(
        self, retriever: Retriever, fake_embedder: FakeEmbedder, question: str
    ) -> None:
        with pytest.raises(ValidationError, match="at least 3 characters"):
            retriever.retrieve(question)
        assert fake_embedder.calls == []

    def test_k_is_forwarded(self, sample_matches: list[RetrievalMatch]) -> None:
        store = FakeVectorStore(matches=sample_matches)
        Retriever(store, FakeEmbedder()).retrieve("contract damages", k=2)
        assert store.query_calls[0][1] == 2

    def test_default_k(self, sample_matches: list[RetrievalMatch]) -> None:
        store = FakeVectorStore(matches=sample_matches)
        Retriever(store, FakeEmbedder(), default_k=7).retrieve("contract damages")
        assert store.query_calls[0][1] == 7

    def test_empty_index(self, fake_embedder: FakeEmbedder) -> None:
        result = Retriever(FakeVectorStore(), fake_embedder).retrieve("contract disputes")
        assert result.is_empty
        assert result.status is RetrievalStatus.NO_DOCUMENTS

    def test_nothing_close_enough(
        self, sample_matches: list[RetrievalMatch], fake_embedder: FakeEmbedder
    ) -> None:
        store = FakeVectorStore(matches=sample_matches[2:])
        result = Retriever(store, fake_embedder).retrieve("maritime tax law")
        assert result.is_empty
        assert result.status is RetrievalStatus.NO_RELEVANT_DOCUMENTS
        assert result.total_candidates == 2

    def test_embedding_error_propagates(self, sample_matches: list[RetrievalMatch]) -> None:
        retriever = Retriever(FakeVectorStore(matches=sample_matches), FakeEmbedder(fail_on="law"))
        with pytest.raises(EmbeddingError):
            retriever.retrieve("contract law")


# ── Chroma store ────────────────────────────────────────────────────────


@pytest.fixture()
def chroma_client() -> MagicMock:
    return MagicMock()


@pytest.fixture()
def chroma_store(chroma_client: MagicMock) -> ChromaVectorStore:
    return ChromaVectorStore("legal_cases", client=chroma_client)


class TestChromaVectorStore:
    def test_collection_created_with_metric(
        self, chroma_store: ChromaVectorStore, chroma_client: MagicMock
    ) -> None:
        chroma_store.count()
        chroma_client.get_or_create_collection.assert_called_once_with(
            "legal_cases", metadata={"hnsw:space": "l2"}
        )

    def test_query_maps_results(
        self, chroma_store: ChromaVectorStore, chroma_client: MagicMock
    ) -> None:
        collection = chroma_client.get_or_create_collection.return_value
        collection.query.return_value = {
            "ids": [["a.pdf_chunk_0", "b.pdf_chunk_2"]],
            "documents": [["first chunk", "second chunk"]],
            "metadatas": [[{"title": "A"}, None]],
            "distances": [[0.31, 1.2]],
        }

        matches = chroma_store.query([0.1, 0.2], k=2)

        collection.query.assert_called_once_with(
            query_embeddings=[[0.1, 0.2]],
            n_results=2,
            include=["documents", "metadatas", "distances"],
        )
        assert [m.id for m in matches] == ["a.pdf_chunk_0", "b.pdf_chunk_2"]
        assert matches[0].title == "A"
        assert matches[1].metadata == {}
        assert matches[1].distance == pytest.approx(1.2)

    def test_query_on_empty_collection(
        self, chroma_store: ChromaVectorStore, chroma_client: MagicMock
    ) -> None:
        collection = chroma_client.get_or_create_collection.return_value
        collection.query.return_value = {"ids": [[]], "documents": [[]], "distances": [[]]}
        assert chroma_store.query([0.1], k=5) == []

    def test_tiny_negative_distance_clamped(
        self, chroma_store: ChromaVectorStore, chroma_client: MagicMock
    ) -> None:
        collection = chroma_client.get_or_create_collection.return_value
        collection.query.return_value = {
            "ids": [["x"]],
            "documents": [["same text"]],
            "metadatas": [[{}]],
            "distances": [[-1e-7]],
        }
        assert chroma_store.query([1.0])[0].distance == 0.0

    def test_add_upserts(self, chroma_store: ChromaVectorStore, chroma_client: MagicMock) -> None:
        chroma_store.add(["id-1"], [[0.5, 0.5]], ["text"], [{"title": "T"}])
        collection = chroma_client.get_or_create_collection.return_value
        collection.upsert.assert_called_once_with(
            ids=["id-1"], embeddings=[[0.5, 0.5]], documents=["text"], metadatas=[{"title": "T"}]
        )
        collection.add.assert_not_called()

    def test_add_length_mismatch(self, chroma_store: ChromaVectorStore) -> None:
        with pytest.raises(ValueError):
            chroma_store.add(["id-1", "id-2"], [[0.5]], ["text"], [{}])

    def test_reset_deletes_then_creates(
        self, chroma_store: ChromaVectorStore, chroma_client: MagicMock
    ) -> None:
        chroma_store.reset()
        chroma_client.delete_collection.assert_called_once_with(name="legal_cases")
        chroma_client.create_collection.assert_called_once_with(
            name="legal_cases", metadata={"hnsw:space": "l2"}
        )
        assert chroma_store.collection is chroma_client.create_collection.return_value

    def test_reset_tolerates_missing_collection(
        self, chroma_store: ChromaVectorStore, chroma_client: MagicMock
    ) -> None:
        chroma_client.delete_collection.side_effect = ValueError("Collection does not exist")
        chroma_store.reset()
        chroma_client.create_collection.assert_called_once()

    def test_reset_failure_raises_unavailable(
        self, chroma_store: ChromaVectorStore, chroma_client: MagicMock
    ) -> None:
        chroma_client.create_collection.side_effect = ConnectionError("refused")
        with pytest.raises(VectorStoreUnavailableError):
            chroma_store.reset()

    def test_health_check(self, chroma_store: ChromaVectorStore, chroma_client: MagicMock) -> None:
        assert chroma_store.health_check() is True
        chroma_client.heartbeat.side_effect = ConnectionError("down")
        assert chroma_store.health_check() is False

    def test_unreachable_server_raises_unavailable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def refuse(**kwargs: object) -> None:
            raise ValueError("Could not connect to a Chroma server. Are you sure it is running?")

        monkeypatch.setattr(chroma_store_module.chromadb, "HttpClient", refuse)
        with pytest.raises(VectorStoreUnavailableError) as excinfo:
            ChromaVectorStore("legal_cases", host="chroma", port=1)
        assert excinfo.value.details == {"host": "chroma", "port": 1}
