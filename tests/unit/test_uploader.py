"""Unit tests for the batch uploader."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from conftest import FakeEmbedder, FakeVectorStore, no_sleep

from legal_rag.ingestion.models import Chunk
from legal_rag.ingestion.uploader import BatchUploader, build_metadata, clean_metadata


def _chunks(n: int, filename: str = "Doe_v_Roe.pdf") -> list[Chunk]:
    return [
        Chunk(
            text=f"chunk {i} of the judgment text",
            chunk_index=i,
            total_chunks=n,
            filename=filename,
            source=filename,
            title="Doe v Roe",
        )
        for i in range(n)
    ]


class _FakeClock:
    """Clock whose time only moves when ``sleep`` is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _uploader(
    store: FakeVectorStore, embedder: FakeEmbedder, **kwargs: object
) -> BatchUploader:
    kwargs.setdefault("sleep", no_sleep)
    kwargs.setdefault("embedding_interval", 0.0)
    return BatchUploader(store, embedder, **kwargs)  # type: ignore[arg-type]


class TestCleanMetadata:
    def test_drops_none(self) -> None:
        assert clean_metadata({"a": None, "b": 1}) == {"b": 1}

    def test_keeps_scalars(self) -> None:
        meta = {"s": "x", "i": 2, "f": 1.5, "b": True}
        assert clean_metadata(meta) == meta

    def test_coerces_other_types(self) -> None:
        assert clean_metadata({"l": [1, 2], "d": {"k": "v"}}) == {"l": "[1, 2]", "d": "{'k': 'v'}"}


class TestBuildMetadata:
    def test_fields(self) -> None:
        chunk = _chunks(3)[1]
        when = datetime(2024, 1, 2, tzinfo=timezone.utc)
        assert build_metadata(chunk, when) == {
            "filename": "Doe_v_Roe.pdf",
            "source": "Doe_v_Roe.pdf",
            "title": "Doe v Roe",
            "chunk_index": 1,
            "total_chunks": 3,
            "processed_at": "2024-01-02T00:00:00+00:00",
        }


class TestUpload:
    def test_uploads_in_sub_batches(
        self, fake_store: FakeVectorStore, fake_embedder: FakeEmbedder
    ) -> None:
        uploader = _uploader(fake_store, fake_embedder, batch_size=10)
        assert uploader.upload(_chunks(25)) == 25
        assert [len(ids) for ids in fake_store.add_calls] == [10, 10, 5]
        assert fake_store.count() == 25

    def test_chunks_written_in_index_order(
        self, fake_store: FakeVectorStore, fake_embedder: FakeEmbedder
    ) -> None:
        _uploader(fake_store, fake_embedder, batch_size=4).upload(_chunks(9))
        flat = [i for ids in fake_store.add_calls for i in ids]
        assert flat == [f"Doe_v_Roe.pdf_chunk_{i}" for i in range(9)]

    def test_embeddings_are_sequential(
        self, fake_store: FakeVectorStore, fake_embedder: FakeEmbedder
    ) -> None:
        chunks = _chunks(5)
        _uploader(fake_store, fake_embedder).upload(chunks)
        assert fake_embedder.calls == [c.text for c in chunks]

    def test_embedding_failure_aborts_only_that_sub_batch(self, fake_store: FakeVectorStore) -> None:
        embedder = FakeEmbedder(fail_on="chunk 12 ")
        uploader = _uploader(fake_store, embedder, batch_size=10)
        assert uploader.upload(_chunks(25)) == 15
        assert "Doe_v_Roe.pdf_chunk_12" not in fake_store.entries
        assert "Doe_v_Roe.pdf_chunk_10" not in fake_store.entries
        assert "Doe_v_Roe.pdf_chunk_20" in fake_store.entries

    def test_write_is_retried(self, fake_store: FakeVectorStore, fake_embedder: FakeEmbedder) -> None:
        sleeps: list[float] = []
        fake_store.fail_adds = 2
        uploader = _uploader(fake_store, fake_embedder, max_retries=3, sleep=sleeps.append)
        assert uploader.upload_batch(_chunks(4)) == 4
        assert len(fake_store.add_calls) == 3
        assert sleeps == [1, 2]

    def test_write_exhaustion_reports_zero(
        self, fake_store: FakeVectorStore, fake_embedder: FakeEmbedder
    ) -> None:
        fake_store.fail_adds = 3
        uploader = _uploader(fake_store, fake_embedder, max_retries=3)
        assert uploader.upload_batch(_chunks(4)) == 0
        assert fake_store.count() == 0

    @pytest.mark.parametrize("fail_on", [None, "chunk 0 ", "chunk 6 "])
    def test_sub_batch_is_all_or_nothing(self, fake_store: FakeVectorStore, fail_on: str | None) -> None:
        uploader = _uploader(fake_store, FakeEmbedder(fail_on=fail_on), batch_size=7)
        assert uploader.upload_batch(_chunks(7)) in (0, 7)

    def test_reupload_overwrites(self, fake_store: FakeVectorStore, fake_embedder: FakeEmbedder) -> None:
        uploader = _uploader(fake_store, fake_embedder)
        uploader.upload(_chunks(3))
        uploader.upload(_chunks(3))
        assert fake_store.count() == 3

    def test_empty_input(self, fake_store: FakeVectorStore, fake_embedder: FakeEmbedder) -> None:
        assert _uploader(fake_store, fake_embedder).upload([]) == 0
        assert fake_store.add_calls == []

    def test_invalid_batch_size(self, fake_store: FakeVectorStore, fake_embedder: FakeEmbedder) -> None:
        with pytest.raises(ValueError):
            BatchUploader(fake_store, fake_embedder, batch_size=0)


class TestPacing:
    def test_embedding_calls_are_spaced(
        self, fake_store: FakeVectorStore, fake_embedder: FakeEmbedder
    ) -> None:
        clock = _FakeClock()
        uploader = BatchUploader(
            fake_store,
            fake_embedder,
            batch_size=10,
            embedding_interval=1.0,
            clock=clock.time,
            sleep=clock.sleep,
        )
        uploader.upload(_chunks(3))
        # No wait before the first call, one second before each later one.
        assert clock.sleeps == [1.0, 1.0]
