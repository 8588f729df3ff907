"""Ingestion pipeline: PDFs in a directory are chunked, embedded and indexed in Chroma.

Every run starts from an empty collection (delete, then create), so the
index always reflects exactly the documents processed by the latest run.

Documents are processed in small parallel batches.  Each document task
returns an immutable :class:`DocumentOutcome`; once a batch has completed
its outcomes are folded into :class:`RunStatistics`.  A failing document
never aborts the run.

Run
---
    legal-rag-ingest --directory ./pdfs --max-documents 5
    # or
    python -m legal_rag.ingestion.pipeline --directory ./pdfs
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from legal_rag.config import Settings, get_settings
from legal_rag.exceptions import (
    ConfigurationError,
    ExtractionError,
    IngestionError,
    LegalRagError,
    VectorStoreUnavailableError,
)
from legal_rag.ingestion.chunker import Chunker, derive_title
from legal_rag.ingestion.loader import PDF_EXTENSIONS, PdfLoader, discover_documents
from legal_rag.ingestion.models import DocumentOutcome, RunStatistics, SourceDocument
from legal_rag.ingestion.uploader import BatchUploader
from legal_rag.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Read, chunk, embed and index a bounded set of documents.

    Parameters
    ----------
    store:
        Target vector store; reset at the start of every run.
    uploader:
        Embeds chunks and writes them to *store*.
    chunker:
        Splits extracted text into chunks.
    loader:
        Callable turning a path into a :class:`SourceDocument`.
    max_documents:
        Upper bound on documents processed per run.
    document_batch_size:
        Documents processed concurrently.
    batch_pause:
        Seconds to wait between document batches.
    extensions:
        File extensions considered documents.
    sleep:
        Sleep used for the pause between batches.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        uploader: BatchUploader,
        chunker: Chunker,
        *,
        loader: Callable[[Path], SourceDocument] | None = None,
        max_documents: int = 5,
        document_batch_size: int = 2,
        batch_pause: float = 2.0,
        extensions: Sequence[str] = PDF_EXTENSIONS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if document_batch_size < 1:
            raise ValueError(f"document_batch_size must be >= 1, got {document_batch_size}")
        self.store = store
        self.uploader = uploader
        self.chunker = chunker
        self.loader = loader or PdfLoader()
        self.max_documents = max_documents
        self.document_batch_size = document_batch_size
        self.batch_pause = batch_pause
        self.extensions = tuple(extensions)
        self._sleep = sleep

    # -- public API -----------------------------------------------------------

    def run(self, directory: str | Path) -> RunStatistics:
        """Reprocess every candidate document in *directory* from scratch.

        Raises
        ------
        IngestionError
            If *directory* does not exist.
        VectorStoreUnavailableError
            If the collection cannot be reset.
        """
        directory = Path(directory)
        if not directory.is_dir():
            raise IngestionError(
                f"Document folder missing at {directory}", details={"directory": str(directory)}
            )

        started = time.monotonic()
        self._reset_store()

        paths = discover_documents(directory, extensions=self.extensions, limit=self.max_documents)
        logger.info("Found %d documents (limited to first %d)", len(paths), self.max_documents)

        stats = RunStatistics()
        if not paths:
            logger.info("No documents to process")
            return stats.model_copy(
                update={"final_count": 0, "duration_seconds": time.monotonic() - started}
            )

        total_batches = -(-len(paths) // self.document_batch_size)
        for batch_no, start in enumerate(range(0, len(paths), self.document_batch_size), 1):
            batch = paths[start : start + self.document_batch_size]
            logger.info(
                "Processing batch %d/%d (%d files)", batch_no, total_batches, len(batch)
            )
            outcomes = self.process_batch(batch)
            stats = stats.merge(outcomes)
            for outcome in outcomes:
                if outcome.success:
                    logger.info("%s: %d chunks", outcome.filename, outcome.chunks_added)
                else:
                    logger.error("%s: %s", outcome.filename, outcome.error)
            logger.info(
                "Progress: %d/%d files (%.1f%% success rate), %d chunks added",
                stats.processed,
                len(paths),
                stats.success_rate,
                stats.chunks_added,
            )

            if start + self.document_batch_size < len(paths):
                logger.info("Waiting %.1fs between batches", self.batch_pause)
                self._sleep(self.batch_pause)

        stats = stats.model_copy(
            update={
                "final_count": self._final_count(),
                "duration_seconds": time.monotonic() - started,
            }
        )
        for line in stats.summary_lines():
            logger.info(line)
        return stats

    def process_batch(self, paths: Sequence[Path]) -> list[DocumentOutcome]:
        """Process *paths* concurrently and wait for all of them."""
        with ThreadPoolExecutor(
            max_workers=len(paths), thread_name_prefix="ingest"
        ) as pool:
            futures = [(path, pool.submit(self.process_document, path)) for path in paths]
            outcomes: list[DocumentOutcome] = []
            for path, future in futures:
                try:
                    outcomes.append(future.result())
                except Exception as exc:
                    logger.exception("Unexpected failure while processing %s", path.name)
                    outcomes.append(DocumentOutcome.failed(path.name, str(exc)))
        return outcomes

    def process_document(self, path: Path) -> DocumentOutcome:
        """Load, chunk and upload one document; never raises for document errors."""
        filename = path.name
        try:
            document = self.loader(path)
            logger.info("Extracted %d characters from %s", len(document.text), filename)
            chunks = self.chunker.split(
                document.text,
                {"filename": filename, "source": filename, "title": derive_title(filename)},
            )
            logger.info("Split %s into %d chunks", filename, len(chunks))
        except ExtractionError as exc:
            return DocumentOutcome.failed(filename, exc.message)
        except LegalRagError as exc:
            return DocumentOutcome.failed(filename, str(exc))

        added = self.uploader.upload(chunks)
        if added == 0:
            return DocumentOutcome.failed(
                filename, "No chunks were added to the index", total_chunks=len(chunks)
            )
        if added < len(chunks):
            logger.warning("Only %d/%d chunks of %s were added", added, len(chunks), filename)
        logger.info("Successfully added %d/%d chunks from %s", added, len(chunks), filename)
        return DocumentOutcome(
            filename=filename, success=True, chunks_added=added, total_chunks=len(chunks)
        )

    # -- internals ------------------------------------------------------------

    def _reset_store(self) -> None:
        try:
            self.store.reset()
        except VectorStoreUnavailableError:
            raise
        except Exception as exc:
            raise VectorStoreUnavailableError(
                f"Could not reset collection {self.store.collection_name!r}: {exc}"
            ) from exc

    def _final_count(self) -> int | None:
        try:
            return self.store.count()
        except Exception:
            logger.warning("Could not read final collection count", exc_info=True)
            return None


def build_pipeline(settings: Settings) -> IngestionPipeline:
    """Wire the production pipeline from *settings*.

    Raises ``ConfigurationError`` before touching any remote service when
    the Gemini API key is missing or a placeholder.
    """
    from legal_rag.ingestion.embedder import EmbeddingClient
    from legal_rag.retrieval.chroma_store import ChromaVectorStore

    embedder = EmbeddingClient.from_settings(settings)
    store = ChromaVectorStore.from_settings(settings)
    uploader = BatchUploader(
        store,
        embedder,
        batch_size=settings.chunk_batch_size,
        max_retries=settings.max_retries,
        embedding_interval=settings.embedding_interval,
    )
    chunker = Chunker(settings.chunk_size, settings.chunk_overlap)
    return IngestionPipeline(
        store,
        uploader,
        chunker,
        max_documents=settings.max_documents,
        document_batch_size=settings.document_batch_size,
        batch_pause=settings.batch_pause,
    )


# ──────────────────────────────────────────────────────────────────────
# CLI
# ──────────────────────────────────────────────────────────────────────


def _parse_args(argv: Sequence[str] | None, settings: Settings) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest PDF documents into the vector index")
    parser.add_argument("--directory", default=settings.pdf_directory, help="PDF directory")
    parser.add_argument(
        "--max-documents", type=int, default=settings.max_documents,
        help="Maximum number of documents processed this run",
    )
    parser.add_argument(
        "--batch-size", type=int, default=settings.document_batch_size,
        help="Documents processed concurrently",
    )
    parser.add_argument(
        "--chunk-batch-size", type=int, default=settings.chunk_batch_size,
        help="Chunks embedded and written per sub-batch",
    )
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    from legal_rag.logging_setup import configure_logging

    base = get_settings()
    args = _parse_args(argv, base)
    configure_logging(args.log_level)

    settings = base.model_copy(
        update={
            "pdf_directory": args.directory,
            "max_documents": args.max_documents,
            "document_batch_size": args.batch_size,
            "chunk_batch_size": args.chunk_batch_size,
        }
    )
    logger.info("Vector index: http://%s:%s", settings.chroma_host, settings.chroma_port)
    logger.info("PDF directory: %s", Path(settings.pdf_directory).resolve())
    logger.info(
        "Max documents: %d, batch size: %d, chunk batch: %d",
        settings.max_documents,
        settings.document_batch_size,
        settings.chunk_batch_size,
    )

    try:
        pipeline = build_pipeline(settings)
        stats = pipeline.run(settings.pdf_directory)
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return 1
    except (IngestionError, VectorStoreUnavailableError) as exc:
        logger.error("Ingestion failed: %s", exc)
        return 1

    if stats.final_count:
        logger.info("Documents are now searchable")
    else:
        logger.warning("No documents were successfully processed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
