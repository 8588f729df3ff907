"""Domain models for the ingestion pipeline.

Per-document work produces an immutable :class:`DocumentOutcome`; the
pipeline folds a completed batch of outcomes into :class:`RunStatistics`
with :meth:`RunStatistics.merge`, so concurrent tasks never touch a shared
counter.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class SourceDocument(BaseModel):
    """A PDF read from the document directory, with its extracted text."""

    model_config = ConfigDict(frozen=True)

    filename: str
    path: Path
    content: bytes = Field(repr=False)
    text: str = Field(repr=False)


class Chunk(BaseModel):
    """One overlapping text window of a :class:`SourceDocument`.

    Attributes
    ----------
    text:
        Chunk content.
    chunk_index:
        Zero-based ordinal position within the document.
    total_chunks:
        Number of chunks the document was split into.
    filename:
        Source file name; part of the deterministic chunk id.
    source:
        Source locator stored in the index metadata.
    title:
        Human-readable title derived from the file name.
    created_at:
        UTC timestamp of when the chunk was produced.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    chunk_index: int = Field(ge=0)
    total_chunks: int = Field(ge=1)
    filename: str
    source: str
    title: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def chunk_id(self) -> str:
        """Deterministic id; re-ingesting a document overwrites its entries."""
        return make_chunk_id(self.filename, self.chunk_index)


def make_chunk_id(filename: str, chunk_index: int) -> str:
    return f"{filename}_chunk_{chunk_index}"


class DocumentOutcome(BaseModel):
    """Result of processing a single document."""

    model_config = ConfigDict(frozen=True)

    filename: str
    success: bool
    chunks_added: int = 0
    total_chunks: int = 0
    error: str | None = None

    @classmethod
    def failed(cls, filename: str, error: str, total_chunks: int = 0) -> DocumentOutcome:
        return cls(filename=filename, success=False, error=error, total_chunks=total_chunks)


class RunStatistics(BaseModel):
    """Counters for one ingestion run.

    Instances are never mutated in place; :meth:`merge` returns a new
    object with the batch of outcomes folded in.
    """

    model_config = ConfigDict(frozen=True)

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    chunks_added: int = 0
    failures: tuple[tuple[str, str], ...] = ()
    final_count: int | None = None
    duration_seconds: float | None = None

    def merge(self, outcomes: Iterable[DocumentOutcome]) -> RunStatistics:
        outcomes = list(outcomes)
        ok = [o for o in outcomes if o.success]
        bad = [o for o in outcomes if not o.success]
        return self.model_copy(
            update={
                "processed": self.processed + len(outcomes),
                "succeeded": self.succeeded + len(ok),
                "failed": self.failed + len(bad),
                "chunks_added": self.chunks_added + sum(o.chunks_added for o in ok),
                "failures": self.failures
                + tuple((o.filename, o.error or "unknown error") for o in bad),
            }
        )

    @property
    def success_rate(self) -> float:
        """Percentage of processed documents that succeeded."""
        if not self.processed:
            return 0.0
        return 100.0 * self.succeeded / self.processed

    def summary_lines(self) -> list[str]:
        lines = [
            f"Successfully processed: {self.succeeded} PDFs",
            f"Failed to process: {self.failed} PDFs",
            f"Total chunks added this run: {self.chunks_added}",
        ]
        if self.final_count is not None:
            lines.insert(0, f"Vector index contains {self.final_count} document chunks total")
        if self.failures:
            lines.append("Failed files:")
            lines.extend(f"  - {name}: {reason}" for name, reason in self.failures)
        return lines
