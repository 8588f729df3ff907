"""Exception hierarchy for the ingestion and query pipelines.

Per-document and per-sub-batch errors (:class:`ExtractionError`,
:class:`EmbeddingError`, :class:`IndexWriteError`) are caught and turned
into statistics by the ingestion pipeline.  :class:`ConfigurationError`,
:class:`VectorStoreUnavailableError` and :class:`IngestionError` abort a
run.  :class:`GenerationError` never reaches the caller of the query path;
it triggers the structured fallback instead.
"""

from __future__ import annotations

from typing import Any


class LegalRagError(Exception):
    """Base exception carrying an optional ``details`` mapping for logs."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(LegalRagError):
    """Missing or placeholder credential / invalid setting."""


class ExtractionError(LegalRagError):
    """A source document is unreadable or has too little text."""


class EmbeddingError(LegalRagError):
    """The embedding backend failed after all retries, or returned garbage."""


class VectorStoreError(LegalRagError):
    """Base class for vector-index failures."""


class IndexWriteError(VectorStoreError):
    """Writing a batch to the vector index failed after all retries."""


class VectorStoreUnavailableError(VectorStoreError):
    """The vector index cannot be reached or reset."""


class ValidationError(LegalRagError):
    """Malformed query input."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)


class GenerationError(LegalRagError):
    """A generation backend failed or returned an unusable response."""


class IngestionError(LegalRagError):
    """Fatal, run-level ingestion failure."""
