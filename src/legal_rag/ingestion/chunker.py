"""Text chunking strategies."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from langchain_text_splitters import RecursiveCharacterTextSplitter

from legal_rag.exceptions import ExtractionError
from legal_rag.ingestion.models import Chunk

# Paragraph → line → sentence → word → raw characters.
DEFAULT_SEPARATORS: list[str] = ["\n\n", "\n", ". ", " ", ""]

_KNOWN_EXTENSION = re.compile(r"\.pdf$", re.IGNORECASE)


def derive_title(filename: str) -> str:
    """Human title from a file name: ``Smith_v_Jones.PDF`` → ``Smith v Jones``."""
    return _KNOWN_EXTENSION.sub("", filename).replace("_", " ")


class Chunker:
    """Split document text into overlapping chunks.

    Parameters
    ----------
    chunk_size:
        Maximum number of characters per chunk.
    chunk_overlap:
        Number of overlapping characters between consecutive chunks.
    min_text_length:
        Documents whose trimmed text is shorter than this are rejected.
    """

    def __init__(
        self,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        *,
        min_text_length: int = 100,
    ) -> None:
        if chunk_overlap >= chunk_size:
            raise ValueError(
                f"chunk_overlap ({chunk_overlap}) must be < chunk_size ({chunk_size})"
            )
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.min_text_length = min_text_length
        self._splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            length_function=len,
            separators=DEFAULT_SEPARATORS,
        )

    def split(self, text: str, metadata: Mapping[str, Any]) -> list[Chunk]:
        """Split *text* into :class:`Chunk` objects.

        *metadata* must contain ``filename``; ``source`` and ``title`` are
        derived from it when absent.

        Raises
        ------
        ExtractionError
            If the text is empty, shorter than ``min_text_length`` after
            trimming, or yields no chunks.
        """
        filename = metadata["filename"]
        stripped = (text or "").strip()
        if not stripped:
            raise ExtractionError("No text to chunk", details={"filename": filename})
        if len(stripped) < self.min_text_length:
            raise ExtractionError(
                "No significant text found in PDF",
                details={"filename": filename, "chars": len(stripped)},
            )

        pieces = self._splitter.split_text(text)
        if not pieces:
            raise ExtractionError("No chunks created from PDF", details={"filename": filename})

        source = metadata.get("source") or filename
        title = metadata.get("title") or derive_title(filename)
        total = len(pieces)
        return [
            Chunk(
                text=piece,
                chunk_index=idx,
                total_chunks=total,
                filename=filename,
                source=source,
                title=title,
            )
            for idx, piece in enumerate(pieces)
        ]
