"""Document discovery and PDF text extraction."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from langchain_community.document_loaders import PyPDFLoader

from legal_rag.exceptions import ExtractionError
from legal_rag.ingestion.models import SourceDocument

logger = logging.getLogger(__name__)

PDF_EXTENSIONS: tuple[str, ...] = (".pdf",)


def discover_documents(
    directory: str | Path,
    *,
    extensions: Sequence[str] = PDF_EXTENSIONS,
    limit: int | None = None,
) -> list[Path]:
    """Return matching files in *directory*, sorted by name and capped at *limit*.

    Matching is on the file extension, case-insensitively.  Sub-directories
    are not searched.
    """
    root = Path(directory)
    suffixes = {ext.lower() for ext in extensions}
    candidates = sorted(
        (p for p in root.iterdir() if p.is_file() and p.suffix.lower() in suffixes),
        key=lambda p: p.name,
    )
    if limit is not None:
        candidates = candidates[:limit]
    return candidates


def load_pdf(path: str | Path) -> SourceDocument:
    """Read a PDF and extract its plain text.

    Raises
    ------
    ExtractionError
        When the file cannot be read or parsed.
    """
    path = Path(path)
    try:
        content = path.read_bytes()
        pages = PyPDFLoader(str(path)).load()
    except Exception as exc:
        raise ExtractionError(
            f"Could not read PDF: {exc}", details={"filename": path.name}
        ) from exc

    text = "\n\n".join(page.page_content for page in pages)
    logger.debug("Extracted %d characters from %s", len(text), path.name)
    return SourceDocument(filename=path.name, path=path, content=content, text=text)


class PdfLoader:
    """Callable loader used by the pipeline; swap for a fake in tests."""

    def __call__(self, path: Path) -> SourceDocument:
        return load_pdf(path)
