"""FastAPI application exposing the question-answering path over HTTP."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from legal_rag.config import get_settings
from legal_rag.exceptions import LegalRagError
from legal_rag.logging_setup import configure_logging
from legal_rag.serving.service import (
    QueryErrorKind,
    QueryResponse,
    QueryService,
    build_query_service,
)

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[QueryErrorKind, int] = {
    QueryErrorKind.VALIDATION: 400,
    QueryErrorKind.INTERNAL: 500,
    QueryErrorKind.UNAVAILABLE: 503,
}


def _build_service() -> QueryService | None:
    """Build the query service, or log why it cannot be built yet."""
    try:
        return build_query_service(get_settings())
    except LegalRagError as exc:
        logger.error("Query service unavailable: %s", exc)
        return None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Check credentials and the vector store once at startup."""
    configure_logging(get_settings().log_level)
    app.state.query_service = _build_service()
    if app.state.query_service is not None:
        logger.info("Query service ready")
    yield
    logger.info("Application shutdown")


app = FastAPI(
    title="Legal RAG API",
    version="0.1.0",
    description="Question answering over ingested legal documents.",
    lifespan=lifespan,
)


# ── Request schemas ───────────────────────────────────────────────────
class QueryRequest(BaseModel):
    """Incoming question from the user."""

    question: str = ""


# ── Dependencies ──────────────────────────────────────────────────────
def get_query_service(request: Request) -> QueryService | None:
    """Service built at startup; rebuilt here while it is unavailable.

    Returns ``None`` instead of raising so every route can still answer.
    Overridable in tests.
    """
    service = getattr(request.app.state, "query_service", None)
    if service is None:
        service = _build_service()
        request.app.state.query_service = service
    return service


# ── Routes ────────────────────────────────────────────────────────────
@app.get("/health")
def health(service: QueryService | None = Depends(get_query_service)) -> dict[str, object]:
    """Liveness check with the current document-chunk count (-1 if unknown)."""
    documents = -1
    if service is not None:
        try:
            documents = service.document_count()
        except Exception:
            logger.warning("Vector store count failed", exc_info=True)
    return {"status": "ok", "documents": documents}


@app.post("/query", response_model=QueryResponse)
def query(
    request: QueryRequest, service: QueryService | None = Depends(get_query_service)
) -> QueryResponse | JSONResponse:
    """Answer a question from the indexed documents."""
    if service is None:
        response = QueryResponse.failed(QueryErrorKind.UNAVAILABLE)
    else:
        response = service.answer(request.question)
    if response.success:
        return response
    status = ERROR_STATUS.get(response.error, 500)
    return JSONResponse(status_code=status, content=response.model_dump(mode="json"))
