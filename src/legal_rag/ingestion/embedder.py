"""Remote embedding client for the Gemini ``embedContent`` endpoint.

The same client (and therefore the same model and dimensionality) is used
for ingestion and for query embedding; distances are meaningless otherwise.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any, Protocol

import requests
from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from legal_rag.config import Settings, ensure_api_key
from legal_rag.exceptions import EmbeddingError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
PREVIEW_CHARS = 50


class MalformedResponseError(ValueError):
    """The embedding response did not contain ``embedding.values``."""


def parse_embedding(payload: Any) -> list[float]:
    """Extract the vector from an ``embedContent`` response body."""
    try:
        values = payload["embedding"]["values"]
    except (KeyError, TypeError) as exc:
        raise MalformedResponseError(f"missing embedding.values in response: {exc}") from exc
    if not isinstance(values, list) or not values:
        raise MalformedResponseError("embedding.values must be a non-empty list")
    try:
        return [float(v) for v in values]
    except (TypeError, ValueError) as exc:
        raise MalformedResponseError(f"non-numeric embedding value: {exc}") from exc


class Embedder(Protocol):
    """Anything that turns text into a vector."""

    def embed(self, text: str) -> list[float]: ...


def _preview(text: str) -> str:
    return text[:PREVIEW_CHARS].replace("\n", " ")


class EmbeddingClient:
    """Convert text to a fixed-length vector via a remote API call.

    Parameters
    ----------
    api_key:
        Gemini API key.  Validated once here; a missing or placeholder key
        raises :class:`~legal_rag.exceptions.ConfigurationError`.
    model:
        Embedding model identifier, e.g. ``"models/embedding-001"``.
    base_url:
        API root, without trailing slash.
    timeout:
        Per-request timeout in seconds.
    max_retries:
        Total attempts per :meth:`embed` call.
    session:
        ``requests.Session`` (or compatible) used for the HTTP calls.
    sleep:
        Sleep used between attempts; injectable for tests.
    """

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str = "models/embedding-001",
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        max_retries: int = 3,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._api_key = ensure_api_key(api_key)
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self._session = session or requests.Session()
        self._sleep = sleep
        self._dimension: int | None = None
        self._dim_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> EmbeddingClient:
        return cls(
            settings.gemini_api_key,
            model=settings.embedding_model,
            base_url=settings.gemini_base_url,
            timeout=settings.embedding_timeout,
            max_retries=settings.max_retries,
            **kwargs,
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/{self.model}:embedContent"

    @property
    def dimension(self) -> int | None:
        """Vector length observed on the first successful call."""
        return self._dimension

    def embed(self, text: str) -> list[float]:
        """Return the embedding for *text*.

        Raises
        ------
        EmbeddingError
            After ``max_retries`` failed attempts, or when the returned
            vector does not match the dimensionality seen so far.
        """
        retryer = Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_incrementing(start=1, increment=1),
            retry=retry_if_exception_type((requests.RequestException, MalformedResponseError)),
            before=self._log_attempt(text),
            sleep=self._sleep,
        )
        try:
            vector = retryer(self._request, text)
        except RetryError as exc:
            cause = exc.last_attempt.exception()
            logger.error("Embedding generation failed: %s", cause)
            raise EmbeddingError(
                f"Embedding generation failed after {self.max_retries} attempts: {cause}",
                details={"model": self.model, "preview": _preview(text)},
            ) from cause

        self._check_dimension(vector)
        return vector

    def _request(self, text: str) -> list[float]:
        response = self._session.post(
            self.endpoint,
            params={"key": self._api_key},
            json={"model": self.model, "content": {"parts": [{"text": text}]}},
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedResponseError(f"response is not JSON: {exc}") from exc
        return parse_embedding(payload)

    def _log_attempt(self, text: str) -> Callable[[RetryCallState], None]:
        def before(state: RetryCallState) -> None:
            if state.attempt_number > 1:
                logger.warning(
                    "Embedding retry %d/%d for text: %s...",
                    state.attempt_number,
                    self.max_retries,
                    _preview(text),
                )

        return before

    def _check_dimension(self, vector: list[float]) -> None:
        with self._dim_lock:
            if self._dimension is None:
                self._dimension = len(vector)
                logger.debug("Embedding dimension for %s is %d", self.model, self._dimension)
            elif len(vector) != self._dimension:
                raise EmbeddingError(
                    "Embedding dimensionality changed",
                    details={"expected": self._dimension, "got": len(vector)},
                )
