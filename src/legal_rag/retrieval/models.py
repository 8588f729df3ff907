"""Domain models for retrieval results."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RetrievalMatch(BaseModel):
    """A chunk returned by a nearest-neighbour query.

    Attributes
    ----------
    content:
        The chunk text.
    metadata:
        Metadata stored alongside the chunk (filename, title, …).
    distance:
        Distance to the query embedding; smaller is more similar.
    id:
        Vector-store id of the chunk, when the backend returns it.
    """

    model_config = ConfigDict(frozen=True)

    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    distance: float = Field(ge=0.0)
    id: str | None = None

    @property
    def title(self) -> str:
        return str(self.metadata.get("title") or self.metadata.get("filename") or "Untitled")

    def __str__(self) -> str:  # noqa: D105
        return f"[{self.title} d={self.distance:.3f}] {self.content[:120]}…"


class RetrievalStatus(str, Enum):
    FOUND = "found"
    NO_DOCUMENTS = "no_documents"
    NO_RELEVANT_DOCUMENTS = "no_relevant_documents"


class RetrievalResult(BaseModel):
    """Filtered matches for one question.

    An empty result is a normal outcome, signalled through :attr:`status`,
    and is distinct from a retrieval error.
    """

    model_config = ConfigDict(frozen=True)

    matches: list[RetrievalMatch] = Field(default_factory=list)
    total_candidates: int = 0
    status: RetrievalStatus = RetrievalStatus.FOUND

    @property
    def is_empty(self) -> bool:
        return not self.matches
