"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings

from legal_rag.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # Gemini (embeddings + generation)
    gemini_api_key: str = Field(default="", description="Google Gemini API key")
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    embedding_model: str = "models/embedding-001"
    embedding_timeout: float = 30.0
    generation_models: list[str] = Field(
        default_factory=lambda: [
            "gemini-1.5-flash-latest",
            "gemini-1.5-flash",
            "gemini-pro",
        ],
        description="Generation models tried in order, most capable first",
    )
    generation_timeout: float = 20.0

    # Optional OpenAI-compatible backend, tried after the Gemini models
    openai_api_key: str = Field(default="", description="OpenAI API key (or dummy value for local vLLM)")
    llm_model_name: str = "gpt-4o-mini"
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL of an OpenAI-compatible endpoint, e.g. a local vLLM "
            "server. Leave empty together with OPENAI_API_KEY to disable."
        ),
    )

    # Vector store
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection: str = "legal_cases"
    distance_metric: str = "l2"

    # Ingestion
    pdf_directory: str = "pdfs"
    max_documents: int = 5
    document_batch_size: int = 2
    chunk_batch_size: int = 10
    chunk_size: int = 1000
    chunk_overlap: int = 200
    max_retries: int = 3
    embedding_interval: float = 1.0
    batch_pause: float = 2.0

    # Retrieval
    retrieval_k: int = 5
    distance_threshold: float = 1.5

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()


# Values shipped in sample .env files that must never reach the API.
PLACEHOLDER_API_KEYS: tuple[str, ...] = (
    "your-actual-gemini-api-key-here",
    "your-api-key",
    "changeme",
)


def ensure_api_key(api_key: str | None, *, name: str = "GEMINI_API_KEY") -> str:
    """Return *api_key* or raise ``ConfigurationError`` if missing / placeholder."""
    if not api_key or not api_key.strip():
        raise ConfigurationError(f"Valid {name} is required", details={"setting": name})
    lowered = api_key.strip().lower()
    if any(placeholder in lowered for placeholder in PLACEHOLDER_API_KEYS):
        raise ConfigurationError(
            f"{name} is still set to a placeholder value", details={"setting": name}
        )
    return api_key.strip()
