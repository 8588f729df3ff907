"""Generation backends — single place to swap providers.

A backend is anything with a ``name`` and a ``generate(prompt) -> str``
method.  The composer tries an ordered list of them, first success wins:

1. **Gemini** models over the REST ``generateContent`` endpoint, most
   capable first (``GEMINI_API_KEY``).
2. Optionally an **OpenAI-compatible** chat model, either OpenAI cloud
   (``OPENAI_API_KEY``) or a local vLLM server (``LLM_BASE_URL``).
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import requests

from legal_rag.config import Settings, ensure_api_key
from legal_rag.exceptions import GenerationError
from legal_rag.generation.prompts import build_answer_messages

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GenerationBackend(Protocol):
    """A text-generation capability tried by :class:`AnswerComposer`."""

    name: str

    def generate(self, prompt: str) -> str: ...


def parse_generation(payload: Any) -> str:
    """Extract ``candidates[0].content.parts[0].text`` from a response body."""
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise GenerationError("Invalid response format from Gemini API") from exc
    if not isinstance(text, str) or not text.strip():
        raise GenerationError("Gemini API returned an empty answer")
    return text.strip()


class GeminiBackend:
    """One Gemini model behind the ``generateContent`` REST endpoint.

    The API key is validated on every :meth:`generate` call rather than at
    construction, so a missing key at query time behaves like any other
    backend failure and lets the composer fall through.
    """

    def __init__(
        self,
        model: str,
        api_key: str | None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 20.0,
        temperature: float = 0.7,
        top_k: int = 40,
        top_p: float = 0.8,
        max_output_tokens: int = 1024,
        session: requests.Session | None = None,
    ) -> None:
        self.model = model
        self.name = model
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.generation_config = {
            "temperature": temperature,
            "topK": top_k,
            "topP": top_p,
            "maxOutputTokens": max_output_tokens,
        }
        self._session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def generate(self, prompt: str) -> str:
        api_key = ensure_api_key(self._api_key)
        response = self._session.post(
            self.endpoint,
            params={"key": api_key},
            json={
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": self.generation_config,
            },
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as exc:
            raise GenerationError("Gemini API returned a non-JSON body") from exc
        return parse_generation(payload)


class OpenAICompatibleBackend:
    """Chat model via ``langchain_openai.ChatOpenAI``.

    When *base_url* is set the client is pointed at an OpenAI-compatible
    server such as vLLM instead of the OpenAI cloud API.  A dummy API key
    (``"EMPTY"``) is used because vLLM does not require authentication.
    """

    def __init__(
        self,
        model: str,
        *,
        api_key: str = "",
        base_url: str = "",
        temperature: float = 0.7,
        timeout: float = 20.0,
    ) -> None:
        self.model = model
        self.name = f"openai:{model}"
        self._kwargs: dict[str, Any] = {
            "model": model,
            "temperature": temperature,
            "timeout": timeout,
            "max_retries": 0,
        }
        if base_url:
            self._kwargs["base_url"] = base_url
            # vLLM doesn't need a real key; LangChain requires a non-empty value.
            self._kwargs["api_key"] = api_key or "EMPTY"
        else:
            self._kwargs["api_key"] = api_key
        self._llm: Any | None = None

    def _get_llm(self) -> Any:
        if self._llm is None:
            from langchain_openai import ChatOpenAI

            self._llm = ChatOpenAI(**self._kwargs)
        return self._llm

    def generate(self, prompt: str) -> str:
        result = self._get_llm().invoke(build_answer_messages(prompt))
        text = getattr(result, "content", "")
        if not isinstance(text, str) or not text.strip():
            raise GenerationError(f"{self.name} returned an empty answer")
        return text.strip()


def build_backends(settings: Settings) -> list[GenerationBackend]:
    """Ordered backend list from *settings*: Gemini models, then OpenAI-compatible."""
    session = requests.Session()
    backends: list[GenerationBackend] = [
        GeminiBackend(
            model,
            settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            timeout=settings.generation_timeout,
            session=session,
        )
        for model in settings.generation_models
    ]
    if settings.llm_base_url or settings.openai_api_key:
        if settings.llm_base_url:
            logger.info("Using OpenAI-compatible endpoint: %s", settings.llm_base_url)
        backends.append(
            OpenAICompatibleBackend(
                settings.llm_model_name,
                api_key=settings.openai_api_key,
                base_url=settings.llm_base_url,
                timeout=settings.generation_timeout,
            )
        )
    return backends
