# ─────────────────────────────────────────────────────────────────────
# SafeIntel — Embedding & Completion Providers
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────
"""
Adapters for the external embedding and completion services.

Embedding providers implement ``embed(texts)`` returning one raw vector
per input text.  Completion providers implement ``complete(prompt)``
taking a ``GroundedPrompt`` and returning the answer text.

Every provider failure surfaces as ``UpstreamProviderError``; callers
decide whether to retry.
"""

from __future__ import annotations

import hashlib
import logging
import re
from abc import ABC, abstractmethod

import openai
import requests

from .config import SafeIntelConfig
from .exceptions import ConfigError, UpstreamProviderError
from .types import GroundedPrompt

logger = logging.getLogger("SafeIntel.Providers")

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_CHAT_MODEL = "gpt-4o-mini"


def _upstream_error(exc: Exception, what: str) -> UpstreamProviderError:
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(getattr(exc, "response", None), "status_code", None)
    rate_limited = status == 429 or isinstance(exc, openai.RateLimitError)
    return UpstreamProviderError(
        f"{what} request failed: {exc}",
        status_code=status,
        rate_limited=rate_limited,
    )


# ── Embeddings ────────────────────────────────────────────────────────


class EmbeddingProvider(ABC):
    """Abstract base for embedding adapters."""

    @abstractmethod
    def embed(self, texts: list[str]) -> list[list[float]]:
        """Return one raw (unnormalized) vector per input text."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name for logging and the index sidecar."""
        ...


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """OpenAI embeddings API adapter.

    Parameters
    ----------
    api_key : str — OpenAI API key (required).
    model : str — embedding model name.
    base_url : str — API base URL (for Azure/compatible endpoints).
    timeout : float — request timeout seconds.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_EMBEDDING_MODEL,
        base_url: str = "",
        timeout: float = 30.0,
    ) -> None:
        if not api_key:
            raise ConfigError("OPENAI_API_KEY is not set")
        self.model = model
        # Retries are owned by the caller (indexer backoff, none at query time).
        self._client = openai.OpenAI(
            api_key=api_key,
            base_url=base_url or None,
            timeout=timeout,
            max_retries=0,
        )

    @property
    def name(self) -> str:
        return f"openai/{self.model}"

    def embed(self, texts: list[str]) -> list[list[float]]:
        try:
            resp = self._client.embeddings.create(model=self.model, input=texts)
        except openai.OpenAIError as exc:
            raise _upstream_error(exc, "Embedding") from exc
        ordered = sorted(resp.data, key=lambda d: d.index)
        return [list(d.embedding) for d in ordered]


_TOKEN_RE = re.compile(r"\w+")


class MockEmbeddingProvider(EmbeddingProvider):
    """Deterministic hashed bag-of-words embeddings (no network).

    Texts sharing words land close together, which is enough for
    offline demos and tests.
    """

    def __init__(self, dim: int = 64) -> None:
        if dim < 2:
            raise ValueError(f"dim must be >= 2, got {dim}")
        self.dim = dim
        self.calls = 0

    @property
    def name(self) -> str:
        return f"mock/hash-{self.dim}"

    def _vector(self, text: str) -> list[float]:
        vec = [0.0] * self.dim
        for token in _TOKEN_RE.findall(text.lower()):
            digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
            bucket = int.from_bytes(digest[:4], "little") % self.dim
            sign = 1.0 if digest[4] & 1 else -1.0
            vec[bucket] += sign
        if not any(vec):
            vec[0] = 1.0
        return vec

    def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        return [self._vector(t) for t in texts]


# ── Completions ───────────────────────────────────────────────────────


class CompletionProvider(ABC):
    """Abstract base for chat-completion adapters."""

    @abstractmethod
    def complete(self, prompt: GroundedPrompt) -> str:
        """Return the answer text for a grounded prompt."""
        ...

    @property
    @abstractmethod
    def name(self) -> str: ...


class OpenAICompletionProvider(CompletionProvider):
    """OpenAI ChatCompletion adapter.

    Parameters
    ----------
    api_key : str — OpenAI API key (required).
    model : str — chat model name (default: gpt-4o-mini).
    temperature : float — sampling temperature.
    max_tokens : int — max tokens per answer.
    timeout : float — request timeout seconds.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_CHAT_MODEL,
        temperature: float = 0.2,
        max_tokens: int = 512,
        base_url: str = "",
        timeout: float = 30.0,
    ) -> None:
        if not api_key:
            raise ConfigError("OPENAI_API_KEY is not set")
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = openai.OpenAI(
            api_key=api_key,
            base_url=base_url or None,
            timeout=timeout,
            max_retries=0,
        )

    @property
    def name(self) -> str:
        return f"openai/{self.model}"

    def complete(self, prompt: GroundedPrompt) -> str:
        try:
            result = self._client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                messages=[
                    {"role": "system", "content": prompt.system},
                    {"role": "user", "content": prompt.user},
                ],
            )
        except openai.OpenAIError as exc:
            raise _upstream_error(exc, "Completion") from exc
        if not result.choices:
            return ""
        return (result.choices[0].message.content or "").strip()


class LocalCompletionProvider(CompletionProvider):
    """OpenAI-compatible local server adapter (llama.cpp, vLLM, Ollama).

    Parameters
    ----------
    api_url : str — chat completions endpoint URL.
    model : str — model name (for servers that require it).
    timeout : float — request timeout seconds.
    """

    def __init__(
        self,
        api_url: str = "http://localhost:8080/v1/chat/completions",
        model: str = "",
        temperature: float = 0.2,
        max_tokens: int = 512,
        timeout: float = 30.0,
    ) -> None:
        self.api_url = api_url
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

    @property
    def name(self) -> str:
        return f"local/{self.model or 'default'}"

    def complete(self, prompt: GroundedPrompt) -> str:
        payload: dict = {
            "messages": [
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": prompt.user},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if self.model:
            payload["model"] = self.model

        try:
            resp = requests.post(self.api_url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise _upstream_error(exc, "Local completion") from exc
        choices = data.get("choices") or [{}]
        return (choices[0].get("message", {}).get("content") or "").strip()


class MockCompletionProvider(CompletionProvider):
    """Answers with the highest-ranked context line, verbatim."""

    def __init__(self) -> None:
        self.prompts: list[GroundedPrompt] = []

    @property
    def name(self) -> str:
        return "mock"

    def complete(self, prompt: GroundedPrompt) -> str:
        self.prompts.append(prompt)
        for line in prompt.user.splitlines():
            if line.startswith("- "):
                return line[2:].strip()
        return "I don't have that record."


# ── Factories ─────────────────────────────────────────────────────────


def create_embedding_provider(config: SafeIntelConfig) -> EmbeddingProvider:
    """Build the embedding provider named by ``config.embedding_provider``."""
    if config.embedding_provider == "mock":
        return MockEmbeddingProvider(dim=config.mock_embedding_dim)
    if config.embedding_provider == "openai":
        return OpenAIEmbeddingProvider(
            api_key=config.openai_api_key,
            model=config.embedding_model,
            base_url=config.openai_base_url,
            timeout=config.request_timeout,
        )
    raise ConfigError(f"Unknown embedding provider: {config.embedding_provider!r}")


def create_completion_provider(config: SafeIntelConfig) -> CompletionProvider:
    """Build the completion provider named by ``config.llm_provider``."""
    if config.llm_provider == "mock":
        return MockCompletionProvider()
    if config.llm_provider == "openai":
        return OpenAICompletionProvider(
            api_key=config.openai_api_key,
            model=config.llm_model,
            temperature=config.llm_temperature,
            max_tokens=config.llm_max_tokens,
            base_url=config.openai_base_url,
            timeout=config.request_timeout,
        )
    if config.llm_provider == "local":
        return LocalCompletionProvider(
            api_url=config.llm_api_url,
            model=config.llm_model,
            temperature=config.llm_temperature,
            max_tokens=config.llm_max_tokens,
            timeout=config.request_timeout,
        )
    raise ConfigError(f"Unknown llm provider: {config.llm_provider!r}")
