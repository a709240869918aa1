# ─────────────────────────────────────────────────────────────────────
# SafeIntel — Compliance Assistant
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────
"""
Query, suggestion and debug contracts over one loaded index.

``ComplianceAssistant`` is what the HTTP server and the CLI talk to.
The index is obtained from an ``IndexLoader`` on first use, so a
process that never answers a question never reads the index.

Usage::

    config = SafeIntelConfig.from_env()
    assistant = ComplianceAssistant.from_config(config)
    result = assistant.answer([{"role": "user", "content": "..."}])
    print(result.answer, result.used)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime

from .composer import (
    EMPTY_COMPLETION_ANSWER,
    NO_MATCH_ANSWER,
    build_grounded_prompt,
    compose_exact,
)
from .config import SafeIntelConfig
from .dates import RelativeDateResolver
from .exceptions import MalformedInputError, UpstreamProviderError
from .hints import HintParser
from .index_store import IndexLoader, KnowledgeIndex
from .metrics import metrics
from .providers import (
    CompletionProvider,
    EmbeddingProvider,
    create_completion_provider,
    create_embedding_provider,
)
from .resolver import QueryResolver
from .suggestions import SuggestionGenerator
from .types import Resolution

logger = logging.getLogger("SafeIntel.Assistant")


def last_user_message(messages: Sequence[dict]) -> str:
    """Content of the final user turn.

    Raises
    ------
    MalformedInputError
        If there is no user turn or its content is blank.
    """
    if not isinstance(messages, (list, tuple)) or not messages:
        raise MalformedInputError("messages must be a non-empty list")
    for msg in reversed(messages):
        if not isinstance(msg, dict):
            raise MalformedInputError("each message must be an object")
        if msg.get("role") != "user":
            continue
        content = msg.get("content")
        if not isinstance(content, str) or not content.strip():
            raise MalformedInputError("the last user message is empty")
        return content.strip()
    raise MalformedInputError("no user message found")


class ComplianceAssistant:
    """Answers food-safety questions from the knowledge index.

    Parameters
    ----------
    loader : IndexLoader — init-once index holder.
    embedder : EmbeddingProvider — query embeddings.
    completer : CompletionProvider — phrases semantic answers.
    config : SafeIntelConfig — retrieval settings (top_k, timezone, ...).
    now : callable returning a datetime, for deterministic relative dates.
    """

    def __init__(
        self,
        loader: IndexLoader,
        embedder: EmbeddingProvider,
        completer: CompletionProvider,
        config: SafeIntelConfig | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.loader = loader
        self.embedder = embedder
        self.completer = completer
        self.config = config or SafeIntelConfig()
        self.dates = RelativeDateResolver(self.config.timezone, now=now)
        self.parser = HintParser(self.dates)

    @classmethod
    def from_config(cls, config: SafeIntelConfig) -> ComplianceAssistant:
        return cls(
            IndexLoader(config.index_dir),
            create_embedding_provider(config),
            create_completion_provider(config),
            config,
        )

    @property
    def index(self) -> KnowledgeIndex:
        return self.loader.load()

    def resolver(self) -> QueryResolver:
        return QueryResolver(
            self.index,
            self.embedder,
            parser=self.parser,
            top_k=self.config.top_k,
            min_similarity=self.config.min_similarity,
        )

    def ask(self, question: str) -> Resolution:
        """Answer a single question."""
        if not question or not question.strip():
            raise MalformedInputError("question is empty")
        question = question.strip()

        try:
            retrieval = self.resolver().resolve(question)
        except UpstreamProviderError:
            metrics.inc("upstream_errors_total", label="embedding")
            raise

        if retrieval.path == "exact":
            answer = compose_exact(retrieval.matches[0].fact)
        elif retrieval.path == "none":
            answer = NO_MATCH_ANSWER
        else:
            prompt = build_grounded_prompt(
                question,
                retrieval.matches,
                today=self.dates.today(),
                timezone=self.config.timezone,
                limit=self.config.top_k,
            )
            try:
                answer = self.completer.complete(prompt).strip()
            except UpstreamProviderError:
                metrics.inc("upstream_errors_total", label="completion")
                raise
            answer = answer or EMPTY_COMPLETION_ANSWER

        return Resolution(
            answer=answer,
            used=retrieval.used,
            narrowed_count=retrieval.narrowed_count,
            path=retrieval.path,
            matches=retrieval.matches,
            hints=retrieval.hints,
        )

    def answer(self, messages: Sequence[dict]) -> Resolution:
        """Answer the final user turn of a chat transcript."""
        return self.ask(last_user_message(messages))

    def suggest(
        self,
        last_user_text: str | None = None,
        preferred_types: Sequence[str] | None = None,
        limit: int | None = None,
    ) -> list[str]:
        generator = SuggestionGenerator(self.index, self.parser)
        return generator.suggest(
            last_user_text,
            preferred_types,
            limit if limit is not None else self.config.suggestion_limit,
        )

    def debug_sample(self, n: int = 3) -> dict:
        index = self.index
        return {"count": index.count, "sample": index.sample(n)}
