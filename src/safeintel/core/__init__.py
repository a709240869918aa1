# ─────────────────────────────────────────────────────────────────────
# SafeIntel — Core Package (Fact Retrieval Engine)
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────
"""
Fact retrieval engine for food-safety compliance records.

Quick start::

    from safeintel.core import ComplianceAssistant, SafeIntelConfig

    assistant = ComplianceAssistant.from_config(SafeIntelConfig.from_env())
    result = assistant.ask("Opening Check for restaurant 74 on 20/09/2025")
    print(result.answer, result.used)
"""

from .assistant import ComplianceAssistant
from .checks import CHECK_TYPES, DEFAULT_PREFERRED_TYPES, detect_check_type
from .composer import NO_MATCH_ANSWER, build_grounded_prompt, compose_exact
from .config import SafeIntelConfig
from .dates import RelativeDateResolver, parse_query_date, to_iso
from .exceptions import (
    ConfigError,
    IndexCorruptionError,
    MalformedInputError,
    ParseFallbackError,
    SafeIntelError,
    UpstreamProviderError,
    ValidationError,
)
from .facts import BuildFilters, extract_facts, read_rows
from .hints import HintParser
from .index_store import IndexLoader, KnowledgeIndex, read_index, write_index
from .indexer import EmbeddingIndexer, build_knowledge_index
from .providers import (
    CompletionProvider,
    EmbeddingProvider,
    LocalCompletionProvider,
    MockCompletionProvider,
    MockEmbeddingProvider,
    OpenAICompletionProvider,
    OpenAIEmbeddingProvider,
)
from .resolver import QueryResolver
from .suggestions import SuggestionGenerator
from .types import Fact, FactMeta, GroundedPrompt, MatchResult, QueryHints, Resolution

__all__ = [
    "Fact",
    "FactMeta",
    "QueryHints",
    "MatchResult",
    "GroundedPrompt",
    "Resolution",
    "CHECK_TYPES",
    "DEFAULT_PREFERRED_TYPES",
    "detect_check_type",
    "RelativeDateResolver",
    "parse_query_date",
    "to_iso",
    "BuildFilters",
    "extract_facts",
    "read_rows",
    "EmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "MockEmbeddingProvider",
    "CompletionProvider",
    "OpenAICompletionProvider",
    "LocalCompletionProvider",
    "MockCompletionProvider",
    "EmbeddingIndexer",
    "build_knowledge_index",
    "KnowledgeIndex",
    "IndexLoader",
    "read_index",
    "write_index",
    "HintParser",
    "QueryResolver",
    "NO_MATCH_ANSWER",
    "build_grounded_prompt",
    "compose_exact",
    "SuggestionGenerator",
    "ComplianceAssistant",
    "SafeIntelConfig",
    "SafeIntelError",
    "ConfigError",
    "ValidationError",
    "MalformedInputError",
    "IndexCorruptionError",
    "UpstreamProviderError",
    "ParseFallbackError",
]
