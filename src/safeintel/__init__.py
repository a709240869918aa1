# ─────────────────────────────────────────────────────────────────────
# SafeIntel — Package Initialisation
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────
"""
SafeIntel: grounded Q&A over restaurant food-safety check records.

Core API::

    from safeintel import ComplianceAssistant, SafeIntelConfig

HTTP server (requires ``pip install safeintel[server]``)::

    from safeintel.server import create_app
"""

__version__ = "1.0.0"

from .core import (
    BuildFilters,
    ComplianceAssistant,
    EmbeddingIndexer,
    Fact,
    FactMeta,
    IndexLoader,
    KnowledgeIndex,
    QueryHints,
    QueryResolver,
    Resolution,
    SafeIntelConfig,
    SafeIntelError,
    SuggestionGenerator,
    build_knowledge_index,
)

__all__ = [
    "ComplianceAssistant",
    "QueryResolver",
    "SuggestionGenerator",
    "EmbeddingIndexer",
    "build_knowledge_index",
    "BuildFilters",
    "IndexLoader",
    "KnowledgeIndex",
    "Fact",
    "FactMeta",
    "QueryHints",
    "Resolution",
    "SafeIntelConfig",
    "SafeIntelError",
]
