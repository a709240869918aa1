# ─────────────────────────────────────────────────────────────────────
# SafeIntel — Suggestion Generator
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────
"""
Ready-to-ask example questions drawn from the most recent facts.

Suggestions are phrased so that asking them hits the exact-match fast
path: ``Opening Check for restaurant 74 on 20/09/2025``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .checks import DEFAULT_PREFERRED_TYPES, humanize_type, is_check_type
from .dates import iso_to_uk
from .hints import HintParser
from .index_store import KnowledgeIndex
from .metrics import metrics
from .types import Fact

logger = logging.getLogger("SafeIntel.Suggestions")

DEFAULT_LIMIT = 7


def suggestion_prompt(fact: Fact) -> str:
    meta = fact.meta
    return (
        f"{humanize_type(meta.type)} for restaurant {meta.restaurant_key} "
        f"on {iso_to_uk(meta.date_iso)}"
    )


class SuggestionGenerator:
    """Picks one recent fact per preferred check type, then backfills.

    Parameters
    ----------
    index : KnowledgeIndex — loaded facts.
    parser : HintParser — narrows suggestions to the last question's
        restaurant or check type.
    """

    def __init__(self, index: KnowledgeIndex, parser: HintParser | None = None) -> None:
        self.index = index
        self.parser = parser or HintParser()

    def _narrow(self, last_user_text: str | None) -> list[Fact]:
        facts = list(self.index.facts)
        if not last_user_text:
            return facts
        hints = self.parser.parse(last_user_text)
        items = facts
        if hints.check_type:
            items = [f for f in items if f.meta.type == hints.check_type]
        if hints.restaurant_key:
            items = [f for f in items if f.meta.restaurant_key == hints.restaurant_key]
        elif hints.restaurant_name:
            items = [
                f
                for f in items
                if hints.restaurant_name in f.meta.restaurant_name.lower()
            ]
        return items or facts

    def suggest(
        self,
        last_user_text: str | None = None,
        preferred_types: Sequence[str] | None = None,
        limit: int = DEFAULT_LIMIT,
    ) -> list[str]:
        if limit < 1:
            return []
        preferred = [
            t for t in (preferred_types or DEFAULT_PREFERRED_TYPES) if is_check_type(t)
        ]

        usable = [
            f
            for f in self._narrow(last_user_text)
            if len(f.meta.date_iso) >= 10 and f.meta.type and f.meta.restaurant_key
        ]
        # Stable sort, so equal dates keep corpus order.
        usable.sort(key=lambda f: f.meta.date_iso, reverse=True)

        out: list[str] = []
        seen: set[str] = set()

        def push(fact: Fact) -> None:
            prompt = suggestion_prompt(fact)
            if prompt not in seen:
                seen.add(prompt)
                out.append(prompt)

        for check_type in preferred:
            if len(out) >= limit:
                break
            latest = next((f for f in usable if f.meta.type == check_type), None)
            if latest is not None:
                push(latest)

        for fact in usable:
            if len(out) >= limit:
                break
            push(fact)

        metrics.inc("suggestions_total")
        logger.debug("Suggestions for %r: %s", last_user_text, out)
        return out
