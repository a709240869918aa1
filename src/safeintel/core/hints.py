# ─────────────────────────────────────────────────────────────────────
# SafeIntel — Query Hint Extraction
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────
"""
Heuristic extraction of structured hints from a free-text question.

Each field is independent: a question may name a restaurant but no
date, a check type but no restaurant, and so on.

Usage::

    parser = HintParser(RelativeDateResolver("Europe/London"))
    hints = parser.parse("Opening Check for restaurant 74 on 20/09/2025")
    # QueryHints(restaurant_key='74', date_iso='2025-09-20',
    #            check_type='Opening_Check', restaurant_name=None)
"""

from __future__ import annotations

import logging
import re

from .checks import detect_check_type
from .dates import RelativeDateResolver, parse_query_date
from .types import QueryHints

logger = logging.getLogger("SafeIntel.Hints")

RESTAURANT_ID_RE = re.compile(r"\b(restaurant|site|key)\s*#?\s*(\d+)\b", re.IGNORECASE)
QUOTED_NAME_RE = re.compile(r"restaurant\s+[\"“]([^\"“”\n\r]+)[\"”]", re.IGNORECASE)
RESTAURANT_NAME_RE = re.compile(
    r"restaurant\s+[\"“]?([^\"\n\r]+?)[\"”]?(?:\s|$|\?|\.)", re.IGNORECASE
)

MIN_NAME_LENGTH = 3


def extract_restaurant_key(text: str) -> str | None:
    m = RESTAURANT_ID_RE.search(text)
    return m.group(2) if m else None


def extract_restaurant_name(text: str) -> str | None:
    """Lower-cased name after "restaurant", quoted or a bare word.

    Numeric tokens are ids, not names, and are rejected along with
    anything shorter than three characters.
    """
    m = QUOTED_NAME_RE.search(text) or RESTAURANT_NAME_RE.search(text)
    if not m:
        return None
    name = m.group(1).strip().lower()
    if len(name) < MIN_NAME_LENGTH or name.lstrip("#").isdigit():
        return None
    return name


class HintParser:
    """Turns question text into ``QueryHints``.

    Parameters
    ----------
    resolver : RelativeDateResolver | None — resolves "yesterday",
        "last Monday" and similar; ``None`` accepts explicit dates only.
    """

    def __init__(self, resolver: RelativeDateResolver | None = None) -> None:
        self.resolver = resolver

    def parse(self, text: str) -> QueryHints:
        hints = QueryHints(
            restaurant_key=extract_restaurant_key(text),
            restaurant_name=extract_restaurant_name(text),
            date_iso=parse_query_date(text, self.resolver),
            check_type=detect_check_type(text),
        )
        logger.debug("Hints for %r: %s", text[:80], hints)
        return hints
