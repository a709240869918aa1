# ─────────────────────────────────────────────────────────────────────
# SafeIntel — Check-Type Catalogue
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────
"""
Closed enumeration of compliance check types and the alias table used
to recognise them in free text.
"""

from __future__ import annotations

import re

#: Every check type known to the source CSV, in header order.
CHECK_TYPES: tuple[str, ...] = (
    "Adhoc_Cleaning",
    "Closing_Check",
    "Cold_Holding",
    "Cooking",
    "Cooling_of_Hot_Food",
    "Daily_Cleaning",
    "Defrosting",
    "Fridge_AM",
    "Fridge_PM",
    "Hot_Holding",
    "Monthly_Cleaning",
    "Opening_Check",
    "Re-heating",
    "Weekly_Cleaning",
)

#: Column suffixes that make up one check-type group.
COLUMN_SUFFIXES: tuple[str, ...] = (
    "CompletionRatio",
    "NumberOfChecks",
    "NumberOfCompletedChecks",
    "NumberOfPassedChecks",
    "PassRatio",
)

#: Default welcome-screen suggestion order.
DEFAULT_PREFERRED_TYPES: tuple[str, ...] = (
    "Opening_Check",
    "Closing_Check",
    "Fridge_AM",
    "Fridge_PM",
    "Cooking",
    "Hot_Holding",
    "Cold_Holding",
)

# Matched by substring containment, first hit wins, so order matters.
TYPE_ALIASES: dict[str, str] = {
    "opening": "Opening_Check",
    "open": "Opening_Check",
    "closing": "Closing_Check",
    "fridge am": "Fridge_AM",
    "fridge pm": "Fridge_PM",
    "cold holding": "Cold_Holding",
    "hot holding": "Hot_Holding",
    "daily cleaning": "Daily_Cleaning",
    "weekly cleaning": "Weekly_Cleaning",
    "monthly cleaning": "Monthly_Cleaning",
    "adhoc cleaning": "Adhoc_Cleaning",
    "ad hoc cleaning": "Adhoc_Cleaning",
    "defrosting": "Defrosting",
    "cooking": "Cooking",
    "cooling": "Cooling_of_Hot_Food",
    "reheating": "Re-heating",
    "re-heating": "Re-heating",
    "re heating": "Re-heating",
}

_FRIDGE = r"(?:fridge|frdge|friedge|fridg|frige|fidge)\w*"
_SLOT = r"(am|pm|morning|evening)"
# The am/pm word must sit next to the fridge word: "I am worried" is not a slot.
_FRIDGE_SLOT_RE = re.compile(
    rf"{_FRIDGE}[\s_-]*(?:checks?[\s_-]*)?{_SLOT}\b|\b{_SLOT}[\s_-]*{_FRIDGE}",
    re.IGNORECASE,
)
_SLOT_TYPES = {
    "am": "Fridge_AM",
    "morning": "Fridge_AM",
    "pm": "Fridge_PM",
    "evening": "Fridge_PM",
}


def humanize_type(check_type: str) -> str:
    """``Opening_Check`` -> ``Opening Check``."""
    return check_type.replace("_", " ")


def is_check_type(value: str) -> bool:
    return value in CHECK_TYPES


def _detect_fridge(text: str) -> str | None:
    m = _FRIDGE_SLOT_RE.search(text)
    if not m:
        return None
    return _SLOT_TYPES[(m.group(1) or m.group(2)).lower()]


def detect_check_type(text: str) -> str | None:
    """Return the check type named in *text*, or ``None``.

    Refrigeration checks get a typo-tolerant pass before the generic
    alias table, since "frdge pm" style misspellings are common.
    """
    fridge = _detect_fridge(text)
    if fridge:
        return fridge
    msg = text.lower()
    for alias, check_type in TYPE_ALIASES.items():
        if alias in msg:
            return check_type
    return None
