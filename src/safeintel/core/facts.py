# ─────────────────────────────────────────────────────────────────────
# SafeIntel — Fact Extractor
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────
"""
Turn tabular check records into atomic, deterministic fact sentences.

Each CSV row carries one column group per check type::

    Opening_Check-CompletionRatio, Opening_Check-NumberOfChecks, ...

and yields at most one ``Fact`` per type.  Sentences follow a single
fixed template so the response composer can parse them back::

    On 2025-09-20, restaurant 74 (Camden) — Opening Check: checks=13
    completed=13 passed=13 (comp=100%, pass=100%).
"""

from __future__ import annotations

import csv
import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from .checks import CHECK_TYPES, humanize_type, is_check_type
from .dates import to_iso
from .exceptions import ConfigError, ValidationError
from .types import Fact, FactMeta

logger = logging.getLogger("SafeIntel.Facts")


@dataclass
class BuildFilters:
    """Optional build-time filters, applied before facts are emitted.

    Parameters
    ----------
    since : str | None — ISO lower bound on the row date (inclusive).
    year : int | None — keep only rows from this calendar year.
    types : list[str] | None — check-type allow-list (default: all).
    limit : int | None — use only the first N input rows.
    max_facts : int | None — cap on emitted facts after de-duplication.
    """

    since: str | None = None
    year: int | None = None
    types: list[str] | None = None
    limit: int | None = None
    max_facts: int | None = None
    _active: tuple[str, ...] = field(init=False, repr=False, default=())

    def __post_init__(self) -> None:
        if self.types:
            unknown = [t for t in self.types if not is_check_type(t)]
            if unknown:
                raise ValidationError(
                    f"Unknown check types {unknown}. Choose from: {list(CHECK_TYPES)}"
                )
        if self.limit is not None and self.limit < 1:
            raise ValidationError(f"limit must be >= 1, got {self.limit}")
        if self.max_facts is not None and self.max_facts < 1:
            raise ValidationError(f"max_facts must be >= 1, got {self.max_facts}")
        self._active = tuple(self.types) if self.types else CHECK_TYPES

    @property
    def active_types(self) -> tuple[str, ...]:
        return self._active

    def accepts_date(self, iso: str) -> bool:
        if self.year and not (iso and iso.startswith(str(self.year))):
            return False
        if self.since and iso and iso < self.since:
            return False
        return True


def _get(row: dict, key: str) -> str:
    value = row.get(key)
    return "" if value is None else str(value).strip()


def as_number(value: str | None) -> float:
    """Parse a numeric cell. Empty or unparsable values read as 0."""
    if value is None or value == "":
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def _fmt(number: float) -> str:
    return str(int(number)) if number == int(number) else repr(number)


def _percent(ratio: float) -> int:
    """Ratio to whole percent, rounding halves up."""
    return int(math.floor(ratio * 100 + 0.5))


def _clean_name(name: str) -> str:
    return name.rstrip(", \t\r\n")


def make_sentence(row: dict, check_type: str) -> str | None:
    """Render the canonical sentence for one check type, or ``None``
    when the row shows no activity for it."""
    rest_key = _get(row, "restaurant_key")
    rest_name = _clean_name(_get(row, "restaurant_name"))
    iso = to_iso(_get(row, "date"))

    completion = as_number(_get(row, f"{check_type}-CompletionRatio"))
    n_checks = as_number(_get(row, f"{check_type}-NumberOfChecks"))
    n_done = as_number(_get(row, f"{check_type}-NumberOfCompletedChecks"))
    n_pass = as_number(_get(row, f"{check_type}-NumberOfPassedChecks"))
    pass_ratio = as_number(_get(row, f"{check_type}-PassRatio"))

    if not (n_checks > 0 or completion > 0 or pass_ratio > 0):
        return None

    comp_pct = _percent(completion)
    pass_pct = _percent(pass_ratio)
    name_part = f" ({rest_name})" if rest_name else ""
    return (
        f"On {iso}, restaurant {rest_key}{name_part} — {humanize_type(check_type)}: "
        f"checks={_fmt(n_checks)} completed={_fmt(n_done)} passed={_fmt(n_pass)} "
        f"(comp={comp_pct}%, pass={pass_pct}%)."
    )


def validate_fact(fact: Fact) -> Fact:
    """Check a fact's metadata once, at build time."""
    if not is_check_type(fact.meta.type):
        raise ValidationError(f"Fact {fact.id} has unknown type {fact.meta.type!r}")
    if not fact.text:
        raise ValidationError(f"Fact {fact.id} has empty text")
    return fact


def facts_from_row(
    row: dict, row_index: int, filters: BuildFilters | None = None
) -> list[Fact]:
    """Extract zero or more facts from one row (0-based *row_index*)."""
    filters = filters or BuildFilters()
    iso = to_iso(_get(row, "date"))
    if not filters.accepts_date(iso):
        return []

    rest_key = _get(row, "restaurant_key")
    rest_name = _clean_name(_get(row, "restaurant_name"))
    facts: list[Fact] = []
    for check_type in filters.active_types:
        text = make_sentence(row, check_type)
        if text is None:
            continue
        fact = Fact(
            id=f"row{row_index + 1}-{check_type}",
            text=text,
            meta=FactMeta(
                type=check_type,
                restaurant_key=rest_key,
                restaurant_name=rest_name,
                date_iso=iso,
            ),
        )
        facts.append(validate_fact(fact))
    return facts


def dedupe_facts(facts: Iterable[Fact]) -> list[Fact]:
    """Drop facts whose text was already seen; first occurrence wins."""
    seen: set[str] = set()
    out: list[Fact] = []
    for fact in facts:
        if fact.text in seen:
            continue
        seen.add(fact.text)
        out.append(fact)
    return out


def extract_facts(
    rows: list[dict], filters: BuildFilters | None = None
) -> list[Fact]:
    """Build the de-duplicated fact list for a whole table."""
    filters = filters or BuildFilters()
    rows_to_use = rows[: filters.limit] if filters.limit else rows
    logger.info(
        "Building facts from %d of %d rows (since=%s, year=%s, types=%s)",
        len(rows_to_use),
        len(rows),
        filters.since or "none",
        filters.year or "none",
        ",".join(filters.active_types),
    )

    facts: list[Fact] = []
    for i, row in enumerate(rows_to_use):
        facts.extend(facts_from_row(row, i, filters))

    before = len(facts)
    facts = dedupe_facts(facts)
    if before != len(facts):
        logger.info("Dropped %d duplicate fact sentences", before - len(facts))

    if filters.max_facts and len(facts) > filters.max_facts:
        logger.info("Trimming facts from %d to %d", len(facts), filters.max_facts)
        facts = facts[: filters.max_facts]
    return facts


def read_rows(csv_path: str | Path) -> list[dict]:
    """Read a header-keyed CSV file into row dicts, skipping blank lines."""
    path = Path(csv_path)
    if not path.is_file():
        raise ConfigError(f"CSV not found at {path}")
    with open(path, encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        rows = [
            row
            for row in reader
            if any((v or "").strip() for v in row.values() if isinstance(v, str))
        ]
    logger.info("Read %d rows from %s", len(rows), path)
    return rows
