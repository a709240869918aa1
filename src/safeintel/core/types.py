# ─────────────────────────────────────────────────────────────────────
# SafeIntel — Shared Types
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class FactMeta:
    """Structured metadata carried alongside every fact sentence."""

    type: str
    restaurant_key: str = ""
    restaurant_name: str = ""
    date_iso: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FactMeta:
        return cls(
            type=str(data.get("type", "")),
            restaurant_key=str(data.get("restaurant_key", "")),
            restaurant_name=str(data.get("restaurant_name", "")),
            date_iso=str(data.get("date_iso", "")),
        )


@dataclass(frozen=True)
class Fact:
    """One check-type outcome for one restaurant on one date."""

    id: str
    text: str
    meta: FactMeta

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "meta": asdict(self.meta)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Fact:
        return cls(
            id=str(data["id"]),
            text=str(data["text"]),
            meta=FactMeta.from_dict(data.get("meta") or {}),
        )


@dataclass(frozen=True)
class QueryHints:
    """Structured fields heuristically extracted from a question."""

    restaurant_key: str | None = None
    restaurant_name: str | None = None
    date_iso: str | None = None
    check_type: str | None = None

    @property
    def is_complete(self) -> bool:
        """True when the exact-match fast path can be attempted."""
        return bool(self.restaurant_key and self.date_iso and self.check_type)

    @property
    def is_empty(self) -> bool:
        return not (
            self.restaurant_key
            or self.restaurant_name
            or self.date_iso
            or self.check_type
        )


@dataclass(frozen=True)
class MatchResult:
    """A retrieved fact with its similarity to the query."""

    fact: Fact
    score: float


@dataclass
class GroundedPrompt:
    """Bounded context handed to the completion provider."""

    system: str
    user: str
    fact_ids: list[str] = field(default_factory=list)


@dataclass
class Resolution:
    """Outcome of answering one question."""

    answer: str
    used: list[str]
    narrowed_count: int
    path: str  # "exact", "semantic" or "none"
    matches: list[MatchResult] = field(default_factory=list)
    hints: QueryHints | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "answer": self.answer,
            "used": list(self.used),
            "narrowedCount": self.narrowed_count,
        }
