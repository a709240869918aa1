# ─────────────────────────────────────────────────────────────────────
# SafeIntel — Response Composer
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────
"""
Answer text for resolved questions.

Exact matches are answered deterministically: the canonical fact
sentence is parsed back into counts and rendered as a summary plus a
commentary tier chosen by completion and pass rates.  Semantic matches
are turned into a bounded, cited context for the completion provider.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from .dates import DEFAULT_TIMEZONE, format_ordinal_date
from .exceptions import ParseFallbackError
from .types import Fact, GroundedPrompt, MatchResult

logger = logging.getLogger("SafeIntel.Composer")

NO_MATCH_ANSWER = "I don't have a matching record for that question."
EMPTY_COMPLETION_ANSWER = "Sorry, I couldn't produce an answer."
NO_CONTEXT_LINE = "(no matching records found)"

_NUM = r"(-?\d+(?:\.\d+)?(?:e[+-]?\d+)?)"
FACT_SENTENCE_RE = re.compile(
    r"^On (?P<date>\S+), restaurant (?P<key>\S*)(?: \((?P<name>.*)\))? — "
    r"(?P<type>[^:]+): "
    rf"checks={_NUM} completed={_NUM} passed={_NUM} "
    r"\(comp=(?P<comp>-?\d+)%, pass=(?P<pass>-?\d+)%\)\.$"
)


@dataclass(frozen=True)
class FactCounts:
    """Numbers recovered from a canonical fact sentence."""

    date_iso: str
    restaurant_key: str
    restaurant_name: str
    check_type: str
    checks: float
    completed: float
    passed: float
    completion_pct: int
    pass_pct: int

    @property
    def not_completed(self) -> float:
        return max(self.checks - self.completed, 0)

    @property
    def failed(self) -> float:
        return max(self.completed - self.passed, 0)


def parse_fact_sentence(text: str) -> FactCounts:
    """Parse a canonical fact sentence.

    Raises
    ------
    ParseFallbackError
        If *text* does not follow the fixed fact template.
    """
    m = FACT_SENTENCE_RE.match(text.strip())
    if not m:
        raise ParseFallbackError(text)
    checks, completed, passed = (float(g) for g in m.group(5, 6, 7))
    return FactCounts(
        date_iso=m.group("date"),
        restaurant_key=m.group("key"),
        restaurant_name=m.group("name") or "",
        check_type=m.group("type").strip(),
        checks=checks,
        completed=completed,
        passed=passed,
        completion_pct=int(m.group("comp")),
        pass_pct=int(m.group("pass")),
    )


def _n(value: float) -> str:
    return str(int(value)) if value == int(value) else repr(value)


def _checks(value: float) -> str:
    return f"{_n(value)} check" if value == 1 else f"{_n(value)} checks"


def summarize(counts: FactCounts) -> str:
    name = f" ({counts.restaurant_name})" if counts.restaurant_name else ""
    return (
        f"On {format_ordinal_date(counts.date_iso)}, restaurant "
        f"{counts.restaurant_key}{name} completed {_n(counts.completed)} of "
        f"{_checks(counts.checks)} for {counts.check_type}, and "
        f"{_n(counts.passed)} passed (completion {counts.completion_pct}%, "
        f"pass rate {counts.pass_pct}%)."
    )


def commentary(counts: FactCounts) -> str:
    """Pick the most specific tier for the completion/pass rates.

    The top three tiers are decided by the raw counts, since a rounded
    100% can hide a single failed or missing check.
    """
    passed = counts.pass_pct
    if counts.failed == 0 and counts.not_completed == 0:
        return "Excellent work: every check was completed and passed. Keep it up!"
    if counts.failed == 0:
        return (
            f"Everything checked so far passed, but {_checks(counts.not_completed)} "
            "still remain to be completed."
        )
    if counts.not_completed == 0:
        return (
            f"Good completion, but {_checks(counts.failed)} failed. "
            "Please review the failed items and record the follow-up."
        )
    if passed >= 90:
        return (
            f"Mostly on track with minor gaps: {_n(counts.failed)} failed and "
            f"{_n(counts.not_completed)} not completed."
        )
    if passed >= 70:
        return (
            f"Corrective action needed: {_checks(counts.failed)} failed. "
            "Review procedures with the team and re-check the affected items."
        )
    return (
        f"Urgent: the pass rate is only {passed}%. Escalate to the site "
        "manager and address the failed checks immediately."
    )


def compose_exact(fact: Fact) -> str:
    """Deterministic answer for an exact match.

    Falls back to the raw fact sentence if it cannot be parsed; never
    raises.
    """
    try:
        counts = parse_fact_sentence(fact.text)
    except ParseFallbackError as exc:
        logger.warning("Composer fallback for %s: %s", fact.id, exc)
        return fact.text
    return f"{summarize(counts)} {commentary(counts)}"


def system_prompt(timezone: str = DEFAULT_TIMEZONE) -> str:
    return "\n".join(
        [
            "You are a helpful assistant for restaurant food-safety checks.",
            'Answer ONLY from the "Context" lines. If the context doesn\'t '
            "contain the answer, say you don't have that record.",
            "Never invent restaurants, dates or numbers. Copy counts and "
            "percentages exactly as written in the context.",
            f'When dates like "today" are used, interpret them in {timezone} '
            "and include the explicit date (YYYY-MM-DD).",
            "Cite ids inline like [id:row-123]. Be concise and human-like.",
        ]
    )


def build_grounded_prompt(
    question: str,
    matches: Sequence[MatchResult],
    today: date | None = None,
    timezone: str = DEFAULT_TIMEZONE,
    limit: int | None = None,
) -> GroundedPrompt:
    """Bounded context for the completion provider.

    Parameters
    ----------
    question : str — the user's final question.
    matches : ranked matches, best first.
    today : date | None — the current date in *timezone*, stated to the model.
    timezone : str — zone the model should read relative dates in.
    limit : int | None — maximum context lines.
    """
    ranked = list(matches[:limit] if limit else matches)
    context = "\n".join(f"- {m.fact.text} [id:{m.fact.id}]" for m in ranked)
    system = system_prompt(timezone)
    if today is not None:
        system += f"\nToday is {today.isoformat()} ({timezone})."
    user = f"Context:\n{context or NO_CONTEXT_LINE}\n\nUser question: {question}"
    return GroundedPrompt(system=system, user=user, fact_ids=[m.fact.id for m in ranked])
