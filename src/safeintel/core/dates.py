# ─────────────────────────────────────────────────────────────────────
# SafeIntel — Date Parsing & Formatting
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────
"""
Date helpers shared by the fact builder and the query side.

Query dates are tried in a fixed order: UK ``D/M/YYYY``, then ISO
``YYYY-MM-DD``, then natural-language phrases resolved against "now"
in a fixed timezone.  The first pattern that yields a real calendar
date wins, so ambiguous numeric dates always read as day-first.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from dateutil.relativedelta import FR, MO, SA, SU, TH, TU, WE, relativedelta

logger = logging.getLogger("SafeIntel.Dates")

DEFAULT_TIMEZONE = "Europe/London"

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

_DMY_FULL_RE = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})$")
_UK_RE = re.compile(r"\b(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})\b")
_ISO_RE = re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b")

_MONTHS = (
    r"january|jan|february|feb|march|mar|april|apr|may|june|jun|july|jul|"
    r"august|aug|september|sept|sep|october|oct|november|nov|december|dec"
)
_DAY_MONTH_RE = re.compile(
    rf"\b(\d{{1,2}})(?:st|nd|rd|th)?\s+(?:of\s+)?({_MONTHS})\b\.?(?:,?\s+(\d{{4}}))?",
    re.IGNORECASE,
)
_MONTH_DAY_RE = re.compile(
    rf"\b({_MONTHS})\.?\s+(\d{{1,2}})(?:st|nd|rd|th)?\b(?:,?\s+(\d{{4}}))?",
    re.IGNORECASE,
)
_AGO_RE = re.compile(r"\b(\d+|an?)\s+(day|week)s?\s+ago\b", re.IGNORECASE)
_IN_RE = re.compile(r"\bin\s+(\d+|an?)\s+(day|week)s?\b", re.IGNORECASE)
_WEEKDAY_RE = re.compile(
    r"\b(?:(last|this|next)\s+)?"
    r"(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b",
    re.IGNORECASE,
)

_WEEKDAYS = {
    "monday": MO,
    "tuesday": TU,
    "wednesday": WE,
    "thursday": TH,
    "friday": FR,
    "saturday": SA,
    "sunday": SU,
}


def to_iso(value: str | None) -> str:
    """Normalize ``D/M/YYYY`` or ``D-M-YYYY`` to ``YYYY-MM-DD``.

    Anything else is returned unchanged (stripped).
    """
    raw = (value or "").strip()
    m = _DMY_FULL_RE.match(raw)
    if not m:
        return raw
    dd, mm, yyyy = m.groups()
    return f"{yyyy}-{int(mm):02d}-{int(dd):02d}"


def iso_to_uk(iso: str) -> str:
    """``2025-09-20`` -> ``20/09/2025``; short inputs pass through."""
    if not iso or len(iso) < 10:
        return iso
    y, m, d = iso[:10].split("-")
    return f"{d}/{m}/{y}"


def ordinal(n: int) -> str:
    if 11 <= n % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def format_ordinal_date(iso: str) -> str:
    """``2025-09-20`` -> ``20th September 2025``.

    Returns *iso* unchanged if it is not a valid ISO date.
    """
    try:
        d = date.fromisoformat(iso[:10])
    except (TypeError, ValueError):
        return iso
    return f"{ordinal(d.day)} {MONTH_NAMES[d.month - 1]} {d.year}"


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _month_number(token: str) -> int:
    prefix = token.lower()[:3]
    return [m[:3].lower() for m in MONTH_NAMES].index(prefix) + 1


def _amount(token: str) -> int:
    return 1 if token.lower() in ("a", "an") else int(token)


class RelativeDateResolver:
    """Resolve natural-language date phrases against "now".

    Parameters
    ----------
    timezone : str — IANA zone that defines "today".
    now : callable returning a datetime, for deterministic tests.
    """

    def __init__(
        self,
        timezone: str = DEFAULT_TIMEZONE,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.tz = ZoneInfo(timezone)
        self._now = now

    def today(self) -> date:
        current = self._now() if self._now else datetime.now(self.tz)
        if current.tzinfo is None:
            current = current.replace(tzinfo=self.tz)
        return current.astimezone(self.tz).date()

    def resolve(self, text: str) -> date | None:
        today = self.today()
        msg = text.lower()

        if re.search(r"\b(today|tonight)\b", msg):
            return today
        if re.search(r"\byesterday\b", msg):
            return today - timedelta(days=1)
        if re.search(r"\btomorrow\b", msg):
            return today + timedelta(days=1)

        m = _AGO_RE.search(msg)
        if m:
            n = _amount(m.group(1))
            days = n * 7 if m.group(2) == "week" else n
            return today - timedelta(days=days)

        m = _IN_RE.search(msg)
        if m:
            n = _amount(m.group(1))
            days = n * 7 if m.group(2) == "week" else n
            return today + timedelta(days=days)

        if re.search(r"\blast\s+week\b", msg):
            return today - timedelta(days=7)

        m = _WEEKDAY_RE.search(msg)
        if m:
            modifier, name = m.group(1), m.group(2)
            wd = _WEEKDAYS[name]
            if modifier == "last":
                return today + relativedelta(days=-1, weekday=wd(-1))
            if modifier == "next":
                return today + relativedelta(days=+1, weekday=wd(+1))
            return today + relativedelta(weekday=wd(+1))

        found = self._month_name_date(msg, today)
        if found:
            return found
        return None

    @staticmethod
    def _month_name_date(msg: str, today: date) -> date | None:
        m = _DAY_MONTH_RE.search(msg)
        if m:
            day, month, year = int(m.group(1)), _month_number(m.group(2)), m.group(3)
        else:
            m = _MONTH_DAY_RE.search(msg)
            if not m:
                return None
            month, day, year = _month_number(m.group(1)), int(m.group(2)), m.group(3)

        if year:
            return _safe_date(int(year), month, day)
        candidate = _safe_date(today.year, month, day)
        if candidate is not None and candidate < today:
            # No year given: prefer the next occurrence.
            candidate = _safe_date(today.year + 1, month, day)
        return candidate


def parse_query_date(
    text: str, resolver: RelativeDateResolver | None = None
) -> str | None:
    """Extract one ISO date from free text, or ``None``."""
    m = _UK_RE.search(text)
    if m:
        dd, mm, yyyy = (int(g) for g in m.groups())
        found = _safe_date(yyyy, mm, dd)
        if found:
            return found.isoformat()

    m = _ISO_RE.search(text)
    if m:
        yyyy, mm, dd = (int(g) for g in m.groups())
        found = _safe_date(yyyy, mm, dd)
        if found:
            return found.isoformat()

    if resolver is None:
        return None
    found = resolver.resolve(text)
    if found:
        logger.debug("Resolved relative date in %r -> %s", text, found)
        return found.isoformat()
    return None
