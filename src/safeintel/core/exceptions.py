# ─────────────────────────────────────────────────────────────────────
# SafeIntel — Exception Hierarchy
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────
"""
Structured exception hierarchy for SafeIntel.

All library-specific exceptions descend from ``SafeIntelError`` so
callers can catch the entire family with a single except clause.
"""


class SafeIntelError(Exception):
    """Base exception for all SafeIntel errors."""


class ConfigError(SafeIntelError):
    """Raised when a required credential, file or input is missing."""


class ValidationError(SafeIntelError):
    """Raised for invalid build filters, parameters or configs."""


class MalformedInputError(SafeIntelError):
    """Raised when a query request is empty or cannot be understood."""


class IndexCorruptionError(SafeIntelError):
    """Raised when the persisted index fails an integrity check."""


class UpstreamProviderError(SafeIntelError):
    """Raised when the embedding or completion provider call fails."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        rate_limited: bool = False,
    ):
        self.status_code = status_code
        self.rate_limited = rate_limited
        super().__init__(message)


class ParseFallbackError(SafeIntelError):
    """Raised when a canonical fact sentence does not match its template."""

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"Unrecognised fact sentence: {text[:100]}")
