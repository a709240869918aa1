# ─────────────────────────────────────────────────────────────────────
# SafeIntel — Configuration Manager
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────
"""
Dataclass-based configuration with env var, dotenv, YAML, and profile
support.

Usage::

    config = SafeIntelConfig.from_env(env_file=".env.local")
    config = SafeIntelConfig.from_yaml("safeintel.yaml")
    config = SafeIntelConfig.from_profile("offline")
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar

import yaml
from dotenv import load_dotenv

from .exceptions import ValidationError

_EMBEDDING_PROVIDERS = ("openai", "mock")
_LLM_PROVIDERS = ("openai", "local", "mock")


@dataclass
class SafeIntelConfig:
    """Central configuration for SafeIntel.

    Parameters
    ----------
    openai_api_key : str — API key for the OpenAI embedding/chat APIs.
    openai_base_url : str — alternative API base URL (empty = default).
    embedding_provider : str — "openai" or "mock".
    embedding_model : str — embedding model name.
    llm_provider : str — "openai", "local" or "mock".
    llm_model : str — chat model name.
    llm_api_url : str — endpoint for the "local" provider.
    data_dir : str — directory holding ``kb.meta.json`` and its vector file.
    csv_path : str — build input table.
    batch_size : int — facts per embedding request.
    max_retries : int — attempts per embedding batch.
    retry_base_delay : float — first backoff delay in seconds.
    rate_limit_backoff : float — extra multiplier for rate-limit failures.
    top_k : int — semantic matches handed to the composer.
    min_similarity : float — scores below this are not considered matches.
    timezone : str — IANA zone used to resolve "today".
    suggestion_limit : int — default number of suggestions.
    log_level : str — logging level.
    log_json : bool — structured JSON logging.
    """

    # Providers
    openai_api_key: str = ""
    openai_base_url: str = ""
    embedding_provider: str = "openai"
    embedding_model: str = "text-embedding-3-small"
    mock_embedding_dim: int = 64
    llm_provider: str = "openai"
    llm_model: str = "gpt-4o-mini"
    llm_api_url: str = "http://localhost:8080/v1/chat/completions"
    llm_temperature: float = 0.2
    llm_max_tokens: int = 512
    request_timeout: float = 30.0

    # Index build
    data_dir: str = "data"
    csv_path: str = "data/checks.csv"
    batch_size: int = 100
    max_retries: int = 5
    retry_base_delay: float = 1.0
    rate_limit_backoff: float = 2.0

    # Retrieval
    top_k: int = 12
    min_similarity: float = 0.0
    timezone: str = "Europe/London"
    suggestion_limit: int = 7

    # Server
    server_host: str = "0.0.0.0"
    server_port: int = 8080
    cors_origins: str = "*"

    # Observability
    metrics_enabled: bool = True
    log_level: str = "INFO"
    log_json: bool = False

    # Profile name (informational)
    profile: str = "default"

    # Extra key-value overrides
    extra: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.embedding_provider not in _EMBEDDING_PROVIDERS:
            raise ValidationError(
                f"embedding_provider must be one of {_EMBEDDING_PROVIDERS}, "
                f"got {self.embedding_provider!r}"
            )
        if self.llm_provider not in _LLM_PROVIDERS:
            raise ValidationError(
                f"llm_provider must be one of {_LLM_PROVIDERS}, "
                f"got {self.llm_provider!r}"
            )
        if self.batch_size < 1:
            raise ValidationError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.max_retries < 1:
            raise ValidationError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.retry_base_delay < 0:
            raise ValidationError(
                f"retry_base_delay must be >= 0, got {self.retry_base_delay}"
            )
        if self.rate_limit_backoff < 1.0:
            raise ValidationError(
                f"rate_limit_backoff must be >= 1, got {self.rate_limit_backoff}"
            )
        if self.top_k < 1:
            raise ValidationError(f"top_k must be >= 1, got {self.top_k}")
        if not (-1.0 <= self.min_similarity <= 1.0):
            raise ValidationError(
                f"min_similarity must be in [-1, 1], got {self.min_similarity}"
            )
        if self.suggestion_limit < 1:
            raise ValidationError(
                f"suggestion_limit must be >= 1, got {self.suggestion_limit}"
            )
        if not (0.0 <= self.llm_temperature <= 2.0):
            raise ValidationError(
                f"llm_temperature must be in [0, 2], got {self.llm_temperature}"
            )
        if self.mock_embedding_dim < 2:
            raise ValidationError(
                f"mock_embedding_dim must be >= 2, got {self.mock_embedding_dim}"
            )
        if not (1 <= self.server_port <= 65535):
            raise ValidationError(
                f"server_port must be in [1, 65535], got {self.server_port}"
            )

    @property
    def index_dir(self) -> Path:
        return Path(self.data_dir)

    @classmethod
    def from_env(
        cls, prefix: str = "SAFEINTEL_", env_file: str | None = None
    ) -> SafeIntelConfig:
        """Load configuration from environment variables.

        Reads ``SAFEINTEL_<FIELD>`` env vars (case-insensitive field
        matching), after loading *env_file* if given.  The conventional
        ``OPENAI_API_KEY`` and ``LLM_MODEL`` variables are honoured when
        the prefixed form is absent.
        """
        if env_file and os.path.isfile(env_file):
            load_dotenv(env_file, override=True)

        kwargs: dict = {}
        field_map = {f.name.upper(): f for f in cls.__dataclass_fields__.values()}

        for key, value in os.environ.items():
            if not key.startswith(prefix):
                continue
            field_name = key[len(prefix) :]
            if field_name in field_map:
                fld = field_map[field_name]
                try:
                    kwargs[fld.name] = _coerce(value, fld.type)  # type: ignore[arg-type]
                except (ValueError, TypeError) as exc:
                    raise ValidationError(
                        f"Invalid value for env var {key}={value!r}: {exc}"
                    ) from exc

        if "openai_api_key" not in kwargs and os.environ.get("OPENAI_API_KEY"):
            kwargs["openai_api_key"] = os.environ["OPENAI_API_KEY"]
        if "llm_model" not in kwargs and os.environ.get("LLM_MODEL"):
            kwargs["llm_model"] = os.environ["LLM_MODEL"]

        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: str) -> SafeIntelConfig:
        """Load configuration from a YAML file."""
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            return cls()
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})

    @classmethod
    def from_profile(cls, name: str) -> SafeIntelConfig:
        """Load a predefined profile.

        Profiles
        --------
        - ``"offline"`` — mock embedding and completion providers, no network.
        - ``"production"`` — OpenAI providers, JSON logs.
        """
        profiles: dict[str, dict] = {
            "offline": {
                "embedding_provider": "mock",
                "llm_provider": "mock",
                "profile": "offline",
            },
            "production": {
                "embedding_provider": "openai",
                "llm_provider": "openai",
                "log_json": True,
                "profile": "production",
            },
        }
        if name not in profiles:
            raise ValidationError(
                f"Unknown profile '{name}'. Choose from: {list(profiles.keys())}"
            )
        return cls(**profiles[name])

    def configure_logging(self) -> None:
        """Apply log_level and log_json to the SafeIntel logger hierarchy."""
        root = logging.getLogger("SafeIntel")
        root.setLevel(getattr(logging, self.log_level.upper(), logging.INFO))

        if self.log_json:
            handler = logging.StreamHandler()
            handler.setFormatter(_JsonFormatter())
            root.handlers = [handler]
        elif not root.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(
                logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
            )
            root.addHandler(handler)

    _REDACTED_FIELDS: ClassVar[frozenset[str]] = frozenset({"openai_api_key"})

    def to_dict(self) -> dict:
        """Serialize to a plain dict (safe for JSON/API responses)."""
        d = {}
        for fld in self.__dataclass_fields__:
            val = getattr(self, fld)
            if fld in self._REDACTED_FIELDS and val:
                d[fld] = "***"
            else:
                d[fld] = val
        return d


class _JsonFormatter(logging.Formatter):
    """Structured JSON log formatter for production use."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": time.time(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None)
        if request_id:
            entry["request_id"] = request_id
        return json.dumps(entry)


def _coerce(value: str, type_hint: str) -> object:
    """Coerce a string env var to the target type."""
    if type_hint == "bool":
        low = value.lower()
        if low in ("true", "1", "yes"):
            return True
        if low in ("false", "0", "no"):
            return False
        raise ValueError(
            f"invalid bool value: {value!r} (expected true/false/1/0/yes/no)"
        )
    if type_hint == "int":
        return int(value)
    if type_hint == "float":
        return float(value)
    if "list" in type_hint:
        return [s.strip() for s in value.split(",") if s.strip()]
    return value
