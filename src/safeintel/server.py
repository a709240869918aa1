# ─────────────────────────────────────────────────────────────────────
# SafeIntel — FastAPI Server
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────
"""
HTTP surface for the compliance assistant.

Usage::

    # Programmatic
    from safeintel.server import create_app
    app = create_app()

    # CLI
    safeintel serve --port 8080
"""

from __future__ import annotations

import contextvars
import logging
import time
import uuid
from contextlib import asynccontextmanager

from .core.assistant import ComplianceAssistant
from .core.config import SafeIntelConfig
from .core.exceptions import (
    ConfigError,
    IndexCorruptionError,
    MalformedInputError,
    SafeIntelError,
    UpstreamProviderError,
)
from .core.metrics import metrics

REQUEST_ID_CTX: contextvars.ContextVar[str] = contextvars.ContextVar(
    "request_id", default=""
)

logger = logging.getLogger("SafeIntel.Server")

MAX_SUGGESTION_LIMIT = 50


class RequestIdFilter(logging.Filter):
    """Stamps records with the id of the request being served."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = REQUEST_ID_CTX.get()
        return True


def install_request_id_filter(logger_name: str = "SafeIntel") -> None:
    """Attach a ``RequestIdFilter`` to every handler of *logger_name*.

    Handler filters see records propagated from child loggers, which a
    logger-level filter would not.
    """
    for handler in logging.getLogger(logger_name).handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())


try:
    from fastapi import FastAPI, Request
    from fastapi.exceptions import RequestValidationError
    from fastapi.middleware.cors import CORSMiddleware
    from fastapi.responses import JSONResponse, PlainTextResponse
    from pydantic import BaseModel, Field

    _FASTAPI_AVAILABLE = True
except ImportError:
    _FASTAPI_AVAILABLE = False


def _check_fastapi() -> None:
    if not _FASTAPI_AVAILABLE:
        raise ImportError(
            "FastAPI is required for the server. "
            "Install with: pip install safeintel[server]"
        )


def error_status(exc: SafeIntelError) -> int:
    """HTTP status for a library error."""
    if isinstance(exc, MalformedInputError):
        return 400
    if isinstance(exc, UpstreamProviderError):
        return 502
    if isinstance(exc, IndexCorruptionError):
        return 503
    return 500


# ── Pydantic request/response models ─────────────────────────────────

if _FASTAPI_AVAILABLE:

    class ChatMessage(BaseModel):
        role: str = "user"
        content: str = ""

    class ChatRequest(BaseModel):
        messages: list[ChatMessage] = Field(default_factory=list)

    class ChatResponse(BaseModel):
        answer: str
        used: list[str]
        narrowedCount: int

    class SuggestionsRequest(BaseModel):
        lastUserText: str | None = None
        preferredTypes: list[str] | None = None
        limit: int | None = Field(None, ge=1, le=MAX_SUGGESTION_LIMIT)

    class SuggestionsResponse(BaseModel):
        suggestions: list[str]

    class HealthResponse(BaseModel):
        status: str = "ok"
        version: str
        profile: str
        index_loaded: bool
        fact_count: int
        uptime_seconds: float

    class ConfigResponse(BaseModel):
        config: dict


def create_app(
    config: SafeIntelConfig | None = None,
    assistant: ComplianceAssistant | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    config : SafeIntelConfig | None — defaults to ``SafeIntelConfig.from_env()``.
    assistant : ComplianceAssistant | None — prebuilt assistant (tests);
        built from *config* at startup otherwise.
    """
    _check_fastapi()

    cfg = config or SafeIntelConfig.from_env()
    _start_time = time.monotonic()

    _state: dict = {}

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg.configure_logging()
        install_request_id_filter()
        metrics.enabled = cfg.metrics_enabled

        try:
            _state["assistant"] = assistant or ComplianceAssistant.from_config(cfg)
        except ConfigError as exc:
            logger.error("Assistant unavailable: %s", exc)
            _state["error"] = exc

        agent = _state.get("assistant")
        if agent is not None:
            try:
                agent.loader.load()
            except IndexCorruptionError as exc:
                # Corruption is fatal: keep refusing rather than re-reading.
                logger.critical("Refusing to serve: %s", exc)
                _state["error"] = exc
            except ConfigError as exc:
                logger.warning("Index not loaded at startup: %s", exc)

        logger.info(
            "SafeIntel server started (profile=%s, index=%s)",
            cfg.profile,
            cfg.index_dir,
        )
        yield
        logger.info("SafeIntel server shutting down")

    app = FastAPI(
        title="SafeIntel",
        description="Grounded Q&A over restaurant food-safety check records",
        version=__import__("safeintel").__version__,
        lifespan=lifespan,
    )

    _origins = [o.strip() for o in cfg.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _assistant() -> ComplianceAssistant:
        error = _state.get("error")
        if error is not None:
            raise error
        return _state["assistant"]

    # ── Error mapping ─────────────────────────────────────────────────

    @app.exception_handler(SafeIntelError)
    async def _safeintel_error(request: Request, exc: SafeIntelError):
        status = error_status(exc)
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400, content={"error": f"Malformed request: {exc.errors()}"}
        )

    # ── Middleware: correlation IDs + metrics ──────────────────────────

    @app.middleware("http")
    async def _http_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        token = REQUEST_ID_CTX.set(request_id)
        try:
            response = await call_next(request)
        finally:
            REQUEST_ID_CTX.reset(token)
        metrics.inc(
            "http_requests_total",
            label=f"{request.url.path}:{response.status_code}",
        )
        response.headers["X-Request-ID"] = request_id
        return response

    # ── Health ────────────────────────────────────────────────────────

    @app.get("/v1/health", response_model=HealthResponse)
    def health():
        import safeintel

        agent = _state.get("assistant")
        loaded = bool(agent and agent.loader.loaded and "error" not in _state)
        return HealthResponse(
            status="ok" if loaded else "degraded",
            version=safeintel.__version__,
            profile=cfg.profile,
            index_loaded=loaded,
            fact_count=agent.index.count if loaded else 0,
            uptime_seconds=time.monotonic() - _start_time,
        )

    # ── Chat ──────────────────────────────────────────────────────────

    @app.post("/v1/chat", response_model=ChatResponse)
    def chat(req: ChatRequest):
        result = _assistant().answer([m.model_dump() for m in req.messages])
        return ChatResponse(**result.to_dict())

    # ── Suggestions ───────────────────────────────────────────────────

    @app.post("/v1/suggestions", response_model=SuggestionsResponse)
    def suggestions(req: SuggestionsRequest):
        items = _assistant().suggest(
            last_user_text=req.lastUserText,
            preferred_types=req.preferredTypes,
            limit=req.limit,
        )
        return SuggestionsResponse(suggestions=items)

    # ── Debug ─────────────────────────────────────────────────────────

    @app.get("/v1/debug")
    def debug():
        return _assistant().debug_sample(3)

    # ── Metrics ───────────────────────────────────────────────────────

    @app.get("/v1/metrics")
    async def get_metrics():
        return metrics.get_metrics()

    @app.get("/v1/metrics/prometheus", response_class=PlainTextResponse)
    async def get_prometheus():
        return metrics.prometheus_format()

    # ── Config ────────────────────────────────────────────────────────

    @app.get("/v1/config", response_model=ConfigResponse)
    async def get_config():
        return ConfigResponse(config=cfg.to_dict())

    return app
