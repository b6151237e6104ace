from __future__ import annotations

import math
import time
from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import asynccontextmanager
from typing import Any, cast

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, Response
from limits import RateLimitItemPerSecond
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Counter, Histogram, generate_latest
from slowapi import Limiter

from apps.api.db.init import init_db
from apps.api.errors import genai_error_handler
from apps.api.middleware import RequestIDMiddleware
from apps.api.routes import annotations, auth, books, chat
from core.config import settings
from core.genai import GenAIError
from utils.logging import configure_logging

configure_logging()

log = structlog.get_logger(__name__)


def _client_identifier(request: Request) -> str:
    headers = cast(Mapping[str, str], request.headers)
    forwarded = headers.get("x-forwarded-for")
    if isinstance(forwarded, str) and forwarded:
        return forwarded.split(",", 1)[0].strip()
    real_ip = headers.get("x-real-ip")
    if isinstance(real_ip, str) and real_ip:
        return real_ip
    client = request.client
    if client is not None and client.host:
        return client.host
    return "127.0.0.1"


@asynccontextmanager
async def _lifespan(_app: FastAPI) -> AsyncIterator[None]:
    init_db()
    log.info("app.startup", env=settings.app_env, genai_backend=settings.genai_backend)
    yield
    log.info("app.shutdown")


app = FastAPI(title="AI Book Chat API", lifespan=_lifespan)

rate_limit_qps = settings.rate_limit_qps
limiter_enabled = bool(rate_limit_qps and rate_limit_qps > 0)
default_limits: list[str] = []
_GLOBAL_RATE_LIMIT: RateLimitItemPerSecond | None = None
if limiter_enabled:
    per_second = max(1, math.ceil(rate_limit_qps))
    default_limits.append(f"{per_second}/second")
    _GLOBAL_RATE_LIMIT = RateLimitItemPerSecond(per_second, 1)

limiter = Limiter(
    key_func=_client_identifier,
    default_limits=default_limits,
    headers_enabled=True,
    enabled=limiter_enabled,
)
app.state.limiter = limiter

app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["x-csrf-token"],
)
app.add_middleware(RequestIDMiddleware)

app.add_exception_handler(GenAIError, genai_error_handler)


def _registered(name: str, factory: Callable[[], Any], kind: type) -> Any:
    existing = REGISTRY._names_to_collectors.get(name)
    if isinstance(existing, kind):
        return existing
    return factory()


REQUEST_COUNTER = _registered(
    "api_requests_total",
    lambda: Counter(
        "api_requests_total",
        "Total number of API requests",
        labelnames=("path", "method", "status"),
    ),
    Counter,
)
REQUEST_LATENCY = _registered(
    "api_request_latency_seconds",
    lambda: Histogram(
        "api_request_latency_seconds",
        "Latency of API requests in seconds",
        labelnames=("path", "method"),
    ),
    Histogram,
)
ERROR_COUNTER = _registered(
    "api_errors_total",
    lambda: Counter(
        "api_errors_total",
        "Total number of API errors",
        labelnames=("path", "method"),
    ),
    Counter,
)


def _route_label(request: Request) -> str:
    route = request.scope.get("route")
    template = getattr(route, "path", None)
    return template if isinstance(template, str) else request.url.path


def _rate_limit_response(retry_after: int) -> JSONResponse:
    response = JSONResponse(
        {"error": {"type": "rate_limit", "message": "Too many requests"}},
        status_code=429,
    )
    response.headers["Retry-After"] = str(max(1, retry_after))
    return response


def _enforce_limit(limit: RateLimitItemPerSecond | None, request: Request) -> int | None:
    if not limiter.enabled or limit is None:
        return None
    key = _client_identifier(request)
    if limiter.limiter.hit(limit, key):
        return None
    reset_time, _remaining = limiter.limiter.get_window_stats(limit, key)
    return max(1, int(math.ceil(reset_time - time.time())))


@app.middleware("http")
async def _metrics_middleware(request: Request, call_next: Callable[[Request], Any]) -> Response:
    method = request.method
    start = time.perf_counter()
    retry_after = _enforce_limit(_GLOBAL_RATE_LIMIT, request)
    if retry_after is not None:
        path = request.url.path
        REQUEST_COUNTER.labels(path=path, method=method, status="429").inc()
        REQUEST_LATENCY.labels(path=path, method=method).observe(time.perf_counter() - start)
        return _rate_limit_response(retry_after)
    try:
        response = await call_next(request)
    except Exception:
        path = _route_label(request)
        ERROR_COUNTER.labels(path=path, method=method).inc()
        REQUEST_COUNTER.labels(path=path, method=method, status="500").inc()
        REQUEST_LATENCY.labels(path=path, method=method).observe(time.perf_counter() - start)
        raise

    path = _route_label(request)
    status_code = response.status_code
    REQUEST_COUNTER.labels(path=path, method=method, status=str(status_code)).inc()
    REQUEST_LATENCY.labels(path=path, method=method).observe(time.perf_counter() - start)
    if status_code >= 500:
        ERROR_COUNTER.labels(path=path, method=method).inc()
    return response


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/ready")
def ready() -> dict[str, str]:
    return {"status": "ready"}


@app.get("/metrics")
def metrics() -> Response:
    return Response(generate_latest(), headers={"content-type": CONTENT_TYPE_LATEST})


app.include_router(auth.router)
app.include_router(books.router)
app.include_router(chat.router)
app.include_router(annotations.router)
