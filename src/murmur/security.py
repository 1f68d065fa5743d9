"""
murmur.security — HTTP plumbing shared by the API: structured logging,
request ids, CORS, per-IP rate limiting, admin auth and error handlers.
"""

import hmac
import logging
import os
import time
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import HTTPException, Request, Response, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import APIKeyHeader
from pythonjsonlogger.json import JsonFormatter
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from murmur.errors import MurmurError

logger = logging.getLogger("murmur.http")

# ─── Context var for request ID ────────────────────────────────────

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


# ─── Structured JSON logging ──────────────────────────────────────

class RequestIdFilter(logging.Filter):
    def filter(self, record):
        record.request_id = request_id_var.get("")
        return True


def setup_structured_logging(level: str = "INFO") -> logging.Logger:
    """Configure JSON logging with request IDs on the "murmur" logger tree."""
    root = logging.getLogger("murmur")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not root.handlers:
        handler = logging.StreamHandler()
        formatter = JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
        handler.setFormatter(formatter)
        handler.addFilter(RequestIdFilter())
        root.addHandler(handler)

    return root


# ─── Rate Limiter (slowapi) ───────────────────────────────────────

def create_limiter(default_limits: Optional[list[str]] = None) -> Limiter:
    """Per-IP limiter; one per app so tests never share counters."""
    return Limiter(key_func=get_remote_address, default_limits=default_limits or [])


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    return Response(
        content='{"detail":{"code":"RateLimitExceeded","message":"Rate limit exceeded. Try again later."}}',
        status_code=429,
        media_type="application/json",
        headers={"Retry-After": str(exc.detail.split()[-1]) if exc.detail else "60"},
    )


# ─── Request ID + Logging Middleware ──────────────────────────────

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Inject request ID, log requests, add security headers."""

    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request_id_var.set(rid)

        t0 = time.time()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error", extra={"path": request.url.path})
            raise

        logger.info(
            "request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round((time.time() - t0) * 1000, 1),
                "client": request.client.host if request.client else "",
            },
        )

        response.headers["X-Request-ID"] = rid
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response


# ─── CORS configuration ──────────────────────────────────────────

def configure_cors(app, allowed_origins: Optional[list[str]] = None):
    origins = allowed_origins
    if not origins:
        env_origins = os.environ.get("ALLOWED_ORIGINS", "")
        origins = [o.strip() for o in env_origins.split(",") if o.strip()] or ["*"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )


# ─── Admin auth dependency ───────────────────────────────────────

_admin_key_header = APIKeyHeader(name="X-Admin-Key", auto_error=False)


def _configured_admin_key(request: Request) -> str:
    settings = getattr(request.app.state, "settings", None)
    if settings is not None and settings.admin_api_key:
        return settings.admin_api_key
    return os.environ.get("ADMIN_API_KEY", "")


async def require_admin_key(request: Request, key: str = Security(_admin_key_header)):
    admin_key = _configured_admin_key(request)
    client = request.client.host if request.client else "unknown"
    if not admin_key:
        raise HTTPException(status_code=503, detail={"code": "AdminNotConfigured",
                                                     "message": "Admin access not configured"})
    if not key:
        log_auth_failure(client, "missing admin key", request.url.path)
        raise HTTPException(status_code=401, detail={"code": "Unauthorized", "message": "Missing admin key"})
    if not hmac.compare_digest(key, admin_key):
        log_auth_failure(client, "invalid admin key", request.url.path)
        raise HTTPException(status_code=403, detail={"code": "Forbidden", "message": "Invalid admin key"})
    return True


def log_auth_failure(ip: str, reason: str, endpoint: str = ""):
    logger.warning("Auth failure: %s from %s on %s", reason, ip, endpoint,
                   extra={"event": "auth_failure", "ip": ip, "reason": reason, "endpoint": endpoint})


# ─── Exception handlers ──────────────────────────────────────────

async def murmur_error_handler(request: Request, exc: MurmurError):
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": {"code": exc.code, "message": "Internal server error"}},
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


async def generic_exception_handler(request: Request, exc: Exception):
    """Never leak internals."""
    logger.error("Unhandled exception on %s: %s", request.url.path, type(exc).__name__)
    return JSONResponse(
        status_code=500,
        content={"detail": {"code": "InternalError", "message": "Internal server error"}},
    )


# ─── Apply all security to a FastAPI app ──────────────────────────

def apply_security(app, limiter: Limiter, allowed_origins: Optional[list[str]] = None):
    """One-call setup: CORS, rate limiting, logging middleware, error handlers."""
    configure_cors(app, allowed_origins)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(MurmurError, murmur_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
    app.add_middleware(RequestLoggingMiddleware)


__all__ = [
    "request_id_var",
    "RequestIdFilter",
    "setup_structured_logging",
    "create_limiter",
    "rate_limit_exceeded_handler",
    "RequestLoggingMiddleware",
    "configure_cors",
    "require_admin_key",
    "murmur_error_handler",
    "generic_exception_handler",
    "apply_security",
]
