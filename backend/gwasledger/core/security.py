# SPDX-License-Identifier: Apache-2.0
"""Caller identity, rate limiting helpers, sanitization, security middleware."""
from __future__ import annotations

import hashlib
import hmac
import logging
import re
import uuid

from fastapi import FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from gwasledger.config import PRODUCTION, settings
from gwasledger.core.exceptions import GwasLedgerError, NotAuthorizedError, ValidationError

_limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

_logger = logging.getLogger("gwasledger")


def rate_limit(s: str):
    return _limiter.limit(s)


def add_security_middleware(app: FastAPI) -> None:
    """Register exception handlers, security headers, and CORS. No business logic."""
    app.state.limiter = _limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @app.exception_handler(GwasLedgerError)
    async def ledger_exception_handler(request: Request, exc: GwasLedgerError):
        _logger.info("%s %s rejected: %s: %s", request.method, request.url.path, type(exc).__name__, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        error_id = str(uuid.uuid4())
        _logger.error("Unhandled exception %s: %s", error_id, exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "error_id": error_id},
        )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Content-Security-Policy"] = "default-src 'self'"
        if PRODUCTION:
            response.headers["Strict-Transport-Security"] = "max-age=31536000"
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def normalize_institution(value: str) -> str:
    """Institution identities (wallet addresses) compare case-insensitively."""
    cleaned = sanitize_text(value, 254).lower()
    if not cleaned:
        raise ValidationError("Institution identity must not be empty")
    return cleaned


def get_caller(x_institution: str = Header(..., max_length=254)) -> str:
    """FastAPI dependency: identity of the calling institution."""
    return normalize_institution(x_institution)


def require_oracle(x_oracle_token: str = Header(...)) -> None:
    """FastAPI dependency: only the decryption oracle may deliver callbacks."""
    if not hmac.compare_digest(x_oracle_token.encode("utf-8"), settings.oracle_token.encode("utf-8")):
        raise NotAuthorizedError("Callback not signed by the decryption oracle")


def sanitize_text(value: str, max_len: int = 2000) -> str:
    """Strip HTML/script tags and enforce max length."""
    if not value:
        return ""
    value = re.sub(r"<[^>]+>", "", value)
    value = re.sub(r"javascript:", "", value, flags=re.IGNORECASE)
    return value.strip()[:max_len]


def sha3_256_hex(*parts: bytes | str) -> str:
    """SHA3-256 hash of concatenated parts, hex-encoded."""
    h = hashlib.sha3_256()
    for p in parts:
        h.update(p.encode("utf-8") if isinstance(p, str) else p)
    return h.hexdigest()
