"""SafeCircle FastAPI application."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded

from safecircle.api import alerts, auth, health
from safecircle.api.responses import error_response
from safecircle.core.config import settings
from safecircle.core.deps import get_sms_transport
from safecircle.core.rate_limit import limiter
from safecircle.core.result import ErrorCode


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await get_sms_transport().close()


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
)

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

logger = logging.getLogger(__name__)

app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.info("rate_limited path=%s limit=%s", request.url.path, exc.detail)
    return error_response(
        ErrorCode.RATE_LIMIT_EXCEEDED,
        "Too many requests. Please try again later",
        details=str(exc.detail),
    )


@app.exception_handler(RequestValidationError)
async def validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    return error_response(
        ErrorCode.VALIDATION_ERROR,
        "Request validation error",
        details=f"{field}: {first.get('msg', 'invalid')}" if field else None,
    )


app.include_router(health.router)
app.include_router(auth.router)
app.include_router(alerts.router)
