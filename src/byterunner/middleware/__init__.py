"""Middleware registration."""

from fastapi import FastAPI

from byterunner.config import Settings
from byterunner.middleware.cors import setup_cors
from byterunner.middleware.error_handler import setup_error_handlers
from byterunner.middleware.logging import setup_logging
from byterunner.middleware.rate_limit import RateLimitMiddleware
from byterunner.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register middleware and exception handlers.

    Starlette runs middleware in reverse-add order, so CORS (added last) is
    outermost and also wraps 429 responses from the rate limiter.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
