"""Middleware registration."""

from fastapi import FastAPI

from fitpeak.config import Settings
from fitpeak.middleware.cors import setup_cors
from fitpeak.middleware.error_handler import setup_error_handlers
from fitpeak.middleware.logging import setup_logging
from fitpeak.middleware.rate_limit import RateLimitMiddleware
from fitpeak.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure logging and error rendering, then stack the middleware.

    Outermost first, a request passes CORS, request id, then the rate limiter,
    so 429 responses still carry CORS headers and an ``X-Request-Id``.
    Starlette wraps in reverse-add order, hence the add order below.
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
