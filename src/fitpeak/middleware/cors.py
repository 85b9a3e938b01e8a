"""Cross-origin access for the FITPEAK web front-end."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fitpeak.config import Settings
from fitpeak.middleware.rate_limit import LIMIT_HEADER, REMAINING_HEADER
from fitpeak.middleware.request_id import REQUEST_ID_HEADER

# Read by the front-end to show throttling and correlate support reports.
EXPOSED_HEADERS = (REQUEST_ID_HEADER, REMAINING_HEADER, LIMIT_HEADER)


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Credentialed requests from ``settings.cors_origins`` only (LINE login cookies)."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=settings.cors_allow_methods,
        allow_headers=["Authorization", "Content-Type", REQUEST_ID_HEADER],
        expose_headers=list(EXPOSED_HEADERS),
        max_age=settings.cors_max_age,
    )
