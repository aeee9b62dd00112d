# mozaiks_data/http/setup.py
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mozaiks_data.config.settings import Settings
from mozaiks_data.http.middleware import CorrelationIdMiddleware, RequestSizeLimitMiddleware, SecurityHeadersMiddleware


def apply_http_hardening(app: FastAPI, settings: Settings) -> None:
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware, max_body_bytes=settings.max_request_body_bytes)
    app.add_middleware(SecurityHeadersMiddleware)

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_origins),
            allow_credentials=False,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["*"],
        )
