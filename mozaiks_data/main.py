# mozaiks_data/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from mozaiks_data.config.database import verify_connection, with_retry
from mozaiks_data.config.settings import Settings, load_settings
from mozaiks_data.dispatcher import WriteDispatcher
from mozaiks_data.errors import DataGatewayError, StoreFailure, safe_error_detail
from mozaiks_data.http.setup import apply_http_hardening
from mozaiks_data.logs.logging_config import setup_logging
from mozaiks_data.routes.write_data import router as write_data_router
from mozaiks_data.store.base import StoreAdapter
from mozaiks_data.store.loader import StoreBundle, load_store
from mozaiks_data.store.memory import InMemoryStoreAdapter

logger = logging.getLogger("mozaiks_data.main")


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[StoreAdapter] = None,
    *,
    configure_logging: bool = True,
) -> FastAPI:
    """Build the gateway app.

    ``store`` overrides the adapter chosen by ``STORE_BACKEND``; the caller
    then owns its lifecycle.
    """
    settings = settings or load_settings()
    if configure_logging:
        setup_logging(settings)

    if store is not None:
        bundle = StoreBundle(mode="memory" if isinstance(store, InMemoryStoreAdapter) else "mongo", store=store)
    else:
        bundle = load_store(settings)
    dispatcher = WriteDispatcher(settings, bundle.store)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if bundle.client is not None:
            try:
                await verify_connection(bundle.client)
            except Exception:
                logger.exception("Initial MongoDB connection check failed")
        try:
            await with_retry(max_retries=3, delay=1)(dispatcher.registry.ensure_indexes)()
        except Exception:
            logger.exception("Could not ensure namespace indexes; registrations may race")
        yield
        if store is None:
            await bundle.store.close()

    app = FastAPI(title="Mozaiks Plugin Data Gateway", lifespan=lifespan)
    app.state.settings = settings
    app.state.dispatcher = dispatcher
    app.state.store = bundle.store

    apply_http_hardening(app, settings)

    @app.exception_handler(DataGatewayError)
    async def _gateway_error(request: Request, exc: DataGatewayError) -> JSONResponse:
        detail = None
        if isinstance(exc, StoreFailure):
            logger.error(
                "Store failure on %s %s: %s",
                request.method,
                request.url.path,
                exc,
                extra={"correlation_id": getattr(request.state, "correlation_id", None)},
            )
            detail = safe_error_detail("an error occurred", exc, production=settings.is_production)
        return JSONResponse(status_code=exc.status_code, content=exc.to_envelope(detail=detail))

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "status": 500,
                "error": "internal_error",
                "message": safe_error_detail("internal server error", exc, production=settings.is_production),
            },
        )

    @app.get("/health")
    async def health() -> JSONResponse:
        body: Dict[str, Any] = {"status": "ok", "store": bundle.mode}
        try:
            await bundle.store.ping()
        except StoreFailure as exc:
            body.update(status="degraded", error=exc.reason)
            return JSONResponse(status_code=503, content=body)
        return JSONResponse(status_code=200, content=body)

    app.include_router(write_data_router, prefix="/data", tags=["data"])
    return app
