"""HTTP surface of the access broker."""

from __future__ import annotations

import logging
import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import __version__
from .broker import INTERNAL_ERROR_BODY, AccessBroker
from .config import BrokerConfig, load_config
from .models import TokenRequestBody

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[BrokerConfig] = None, broker: Optional[AccessBroker] = None
) -> FastAPI:
    """Build the FastAPI application around a fully wired broker."""
    config = config or load_config()
    broker = broker or AccessBroker.from_config(config)
    if config.allow_expired:
        logger.warning("Expired identity tokens are accepted (development environment)")

    app = FastAPI(title="Access Broker", version=__version__)
    app.state.broker = broker

    @app.middleware("http")
    async def request_log(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        duration_ms = int((time.time() - start) * 1000)
        logger.info(
            f"{request.method} {request.url.path} status={response.status_code} duration_ms={duration_ms}"
        )
        return response

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": {"name": "InvalidRequest", "message": "request body must be a JSON object"}},
        )

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error", exc_info=exc)
        return JSONResponse(status_code=500, content=INTERNAL_ERROR_BODY)

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    @app.post("/")
    def exchange_token(body: TokenRequestBody) -> JSONResponse:
        result = broker.handle(body.id_token, body.repo)
        return JSONResponse(status_code=result.status_code, content=result.body)

    return app
