"""
FastAPI application entry point for the AutoMate backend.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from automate.config import LOG_DATE_FORMAT, LOG_FORMAT, Settings, get_settings
from automate.dependencies import Services, build_services
from automate.errors import ConfigurationError, StorageError, StoreError
from automate.routes import router
from automate.schemas import ErrorResponse, HealthResponse

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
        headers=headers,
    )


def add_exception_handlers(app: FastAPI) -> None:
    """Render every failure as `{"error": message}`."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = first.get("msg", "Invalid request")
        return _error(400, f"{location}: {message}" if location else message)

    @app.exception_handler(StoreError)
    @app.exception_handler(StorageError)
    async def downstream_exception_handler(request: Request, exc: Exception):
        logger.error(
            "%s %s failed: %s",
            request.method,
            request.url.path,
            exc,
            exc_info=exc,
        )
        return _error(500, str(exc))


def create_app(
    settings: Optional[Settings] = None, services: Optional[Services] = None
) -> FastAPI:
    settings = settings or get_settings()
    if services is None:
        services = build_services(settings)

    app = FastAPI(title="AutoMate Backend", version="0.1.0")
    app.state.settings = settings
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    add_exception_handlers(app)

    @app.get("/health", response_model=HealthResponse)
    def health():
        return HealthResponse()

    app.include_router(router, prefix=settings.api_prefix)
    return app


def main() -> int:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
    try:
        app = create_app(settings)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 1

    logger.info("AutoMate backend listening on port %d", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
