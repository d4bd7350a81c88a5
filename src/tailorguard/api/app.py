from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tailorguard.api.routes import router as api_router
from tailorguard.api.schemas import ErrorResponse
from tailorguard.config import get_settings
from tailorguard.errors import (
    ConfigurationError,
    GuardrailViolationError,
    ResultValidationError,
    RetryExhaustedError,
    StageOutputError,
    TailorGuardError,
)
from tailorguard.logging_config import configure_logging

logger = logging.getLogger(__name__)

ERROR_STATUS: tuple[tuple[type[TailorGuardError], int], ...] = (
    (ConfigurationError, 503),
    (GuardrailViolationError, 422),
    (StageOutputError, 502),
    (ResultValidationError, 502),
    (RetryExhaustedError, 503),
)


def status_for(exc: TailorGuardError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status
    return 500


def create_app() -> FastAPI:
    configure_logging()
    settings = get_settings()

    app = FastAPI(title=settings.app_name)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(TailorGuardError)
    async def _pipeline_error(request: Request, exc: TailorGuardError) -> JSONResponse:
        status = status_for(exc)
        logger.warning("%s %s failed with %s (%d)", request.method, request.url.path, type(exc).__name__, status)
        body = ErrorResponse(error=type(exc).__name__, detail=str(exc), stage=getattr(exc, "stage", None))
        return JSONResponse(body.to_contract(), status_code=status)

    @app.get("/health")
    def health() -> JSONResponse:
        return JSONResponse({"status": "ok", "modelMode": settings.model_mode})

    app.include_router(api_router)
    return app
