from __future__ import annotations

import logging
import time

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from planline.common.error_envelope import build_error_envelope
from planline.gantt_core.errors import GanttError

logger = logging.getLogger(__name__)

SERVICE_NAME = "planline"
SERVICE_VERSION = "0.1.0"


def _envelope_response(code: str, message: str, status_code: int, **extra) -> JSONResponse:
    envelope = build_error_envelope(code=code, message=message, status_code=status_code, **extra)
    return JSONResponse(content=envelope.model_dump(), status_code=status_code)


# --- Error Handling ---

async def _http_exception_handler(request: Request, exc: HTTPException):
    # Routes already raise full envelopes; anything else gets wrapped.
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        return JSONResponse(content=exc.detail, status_code=exc.status_code)
    message = str(exc.detail) if exc.detail else "HTTP exception"
    return _envelope_response("http.exception", message, exc.status_code)


async def _gantt_exception_handler(request: Request, exc: GanttError):
    logger.info("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _envelope_response(
        f"gantt.{exc.kind.value}",
        exc.message,
        exc.http_status,
        resource_kind=exc.resource_kind,
        details=exc.to_details(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError):
    # ctx may hold exception objects that are not JSON serialisable
    errors = [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]
    logger.debug("Rejected %s %s: %d validation errors", request.method, request.url.path, len(errors))
    return _envelope_response(
        "validation.error",
        "Validation failed",
        400,
        details={"errors": jsonable_encoder(errors)},
    )


async def _generic_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _envelope_response("internal.error", "Internal server error", 500)


def register_error_handlers(target_app: FastAPI) -> None:
    target_app.add_exception_handler(HTTPException, _http_exception_handler)
    target_app.add_exception_handler(GanttError, _gantt_exception_handler)
    target_app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    target_app.add_exception_handler(Exception, _generic_exception_handler)


# --- App Factory ---

def create_app() -> FastAPI:
    app = FastAPI(title="Planline Gantt Engine", version=SERVICE_VERSION)

    register_error_handlers(app)

    from planline.gantt_core.routes import router as gantt_router

    app.include_router(gantt_router)

    @app.get("/health")
    async def health_check():
        return {
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "time": time.time(),
            "status": "ok",
        }

    return app


app = create_app()
