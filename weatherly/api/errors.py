from __future__ import annotations

import logging
import traceback
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from weatherly.core.config import Settings
from weatherly.core.errors import WeatherlyError
from weatherly.repositories.flux import to_rfc3339

logger = logging.getLogger(__name__)


def error_envelope(
    *, message: str, status: int, details: Any = None, stack: str | None = None
) -> dict[str, Any]:
    error: dict[str, Any] = {
        "message": message,
        "status": status,
        "timestamp": to_rfc3339(datetime.now(tz=timezone.utc)),
    }
    if details is not None:
        error["details"] = details
    if stack is not None:
        error["stack"] = stack
    return {"success": False, "error": error}


def _validation_details(exc: RequestValidationError) -> list[dict[str, Any]]:
    details = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        details.append(
            {"field": ".".join(loc), "message": err.get("msg", ""), "value": err.get("input")}
        )
    return jsonable_encoder(details)


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(WeatherlyError)
    async def weatherly_error(request: Request, exc: WeatherlyError) -> JSONResponse:
        log = logger.warning if exc.status_code < 500 else logger.error
        log(exc.message, extra={"path": request.url.path, "status": exc.status_code})
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(
                message=exc.message, status=exc.status_code, details=jsonable_encoder(exc.details)
            ),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.info("Request validation failed", extra={"path": request.url.path, "status": 400})
        return JSONResponse(
            status_code=400,
            content=error_envelope(
                message="Validation Error", status=400, details=_validation_details(exc)
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(message=str(exc.detail), status=exc.status_code),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", extra={"path": request.url.path, "status": 500})
        stack = None
        if not settings.is_production:
            stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return JSONResponse(
            status_code=500,
            content=error_envelope(message="Internal Server Error", status=500, stack=stack),
        )
