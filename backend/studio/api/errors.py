"""Global error handlers ensuring request_id is included in JSON responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from studio.api.request_id import get_request_id
from studio.domain.errors import StudioError, ValidationError

log = logging.getLogger(__name__)


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StudioError)
    async def studio_exc_handler(request: Request, exc: StudioError):  # type: ignore[override]
        rid = get_request_id(request)
        if exc.status_code >= 500:
            log.warning("request failed", extra={"code": exc.code, "status": exc.status_code})
        payload = exc.to_payload()
        payload["request_id"] = rid
        return JSONResponse(status_code=exc.status_code, content=payload)

    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        rid = get_request_id(request)
        payload = {"detail": exc.detail, "request_id": rid}
        return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        rid = get_request_id(request)
        payload = {
            "detail": "validation_error",
            "code": "validation_error",
            "errors": jsonable_encoder(exc.errors()),
            "request_id": rid,
        }
        return JSONResponse(status_code=ValidationError.status_code, content=payload)
