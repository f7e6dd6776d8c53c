"""
Render core failures as HTTP responses.

The core raises InkwellError subclasses; this maps their kind to a status
code and a small JSON body:

    {"error": "conflict", "message": "email provided is in use", "field": "email"}
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from inkwell.core.errors import ConflictError, ErrorKind, InkwellError, InvalidPayloadError

logger = logging.getLogger(__name__)


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.INVALID_PAYLOAD: 400,
    ErrorKind.INVALID_CREDENTIALS: 401,
    ErrorKind.INVALID_TOKEN: 401,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.NO_RECORDS_UPDATED: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.UNAVAILABLE: 503,
}


def error_body(exc: InkwellError) -> dict:
    body: dict = {"error": exc.kind.value, "message": exc.message}
    if isinstance(exc, ConflictError) and exc.field:
        body["field"] = exc.field
    if isinstance(exc, InvalidPayloadError) and exc.fields:
        body["fields"] = exc.fields
    return body


async def handle_inkwell_error(request: Request, exc: InkwellError) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")

    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(status_code=status_code, content=error_body(exc), headers=headers)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InkwellError, handle_inkwell_error)
