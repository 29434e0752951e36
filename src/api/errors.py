"""Exception handlers: domain errors -> HTTP status codes."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.domain.errors import (
    AccessDenied,
    AccountLocked,
    AuthenticationFailed,
    Conflict,
    DomainError,
    NotFound,
    UpstreamFailure,
    ValidationFailed,
)

logger = logging.getLogger(__name__)

# Most specific first: InvalidStateTransition is caught as Conflict.
STATUS_CODES: list[tuple[type[DomainError], int]] = [
    (ValidationFailed, 400),
    (AuthenticationFailed, 401),
    (AccessDenied, 403),
    (NotFound, 404),
    (Conflict, 409),
    (AccountLocked, 423),
    (UpstreamFailure, 502),
]


def status_for(exc: DomainError) -> int:
    for kind, status in STATUS_CODES:
        if isinstance(exc, kind):
            return status
    return 400


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    body: dict = {"detail": exc.message}
    if isinstance(exc, ValidationFailed) and exc.field:
        body["errors"] = [{"field": exc.field, "message": exc.message}]
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationFailed) else None
    return JSONResponse(status_code=status_for(exc), content=body, headers=headers)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body"),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "Validation failed", "errors": errors})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
