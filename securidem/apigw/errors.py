"""Gestion standardisée des erreurs API avec enveloppes d'erreur.

Ce module traduit les erreurs métier (`DomainError`), les `HTTPException` et les erreurs de
validation FastAPI en une enveloppe JSON unique `{code, message, trace_id, details?}`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from securidem.app.metrics import AUTH_REJECTIONS
from securidem.core.http_constants import (
    HTTP_BAD_REQUEST,
    HTTP_CONFLICT,
    HTTP_FORBIDDEN,
    HTTP_INTERNAL_SERVER_ERROR,
    HTTP_NOT_FOUND,
    HTTP_UNAUTHORIZED,
    HTTP_UNPROCESSABLE,
)
from securidem.domain.errors import (
    AccountDisabled,
    Conflict,
    DomainError,
    Forbidden,
    InvalidInput,
    NotFound,
    ScopeMissing,
    SessionInvalidated,
    Unauthenticated,
)

log = logging.getLogger(__name__)

# Ordre significatif: la première classe correspondante l'emporte.
DOMAIN_STATUS: tuple[tuple[type[DomainError], int], ...] = (
    (Unauthenticated, HTTP_UNAUTHORIZED),
    (AccountDisabled, HTTP_FORBIDDEN),
    (SessionInvalidated, HTTP_UNAUTHORIZED),
    (Forbidden, HTTP_FORBIDDEN),
    (ScopeMissing, HTTP_BAD_REQUEST),
    (NotFound, HTTP_NOT_FOUND),
    (InvalidInput, HTTP_BAD_REQUEST),
    (Conflict, HTTP_CONFLICT),
)


@dataclass
class ErrorEnvelope:
    """Standard error envelope for API responses."""

    code: str
    message: str
    trace_id: str | None = None
    details: dict[str, Any] | None = None


def status_for(exc: DomainError) -> int:
    """Statut HTTP d'une erreur métier (400 par défaut)."""
    for cls, status in DOMAIN_STATUS:
        if isinstance(exc, cls):
            return status
    return HTTP_BAD_REQUEST


def create_error_response(
    status_code: int,
    code: str,
    message: str,
    trace_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Create a standardized error response."""
    envelope = ErrorEnvelope(code=code, message=message, trace_id=trace_id, details=details)
    return JSONResponse(
        status_code=status_code,
        content={
            "code": envelope.code,
            "message": envelope.message,
            "trace_id": envelope.trace_id,
            **({"details": jsonable_encoder(envelope.details)} if envelope.details else {}),
        },
    )


def extract_trace_id(request: Request) -> str | None:
    """Identifiant de corrélation: en-tête X-Trace-ID, sinon l'id posé par le middleware."""
    trace_id = request.headers.get("X-Trace-ID")
    if trace_id:
        return trace_id
    return getattr(request.state, "request_id", None)


def handle_domain_error(request: Request, exc: DomainError) -> JSONResponse:
    """Handle DomainError exceptions with standard envelope."""
    trace_id = extract_trace_id(request)
    status = status_for(exc)
    if status in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
        AUTH_REJECTIONS.labels(exc.code).inc()
    log.info(
        "Domain error",
        extra={
            "code": exc.code,
            "error_message": exc.message,
            "status_code": status,
            "trace_id": trace_id,
            "path": request.url.path,
        },
    )
    return create_error_response(status, exc.code, exc.message, trace_id, exc.details)


def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTPException with standard envelope."""
    trace_id = extract_trace_id(request)
    error_codes = {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        405: "method_not_allowed",
        409: "conflict",
        422: "validation_error",
        500: "internal_error",
    }
    code = error_codes.get(exc.status_code, "http_error")
    log.warning(
        "HTTP exception occurred",
        extra={"code": code, "status_code": exc.status_code, "trace_id": trace_id},
    )
    response = create_error_response(exc.status_code, code, str(exc.detail), trace_id)
    for name, value in (exc.headers or {}).items():
        response.headers[name] = value
    return response


def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Erreurs de validation du corps/paramètres: statut 422, même enveloppe."""
    trace_id = extract_trace_id(request)
    return create_error_response(
        HTTP_UNPROCESSABLE,
        "validation_error",
        "Requête invalide",
        trace_id,
        {"errors": exc.errors()},
    )


def handle_generic_exception(request: Request, exc: Exception) -> JSONResponse:
    """Handle generic exceptions with standard envelope."""
    trace_id = extract_trace_id(request)
    log.error(
        "Unexpected error occurred",
        extra={
            "code": "internal_error",
            "trace_id": trace_id,
            "exception_type": type(exc).__name__,
        },
        exc_info=True,
    )
    return create_error_response(
        HTTP_INTERNAL_SERVER_ERROR,
        "internal_error",
        "Erreur serveur",
        trace_id,
    )


def register_error_handlers(app) -> None:
    """Branche les gestionnaires d'erreurs sur l'application."""
    app.add_exception_handler(DomainError, handle_domain_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_generic_exception)
