"""Domain exceptions and their mapping onto the JSON error envelope."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException

from leather_portal.config import settings

logger = logging.getLogger(__name__)


class PortalError(Exception):
    """Base exception for all service-layer errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationFailed(PortalError):
    """Raised when caller-supplied data is malformed. Carries field-level errors."""

    status_code = 400

    def __init__(self, message: str, errors: list[dict] | None = None):
        self.errors = errors or []
        super().__init__(message)

    @classmethod
    def for_field(cls, path: str, message: str) -> ValidationFailed:
        return cls('Validation Error', errors=[{'path': path, 'message': message}])


class NotFoundError(PortalError):
    """Raised when a well-formed id matches no stored entity."""

    status_code = 404


class ConflictError(PortalError):
    """Raised when a write would break a uniqueness invariant."""

    status_code = 409


class ExternalServiceError(PortalError):
    """Raised when a payment, mail or bank-transfer provider is unreachable or refuses."""

    status_code = 503

    def __init__(self, message: str, detail: str | None = None):
        self.detail = detail
        super().__init__(message)


class SignatureError(PortalError):
    """Raised when a webhook signature cannot be verified."""

    status_code = 400


class UnauthorizedError(PortalError):
    status_code = 401


class StoreError(PortalError):
    """Raised when a write the caller must retry could not be persisted."""

    status_code = 500


def error_body(message: str, *, errors: list[dict] | None = None, detail: str | None = None) -> dict:
    body: dict = {'success': False, 'message': message}
    if errors:
        body['errors'] = errors
    if detail:
        body['detail'] = detail
    return body


def _validation_paths(exc: RequestValidationError | ValidationError, *, skip: int = 1) -> list[dict]:
    errors = []
    for issue in exc.errors():
        # RequestValidationError locations lead with body / query / path.
        location = [str(part) for part in issue.get('loc', ())][skip:]
        errors.append({'path': '.'.join(location), 'message': issue.get('msg', 'Invalid value')})
    return errors


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(PortalError)
    async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
        if isinstance(exc, ValidationFailed):
            logger.warning('Validation error on %s %s: %s', request.method, request.url.path, exc.errors)
            return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, errors=exc.errors))
        if isinstance(exc, ExternalServiceError):
            logger.error('External service failure on %s: %s (%s)', request.url.path, exc.message, exc.detail)
            detail = exc.detail if settings.is_development else None
            return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, detail=detail))
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = _validation_paths(exc)
        logger.warning('Request validation error on %s %s: %s', request.method, request.url.path, errors)
        return JSONResponse(status_code=400, content=error_body('Validation Error', errors=errors))

    @app.exception_handler(ValidationError)
    async def model_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        errors = _validation_paths(exc, skip=0)
        logger.warning('Body validation error on %s %s: %s', request.method, request.url.path, errors)
        return JSONResponse(status_code=400, content=error_body('Validation Error', errors=errors))

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else 'Request failed'
        return JSONResponse(status_code=exc.status_code, content=error_body(message), headers=exc.headers)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception('Unhandled error on %s %s', request.method, request.url.path)
        message = str(exc) if settings.is_development else 'Internal Server Error'
        return JSONResponse(status_code=500, content=error_body(message))
