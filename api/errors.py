"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from core.exceptions import (
    AlreadyReversed,
    BillingError,
    ConcurrencyConflict,
    InvalidStateTransition,
    InvoiceNotFound,
    OverpaymentError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# Most specific class first; AlreadyReversed is an InvalidStateTransition
_BILLING_ERRORS: list[tuple[type[BillingError], int, str]] = [
    (InvoiceNotFound, 404, ErrorCodes.NOT_FOUND),
    (ValidationError, 422, ErrorCodes.VALIDATION_ERROR),
    (AlreadyReversed, 409, ErrorCodes.ALREADY_REVERSED),
    (InvalidStateTransition, 409, ErrorCodes.INVALID_STATUS_TRANSITION),
    (OverpaymentError, 422, ErrorCodes.OVERPAYMENT),
    (ConcurrencyConflict, 409, ErrorCodes.CONCURRENCY_CONFLICT),
]


def _error_json(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message).model_dump(mode="json"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(BillingError)
    async def billing_error_handler(request: Request, exc: BillingError):
        for error_type, status_code, code in _BILLING_ERRORS:
            if isinstance(exc, error_type):
                return _error_json(status_code, code, str(exc))
        return _error_json(400, ErrorCodes.INVALID_REQUEST, str(exc))

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return _error_json(400, ErrorCodes.INVALID_REQUEST, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error_json(422, ErrorCodes.VALIDATION_ERROR, str(exc.errors()))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _error_json(500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
