import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from app.exceptions import BaseAPIException
from app.schemas.common import ErrorDetail, ErrorResponse, response_meta

logger = logging.getLogger(__name__)

# Check constraint name -> (error code, message). Reaching one of these means a
# payout or balance update slipped past the service-level guards.
CONSTRAINT_ERRORS: dict[str, tuple[str, str]] = {
    "paid_has_external_ref": (
        "PAYOUT_PAID_WITHOUT_REFERENCE",
        "A paid payout must carry the bank reference",
    ),
    "batched_has_batch_id": (
        "PAYOUT_MISSING_BATCH",
        "A payout outside PENDING must belong to a batch",
    ),
    "valid_payout_status": ("PAYOUT_INVALID_STATUS", "Unknown payout status"),
    "positive_payout_amount": (
        "PAYOUT_INVALID_AMOUNT",
        "Payout amount must be positive",
    ),
    "non_negative_pending_balance": (
        "SELLER_NEGATIVE_BALANCE",
        "Seller pending balance cannot go below zero",
    ),
    "non_negative_escrow_balance": (
        "SELLER_NEGATIVE_BALANCE",
        "Seller escrow balance cannot go below zero",
    ),
    "non_negative_balance": (
        "SELLER_NEGATIVE_BALANCE",
        "Seller balance cannot go below zero",
    ),
}


def violated_constraint(exc: IntegrityError) -> Optional[str]:
    """Name of the known check constraint mentioned by the driver error, if any."""
    error_message = str(exc.orig)
    for name in CONSTRAINT_ERRORS:
        if name in error_message:
            return name
    return None


def _error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: Optional[dict] = None,
) -> JSONResponse:
    error_response = ErrorResponse(
        error=ErrorDetail(code=code, message=message, details=details or None),
        meta={**response_meta(), "path": request.url.path},
    )
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(exclude_none=True),
    )


async def api_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render domain exceptions with their own status code and error code."""
    assert isinstance(exc, BaseAPIException)
    logger.warning(
        "API exception error_code=%s path=%s: %s",
        exc.error_code,
        request.url.path,
        exc.message,
        extra={
            "error_code": exc.error_code,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
        },
    )
    return _error_response(
        request, exc.status_code, exc.error_code, exc.message, exc.details
    )


async def integrity_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Map database constraint violations to 409 responses.

    Payout and balance check constraints get their own error codes so a
    client can tell a lifecycle violation from a plain conflict.
    """
    assert isinstance(exc, IntegrityError)
    constraint = violated_constraint(exc)

    logger.error(
        "Database integrity error constraint=%s path=%s",
        constraint,
        request.url.path,
        extra={
            "constraint": constraint,
            "error": str(exc.orig),
            "path": request.url.path,
            "method": request.method,
        },
    )

    if constraint is None:
        return _error_response(
            request, 409, "INTEGRITY_ERROR", "Database constraint violation"
        )

    code, message = CONSTRAINT_ERRORS[constraint]
    return _error_response(request, 409, code, message, {"constraint": constraint})


async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    logger.error(
        "Unhandled exception type=%s path=%s",
        type(exc).__name__,
        request.url.path,
        exc_info=exc,
        extra={"path": request.url.path, "method": request.method},
    )
    return _error_response(
        request, 500, "INTERNAL_ERROR", "An unexpected error occurred"
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BaseAPIException, api_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
