"""
Error taxonomy shared by every module.

Services raise these directly; FastAPI renders them like any other
HTTPException. Every error body has the shape
``{"detail": {"message": str, "errors": ...}}``.
"""
from decimal import Decimal
from typing import Any, Optional
import logging

from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class LedgerPOSError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Server Error"

    def __init__(self, message: Optional[str] = None, errors: Any = None, headers: Optional[dict] = None):
        self.message = message or self.message
        self.errors = errors
        super().__init__(
            status_code=self.status_code,
            detail={"message": self.message, "errors": errors},
            headers=headers,
        )


class ValidationError(LedgerPOSError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    message = "Validation Error"


class NotFoundError(LedgerPOSError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Resource not found"


class InsufficientStockError(LedgerPOSError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Insufficient Stock"

    def __init__(self, stock_id, available: Decimal, requested: Decimal):
        self.stock_id = stock_id
        self.available = available
        self.requested = requested
        super().__init__(
            errors=[f"Insufficient stock (ID: {stock_id}). Available: {available}, Requested: {requested}"]
        )


class AllocationExceedsBalanceError(LedgerPOSError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    message = "Payment exceeds due amount."

    def __init__(
        self,
        due_amount: Decimal,
        field: str = "paid_amount",
        message: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        self.due_amount = due_amount
        super().__init__(
            message=message,
            errors={field: reason or f"The paid amount cannot be greater than the current due amount of {due_amount}"},
        )


class ConflictError(LedgerPOSError):
    status_code = status.HTTP_409_CONFLICT
    message = "Conflict"


class UnauthorizedError(LedgerPOSError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Unauthorized Action"

    def __init__(self, message: Optional[str] = None, errors: Any = None):
        super().__init__(message, errors, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(LedgerPOSError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Forbidden: You do not have the required permission."


class UnexpectedError(LedgerPOSError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Server Error"


def _field_name(loc) -> str:
    # Drop the "body"/"query" prefix FastAPI puts in front of the field path
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts) or "__root__"


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render pydantic payload errors as a field -> message map."""
    errors = {}
    for error in exc.errors():
        errors.setdefault(_field_name(error.get("loc", ())), error.get("msg"))
    logger.debug(f"Validation failed on {request.method} {request.url.path}: {errors}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=jsonable_encoder({"detail": {"message": "Validation Error", "errors": errors}}),
    )
