"""
Domain errors and the FastAPI handlers that turn them into JSON responses.

Every error response has the shape ``{"error": str, "details": ...}`` where
``details`` is omitted when there is nothing safe to add.

    AppError                 -> 500
    ├── ConfigurationError   -> 500  (missing secrets, product mapping)
    ├── NotFoundError        -> 404
    ├── ValidationError      -> 400
    ├── AuthenticationError  -> 401  (webhook signature; always generic)
    ├── UpstreamError        -> 500  (payment provider HTTP/network failure)
    └── StateConflictError   -> 400  (payment status does not allow the action)
"""

from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from tourbook.core.logging import get_logger

logger = get_logger(__name__)


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_body(self) -> dict:
        body: dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ConfigurationError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ProductMappingError(ConfigurationError):
    """A tour has no IremboPay product code."""


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED


class UpstreamError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        provider_status: Optional[int] = None,
        retryable: bool = False,
    ):
        super().__init__(
            message,
            details={"providerStatus": provider_status, "retryable": retryable},
        )
        self.provider_status = provider_status
        self.retryable = retryable


class StateConflictError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_error", error_type=type(exc).__name__, error=exc.message)
    else:
        logger.info("request_rejected", error_type=type(exc).__name__, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_body()))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder({"error": "Validation failed", "details": exc.errors()}),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
