"""
Centralized error handling middleware for FastAPI.

Provides consistent error responses and logging for all API routes.
"""

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base exception for every classified failure the API can report."""

    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str, details: Any = None):
        self.message = message
        self.details = details
        super().__init__(message)


class InvalidRequestError(ServiceError):
    """Raised when chunk or session input is malformed."""

    kind = "invalid_request"
    status_code = 400


class InvalidLinkError(ServiceError):
    """Raised when a download link is incomplete or points outside the serving root."""

    kind = "invalid_link"
    status_code = 400


class InvalidSignatureError(ServiceError):
    """Raised when a download link signature does not verify."""

    kind = "invalid_signature"
    status_code = 403


class NotFoundError(ServiceError):
    """Raised when a session, profile or file does not exist."""

    kind = "not_found"
    status_code = 404


class MisconfiguredError(ServiceError):
    """Raised when a required setting (engine path, secret) is missing."""

    kind = "misconfigured"
    status_code = 500

    def __init__(self, setting: str, message: str | None = None):
        super().__init__(
            message=message or "Slicing is not configured properly on the server",
            details={"setting": setting},
        )


class EngineExecutionError(ServiceError):
    """Raised when the slicer exits non-zero or times out."""

    kind = "engine_execution_failure"
    status_code = 500

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        output: str | None = None,
        timed_out: bool = False,
    ):
        super().__init__(
            message=message,
            details={"exit_code": exit_code, "output": output, "timed_out": timed_out},
        )


class NoOutputProducedError(ServiceError):
    """Raised when the slicer exits cleanly but writes no matching file."""

    kind = "no_output_produced"
    status_code = 500

    def __init__(self, extension: str):
        super().__init__(
            message="No output files generated by slicer",
            details={"extension": extension},
        )


class UnexpectedOutputCountError(ServiceError):
    """Raised when a chunked slice job yields more or fewer than one output file."""

    kind = "unexpected_output_count"
    status_code = 500

    def __init__(self, count: int):
        super().__init__(
            message="Expected exactly one output file from slicing",
            details={"count": count},
        )


class ParseFailureError(ServiceError):
    """Raised when slicer output lacks the expected metadata."""

    kind = "parse_failure"
    status_code = 500


class DownstreamFailureError(ServiceError):
    """Raised when the pricing collaborator fails."""

    kind = "downstream_failure"
    status_code = 502


def format_error_response(error: ServiceError) -> dict:
    """
    Format a consistent error body.

    Args:
        error: Classified service error

    Returns:
        dict: Error body with stable kind, message and optional details
    """
    response = {
        "error": error.kind,
        "message": error.message,
    }
    if error.details:
        response["details"] = error.details
    return response


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Exception handler turning ServiceError into its JSON error body."""
    logger.error(
        f"{type(exc).__name__} at {request.method} {request.url.path}: {exc.message}",
        extra={"status_code": exc.status_code, "details": exc.details},
    )
    return JSONResponse(status_code=exc.status_code, content=format_error_response(exc))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Map FastAPI body validation failures onto the invalid_request kind."""
    error = InvalidRequestError("Invalid chunk data", details=jsonable_errors(exc))
    logger.warning(f"Rejected request body at {request.url.path}: {error.details}")
    return JSONResponse(status_code=error.status_code, content=format_error_response(error))


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg")}
        for err in exc.errors()
    ]


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Middleware that catches unhandled exceptions and returns consistent error responses.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
            return response

        except ServiceError as e:
            logger.error(
                f"ServiceError: {e.message}",
                extra={"status_code": e.status_code, "details": e.details},
            )
            return JSONResponse(
                status_code=e.status_code,
                content=format_error_response(e),
            )

        except Exception as e:
            # Log full stack trace for unexpected errors
            logger.exception(f"Unhandled exception: {str(e)}")
            return JSONResponse(
                status_code=500,
                content={
                    "error": "internal_error",
                    "message": str(e) if logger.isEnabledFor(logging.DEBUG) else None,
                },
            )
