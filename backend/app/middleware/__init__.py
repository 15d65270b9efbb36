"""FastAPI middleware for request/response processing."""

from .error_handler import (
    ErrorHandlerMiddleware,
    ServiceError,
    InvalidRequestError,
    InvalidLinkError,
    InvalidSignatureError,
    NotFoundError,
    MisconfiguredError,
    EngineExecutionError,
    NoOutputProducedError,
    UnexpectedOutputCountError,
    ParseFailureError,
    DownstreamFailureError,
    format_error_response,
    service_error_handler,
    validation_error_handler,
)

__all__ = [
    "ErrorHandlerMiddleware",
    "ServiceError",
    "InvalidRequestError",
    "InvalidLinkError",
    "InvalidSignatureError",
    "NotFoundError",
    "MisconfiguredError",
    "EngineExecutionError",
    "NoOutputProducedError",
    "UnexpectedOutputCountError",
    "ParseFailureError",
    "DownstreamFailureError",
    "format_error_response",
    "service_error_handler",
    "validation_error_handler",
]
