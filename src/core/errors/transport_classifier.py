"""
Transport error classification for Pub/Sub publish operations.

Maps the outcome of one publish future to the typed PipelineError hierarchy
with a retry decision. The structured gRPC status attached to the error is the
only signal trusted for retries; errors without one are fatal.
"""

import asyncio
import concurrent.futures

import grpc
from google.api_core import exceptions as api_exceptions

from core.errors.exceptions import (
    FatalPublishError,
    PipelineError,
    TransientPublishError,
)

# gRPC status codes for which redelivering the whole flush is worthwhile
RETRYABLE_STATUS_CODES = frozenset(
    {
        grpc.StatusCode.DEADLINE_EXCEEDED,
        grpc.StatusCode.INTERNAL,
        grpc.StatusCode.UNAVAILABLE,
    }
)

DEADLINE_ERRORS = (
    asyncio.TimeoutError,
    concurrent.futures.TimeoutError,
    TimeoutError,
)

CANCELLED_ERRORS = (
    asyncio.CancelledError,
    concurrent.futures.CancelledError,
)


def extract_status_code(error: BaseException) -> grpc.StatusCode | None:
    """
    Extract the structured gRPC status code from a transport error.

    Understands google-api-core wrapped errors (``grpc_status_code``) and raw
    ``grpc.RpcError`` calls (``code()``).

    Args:
        error: Exception raised by the publish future

    Returns:
        The gRPC status code, or None when no structured status is attached
    """
    if isinstance(error, api_exceptions.GoogleAPICallError):
        return error.grpc_status_code

    if isinstance(error, grpc.RpcError):
        code = getattr(error, "code", None)
        if callable(code):
            status = code()
            if isinstance(status, grpc.StatusCode):
                return status

    return None


def classify_publish_error(
    error: BaseException,
    context: dict | None = None,
) -> PipelineError:
    """
    Classify a publish failure into a transient or fatal publish error.

    Priority:
        1. Deadline expiry (including an exhausted client retry budget)
           or cancellation -> TransientPublishError
        2. Structured gRPC status: DEADLINE_EXCEEDED, INTERNAL, UNAVAILABLE
           -> TransientPublishError, any other code -> FatalPublishError
        3. No structured status -> FatalPublishError

    Args:
        error: Original exception
        context: Additional context to attach to the classified error

    Returns:
        Classified PipelineError subclass
    """
    if isinstance(error, (TransientPublishError, FatalPublishError)):
        return error

    error_context = {"service": "pubsub_publisher"}
    if context:
        error_context.update(context)

    if isinstance(error, DEADLINE_ERRORS):
        return TransientPublishError(
            "Publish deadline exceeded",
            status_code=grpc.StatusCode.DEADLINE_EXCEEDED.name,
            cause=error,
            context=error_context,
        )

    if isinstance(error, CANCELLED_ERRORS):
        return TransientPublishError(
            "Publish cancelled",
            status_code=grpc.StatusCode.CANCELLED.name,
            cause=error,
            context=error_context,
        )

    # the client library's retry loop ran past publish_timeout
    if isinstance(error, api_exceptions.RetryError):
        error_context["error_code"] = grpc.StatusCode.DEADLINE_EXCEEDED.name
        return TransientPublishError(
            f"Publish retries exhausted: {error}",
            status_code=grpc.StatusCode.DEADLINE_EXCEEDED.name,
            cause=error,
            context=error_context,
        )

    status = extract_status_code(error)
    if status is None:
        return FatalPublishError(
            f"Publish failed without a gRPC status: {error}",
            cause=error,
            context=error_context,
        )

    error_context["error_code"] = status.name
    if status in RETRYABLE_STATUS_CODES:
        return TransientPublishError(
            f"Retryable publish error ({status.name}): {error}",
            status_code=status.name,
            cause=error,
            context=error_context,
        )

    return FatalPublishError(
        f"Unrecoverable publish error ({status.name}): {error}",
        status_code=status.name,
        cause=error,
        context=error_context,
    )


class PublishErrorClassifier:
    """ErrorClassifier implementation for Pub/Sub publish failures."""

    def classify_error(self, error: BaseException):
        return classify_publish_error(error).category

    def is_transient(self, error: BaseException) -> bool:
        return classify_publish_error(error).is_retryable


__all__ = [
    "CANCELLED_ERRORS",
    "DEADLINE_ERRORS",
    "RETRYABLE_STATUS_CODES",
    "PublishErrorClassifier",
    "classify_publish_error",
    "extract_status_code",
]
