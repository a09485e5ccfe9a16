"""
Unified exception hierarchy for the Pub/Sub output plugin.

Provides typed exceptions with retry classification so the flush cycle can
decide between skipping a record, asking the host to retry, or failing.
"""


# Import ErrorCategory from canonical source to avoid duplicate enum issues
# (comparing enums from different classes always returns False)
from core.types import ErrorCategory


class PipelineError(Exception):
    """
    Base exception for all plugin errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for retry decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        context: dict | None = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.category == ErrorCategory.TRANSIENT

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


# =============================================================================
# Category Bases
# =============================================================================


class TransientError(PipelineError):
    """Base class for transient/retriable errors."""

    category = ErrorCategory.TRANSIENT


class PermanentError(PipelineError):
    """Base class for permanent/non-retriable errors."""

    category = ErrorCategory.PERMANENT


# =============================================================================
# Per-Record Errors (logged and skipped, never abort the flush)
# =============================================================================


class RecordDecodeError(PermanentError):
    """A record unit in the flush buffer could not be decoded."""

    pass


class MessageBuildError(PermanentError):
    """A decoded record could not be turned into an outbound message."""

    pass


# =============================================================================
# Publish Errors (decide the flush disposition)
# =============================================================================


class TransientPublishError(TransientError):
    """Publish failed in a way that redelivering the batch may fix."""

    def __init__(
        self,
        message: str,
        status_code: str | None = None,
        cause: BaseException | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause, context)
        self.status_code = status_code


class FatalPublishError(PermanentError):
    """Publish failed with a non-retryable or unclassifiable error."""

    def __init__(
        self,
        message: str,
        status_code: str | None = None,
        cause: BaseException | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause, context)
        self.status_code = status_code


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(PermanentError):
    """Plugin configuration is missing or invalid."""

    pass


def is_transient_error(exc: BaseException) -> bool:
    """Check if exception is a classified transient error."""
    if isinstance(exc, PipelineError):
        return exc.category == ErrorCategory.TRANSIENT
    return False


def wrap_exception(
    exc: BaseException,
    default_class: type = PipelineError,
    context: dict | None = None,
) -> PipelineError:
    """Wrap a generic exception in a PipelineError subclass."""
    if isinstance(exc, PipelineError):
        if context:
            exc.context.update(context)
        return exc
    return default_class(str(exc), cause=exc, context=context or {})
