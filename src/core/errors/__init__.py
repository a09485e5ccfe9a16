"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- PipelineError hierarchy for typed exceptions
- Pub/Sub publish error classification
"""

from core.errors.exceptions import (
    ConfigurationError,
    FatalPublishError,
    MessageBuildError,
    PermanentError,
    # Base classes
    PipelineError,
    RecordDecodeError,
    TransientError,
    TransientPublishError,
    is_transient_error,
    wrap_exception,
)
from core.errors.transport_classifier import (
    RETRYABLE_STATUS_CODES,
    PublishErrorClassifier,
    classify_publish_error,
    extract_status_code,
)
from core.types import ErrorCategory

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "PipelineError",
    "TransientError",
    "PermanentError",
    # Domain errors
    "RecordDecodeError",
    "MessageBuildError",
    "TransientPublishError",
    "FatalPublishError",
    "ConfigurationError",
    # Classification utilities
    "is_transient_error",
    "wrap_exception",
    "RETRYABLE_STATUS_CODES",
    "PublishErrorClassifier",
    "classify_publish_error",
    "extract_status_code",
]
