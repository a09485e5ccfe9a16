"""
Core types and protocols used across modules.

This module provides the enums and protocol definitions shared by the error
hierarchy and the transport classifiers.
"""

from enum import Enum
from typing import Protocol


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures where redelivering the batch may succeed
                   (e.g., publish deadline exceeded, transport unavailable)
        PERMANENT: Failures that will not succeed on redelivery
                   (e.g., malformed record, rejected message, bad config)
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


class ErrorClassifier(Protocol):
    """
    Protocol for error classification implementations.

    Transport modules implement this protocol to classify their own
    exceptions into standard categories.
    """

    def classify_error(self, error: BaseException) -> ErrorCategory:
        """
        Classify an exception into an error category.

        Args:
            error: Exception to classify

        Returns:
            ErrorCategory indicating how to handle this error
        """
        ...

    def is_transient(self, error: BaseException) -> bool:
        """
        Check if error is transient (retriable).

        Args:
            error: Exception to check

        Returns:
            True if error may succeed on retry
        """
        ...


__all__ = [
    "ErrorCategory",
    "ErrorClassifier",
]
