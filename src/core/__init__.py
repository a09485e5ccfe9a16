"""
Core library: transport-agnostic building blocks for the output plugin.

Modules:
    logging     - Structured JSON/console logging with flush context and redaction
    errors      - Error classification and exception hierarchy
    utils       - JSON serialization helpers for diagnostics

Design Principles:
    - No dependency on the plugin host or on a specific record format
    - All modules are independently testable
"""

from .types import ErrorCategory, ErrorClassifier

__version__ = "0.1.0"

__all__ = [
    "ErrorCategory",
    "ErrorClassifier",
]
