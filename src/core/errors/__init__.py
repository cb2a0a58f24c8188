"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- PipelineError hierarchy for typed exceptions
- Classification utilities for error handling
"""

from core.errors.exceptions import (
    # Enums
    ErrorCategory,
    # Base classes
    PipelineError,
    AuthError,
    TransientError,
    PermanentError,
    CircuitOpenError,
    RetryError,
    # Transient errors
    ConnectionError,
    TimeoutError,
    ThrottlingError,
    ServiceUnavailableError,
    BranchNotReadyError,
    # Permanent errors
    NotFoundError,
    ForbiddenError,
    ValidationError,
    ConfigurationError,
    RepositoryExistsError,
    # Classification utilities
    classify_http_status,
    classify_exception,
    is_retryable_error,
    describe_error,
    wrap_exception,
)

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "PipelineError",
    "AuthError",
    "TransientError",
    "PermanentError",
    "CircuitOpenError",
    "RetryError",
    # Transient errors
    "ConnectionError",
    "TimeoutError",
    "ThrottlingError",
    "ServiceUnavailableError",
    "BranchNotReadyError",
    # Permanent errors
    "NotFoundError",
    "ForbiddenError",
    "ValidationError",
    "ConfigurationError",
    "RepositoryExistsError",
    # Classification utilities
    "classify_http_status",
    "classify_exception",
    "is_retryable_error",
    "describe_error",
    "wrap_exception",
]
