"""
Common exception types and error classification for the repository provisioner.

Provides:
- ErrorCategory enum for retry decisions
- Typed exception hierarchy for hosting-API and provisioning errors
- Error classification utilities that dispatch on exception type
"""

import asyncio
from enum import Enum
from typing import Optional

import aiohttp


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    The retry loop and the circuit breaker dispatch on this tag, never on the
    text of an error message.

    Categories:
        TRANSIENT: Temporary failures that should retry with backoff
                   (e.g., network failures, 429/5xx, branch not yet created)
        AUTH: Authentication failures (401, bad credentials). Not retried,
              the credential is static for the lifetime of an invocation.
        PERMANENT: Non-retriable failures that won't succeed on retry
                   (e.g., repository already exists, 403, malformed input)
        CIRCUIT_OPEN: Circuit breaker is open, rejecting fast without attempting
        UNKNOWN: Unclassified errors, may retry conservatively
    """

    TRANSIENT = "transient"
    AUTH = "auth"
    PERMANENT = "permanent"
    CIRCUIT_OPEN = "circuit_open"
    UNKNOWN = "unknown"


class PipelineError(Exception):
    """
    Base exception for all provisioner errors.

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
        cause: Optional[BaseException] = None,
        context: Optional[dict] = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether this error should trigger a retry."""
        return self.category in (
            ErrorCategory.TRANSIENT,
            ErrorCategory.UNKNOWN,
        )

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


# =============================================================================
# Authentication Errors
# =============================================================================


class AuthError(PipelineError):
    """Credential rejected by the hosting API (401)."""

    category = ErrorCategory.AUTH


# =============================================================================
# Network/Connection Errors (Transient)
# =============================================================================


class TransientError(PipelineError):
    """Base class for transient/retriable errors."""

    category = ErrorCategory.TRANSIENT


class ConnectionError(TransientError):
    """Network connection failed (DNS, reset, refused)."""

    pass


class TimeoutError(TransientError):
    """Operation timed out."""

    pass


class ThrottlingError(TransientError):
    """Rate limited (429, or 403 with an exhausted rate-limit budget)."""

    def __init__(
        self,
        message: str,
        retry_after: Optional[float] = None,
        cause: Optional[BaseException] = None,
        context: Optional[dict] = None,
    ):
        super().__init__(message, cause, context)
        self.retry_after = retry_after  # Seconds to wait if provided


class ServiceUnavailableError(TransientError):
    """Hosting API returned a 5xx response."""

    pass


class BranchNotReadyError(TransientError):
    """
    Default branch of a freshly generated repository does not exist yet.

    Template generation completes asynchronously on the hosting side, so this
    is an eventual-consistency wait rather than a fault. It is retried like a
    transient error but keeps its own ``reason`` so logs and metrics can tell
    it apart from network or 5xx retries.
    """

    reason = "branch_not_ready"

    def __init__(self, owner: str, repo: str, branch: str):
        super().__init__(
            f"Branch '{branch}' of {owner}/{repo} is not initialized yet",
            context={"repository": f"{owner}/{repo}", "branch": branch},
        )
        self.owner = owner
        self.repo = repo
        self.branch = branch


# =============================================================================
# Permanent Errors (Don't Retry)
# =============================================================================


class PermanentError(PipelineError):
    """Base class for permanent/non-retriable errors."""

    category = ErrorCategory.PERMANENT


class NotFoundError(PermanentError):
    """Resource not found (404)."""

    pass


class ForbiddenError(PermanentError):
    """Access denied (403) - permissions issue, not auth."""

    pass


class ValidationError(PermanentError):
    """Malformed input rejected locally or by the API (400/422)."""

    pass


class ConfigurationError(PermanentError):
    """Invalid configuration."""

    pass


class RepositoryExistsError(PermanentError):
    """Target repository name is already taken."""

    def __init__(
        self,
        owner: str,
        repo: str,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            f"Repository {owner}/{repo} already exists",
            cause=cause,
            context={"repository": f"{owner}/{repo}"},
        )
        self.owner = owner
        self.repo = repo


# =============================================================================
# Circuit Breaker Errors
# =============================================================================


class CircuitOpenError(PipelineError):
    """Circuit breaker is open, rejecting requests."""

    category = ErrorCategory.CIRCUIT_OPEN

    def __init__(
        self,
        circuit_name: str,
        retry_after: float,
        cause: Optional[BaseException] = None,
    ):
        message = f"Circuit '{circuit_name}' is open"
        super().__init__(message, cause, {"circuit_name": circuit_name})
        self.circuit_name = circuit_name
        self.retry_after = retry_after


# =============================================================================
# Retry Errors
# =============================================================================


class RetryError(PipelineError):
    """
    A retried operation failed for good.

    Wraps the last underlying failure. ``attempts`` is the number of times the
    operation actually ran (always >= 1); ``exhausted`` is True when the retry
    budget or deadline ran out and False when a non-retryable error ended the
    sequence early.
    """

    def __init__(
        self,
        original_error: BaseException,
        attempts: int,
        elapsed_seconds: float,
        exhausted: bool = True,
    ):
        message = describe_error(original_error)
        if exhausted:
            message = f"Failed after {attempts} attempt(s): {message}"
        super().__init__(message, context={"attempts": attempts})
        self.original_error = original_error
        self.attempts = attempts
        self.elapsed_seconds = elapsed_seconds
        self.exhausted = exhausted

    @property
    def category(self) -> ErrorCategory:  # type: ignore[override]
        return classify_exception(self.original_error)


# =============================================================================
# Error Classification Utilities
# =============================================================================


def classify_http_status(status_code: int) -> ErrorCategory:
    """
    Classify HTTP status code into error category.

    Args:
        status_code: HTTP response status

    Returns:
        Appropriate ErrorCategory
    """
    if 200 <= status_code < 300:
        return ErrorCategory.UNKNOWN  # Not an error

    if status_code == 401:
        return ErrorCategory.AUTH

    if status_code == 429:
        return ErrorCategory.TRANSIENT  # Rate limited

    if 400 <= status_code < 500:
        return ErrorCategory.PERMANENT  # Client errors, won't fix with retry

    if status_code >= 500:
        return ErrorCategory.TRANSIENT  # Server errors, may recover

    return ErrorCategory.UNKNOWN


def classify_exception(exc: BaseException) -> ErrorCategory:
    """
    Classify an exception into error category by its type.

    Args:
        exc: Exception to classify

    Returns:
        Appropriate ErrorCategory
    """
    # Already classified
    if isinstance(exc, PipelineError):
        return exc.category

    if isinstance(exc, (asyncio.TimeoutError, aiohttp.ServerTimeoutError)):
        return ErrorCategory.TRANSIENT

    if isinstance(exc, (aiohttp.ClientConnectionError, OSError)):
        return ErrorCategory.TRANSIENT

    if isinstance(exc, aiohttp.ClientResponseError):
        return classify_http_status(exc.status)

    return ErrorCategory.UNKNOWN


def is_retryable_error(exc: BaseException) -> bool:
    """Whether the retry loop may attempt the operation again after exc."""
    if isinstance(exc, PipelineError):
        return exc.is_retryable
    return classify_exception(exc) in (ErrorCategory.TRANSIENT, ErrorCategory.UNKNOWN)


def describe_error(exc: object) -> str:
    """
    Normalize any raised value into a human-readable message.

    Falls back to the type name when the value stringifies to nothing.
    """
    if isinstance(exc, PipelineError):
        text = str(exc)
    else:
        try:
            text = str(exc)
        except Exception:
            text = ""
    if not text:
        text = type(exc).__name__
    return text


def wrap_exception(
    exc: BaseException,
    default_class: type = PipelineError,
    context: Optional[dict] = None,
    message: Optional[str] = None,
) -> PipelineError:
    """
    Wrap a generic exception in appropriate PipelineError subclass.

    Args:
        exc: Exception to wrap
        default_class: Class to use if can't classify
        context: Additional context to include
        message: Message for the wrapper (default: the exception's own text)

    Returns:
        Appropriate PipelineError subclass instance
    """
    if isinstance(exc, PipelineError):
        if context:
            exc.context.update(context)
        return exc

    if message is None:
        message = describe_error(exc)

    if isinstance(exc, (asyncio.TimeoutError, aiohttp.ServerTimeoutError)):
        return TimeoutError(message, cause=exc, context=context)

    if isinstance(exc, (aiohttp.ClientConnectionError, OSError)):
        return ConnectionError(message, cause=exc, context=context)

    # Default wrapper
    return default_class(message, cause=exc, context=context)
