"""
Exception hierarchy for the Vanilla smoke-test harness.

HTTP failures map to status-code specific subclasses of HttpError and carry
the forum's own error text. Storage, configuration and suite definition
problems have their own classes so that the orchestrator can tell an
expected application error apart from a broken harness.
"""

from typing import Any, Dict, Optional


class SmokeClientError(Exception):
    """
    Base exception for all harness errors.

    Attributes:
        message: Human-readable error message
        status_code: HTTP status code (if applicable)
        error_code: Application error code or class (if the forum sent one)
        details: Additional error details
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        parts = [self.message]
        if self.error_code:
            parts.insert(0, f"[{self.error_code}]")
        if self.status_code:
            parts.append(f"(HTTP {self.status_code})")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"status_code={self.status_code}, "
            f"error_code={self.error_code!r})"
        )


# =============================================================================
# HTTP Errors
# =============================================================================


class HttpError(SmokeClientError):
    """
    The forum answered with a non-2xx status.

    ``body`` holds the parsed response body so negative tests can inspect
    more than the message.
    """

    def __init__(
        self,
        message: str = "HTTP error",
        *,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ):
        super().__init__(
            message,
            status_code=status_code,
            error_code=error_code,
            details=details,
        )
        self.body = body


class ValidationError(HttpError):
    """The forum rejected the submitted data (400)."""

    def __init__(
        self,
        message: str = "Validation error",
        *,
        status_code: int = 400,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ):
        super().__init__(
            message,
            status_code=status_code,
            error_code=error_code,
            details=details,
            body=body,
        )


class AuthenticationError(HttpError):
    """No valid identity was presented (401)."""

    def __init__(
        self,
        message: str = "Authentication required",
        *,
        status_code: int = 401,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ):
        super().__init__(
            message,
            status_code=status_code,
            error_code=error_code,
            details=details,
            body=body,
        )


class AuthorizationError(HttpError):
    """
    The acting user lacks the permission for the request (403).

    Category permission checks and profile edits by other users end here.
    """

    def __init__(
        self,
        message: str = "Permission denied",
        *,
        status_code: int = 403,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ):
        super().__init__(
            message,
            status_code=status_code,
            error_code=error_code,
            details=details,
            body=body,
        )


class NotFoundError(HttpError):
    """
    Requested resource was not found.

    Raised for 404 responses and, through UserNotFoundError, for rows that
    are missing from the forum database.
    """

    def __init__(
        self,
        message: str = "Resource not found",
        *,
        status_code: Optional[int] = 404,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        body: Any = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
    ):
        if resource_type or resource_id:
            details = details or {}
            if resource_type:
                details["resource_type"] = resource_type
            if resource_id:
                details["resource_id"] = resource_id
        super().__init__(
            message,
            status_code=status_code,
            error_code=error_code,
            details=details,
            body=body,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class UserNotFoundError(NotFoundError):
    """A required user row does not exist in the forum database."""

    def __init__(
        self,
        user_key: Any = None,
        *,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message or (f"User not found: {user_key}" if user_key is not None else "User not found"),
            status_code=None,
            details=details,
            resource_type="user",
            resource_id=str(user_key) if user_key is not None else None,
        )
        self.user_key = user_key


class ConflictError(HttpError):
    """Request conflicts with existing state (409)."""

    def __init__(
        self,
        message: str = "Resource conflict",
        *,
        status_code: int = 409,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ):
        super().__init__(
            message,
            status_code=status_code,
            error_code=error_code,
            details=details,
            body=body,
        )


class RateLimitError(HttpError):
    """
    Rate limit exceeded (429).

    The retry_after attribute holds the server's Retry-After in seconds.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        status_code: int = 429,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        body: Any = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(
            message,
            status_code=status_code,
            error_code=error_code,
            details=details,
            body=body,
        )
        self.retry_after = retry_after


class ServerError(HttpError):
    """The forum failed with a 5xx status."""

    def __init__(
        self,
        message: str = "Server error",
        *,
        status_code: int = 500,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ):
        super().__init__(
            message,
            status_code=status_code,
            error_code=error_code,
            details=details,
            body=body,
        )


class ServiceUnavailableError(ServerError):
    """The forum is temporarily unavailable (503), e.g. in maintenance mode."""

    def __init__(
        self,
        message: str = "Service temporarily unavailable",
        *,
        status_code: int = 503,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ):
        super().__init__(
            message,
            status_code=status_code,
            error_code=error_code,
            details=details,
            body=body,
        )


# =============================================================================
# Network Errors (Client-side)
# =============================================================================


class NetworkError(SmokeClientError):
    """Connection problem, DNS failure or another transport-level issue."""

    def __init__(
        self,
        message: str = "Network error",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)


class TimeoutError(NetworkError):
    """Request timed out."""

    def __init__(
        self,
        message: str = "Request timed out",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)


# =============================================================================
# Harness Errors
# =============================================================================


class ConfigWriteError(SmokeClientError):
    """The forum's config file could not be read or written."""


class SuiteDefinitionError(SmokeClientError):
    """The case graph is invalid: unknown dependency, duplicate name or cycle."""


class SuiteStateError(SmokeClientError):
    """Suite state was set twice, or read before any case set it."""


class SmokeCaseError(SmokeClientError):
    """A case could not run because a precondition on the live site failed."""


# =============================================================================
# Exception Mapping
# =============================================================================

# Map HTTP status codes to exception classes
STATUS_CODE_EXCEPTIONS = {
    400: ValidationError,
    401: AuthenticationError,
    403: AuthorizationError,
    404: NotFoundError,
    409: ConflictError,
    429: RateLimitError,
    500: ServerError,
    502: ServerError,
    503: ServiceUnavailableError,
    504: ServerError,
}


def exception_from_response(
    status_code: int,
    message: str,
    error_code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    body: Any = None,
) -> HttpError:
    """
    Create an appropriate exception from an HTTP response.

    Args:
        status_code: HTTP status code
        message: Error message
        error_code: Application error code or exception class
        details: Additional error details
        body: Parsed response body

    Returns:
        Appropriate HttpError subclass
    """
    exception_class = STATUS_CODE_EXCEPTIONS.get(status_code)
    if exception_class is None:
        exception_class = ServerError if 500 <= status_code < 600 else HttpError
    return exception_class(
        message,
        status_code=status_code,
        error_code=error_code,
        details=details,
        body=body,
    )
