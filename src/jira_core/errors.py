"""Error taxonomy and normalization of Jira/transport failures.

Every failure that reaches the MCP boundary is a JiraMcpError with one of
four kinds:
- NotFound: a required lookup matched nothing (user by email, 404 on an issue)
- Validation: required input missing, raised before any HTTP request
- ToolExecution: the dispatcher could not run the tool
- Unexpected: anything else (HTTP error status, network failure, bugs)

NotFound and Validation can be fixed by the caller; the other two are
reported verbatim. Nothing is retried.
"""
import functools
import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

logger = logging.getLogger("jira-core.errors")

T = TypeVar("T")


class ErrorKind(str, Enum):
    NOT_FOUND = "NotFound"
    VALIDATION = "Validation"
    TOOL_EXECUTION = "ToolExecution"
    UNEXPECTED = "Unexpected"


class JiraMcpError(Exception):
    """Base class for all normalized errors."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
        status_code: int = 500,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def to_dict(self) -> dict:
        result: dict[str, Any] = {
            "kind": self.kind.value,
            "code": self.code,
            "message": self.message,
        }
        if self.details is not None:
            result["details"] = self.details
        return result


class NotFoundError(JiraMcpError):
    """Raised when a resource lookup returns no match."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, identifier: str, details: Optional[dict] = None):
        super().__init__(
            "NOT_FOUND_ERROR",
            f"{resource} with identifier '{identifier}' not found",
            {"resource": resource, "identifier": identifier, **(details or {})},
            404,
        )
        self.resource = resource
        self.identifier = identifier


class ValidationError(JiraMcpError):
    """Raised when required input is missing or malformed."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("VALIDATION_ERROR", message, details, 400)


class ToolExecutionError(JiraMcpError):
    """Raised by the dispatcher when a tool cannot be executed."""

    kind = ErrorKind.TOOL_EXECUTION

    def __init__(self, tool_name: str, message: str, details: Optional[dict] = None):
        super().__init__(
            "TOOL_EXECUTION_ERROR",
            f"Failed to execute tool '{tool_name}': {message}",
            {"toolName": tool_name, **(details or {})},
            400,
        )
        self.tool_name = tool_name


class UnexpectedError(JiraMcpError):
    """Any failure not classified more precisely."""

    kind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, details: Optional[dict] = None, code: str = "SERVER_ERROR", status_code: int = 500):
        super().__init__(code, message, details, status_code)


class ApiError(UnexpectedError):
    """Jira answered with an error status."""

    def __init__(self, message: str, details: Optional[dict] = None, status_code: int = 400):
        super().__init__(message, details, "API_ERROR", status_code)


class AuthenticationError(UnexpectedError):
    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, details, "AUTHENTICATION_ERROR", 401)


class AuthorizationError(UnexpectedError):
    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, details, "AUTHORIZATION_ERROR", 403)


class RateLimitError(UnexpectedError):
    def __init__(self, message: str = "Rate limit exceeded", details: Optional[dict] = None, retry_after: int = 60):
        super().__init__(message, details, "RATE_LIMIT_ERROR", 429)
        self.retry_after = retry_after


class NetworkError(UnexpectedError):
    """No usable response from Jira (connection failure, timeout, 503)."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, details, "NETWORK_ERROR", 503)


def _parse_retry_after(headers: Optional[dict]) -> int:
    if not headers:
        return 60
    value = headers.get("retry-after") or headers.get("Retry-After")
    try:
        return int(value)
    except (TypeError, ValueError):
        return 60


def error_from_status(
    status: int,
    message: str,
    details: Optional[dict] = None,
    resource: Optional[str] = None,
    identifier: Optional[str] = None,
) -> JiraMcpError:
    """Map an HTTP error status to a typed error."""
    if status == 401:
        return AuthenticationError(message, details)
    if status == 403:
        return AuthorizationError(message, details)
    if status == 404:
        return NotFoundError(resource or "Resource", identifier or "unknown", details)
    if status == 429:
        retry_after = _parse_retry_after((details or {}).get("headers"))
        return RateLimitError(
            f"Rate limit exceeded, retry after {retry_after} seconds",
            details,
            retry_after=retry_after,
        )
    if status == 503:
        return NetworkError(message, details)
    return ApiError(message, details, status)


def _extract_error_message(response: httpx.Response, fallback: str) -> tuple[str, Any]:
    """Pull the human-readable message out of a Jira error body."""
    try:
        data = response.json()
    except ValueError:
        return (response.text or fallback), response.text

    if isinstance(data, dict):
        if data.get("errorMessages"):
            return data["errorMessages"][0], data
        if data.get("message"):
            return data["message"], data
        if isinstance(data.get("errors"), dict) and data["errors"]:
            return "; ".join(f"{k}: {v}" for k, v in data["errors"].items()), data
    return fallback, data


def normalize_error(
    error: Exception,
    context: Optional[dict] = None,
    resource: Optional[str] = None,
    identifier: Optional[str] = None,
) -> JiraMcpError:
    """Classify an arbitrary exception into the error taxonomy."""
    if isinstance(error, JiraMcpError):
        return error

    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        message, data = _extract_error_message(response, str(error))
        details = {
            "status": response.status_code,
            "data": data,
            "headers": dict(response.headers),
            "url": str(error.request.url),
            "method": error.request.method,
        }
        return error_from_status(response.status_code, message, details, resource, identifier)

    if isinstance(error, httpx.RequestError):
        try:
            request = error.request
            request_info = {"url": str(request.url), "method": request.method}
        except RuntimeError:
            request_info = {}
        return NetworkError(
            f"No response received from server: {error}",
            {**request_info, "timeout": isinstance(error, httpx.TimeoutException)},
        )

    return UnexpectedError(
        str(error) or type(error).__name__,
        {
            "context": context,
            "originalError": {"name": type(error).__name__, "message": str(error)},
        },
    )


async def with_error_handling(
    operation: Callable[[], Awaitable[T]],
    context: Optional[dict] = None,
    resource: Optional[str] = None,
    identifier: Optional[str] = None,
) -> T:
    """Await operation() and re-raise any failure as a JiraMcpError.

    Args:
        operation: Zero-argument coroutine function performing the work
        context: Extra diagnostics attached to unexpected errors
        resource: Resource type used when Jira answers 404 (e.g. "Issue")
        identifier: Identifier used when Jira answers 404 (e.g. "PROJ-1")
    """
    try:
        return await operation()
    except JiraMcpError:
        raise
    except Exception as e:
        normalized = normalize_error(e, context, resource, identifier)
        logger.error(f"Operation failed ({context or {}}): {normalized}")
        raise normalized from e


def error_handled(resource: Optional[str] = None, identifier: Optional[str] = None):
    """Decorate an async method so its failures are normalized.

    ``identifier`` names the argument holding the resource identifier, used to
    build NotFoundError on a 404.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        signature = inspect.signature(func)

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            ident = None
            if identifier:
                ident = signature.bind_partial(*args, **kwargs).arguments.get(identifier)
            return await with_error_handling(
                lambda: func(*args, **kwargs),
                context={"operation": func.__name__},
                resource=resource,
                identifier=str(ident) if ident is not None else None,
            )

        return wrapper

    return decorator

