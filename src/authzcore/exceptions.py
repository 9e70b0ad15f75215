"""Unified exception hierarchy for authzcore.

Every error raised by the package inherits from AuthzError. This module provides:
- Base exception hierarchy with stable error codes and HTTP-equivalent statuses
- ErrorRegistry for protocol mapping
- gRPC status mapping and an error handler decorator for async servicers

Usage:
    from authzcore.exceptions import RecordNotFound, UnauthorizedError

    raise UnauthorizedError("Permission denied. Anonymous access not allowed.", status=401)
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, TypeVar, cast

__all__ = [
    # Base hierarchy
    "AuthzError",
    "ConfigurationError",
    "AlreadyExistsError",
    "RecordNotFound",
    "UnauthorizedError",
    "ParameterRequiredError",
    "InvalidParameterError",
    "DirectoryError",
    # Registry
    "ErrorRegistry",
    "error_registry",
    "register_error",
    # gRPC helpers
    "get_grpc_status_code",
    "grpc_error_handler",
]

logger = logging.getLogger(__name__)


# ---- Exception Hierarchy ----------------------------------------------------


class AuthzError(Exception):
    """Base exception for authzcore.

    Attributes:
        code: Stable error code string for protocol mapping (e.g. "UNAUTHORIZED").
        message: Human-readable error description.
        status: HTTP-equivalent status code.
        details: Additional context as keyword arguments.
    """

    code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"
    status: int = 500
    retryable: bool = False

    def __init__(
        self,
        message: str | None = None,
        code: str | None = None,
        status: int | None = None,
        **kwargs: Any,
    ) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.status = status or self.status
        self.details = kwargs
        super().__init__(self.message)


class ConfigurationError(AuthzError):
    """Invalid or missing configuration."""

    code: str = "CONFIGURATION_ERROR"


class AlreadyExistsError(AuthzError):
    """An organization (or membership) with the same identity already exists."""

    code: str = "ALREADY_EXISTS"
    message: str = "An organization with the same name already exists."
    status: int = 409


class RecordNotFound(AuthzError):
    """Missing organization, group, role or user."""

    code: str = "RECORD_NOT_FOUND"
    message: str = "Could not retrieve document."
    status: int = 404


class UnauthorizedError(AuthzError):
    """Request rejected by the guard or by a rank check.

    ``status`` is 401 when no identity is present and 403 otherwise.
    """

    code: str = "UNAUTHORIZED"
    message: str = "Permission denied."
    status: int = 403


class ParameterRequiredError(AuthzError):
    """A required administrative input is missing."""

    code: str = "PARAMETER_REQUIRED"
    status: int = 400


class InvalidParameterError(AuthzError):
    """An administrative input is malformed."""

    code: str = "INVALID_PARAMETER"
    status: int = 400


class DirectoryError(AuthzError):
    """Generic upstream failure from the Directory service. Safe to retry."""

    code: str = "DIRECTORY_ERROR"
    message: str = "Directory request failed"
    status: int = 502
    retryable: bool = True


# ---- Error Registry for Protocol Mapping ------------------------------------

_E = TypeVar("_E", bound=type[AuthzError])


class ErrorRegistry:
    """Registry for mapping internal errors to external protocol codes."""

    def __init__(self) -> None:
        self._errors: dict[str, type[AuthzError]] = {}

    def register(self, code: str, error_cls: type[AuthzError]) -> None:
        self._errors[code] = error_cls

    def get(self, code: str) -> type[AuthzError] | None:
        return self._errors.get(code)

    def all(self) -> dict[str, type[AuthzError]]:
        return dict(self._errors)


error_registry = ErrorRegistry()


def register_error(code: str) -> Callable[[_E], _E]:
    """Decorator to register a custom error type.

    Usage:
        @register_error("QUOTA_EXCEEDED")
        class QuotaExceeded(AuthzError):
            code = "QUOTA_EXCEEDED"
    """

    def decorator(cls: _E) -> _E:
        error_registry.register(code, cls)
        return cls

    return cast(Callable[[_E], _E], decorator)


error_registry.register("INTERNAL_ERROR", AuthzError)
error_registry.register("CONFIGURATION_ERROR", ConfigurationError)
error_registry.register("ALREADY_EXISTS", AlreadyExistsError)
error_registry.register("RECORD_NOT_FOUND", RecordNotFound)
error_registry.register("UNAUTHORIZED", UnauthorizedError)
error_registry.register("PARAMETER_REQUIRED", ParameterRequiredError)
error_registry.register("INVALID_PARAMETER", InvalidParameterError)
error_registry.register("DIRECTORY_ERROR", DirectoryError)


# ---- gRPC Error Handling Utilities ------------------------------------------


def get_grpc_status_code(error: AuthzError) -> Any:
    """Map AuthzError to a grpc.StatusCode.

    UnauthorizedError splits on its HTTP-equivalent status: 401 maps to
    UNAUTHENTICATED, anything else to PERMISSION_DENIED.
    """
    import grpc

    if error.code == "UNAUTHORIZED":
        if error.status == 401:
            return grpc.StatusCode.UNAUTHENTICATED
        return grpc.StatusCode.PERMISSION_DENIED

    error_to_status = {
        "CONFIGURATION_ERROR": grpc.StatusCode.FAILED_PRECONDITION,
        "ALREADY_EXISTS": grpc.StatusCode.ALREADY_EXISTS,
        "RECORD_NOT_FOUND": grpc.StatusCode.NOT_FOUND,
        "PARAMETER_REQUIRED": grpc.StatusCode.INVALID_ARGUMENT,
        "INVALID_PARAMETER": grpc.StatusCode.INVALID_ARGUMENT,
        "DIRECTORY_ERROR": grpc.StatusCode.UNAVAILABLE,
    }
    return error_to_status.get(error.code, grpc.StatusCode.INTERNAL)


def grpc_error_handler(method):
    """Decorator for unary gRPC service methods with proper error handling.

    Catches AuthzError and sets the matching gRPC status code.

    Usage:
        @grpc_error_handler
        async def CreateWorkspace(self, request, context):
            ...
    """

    @functools.wraps(method)
    async def wrapper(self, request, context):
        try:
            return await method(self, request, context)
        except AuthzError as e:
            status_code = get_grpc_status_code(e)
            error_message = f"[{e.code}] {e.message}"

            logger.error(
                "%s failed: %s",
                method.__name__,
                error_message,
                extra={
                    "error_code": e.code,
                    "error_details": e.details,
                },
            )

            context.set_trailing_metadata([("error-code", e.code)])
            await context.abort(status_code, error_message)
            return

        except Exception as e:
            import grpc

            logger.exception("%s unexpected error: %s", method.__name__, e)
            await context.abort(
                grpc.StatusCode.INTERNAL,
                f"Unexpected {type(e)}: {e}",
            )
            return

    return wrapper
