"""Remote service call errors."""

from typing import Any, ClassVar

from tele.exceptions.base import TeleError


class ServiceError(TeleError):
    """Base class for failures talking to a remote AI service."""

    error_code: ClassVar[str] = "SERVICE_ERROR"

    def __init__(
        self,
        message: str,
        *,
        service_name: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize service error.

        Args:
            message: Description of the failure.
            service_name: Name of the remote service that failed.
            context: Additional context information.
        """
        context_dict = dict(context or {})
        if service_name is not None:
            context_dict["service_name"] = service_name
        super().__init__(message, context=context_dict)
        self.service_name = service_name


class ServiceOverloadedError(ServiceError):
    """Retry budget exhausted on rate-limited or transiently failing responses."""

    error_code: ClassVar[str] = "SERVICE_OVERLOADED"

    def __init__(
        self,
        message: str,
        *,
        service_name: str | None = None,
        status_code: int | None = None,
        attempts: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize overload error.

        Args:
            message: Description of the failure.
            service_name: Name of the remote service that failed.
            status_code: Last HTTP status observed.
            attempts: Total attempts made before giving up.
            context: Additional context information.
        """
        context_dict = dict(context or {})
        if status_code is not None:
            context_dict["status_code"] = status_code
        if attempts is not None:
            context_dict["attempts"] = attempts
        super().__init__(message, service_name=service_name, context=context_dict)
        self.status_code = status_code
        self.attempts = attempts


class BadServerResponseError(ServiceError):
    """Non-retryable HTTP failure."""

    error_code: ClassVar[str] = "BAD_SERVER_RESPONSE"

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        service_name: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize bad response error.

        Args:
            message: Description of the failure.
            status_code: HTTP status code returned by the service.
            service_name: Name of the remote service that failed.
            context: Additional context information.
        """
        context_dict = dict(context or {})
        context_dict["status_code"] = status_code
        super().__init__(message, service_name=service_name, context=context_dict)
        self.status_code = status_code


class DecodeFailureError(ServiceError):
    """Structured output could not be extracted or parsed."""

    error_code: ClassVar[str] = "DECODE_FAILURE"


class NetworkError(ServiceError):
    """Transport failure persisted past the retry budget."""

    error_code: ClassVar[str] = "NETWORK_ERROR"
