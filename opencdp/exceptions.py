"""Exception hierarchy for the OpenCDP client.

This module defines all exceptions that can be raised by the OpenCDP client
library. Which of them actually cross the public boundary depends on the
client's ``fail_on_exception`` setting.

Exception Hierarchy:
    OpenCDPError (base)
    ├── ValidationError - Request rejected locally, before any network call
    ├── TransportError - The primary CDP call failed
    │   ├── ConnectionError - Network/DNS failures
    │   ├── TimeoutError - Request timeout
    │   └── APIError - Server returned an error response
    │       ├── AuthenticationError (HTTP 401/403)
    │       ├── NotFoundError (HTTP 404)
    │       ├── RateLimitError (HTTP 429)
    │       └── ServerError (HTTP 5xx)
    ├── SecondaryServiceError - Dual-write call failed (never propagated)
    └── NormalizedError - Stable error shape raised for a failed primary call
        ├── PingError, IdentifyError, TrackError, DeviceRegistrationError
        └── EmailSendError, PushSendError, SmsSendError

Example:
    Catching a failed send when ``fail_on_exception=True``::

        try:
            await client.send_email(request)
        except ValidationError as e:
            print(f"Invalid request: {e.message}")
        except EmailSendError as e:
            print(f"{e.code} ({e.status}): {e.message}")
"""

from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from opencdp.models import ErrorSummary


class OpenCDPError(Exception):
    """Base exception for all OpenCDP client errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation of the error."""
        return self.message


class ValidationError(OpenCDPError):
    """A request failed local validation.

    Raised before any network effect. Validation is deterministic, so the
    same input always produces the same error and retrying is pointless.

    Attributes:
        message: Description of the first violated rule.
        field: The offending field name, when a single field is at fault.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class TransportError(OpenCDPError):
    """The primary call to the CDP API failed.

    Base class for network, timeout and HTTP status failures.

    Attributes:
        message: Human-readable error description.
        url: The URL being requested, if known.
    """

    def __init__(self, message: str, url: str | None = None) -> None:
        self.url = url
        super().__init__(message)

    @property
    def status_code(self) -> int | None:
        """HTTP status of the failure, or None when no response was received."""
        return None

    @property
    def response_message(self) -> str | None:
        """The ``message`` field of the response body, if there was one."""
        return None


class ConnectionError(TransportError):
    """Failed to connect to the CDP server.

    Raised when the client cannot establish a connection, e.g. the host does
    not resolve or refuses connections.

    Attributes:
        message: Human-readable error description.
        url: The URL that failed to connect.
        cause: The underlying exception that caused the connection failure.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            url: The URL that failed to connect.
            cause: The underlying exception that caused the failure.
        """
        self.cause = cause
        super().__init__(message, url=url)

    def __str__(self) -> str:
        """Return string representation including URL if available."""
        if self.url:
            return f"{self.message} (url: {self.url})"
        return self.message


class TimeoutError(TransportError):
    """Request timed out.

    Attributes:
        message: Human-readable error description.
        timeout: The timeout value in seconds.
        url: The URL that timed out.
    """

    def __init__(
        self,
        message: str,
        timeout: float | None = None,
        url: str | None = None,
    ) -> None:
        self.timeout = timeout
        super().__init__(message, url=url)

    def __str__(self) -> str:
        """Return string representation including timeout if available."""
        parts = [self.message]
        if self.timeout is not None:
            parts.append(f"timeout: {self.timeout}s")
        if self.url:
            parts.append(f"url: {self.url}")
        return " ".join(parts) if len(parts) == 1 else f"{parts[0]} ({', '.join(parts[1:])})"


class APIError(TransportError):
    """Server returned an error response.

    Attributes:
        message: Description of the failed request.
        status_code: HTTP status code from the server.
        response_body: Raw response body for debugging.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        response_body: Any = None,
        url: str | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Description of the failed request.
            status_code: HTTP status code from the server.
            response_body: Raw response body for debugging.
            url: The URL that was requested.
        """
        self._status_code = status_code
        self.response_body = response_body
        super().__init__(message, url=url)

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def response_message(self) -> str | None:
        if isinstance(self.response_body, dict):
            message = self.response_body.get("message")
            if message:
                return str(message)
        return None

    def __str__(self) -> str:
        """Return string representation including status code."""
        return f"[HTTP {self.status_code}] {self.message}"


class AuthenticationError(APIError):
    """The API key was rejected (HTTP 401 or 403)."""


class NotFoundError(APIError):
    """Resource not found (HTTP 404), e.g. an unknown template id."""


class RateLimitError(APIError):
    """Too many requests (HTTP 429).

    The client does not retry; callers own any backoff.
    """


class ServerError(APIError):
    """Server-side error (HTTP 5xx)."""


class SecondaryServiceError(OpenCDPError):
    """A dual-write call to the secondary tracking service failed.

    Never raised to callers of the client; the dual-write router logs it
    and carries on with the primary call.

    Attributes:
        operation: The operation being mirrored.
        cause: The exception raised by the secondary service.
    """

    def __init__(self, operation: str, cause: BaseException) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"Secondary {operation} failed: {cause}")


class ErrorCode(str, Enum):
    """Stable error codes, one per public operation."""

    PING_FAILED = "PING_FAILED"
    IDENTIFY_FAILED = "IDENTIFY_FAILED"
    TRACK_FAILED = "TRACK_FAILED"
    DEVICE_REGISTRATION_FAILED = "DEVICE_REGISTRATION_FAILED"
    EMAIL_SEND_FAILED = "EMAIL_SEND_FAILED"
    PUSH_SEND_FAILED = "PUSH_SEND_FAILED"
    SMS_SEND_FAILED = "SMS_SEND_FAILED"


class NormalizedError(OpenCDPError):
    """Stable error shape for a failed primary call.

    Subclasses fix ``name`` and ``code`` per operation so callers can match
    on either the class or the code.

    Attributes:
        name: Error name, e.g. "CDPEmailError".
        code: ErrorCode for the failed operation.
        status: HTTP status, 400 when the failure carried none.
        summary: Extracted message, status and response message.
        message: Response message when present, else the transport message.
    """

    name: str = "CDPError"
    code: ErrorCode

    def __init__(
        self,
        message: str,
        status: int,
        summary: "ErrorSummary",
    ) -> None:
        self.status = status
        self.summary = summary
        super().__init__(message)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code.value!r}, "
            f"status={self.status}, message={self.message!r})"
        )


class PingError(NormalizedError):
    name = "CDPConnectionError"
    code = ErrorCode.PING_FAILED


class IdentifyError(NormalizedError):
    name = "CDPIdentifyError"
    code = ErrorCode.IDENTIFY_FAILED


class TrackError(NormalizedError):
    name = "CDPTrackError"
    code = ErrorCode.TRACK_FAILED


class DeviceRegistrationError(NormalizedError):
    name = "CDPDeviceError"
    code = ErrorCode.DEVICE_REGISTRATION_FAILED


class EmailSendError(NormalizedError):
    name = "CDPEmailError"
    code = ErrorCode.EMAIL_SEND_FAILED


class PushSendError(NormalizedError):
    name = "CDPPushError"
    code = ErrorCode.PUSH_SEND_FAILED


class SmsSendError(NormalizedError):
    name = "CDPSmsError"
    code = ErrorCode.SMS_SEND_FAILED
