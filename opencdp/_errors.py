"""Error normalization and the raise-or-swallow decision.

Every failed primary call is turned into a ``NormalizedError`` subclass with
a fixed name and code for its operation. Whether that error (or a
``ValidationError``) reaches the caller is decided by an ``ErrorPolicy``
picked once, when the client is built:

- ``RaisingErrorPolicy`` (``fail_on_exception=True``) raises it.
- ``SwallowingErrorPolicy`` (default) logs it and returns the operation's
  fallback value instead.

This is an internal module and should not be imported directly by users.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from opencdp.exceptions import (
    DeviceRegistrationError,
    EmailSendError,
    IdentifyError,
    NormalizedError,
    PingError,
    PushSendError,
    SmsSendError,
    TrackError,
    TransportError,
    ValidationError,
)
from opencdp.models import ErrorSummary, Operation, SendResult

DEFAULT_ERROR_STATUS = 400

ERROR_TYPES: dict[Operation, type[NormalizedError]] = {
    Operation.PING: PingError,
    Operation.IDENTIFY: IdentifyError,
    Operation.TRACK: TrackError,
    Operation.REGISTER_DEVICE: DeviceRegistrationError,
    Operation.SEND_EMAIL: EmailSendError,
    Operation.SEND_PUSH: PushSendError,
    Operation.SEND_SMS: SmsSendError,
}

OPERATION_LABELS: dict[Operation, str] = {
    Operation.PING: "Ping",
    Operation.IDENTIFY: "Identify",
    Operation.TRACK: "Track",
    Operation.REGISTER_DEVICE: "Register device",
    Operation.SEND_EMAIL: "Send email",
    Operation.SEND_PUSH: "Send push",
    Operation.SEND_SMS: "Send SMS",
}


def summarize(error: TransportError) -> ErrorSummary:
    """Extract message, HTTP status and response message from a failure."""
    return ErrorSummary(
        message=error.message,
        status=error.status_code,
        data=error.response_message,
    )


def normalize_error(
    operation: Operation,
    error: TransportError,
    debug: bool = False,
) -> NormalizedError:
    """Build the NormalizedError for a failed primary call.

    The response message wins over the transport message when the server
    sent one. Outside debug mode the transport error is not chained, so
    the raw request and response never leave the client.

    Args:
        operation: The operation that failed.
        error: The transport failure.
        debug: Keep the transport error as ``__cause__``.

    Returns:
        The operation's NormalizedError subclass, ready to raise.
    """
    summary = summarize(error)
    normalized = ERROR_TYPES[operation](
        message=summary.data or summary.message,
        status=summary.status or DEFAULT_ERROR_STATUS,
        summary=summary,
    )
    normalized.__cause__ = error if debug else None
    normalized.__suppress_context__ = True
    return normalized


class ErrorPolicy(ABC):
    """Decides what a failed call returns or raises.

    Both validation failures and transport failures go through the same
    policy instance, so they always get the same treatment.
    """

    def __init__(self, logger: logging.Logger, debug: bool = False) -> None:
        self._logger = logger
        self._debug = debug

    @abstractmethod
    def validation_failed(self, operation: Operation, error: ValidationError) -> Any:
        """Handle a request rejected before reaching the network."""

    @abstractmethod
    def request_failed(self, operation: Operation, error: TransportError) -> Any:
        """Handle a failed primary call."""

    def _log_validation_error(self, operation: Operation, error: ValidationError) -> None:
        if self._debug:
            self._logger.error(
                f"[CDP] {OPERATION_LABELS[operation]} validation error: {error.message}"
            )

    def _log_request_error(self, operation: Operation, normalized: NormalizedError) -> None:
        label = OPERATION_LABELS[operation]
        if self._debug:
            self._logger.error(
                f"[CDP] {label} error: {normalized.summary.model_dump()}"
            )
        else:
            self._logger.error(
                f"[CDP] {label} error: {normalized.code.value} "
                f"(status {normalized.status}): {normalized.message}"
            )


class RaisingErrorPolicy(ErrorPolicy):
    """Raise every failure to the caller."""

    def validation_failed(self, operation: Operation, error: ValidationError) -> Any:
        self._log_validation_error(operation, error)
        raise error

    def request_failed(self, operation: Operation, error: TransportError) -> Any:
        normalized = normalize_error(operation, error, self._debug)
        self._log_request_error(operation, normalized)
        raise normalized


class SwallowingErrorPolicy(ErrorPolicy):
    """Log failures and resolve with a fallback value.

    Every operation resolves to None, except ``send_email`` transport
    failures, which resolve to a ``SendResult`` with ``ok=False``.
    """

    def validation_failed(self, operation: Operation, error: ValidationError) -> None:
        self._log_validation_error(operation, error)
        return None

    def request_failed(self, operation: Operation, error: TransportError) -> SendResult | None:
        normalized = normalize_error(operation, error, self._debug)
        self._log_request_error(operation, normalized)
        if operation is Operation.SEND_EMAIL:
            return SendResult(error=normalized)
        return None


def select_error_policy(
    fail_on_exception: bool,
    logger: logging.Logger,
    debug: bool = False,
) -> ErrorPolicy:
    if fail_on_exception:
        return RaisingErrorPolicy(logger, debug)
    return SwallowingErrorPolicy(logger, debug)
