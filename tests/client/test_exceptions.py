"""Unit tests for the OpenCDP client exception hierarchy.

This module tests opencdp/exceptions.py: class relationships, attributes
and string representations.
"""

import pytest

from opencdp.exceptions import (
    APIError,
    AuthenticationError,
    ConnectionError,
    DeviceRegistrationError,
    EmailSendError,
    ErrorCode,
    IdentifyError,
    NormalizedError,
    NotFoundError,
    OpenCDPError,
    PingError,
    PushSendError,
    RateLimitError,
    SecondaryServiceError,
    ServerError,
    SmsSendError,
    TimeoutError,
    TrackError,
    TransportError,
    ValidationError,
)
from opencdp.models import ErrorSummary


# =============================================================================
# Hierarchy
# =============================================================================


class TestExceptionHierarchy:
    """Tests for class relationships."""

    @pytest.mark.parametrize(
        "error_cls",
        [ValidationError, TransportError, SecondaryServiceError, NormalizedError],
    )
    def test_top_level_errors_share_base(self, error_cls: type) -> None:
        assert issubclass(error_cls, OpenCDPError)

    @pytest.mark.parametrize("error_cls", [ConnectionError, TimeoutError, APIError])
    def test_transport_errors(self, error_cls: type) -> None:
        assert issubclass(error_cls, TransportError)

    @pytest.mark.parametrize(
        "error_cls", [AuthenticationError, NotFoundError, RateLimitError, ServerError]
    )
    def test_api_errors(self, error_cls: type) -> None:
        assert issubclass(error_cls, APIError)

    def test_validation_is_not_transport(self) -> None:
        assert not issubclass(ValidationError, TransportError)
        assert not issubclass(NormalizedError, TransportError)


# =============================================================================
# Transport Errors
# =============================================================================


class TestTransportErrors:
    """Tests for TransportError and its subclasses."""

    def test_base_has_no_status(self) -> None:
        error = TransportError("Request failed")

        assert error.status_code is None
        assert error.response_message is None
        assert str(error) == "Request failed"

    def test_connection_error_str(self) -> None:
        error = ConnectionError("Failed to connect", url="https://cdp.test/v1/health/ping")

        assert str(error) == "Failed to connect (url: https://cdp.test/v1/health/ping)"

    def test_timeout_error_str(self) -> None:
        error = TimeoutError("Request timed out", timeout=10.0, url="https://cdp.test/x")

        assert str(error) == "Request timed out (timeout: 10.0s, url: https://cdp.test/x)"

    def test_timeout_error_str_without_details(self) -> None:
        assert str(TimeoutError("Request timed out")) == "Request timed out"

    def test_api_error_attributes(self) -> None:
        error = APIError(
            message="Request failed with status code 400",
            status_code=400,
            response_body={"message": "Bad identifier"},
        )

        assert error.status_code == 400
        assert error.response_message == "Bad identifier"
        assert str(error) == "[HTTP 400] Request failed with status code 400"

    @pytest.mark.parametrize("body", [None, "oops", {"detail": "x"}, {"message": ""}])
    def test_api_error_without_message(self, body) -> None:
        error = APIError(message="failed", status_code=500, response_body=body)

        assert error.response_message is None


# =============================================================================
# Secondary and Normalized Errors
# =============================================================================


class TestSecondaryServiceError:
    """Tests for SecondaryServiceError."""

    def test_wraps_cause(self) -> None:
        cause = RuntimeError("503 from track API")
        error = SecondaryServiceError("identify", cause)

        assert error.operation == "identify"
        assert error.cause is cause
        assert error.message == "Secondary identify failed: 503 from track API"


class TestNormalizedError:
    """Tests for the NormalizedError family."""

    @pytest.mark.parametrize(
        "error_cls, name, code",
        [
            (PingError, "CDPConnectionError", ErrorCode.PING_FAILED),
            (IdentifyError, "CDPIdentifyError", ErrorCode.IDENTIFY_FAILED),
            (TrackError, "CDPTrackError", ErrorCode.TRACK_FAILED),
            (DeviceRegistrationError, "CDPDeviceError", ErrorCode.DEVICE_REGISTRATION_FAILED),
            (EmailSendError, "CDPEmailError", ErrorCode.EMAIL_SEND_FAILED),
            (PushSendError, "CDPPushError", ErrorCode.PUSH_SEND_FAILED),
            (SmsSendError, "CDPSmsError", ErrorCode.SMS_SEND_FAILED),
        ],
    )
    def test_names_and_codes(self, error_cls, name: str, code: ErrorCode) -> None:
        assert error_cls.name == name
        assert error_cls.code is code

    def test_attributes_and_repr(self) -> None:
        summary = ErrorSummary(message="Request failed with status code 404", status=404)
        error = EmailSendError("Template not found", status=404, summary=summary)

        assert error.status == 404
        assert error.summary is summary
        assert str(error) == "Template not found"
        assert repr(error) == (
            "EmailSendError(code='EMAIL_SEND_FAILED', status=404, message='Template not found')"
        )
