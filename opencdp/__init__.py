"""OpenCDP API Client Library.

This package provides an asynchronous Python client for the OpenCDP
customer data platform, with optional dual-write of profile updates to
Customer.io during a migration.

Example:
    Asynchronous usage::

        from opencdp import CDPClient

        async with CDPClient(api_key="cdp_live_...") as client:
            await client.identify("user-123", {"email": "jane@example.com"})
            await client.send_push({
                "identifiers": {"id": "user-123"},
                "transactional_message_id": "ORDER_SHIPPED",
            })

Exports:
    CDPClient: Asynchronous client for the OpenCDP API.
    ClientConfig: Immutable client configuration.
    CustomerIOCredentials: Credentials for dual-write to Customer.io.

    Exceptions:
        OpenCDPError: Base exception for all client errors.
        ValidationError: Request rejected before any network call.
        TransportError: The primary call failed.
        NormalizedError: Per-operation error raised for a failed call.
"""

from opencdp.config import ClientConfig, CustomerIOCredentials
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
from opencdp.models import (
    DeviceRegistration,
    ErrorSummary,
    Identifier,
    SendEmailRequest,
    SendPushRequest,
    SendResult,
    SendSmsRequest,
)
from opencdp._dual_write import CustomerIOTracker, SecondaryTracker
from opencdp.client import CDPClient

__all__ = [
    # Main client
    "CDPClient",
    # Configuration
    "ClientConfig",
    "CustomerIOCredentials",
    # Dual-write
    "SecondaryTracker",
    "CustomerIOTracker",
    # Exceptions
    "OpenCDPError",
    "ValidationError",
    "TransportError",
    "ConnectionError",
    "TimeoutError",
    "APIError",
    "AuthenticationError",
    "NotFoundError",
    "RateLimitError",
    "ServerError",
    "SecondaryServiceError",
    "NormalizedError",
    "ErrorCode",
    "PingError",
    "IdentifyError",
    "TrackError",
    "DeviceRegistrationError",
    "EmailSendError",
    "PushSendError",
    "SmsSendError",
    # Request and result models
    "Identifier",
    "SendEmailRequest",
    "SendPushRequest",
    "SendSmsRequest",
    "DeviceRegistration",
    "ErrorSummary",
    "SendResult",
]
