"""Request and result models for the OpenCDP client.

Request models are deliberately permissive: every field is optional at
construction time and the rules about which fields are required, and in
which combination, live in ``opencdp._validation``. This keeps the error
messages and the order in which rules are checked under the client's
control instead of pydantic's.
"""

import base64
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from opencdp.exceptions import NormalizedError

IdentifierKind = Literal["id", "email", "cdp_id"]
DevicePlatform = Literal["android", "ios", "web"]

# Identifier keys accepted by each family of operations
EMAIL_IDENTIFIER_KINDS: tuple[IdentifierKind, ...] = ("id", "email")
MESSAGING_IDENTIFIER_KINDS: tuple[IdentifierKind, ...] = ("id", "email", "cdp_id")


class Operation(str, Enum):
    """Public client operations, used for routing, logging and error codes."""

    PING = "ping"
    IDENTIFY = "identify"
    TRACK = "track"
    REGISTER_DEVICE = "register_device"
    SEND_EMAIL = "send_email"
    SEND_PUSH = "send_push"
    SEND_SMS = "send_sms"


class Identifier(BaseModel):
    """A validated person identifier: exactly one kind with a non-empty value.

    Built by ``opencdp._validation.parse_identifiers``; never constructed
    from a half-filled mapping.

    Attributes:
        kind: Which identifier this is ("id", "email" or "cdp_id").
        value: The identifier value. Only "id" may be an integer.
    """

    model_config = ConfigDict(frozen=True)

    kind: IdentifierKind
    value: str | int

    def to_wire(self) -> dict[str, str | int]:
        """Return the single-key mapping the CDP API expects."""
        return {self.kind: self.value}


class SendEmailRequest(BaseModel):
    """A transactional email send.

    Template-based when ``transactional_message_id`` is set, in which case
    ``body``, ``subject`` and ``from_`` are optional overrides. Without a
    template id the email is "raw" and all three are required.

    The sender address is exposed as ``from_`` in Python and accepted as
    ``from`` when validating a mapping.

    Example:
        request = SendEmailRequest(
            to="jane@example.com",
            identifiers={"id": "user-123"},
            transactional_message_id="WELCOME",
            message_data={"first_name": "Jane"},
        )
    """

    model_config = ConfigDict(populate_by_name=True)

    to: str | None = None
    identifiers: dict[str, Any] | None = None

    transactional_message_id: str | int | None = None
    body: str | None = None
    subject: str | None = None
    from_: str | None = Field(default=None, alias="from")

    message_data: Any = None
    headers: Any = None
    preheader: str | None = None
    reply_to: str | None = None
    bcc: list[str] | None = None
    cc: list[str] | None = None
    plaintext_body: str | None = None
    amp_body: str | None = None
    fake_bcc: bool | None = None
    disable_message_retention: bool | None = None
    send_to_unsubscribed: bool | None = None
    tracked: bool | None = None
    queue_draft: bool | None = None
    send_at: Any = None
    disable_css_preprocessing: bool | None = None
    language: str | None = None
    attachments: dict[str, str] | None = None

    @property
    def is_template(self) -> bool:
        """Whether this request references a remote template."""
        return self.transactional_message_id not in (None, "")

    def attach(self, name: str, data: bytes | str, encode: bool = True) -> None:
        """Add an attachment to the message.

        Args:
            name: File name of the attachment.
            data: File contents.
            encode: Base64-encode ``data`` before storing it. Pass False when
                ``data`` is already encoded.

        Raises:
            ValueError: If an attachment with the same name already exists.
        """
        if self.attachments is None:
            self.attachments = {}
        if name in self.attachments:
            raise ValueError(f"attachment {name} already exists")
        if encode:
            raw = data.encode("utf-8") if isinstance(data, str) else data
            self.attachments[name] = base64.b64encode(raw).decode("ascii")
        elif isinstance(data, bytes):
            self.attachments[name] = data.decode("ascii")
        else:
            self.attachments[name] = data


class SendPushRequest(BaseModel):
    """A transactional push notification send.

    Attributes:
        identifiers: Exactly one of id, email or cdp_id.
        transactional_message_id: Required template id.
        title: Optional title override.
        body: Optional body override; must not be blank when given.
        message_data: Template variables.
    """

    identifiers: dict[str, Any] | None = None
    transactional_message_id: str | int | None = None
    title: str | None = None
    body: str | None = None
    message_data: Any = None


class SendSmsRequest(BaseModel):
    """A transactional SMS send.

    ``to`` may be omitted, in which case the CDP looks the number up on the
    person's profile. ``body`` is required when no template id is given.
    """

    model_config = ConfigDict(populate_by_name=True)

    identifiers: dict[str, Any] | None = None
    transactional_message_id: str | int | None = None
    to: str | None = None
    from_: str | None = Field(default=None, alias="from")
    body: str | None = None
    message_data: Any = None


class DeviceRegistration(BaseModel):
    """Parameters for registering a push-capable device on a person.

    Field names are snake_case in Python and camelCase on the wire.

    Attributes:
        device_id: Device identifier, also used as the Customer.io device id.
        platform: "android", "ios" or "web".
        fcm_token: Firebase Cloud Messaging token. Required for registration.
        apn_token: Apple Push Notification token.
        name: Human-readable device name.
        os_version: Operating system version.
        model: Device model.
        app_version: Version of the app that registered the device.
        last_active_at: ISO timestamp of the last activity.
        attributes: Free-form device attributes.
    """

    model_config = ConfigDict(populate_by_name=True)

    device_id: str | None = Field(default=None, alias="deviceId")
    platform: str | None = None
    fcm_token: str | None = Field(default=None, alias="fcmToken")
    apn_token: str | None = Field(default=None, alias="apnToken")
    name: str | None = None
    os_version: str | None = Field(default=None, alias="osVersion")
    model: str | None = None
    app_version: str | None = Field(default=None, alias="appVersion")
    last_active_at: str | None = None
    attributes: dict[str, Any] | None = None


class ErrorSummary(BaseModel):
    """The fields extracted from a failed primary call.

    Attributes:
        message: The transport error message.
        status: HTTP status code, if a response was received.
        data: The ``message`` field of the response body, if any.
    """

    message: str
    status: int | None = None
    data: str | None = None


class SendResult(BaseModel):
    """Sentinel returned instead of raising when an email send fails.

    Attributes:
        ok: Always False.
        error: The normalized error describing the failure.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    ok: bool = False
    error: NormalizedError
