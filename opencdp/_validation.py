"""Request validation for the OpenCDP client.

Every public operation validates its input here before it touches the
concurrency limiter or the network. Validators are pure: they never mutate
the request and they raise ``ValidationError`` for the first rule that
fails. Rules are checked in a fixed order:

1. Presence of required top-level fields.
2. Identifier cardinality (exactly one recognized, non-empty key).
3. Format of email addresses and phone numbers.
4. Cross-field requirements (raw email needs body, subject and from;
   raw SMS needs body).
5. Shape of optional structured fields.

This is an internal module and should not be imported directly by users.
"""

import re
from collections.abc import Iterable, Mapping
from typing import Any, get_args

from opencdp.exceptions import ValidationError
from opencdp.models import (
    EMAIL_IDENTIFIER_KINDS,
    MESSAGING_IDENTIFIER_KINDS,
    DevicePlatform,
    DeviceRegistration,
    Identifier,
    IdentifierKind,
    SendEmailRequest,
    SendPushRequest,
    SendSmsRequest,
)

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
# E.164, leading "+" optional
PHONE_PATTERN = re.compile(r"\+?[1-9]\d{1,14}")

DEVICE_PLATFORMS: tuple[str, ...] = get_args(DevicePlatform)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def _has_value(value: Any) -> bool:
    """True unless the value is None or the empty string."""
    return value is not None and value != ""


def _describe_kinds(kinds: Iterable[str]) -> str:
    kinds = list(kinds)
    if len(kinds) == 2:
        return f"{kinds[0]} or {kinds[1]}"
    return ", ".join(kinds[:-1]) + f", or {kinds[-1]}"


def validate_identifier(identifier: str | int | None) -> None:
    """Validate a bare person identifier used by the profile operations.

    Raises:
        ValidationError: If the identifier is None, empty or whitespace.
    """
    if _is_blank(identifier):
        raise ValidationError("Identifier cannot be empty", field="identifier")


def validate_event_name(event_name: str | None) -> None:
    if _is_blank(event_name):
        raise ValidationError("Event name cannot be empty", field="event_name")


def normalize_properties(properties: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return properties as a plain dict, treating None as no properties.

    Raises:
        ValidationError: If properties is not a mapping.
    """
    if properties is None:
        return {}
    if not isinstance(properties, Mapping):
        raise ValidationError("Properties must be a valid object", field="properties")
    return dict(properties)


def validate_email_address(email: str | None, field: str = "to") -> None:
    """Validate an email address.

    Raises:
        ValidationError: If the address is empty or malformed.
    """
    if _is_blank(email):
        raise ValidationError("Email address cannot be empty", field=field)
    if not isinstance(email, str) or not EMAIL_PATTERN.fullmatch(email):
        raise ValidationError("Invalid email address format", field=field)


def validate_phone_number(phone: str | None, field: str = "to") -> None:
    """Validate a phone number in E.164 format.

    Raises:
        ValidationError: If the number is empty or not E.164.
    """
    if _is_blank(phone):
        raise ValidationError("Phone number cannot be empty", field=field)
    if not isinstance(phone, str) or not PHONE_PATTERN.fullmatch(phone):
        raise ValidationError(
            "Phone number must be in international format (e.g., +1234567890)",
            field=field,
        )


def _require_identifiers(identifiers: Any) -> None:
    if identifiers is None:
        raise ValidationError("identifiers is required", field="identifiers")


def parse_identifiers(
    identifiers: Mapping[str, Any] | None,
    allowed: tuple[IdentifierKind, ...] = MESSAGING_IDENTIFIER_KINDS,
) -> Identifier:
    """Reduce an identifiers mapping to a single Identifier.

    Keys outside ``allowed`` are ignored, so ``{"cdp_id": ...}`` does not
    count as an identifier for an operation that only accepts id or email.

    Args:
        identifiers: Mapping such as ``{"id": "user-123"}``.
        allowed: The identifier kinds this operation accepts.

    Returns:
        The one identifier present.

    Raises:
        ValidationError: If identifiers is missing, is not a mapping, or does
            not hold exactly one non-empty allowed key.
    """
    _require_identifiers(identifiers)
    if not isinstance(identifiers, Mapping):
        raise ValidationError("identifiers must be an object", field="identifiers")

    present = [
        kind for kind in allowed
        if kind in identifiers and not _is_blank(identifiers[kind])
    ]
    if len(present) != 1:
        raise ValidationError(
            f"identifiers must contain exactly one of: {_describe_kinds(allowed)}",
            field="identifiers",
        )

    kind = present[0]
    value = identifiers[kind]
    if kind == "id":
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            raise ValidationError(
                "identifiers.id must be a string or integer", field="identifiers"
            )
    elif not isinstance(value, str):
        raise ValidationError(f"identifiers.{kind} must be a string", field="identifiers")
    return Identifier(kind=kind, value=value)


def _validate_mapping_field(value: Any, field: str) -> None:
    if value is not None and not isinstance(value, Mapping):
        raise ValidationError(f"{field} must be an object", field=field)


def _validate_optional_body(value: str | None, field: str) -> None:
    if value is not None and value.strip() == "":
        raise ValidationError(f"{field} cannot be empty if provided", field=field)


def validate_send_email_request(request: SendEmailRequest) -> Identifier:
    """Validate a transactional email request.

    Returns:
        The parsed identifier.

    Raises:
        ValidationError: For the first violated rule.
    """
    # 1. presence
    if not _has_value(request.to):
        raise ValidationError("to is required", field="to")
    _require_identifiers(request.identifiers)

    # 2. cardinality
    identifier = parse_identifiers(request.identifiers, EMAIL_IDENTIFIER_KINDS)

    # 3. formats
    validate_email_address(request.to, field="to")
    if request.from_:
        validate_email_address(request.from_, field="from")
    for address in request.bcc or ():
        validate_email_address(address, field="bcc")
    for address in request.cc or ():
        validate_email_address(address, field="cc")
    if request.reply_to:
        validate_email_address(request.reply_to, field="reply_to")

    # 4. raw emails carry their own content
    if not request.is_template:
        missing = [
            f"{field} is required when not using a template"
            for field, value in (
                ("body", request.body),
                ("subject", request.subject),
                ("from", request.from_),
            )
            if not value
        ]
        if missing:
            raise ValidationError(f"When not using a template: {', '.join(missing)}")

    # 5. optional structured fields
    send_at = request.send_at
    if send_at is not None and (
        isinstance(send_at, bool) or not isinstance(send_at, int) or send_at < 0
    ):
        raise ValidationError("send_at must be a non-negative integer", field="send_at")
    _validate_optional_body(request.body, "body")
    _validate_optional_body(request.amp_body, "amp_body")
    _validate_optional_body(request.plaintext_body, "plaintext_body")
    _validate_mapping_field(request.headers, "headers")
    _validate_mapping_field(request.message_data, "message_data")
    return identifier


def validate_send_push_request(request: SendPushRequest) -> Identifier:
    """Validate a transactional push request.

    Raises:
        ValidationError: For the first violated rule.
    """
    _require_identifiers(request.identifiers)
    if not _has_value(request.transactional_message_id):
        raise ValidationError(
            "transactional_message_id is required", field="transactional_message_id"
        )

    identifier = parse_identifiers(request.identifiers, MESSAGING_IDENTIFIER_KINDS)

    _validate_optional_body(request.body, "body")
    _validate_mapping_field(request.message_data, "message_data")
    return identifier


def validate_send_sms_request(request: SendSmsRequest) -> Identifier:
    """Validate a transactional SMS request.

    ``to`` is optional; the CDP resolves the number from the person's
    profile when it is omitted.

    Raises:
        ValidationError: For the first violated rule.
    """
    _require_identifiers(request.identifiers)

    identifier = parse_identifiers(request.identifiers, MESSAGING_IDENTIFIER_KINDS)

    if request.to is not None and request.to != "":
        validate_phone_number(request.to, field="to")
    if request.from_ is not None and request.from_ != "":
        validate_phone_number(request.from_, field="from")

    if not _has_value(request.transactional_message_id) and not request.body:
        raise ValidationError("body is required when not using a template", field="body")

    _validate_optional_body(request.body, "body")
    _validate_mapping_field(request.message_data, "message_data")
    return identifier


def validate_device_registration(device: DeviceRegistration) -> None:
    """Validate device registration parameters.

    Raises:
        ValidationError: If device_id, platform or fcm_token is missing, or
            the platform is not one of android, ios or web.
    """
    if _is_blank(device.device_id):
        raise ValidationError("device_id is required", field="device_id")
    if _is_blank(device.platform):
        raise ValidationError("platform is required", field="platform")
    if _is_blank(device.fcm_token):
        raise ValidationError("fcm_token is required", field="fcm_token")
    if device.platform not in DEVICE_PLATFORMS:
        raise ValidationError(
            f"platform must be one of: {', '.join(DEVICE_PLATFORMS)}", field="platform"
        )
    _validate_mapping_field(device.attributes, "attributes")
