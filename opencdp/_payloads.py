"""Wire payload builders for the OpenCDP API.

Each builder takes a validated request and returns the flat JSON body for
its endpoint. Fields whose value is None are dropped entirely rather than
sent as null, and Python field names are mapped to the names the API uses.

This is an internal module and should not be imported directly by users.
"""

from typing import Any

from opencdp.models import (
    DeviceRegistration,
    Identifier,
    Operation,
    SendEmailRequest,
    SendPushRequest,
    SendSmsRequest,
)

# Fields the API accepts but currently ignores, per operation
UNSUPPORTED_FIELDS: dict[Operation, tuple[str, ...]] = {
    Operation.SEND_EMAIL: (
        "send_at",
        "disable_message_retention",
        "send_to_unsubscribed",
        "queue_draft",
        "headers",
        "disable_css_preprocessing",
        "tracked",
        "fake_bcc",
        "reply_to",
        "preheader",
        "attachments",
    ),
    Operation.SEND_PUSH: (),
    Operation.SEND_SMS: (),
}


def clean_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is None."""
    return {key: value for key, value in payload.items() if value is not None}


def unsupported_fields(operation: Operation, request: Any) -> list[str]:
    """List the fields set on ``request`` that have no effect on delivery.

    Args:
        operation: The operation the request belongs to.
        request: The validated request model.

    Returns:
        Field names in a fixed order; empty when nothing ignored was set.
    """
    return [
        field
        for field in UNSUPPORTED_FIELDS.get(operation, ())
        if getattr(request, field, None) is not None
    ]


def build_identify_payload(identifier: str | int, properties: dict[str, Any]) -> dict[str, Any]:
    return {"identifier": identifier, "properties": properties}


def build_track_payload(
    identifier: str | int,
    event_name: str,
    properties: dict[str, Any],
) -> dict[str, Any]:
    return {"identifier": identifier, "eventName": event_name, "properties": properties}


def build_device_payload(identifier: str | int, device: DeviceRegistration) -> dict[str, Any]:
    """Merge the identifier with the device fields under their camelCase names."""
    return {
        "identifier": identifier,
        **device.model_dump(by_alias=True, exclude_none=True),
    }


def build_email_payload(request: SendEmailRequest, identifier: Identifier) -> dict[str, Any]:
    """Build the /v1/send/email body.

    ``amp_body`` and ``plaintext_body`` go out as ``body_amp`` and
    ``body_plain``. Attachments are not sent.
    """
    return clean_payload({
        "to": request.to,
        "identifiers": identifier.to_wire(),
        "message_data": request.message_data,
        "send_at": request.send_at,
        "disable_message_retention": request.disable_message_retention,
        "send_to_unsubscribed": request.send_to_unsubscribed,
        "queue_draft": request.queue_draft,
        "bcc": request.bcc,
        "cc": request.cc,
        "fake_bcc": request.fake_bcc,
        "reply_to": request.reply_to,
        "preheader": request.preheader,
        "headers": request.headers,
        "disable_css_preprocessing": request.disable_css_preprocessing,
        "tracked": request.tracked,
        "transactional_message_id": request.transactional_message_id if request.is_template else None,
        "body": request.body,
        "body_amp": request.amp_body,
        "body_plain": request.plaintext_body,
        "subject": request.subject,
        "from": request.from_,
        "language": request.language,
    })


def build_push_payload(request: SendPushRequest, identifier: Identifier) -> dict[str, Any]:
    return clean_payload({
        "identifiers": identifier.to_wire(),
        "transactional_message_id": request.transactional_message_id,
        "title": request.title,
        "body": request.body,
        "message_data": request.message_data,
    })


def build_sms_payload(request: SendSmsRequest, identifier: Identifier) -> dict[str, Any]:
    """Build the /v1/send/sms body.

    The API expects the template id as a string, so numeric ids are
    stringified. An empty template id is dropped.
    """
    template_id = request.transactional_message_id
    return clean_payload({
        "identifiers": identifier.to_wire(),
        "transactional_message_id": str(template_id) if template_id not in (None, "") else None,
        "to": request.to or None,
        "from": request.from_ or None,
        "body": request.body,
        "message_data": request.message_data,
    })
