"""Main OpenCDP client class.

This module provides ``CDPClient``, the asynchronous entry point for sending
profile updates and transactional messages to the OpenCDP API, optionally
mirroring profile updates to Customer.io.

Every public operation follows the same path:

1. Validate the input. Invalid input never reaches the network.
2. Wait for a slot in the client's concurrency limiter.
3. Mirror the call to Customer.io, for profile updates with dual-write on.
4. Build the wire payload and send it to OpenCDP.
5. Hand any failure to the error policy, which raises or logs it.

Example:
    Basic usage::

        from opencdp import CDPClient

        async with CDPClient(api_key="cdp_live_...") as client:
            await client.identify("user-123", {"plan": "pro"})
            await client.track("user-123", "checkout_completed", {"total": 42})
            await client.send_email({
                "to": "jane@example.com",
                "identifiers": {"id": "user-123"},
                "transactional_message_id": "WELCOME",
            })
"""

import logging
from collections.abc import Mapping
from typing import Any, TypeVar

import httpx
import pydantic

from opencdp._dual_write import CustomerIOTracker, DualWriteRouter, SecondaryTracker
from opencdp._errors import ErrorPolicy, select_error_policy
from opencdp._http import AsyncHTTPClient
from opencdp._limiter import MAX_CONCURRENCY, ConcurrencyLimiter, resolve_concurrency
from opencdp._payloads import (
    build_device_payload,
    build_email_payload,
    build_identify_payload,
    build_push_payload,
    build_sms_payload,
    build_track_payload,
    unsupported_fields,
)
from opencdp._validation import (
    normalize_properties,
    validate_device_registration,
    validate_event_name,
    validate_identifier,
    validate_send_email_request,
    validate_send_push_request,
    validate_send_sms_request,
)
from opencdp.config import ClientConfig
from opencdp.exceptions import TransportError, ValidationError
from opencdp.models import (
    DeviceRegistration,
    Identifier,
    Operation,
    SendEmailRequest,
    SendPushRequest,
    SendResult,
    SendSmsRequest,
)

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)

DEFAULT_LOGGER_NAME = "opencdp"

ENDPOINTS: dict[Operation, str] = {
    Operation.PING: "/v1/health/ping",
    Operation.IDENTIFY: "/v1/persons/identify",
    Operation.TRACK: "/v1/persons/track",
    Operation.REGISTER_DEVICE: "/v1/persons/registerDevice",
    Operation.SEND_EMAIL: "/v1/send/email",
    Operation.SEND_PUSH: "/v1/send/push",
    Operation.SEND_SMS: "/v1/send/sms",
}


def _coerce_request(model_cls: type[ModelT], value: Any, field: str) -> ModelT:
    """Accept either a request model or a mapping of its fields.

    Raises:
        ValidationError: If ``value`` is neither, or pydantic rejects a field
            type. The first pydantic error is reported.
    """
    if isinstance(value, model_cls):
        return value
    if not isinstance(value, Mapping):
        raise ValidationError(f"{field} must be an object", field=field)
    try:
        return model_cls.model_validate(dict(value))
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or field
        raise ValidationError(f"{location}: {first['msg']}", field=location) from None


class CDPClient:
    """Asynchronous client for the OpenCDP API.

    By default no exception crosses the public boundary: failures are logged
    and the call resolves to None (or a ``SendResult`` for a failed email
    send). Pass ``fail_on_exception=True`` to have ``ValidationError`` and
    the per-operation ``NormalizedError`` subclasses raised instead.

    Attributes:
        config: The resolved, read-only configuration.

    Example:
        Strict mode with an explicit configuration::

            config = ClientConfig(api_key="cdp_live_...", fail_on_exception=True)
            client = CDPClient(config)
            try:
                await client.send_sms({
                    "identifiers": {"id": "user-123"},
                    "body": "Your code is 1234",
                })
            except ValidationError as e:
                ...
            finally:
                await client.close()
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        logger: logging.Logger | None = None,
        tracker: SecondaryTracker | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **config_kwargs: Any,
    ) -> None:
        """Initialize the client.

        Args:
            config: Client configuration. When omitted, ``config_kwargs`` are
                used to build one.
            logger: Object with ``debug``, ``warning`` and ``error`` methods.
                Defaults to the "opencdp" standard library logger.
            tracker: Secondary tracking service to mirror profile updates to.
                Defaults to a Customer.io tracker when dual-write is
                configured. Supplying one enables dual-write.
            transport: Custom HTTP transport (e.g., MockTransport for testing).
            **config_kwargs: ClientConfig fields, e.g. ``api_key``.

        Raises:
            TypeError: If both ``config`` and keyword fields are given.
        """
        if config is None:
            config = ClientConfig(**config_kwargs)
        elif config_kwargs:
            raise TypeError("Pass either a ClientConfig or its fields as keywords, not both")

        self.config = config
        self._logger = logger if logger is not None else logging.getLogger(DEFAULT_LOGGER_NAME)

        requested = config.max_concurrent_requests
        if requested is not None and requested > MAX_CONCURRENCY:
            self._logger.warning(
                f"[CDP] max_concurrent_requests={requested} exceeds the maximum of "
                f"{MAX_CONCURRENCY}; using {MAX_CONCURRENCY}"
            )
        self._limiter = ConcurrencyLimiter(resolve_concurrency(requested))

        if tracker is None and config.dual_write_enabled:
            tracker = self._create_customer_io_tracker()
        self._router = DualWriteRouter(tracker, self._logger, debug=config.debug)

        self._policy: ErrorPolicy = select_error_policy(
            config.fail_on_exception, self._logger, debug=config.debug
        )

        self._http = AsyncHTTPClient(
            base_url=config.endpoint,
            api_key=config.api_key,
            timeout=config.timeout_seconds,
            transport=transport,
        )

    def _create_customer_io_tracker(self) -> SecondaryTracker | None:
        try:
            return CustomerIOTracker(self.config.customer_io)
        except Exception as e:
            # Dual-write stays off; primary calls are unaffected
            self._logger.error(f"[Customer.io] Initialize error: {e}")
            return None

    async def __aenter__(self) -> "CDPClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the client and release pooled connections."""
        await self._http.close()

    @property
    def max_concurrent_requests(self) -> int:
        """The effective concurrency ceiling after clamping."""
        return self._limiter.capacity

    @property
    def dual_write_enabled(self) -> bool:
        return self._router.enabled

    # Connection check

    async def ping(self) -> None:
        """Check that the endpoint is reachable and the API key is accepted.

        Not needed before regular calls; use it once at startup if at all.

        Raises:
            PingError: If the check fails and ``fail_on_exception`` is set.
        """
        await self.validate_connection()

    async def validate_connection(self) -> None:
        """Alias of ``ping``."""
        try:
            await self._http.get(ENDPOINTS[Operation.PING])
        except TransportError as e:
            failure = e
        else:
            if self.config.debug:
                self._logger.debug("[CDP] Connection established")
            return
        self._policy.request_failed(Operation.PING, failure)

    # Profile operations

    async def identify(
        self,
        identifier: str | int,
        properties: Mapping[str, Any] | None = None,
    ) -> None:
        """Create or update a person.

        Args:
            identifier: The person identifier.
            properties: Attributes to set on the person.

        Raises:
            ValidationError: If the identifier is empty or properties is not
                a mapping, and ``fail_on_exception`` is set.
            IdentifyError: If the request fails and ``fail_on_exception`` is set.
        """
        try:
            validate_identifier(identifier)
            properties = normalize_properties(properties)
        except ValidationError as e:
            return self._policy.validation_failed(Operation.IDENTIFY, e)
        return await self._limiter.run(self._identify, identifier, properties)

    async def _identify(self, identifier: str | int, properties: dict[str, Any]) -> None:
        await self._router.mirror_identify(identifier, properties)
        await self._dispatch(
            Operation.IDENTIFY,
            build_identify_payload(identifier, properties),
            f"Identified {identifier}",
        )

    async def track(
        self,
        identifier: str | int,
        event_name: str,
        properties: Mapping[str, Any] | None = None,
    ) -> None:
        """Record an event for a person.

        Args:
            identifier: The person identifier.
            event_name: Name of the event, e.g. "purchase".
            properties: Event properties.

        Raises:
            ValidationError: On invalid input when ``fail_on_exception`` is set.
            TrackError: If the request fails and ``fail_on_exception`` is set.
        """
        try:
            validate_identifier(identifier)
            validate_event_name(event_name)
            properties = normalize_properties(properties)
        except ValidationError as e:
            return self._policy.validation_failed(Operation.TRACK, e)
        return await self._limiter.run(self._track, identifier, event_name, properties)

    async def _track(
        self,
        identifier: str | int,
        event_name: str,
        properties: dict[str, Any],
    ) -> None:
        await self._router.mirror_track(identifier, event_name, properties)
        await self._dispatch(
            Operation.TRACK,
            build_track_payload(identifier, event_name, properties),
            f"Tracked event {event_name} for {identifier}",
        )

    async def register_device(
        self,
        identifier: str | int,
        device: DeviceRegistration | Mapping[str, Any],
    ) -> None:
        """Register a push-capable device for a person.

        Args:
            identifier: The person identifier.
            device: A DeviceRegistration or a mapping of its fields, using
                either snake_case or camelCase keys.

        Raises:
            ValidationError: On invalid input when ``fail_on_exception`` is set.
            DeviceRegistrationError: If the request fails and
                ``fail_on_exception`` is set.
        """
        try:
            validate_identifier(identifier)
            device = _coerce_request(DeviceRegistration, device, "device")
            validate_device_registration(device)
        except ValidationError as e:
            return self._policy.validation_failed(Operation.REGISTER_DEVICE, e)
        return await self._limiter.run(self._register_device, identifier, device)

    async def _register_device(self, identifier: str | int, device: DeviceRegistration) -> None:
        await self._router.mirror_register_device(identifier, device)
        await self._dispatch(
            Operation.REGISTER_DEVICE,
            build_device_payload(identifier, device),
            f"Registered device {device.device_id} for {identifier}",
        )

    # Transactional messaging

    async def send_email(
        self,
        request: SendEmailRequest | Mapping[str, Any],
    ) -> Any:
        """Send a transactional email.

        Never mirrored to Customer.io.

        Args:
            request: A SendEmailRequest or a mapping of its fields.

        Returns:
            The API response body on success. On failure without
            ``fail_on_exception``: None for invalid input, or a SendResult
            with ``ok=False`` when the request itself failed.

        Raises:
            ValidationError: On invalid input when ``fail_on_exception`` is set.
            EmailSendError: If the request fails and ``fail_on_exception`` is set.
        """
        try:
            request = _coerce_request(SendEmailRequest, request, "request")
            identifier = validate_send_email_request(request)
        except ValidationError as e:
            return self._policy.validation_failed(Operation.SEND_EMAIL, e)
        return await self._limiter.run(self._send_email, request, identifier)

    async def _send_email(
        self,
        request: SendEmailRequest,
        identifier: Identifier,
    ) -> Any | SendResult:
        self._warn_unsupported_fields(Operation.SEND_EMAIL, request)
        self._router.warn_not_mirrored(Operation.SEND_EMAIL)
        return await self._dispatch(
            Operation.SEND_EMAIL,
            build_email_payload(request, identifier),
            f"Email sent successfully to {request.to}",
        )

    async def send_push(
        self,
        request: SendPushRequest | Mapping[str, Any],
    ) -> Any:
        """Send a transactional push notification.

        Never mirrored to Customer.io.

        Args:
            request: A SendPushRequest or a mapping of its fields.

        Returns:
            The API response body on success, otherwise None.

        Raises:
            ValidationError: On invalid input when ``fail_on_exception`` is set.
            PushSendError: If the request fails and ``fail_on_exception`` is set.
        """
        try:
            request = _coerce_request(SendPushRequest, request, "request")
            identifier = validate_send_push_request(request)
        except ValidationError as e:
            return self._policy.validation_failed(Operation.SEND_PUSH, e)
        return await self._limiter.run(self._send_push, request, identifier)

    async def _send_push(self, request: SendPushRequest, identifier: Identifier) -> Any:
        self._warn_unsupported_fields(Operation.SEND_PUSH, request)
        self._router.warn_not_mirrored(Operation.SEND_PUSH)
        return await self._dispatch(
            Operation.SEND_PUSH,
            build_push_payload(request, identifier),
            f"Push sent successfully to {identifier.value}",
        )

    async def send_sms(
        self,
        request: SendSmsRequest | Mapping[str, Any],
    ) -> Any:
        """Send a transactional SMS.

        Never mirrored to Customer.io.

        Args:
            request: A SendSmsRequest or a mapping of its fields.

        Returns:
            The API response body on success, otherwise None.

        Raises:
            ValidationError: On invalid input when ``fail_on_exception`` is set.
            SmsSendError: If the request fails and ``fail_on_exception`` is set.
        """
        try:
            request = _coerce_request(SendSmsRequest, request, "request")
            identifier = validate_send_sms_request(request)
        except ValidationError as e:
            return self._policy.validation_failed(Operation.SEND_SMS, e)
        return await self._limiter.run(self._send_sms, request, identifier)

    async def _send_sms(self, request: SendSmsRequest, identifier: Identifier) -> Any:
        self._warn_unsupported_fields(Operation.SEND_SMS, request)
        self._router.warn_not_mirrored(Operation.SEND_SMS)
        return await self._dispatch(
            Operation.SEND_SMS,
            build_sms_payload(request, identifier),
            f"SMS sent successfully to {request.to or identifier.value}",
        )

    # Internals

    def _warn_unsupported_fields(self, operation: Operation, request: Any) -> None:
        fields = unsupported_fields(operation, request)
        if fields:
            self._logger.warning(
                f"[CDP] The following fields are not yet supported by the backend and "
                f"will be ignored: {', '.join(fields)}. They are accepted for future "
                "compatibility but have no effect on delivery."
            )

    async def _dispatch(
        self,
        operation: Operation,
        payload: dict[str, Any],
        success_message: str,
    ) -> Any:
        """POST a payload to the operation's endpoint.

        The failure is handed to the error policy outside the ``except``
        block so a raised NormalizedError carries no implicit context.

        Returns:
            The response body, or the policy's fallback on failure.
        """
        try:
            response = await self._http.post(ENDPOINTS[operation], json=payload)
        except TransportError as e:
            failure = e
        else:
            if self.config.debug:
                self._logger.debug(f"[CDP] {success_message}")
            return response
        return self._policy.request_failed(operation, failure)
