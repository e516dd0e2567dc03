"""Dual-write routing to the secondary tracking service (Customer.io).

Profile updates (identify, track, device registration) are idempotent and
safe to mirror to Customer.io while migrating between platforms.
Transactional sends are not: mirroring them would deliver the message twice,
so they only ever go to OpenCDP.

A mirrored call always runs before the primary call and is fully isolated.
Whatever it raises is wrapped in ``SecondaryServiceError``, logged, and
dropped; the primary call proceeds regardless.

This is an internal module and should not be imported directly by users.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from customerio import CustomerIO, Regions

from opencdp.config import CustomerIOCredentials
from opencdp.exceptions import SecondaryServiceError
from opencdp.models import DeviceRegistration, Operation

# Operations mirrored to the secondary service when dual-write is enabled
MIRRORED_OPERATIONS = frozenset({
    Operation.IDENTIFY,
    Operation.TRACK,
    Operation.REGISTER_DEVICE,
})

# Operations that are never mirrored because they are not idempotent
TRANSACTIONAL_OPERATIONS = frozenset({
    Operation.SEND_EMAIL,
    Operation.SEND_PUSH,
    Operation.SEND_SMS,
})

_SEND_LABELS = {
    Operation.SEND_EMAIL: "email",
    Operation.SEND_PUSH: "push",
    Operation.SEND_SMS: "SMS",
}


class SecondaryTracker(Protocol):
    """What the router needs from a secondary tracking service.

    Properties travel as a single mapping so that keys like ``name`` or
    ``id`` never collide with the call's own arguments.
    """

    async def identify(self, customer_id: str | int, attributes: dict[str, Any]) -> None: ...

    async def track(self, customer_id: str | int, name: str, data: dict[str, Any]) -> None: ...

    async def add_device(
        self,
        customer_id: str | int,
        device_id: str,
        platform: str,
        data: dict[str, Any],
    ) -> None: ...


class CustomerIOTracker:
    """SecondaryTracker backed by the Customer.io track API.

    The ``customerio`` client is synchronous, so each call runs in a worker
    thread to keep the event loop free. Requests go through ``send_request``
    with the SDK's URL helpers, so properties are payload data and never
    keyword arguments.
    Retries are off, so a failing mirror costs one attempt.
    """

    def __init__(self, credentials: CustomerIOCredentials) -> None:
        region = Regions.EU if credentials.region == "eu" else Regions.US
        self._client = CustomerIO(
            site_id=credentials.site_id,
            api_key=credentials.api_key,
            region=region,
            retries=0,
        )

    async def _send(self, method: str, url: str, payload: dict[str, Any]) -> None:
        await asyncio.to_thread(self._client.send_request, method, url, payload)

    async def identify(self, customer_id: str | int, attributes: dict[str, Any]) -> None:
        url = self._client.get_customer_query_string(customer_id)
        await self._send("PUT", url, dict(attributes))

    async def track(self, customer_id: str | int, name: str, data: dict[str, Any]) -> None:
        url = self._client.get_event_query_string(customer_id)
        await self._send("POST", url, {"name": name, "data": dict(data)})

    async def add_device(
        self,
        customer_id: str | int,
        device_id: str,
        platform: str,
        data: dict[str, Any],
    ) -> None:
        url = self._client.get_device_query_string(customer_id)
        device = {**data, "id": device_id, "platform": platform}
        await self._send("PUT", url, {"device": device})


class DualWriteRouter:
    """Decides per operation whether to mirror a call to the secondary service.

    Attributes:
        enabled: Whether a secondary tracker is configured.
    """

    def __init__(
        self,
        tracker: SecondaryTracker | None,
        logger: logging.Logger,
        debug: bool = False,
    ) -> None:
        self._tracker = tracker
        self._logger = logger
        self._debug = debug

    @property
    def enabled(self) -> bool:
        return self._tracker is not None

    def should_mirror(self, operation: Operation) -> bool:
        return self.enabled and operation in MIRRORED_OPERATIONS

    def warn_not_mirrored(self, operation: Operation) -> None:
        """Warn once per call that a transactional send stays on OpenCDP only."""
        if self.enabled and operation in TRANSACTIONAL_OPERATIONS:
            label = _SEND_LABELS[operation]
            self._logger.warning(
                f"[CDP] Transactional {label} will NOT be sent to Customer.io to avoid "
                "sending twice. Set `send_to_customer_io` to False to silence this warning."
            )

    async def mirror_identify(self, identifier: str | int, properties: dict[str, Any]) -> bool:
        return await self._mirror(
            Operation.IDENTIFY,
            lambda tracker: tracker.identify(identifier, properties),
            f"Identified {identifier}",
        )

    async def mirror_track(
        self,
        identifier: str | int,
        event_name: str,
        properties: dict[str, Any],
    ) -> bool:
        return await self._mirror(
            Operation.TRACK,
            lambda tracker: tracker.track(identifier, event_name, properties),
            f"Tracked event {event_name} for {identifier}",
        )

    async def mirror_register_device(
        self,
        identifier: str | int,
        device: DeviceRegistration,
    ) -> bool:
        attributes = device.model_dump(exclude={"device_id", "platform"}, exclude_none=True)
        return await self._mirror(
            Operation.REGISTER_DEVICE,
            lambda tracker: tracker.add_device(
                identifier, device.device_id, device.platform, attributes
            ),
            f"Registered device {device.device_id} for {identifier}",
        )

    async def _mirror(
        self,
        operation: Operation,
        call: Callable[[SecondaryTracker], Awaitable[None]],
        success_message: str,
    ) -> bool:
        """Run ``call`` against the tracker, absorbing any failure.

        Returns:
            True if the secondary call was made and succeeded.
        """
        if not self.should_mirror(operation):
            return False

        try:
            await call(self._tracker)
        except Exception as e:
            error = SecondaryServiceError(operation.value, e)
            self._logger.warning(f"[Customer.io] {error}")
            return False

        if self._debug:
            self._logger.debug(f"[Customer.io] {success_message}")
        return True
