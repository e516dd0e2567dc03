"""Unit tests for dual-write routing.

This module tests opencdp/_dual_write.py.
The tests verify:

1. The routing table: profile updates are mirrored, sends never are
2. Secondary failures are logged and absorbed
3. The Customer.io adapter forwards calls to the customerio package
"""

from unittest.mock import AsyncMock, MagicMock, call, patch

import pytest
from customerio import Regions

from opencdp._dual_write import (
    MIRRORED_OPERATIONS,
    TRANSACTIONAL_OPERATIONS,
    CustomerIOTracker,
    DualWriteRouter,
)
from opencdp.config import CustomerIOCredentials
from opencdp.models import DeviceRegistration, Operation


@pytest.fixture
def router(tracker: AsyncMock, logger: MagicMock) -> DualWriteRouter:
    return DualWriteRouter(tracker, logger)


# =============================================================================
# Routing Table
# =============================================================================


class TestRoutingTable:
    """Tests for which operations are mirrored."""

    def test_tables_cover_every_operation_but_ping(self) -> None:
        assert MIRRORED_OPERATIONS | TRANSACTIONAL_OPERATIONS == set(Operation) - {Operation.PING}
        assert not MIRRORED_OPERATIONS & TRANSACTIONAL_OPERATIONS

    @pytest.mark.parametrize(
        "operation, mirrored",
        [
            (Operation.IDENTIFY, True),
            (Operation.TRACK, True),
            (Operation.REGISTER_DEVICE, True),
            (Operation.SEND_EMAIL, False),
            (Operation.SEND_PUSH, False),
            (Operation.SEND_SMS, False),
            (Operation.PING, False),
        ],
    )
    def test_should_mirror_when_enabled(
        self, router: DualWriteRouter, operation: Operation, mirrored: bool
    ) -> None:
        assert router.should_mirror(operation) is mirrored

    def test_nothing_mirrored_when_disabled(self, logger: MagicMock) -> None:
        router = DualWriteRouter(None, logger)

        assert router.enabled is False
        assert not any(router.should_mirror(operation) for operation in Operation)


# =============================================================================
# Mirroring
# =============================================================================


class TestMirroring:
    """Tests for the mirror_* calls."""

    async def test_mirror_identify(self, router: DualWriteRouter, tracker: AsyncMock) -> None:
        assert await router.mirror_identify("user-123", {"plan": "pro"}) is True

        tracker.identify.assert_awaited_once_with("user-123", {"plan": "pro"})

    async def test_mirror_track(self, router: DualWriteRouter, tracker: AsyncMock) -> None:
        await router.mirror_track("user-123", "purchase", {"total": 42})

        tracker.track.assert_awaited_once_with("user-123", "purchase", {"total": 42})

    async def test_mirror_register_device(
        self, router: DualWriteRouter, tracker: AsyncMock
    ) -> None:
        device = DeviceRegistration(
            device_id="device-1", platform="android", fcm_token="fcm-token"
        )

        await router.mirror_register_device("user-123", device)

        tracker.add_device.assert_awaited_once_with(
            "user-123", "device-1", "android", {"fcm_token": "fcm-token"}
        )

    async def test_track_property_named_like_argument(
        self, router: DualWriteRouter, tracker: AsyncMock, logger: MagicMock
    ) -> None:
        properties = {"name": "Blue shoes", "customer_id": "c-1", "price": 10}

        assert await router.mirror_track("user-123", "purchase", properties) is True

        tracker.track.assert_awaited_once_with("user-123", "purchase", properties)
        logger.warning.assert_not_called()

    async def test_disabled_router_skips_tracker(self, logger: MagicMock) -> None:
        router = DualWriteRouter(None, logger)

        assert await router.mirror_identify("user-123", {}) is False

    async def test_success_logged_only_in_debug(
        self, tracker: AsyncMock, logger: MagicMock
    ) -> None:
        await DualWriteRouter(tracker, logger).mirror_identify("user-123", {})
        logger.debug.assert_not_called()

        await DualWriteRouter(tracker, logger, debug=True).mirror_identify("user-123", {})
        logger.debug.assert_called_once_with("[Customer.io] Identified user-123")

    async def test_secondary_failure_is_absorbed(
        self, router: DualWriteRouter, tracker: AsyncMock, logger: MagicMock
    ) -> None:
        """A failing secondary call is logged as a warning and never raised."""
        tracker.track.side_effect = RuntimeError("Customer.io unavailable")

        assert await router.mirror_track("user-123", "purchase", {}) is False

        logger.warning.assert_called_once_with(
            "[Customer.io] Secondary track failed: Customer.io unavailable"
        )
        logger.error.assert_not_called()


# =============================================================================
# Transactional Warning
# =============================================================================


class TestWarnNotMirrored:
    """Tests for warn_not_mirrored."""

    @pytest.mark.parametrize(
        "operation, label",
        [
            (Operation.SEND_EMAIL, "email"),
            (Operation.SEND_PUSH, "push"),
            (Operation.SEND_SMS, "SMS"),
        ],
    )
    def test_warns_for_sends(
        self, router: DualWriteRouter, logger: MagicMock, operation: Operation, label: str
    ) -> None:
        router.warn_not_mirrored(operation)

        logger.warning.assert_called_once()
        message = logger.warning.call_args.args[0]
        assert f"Transactional {label} will NOT be sent to Customer.io" in message

    def test_no_warning_for_profile_updates(
        self, router: DualWriteRouter, logger: MagicMock
    ) -> None:
        router.warn_not_mirrored(Operation.IDENTIFY)

        logger.warning.assert_not_called()

    def test_no_warning_when_disabled(self, logger: MagicMock) -> None:
        DualWriteRouter(None, logger).warn_not_mirrored(Operation.SEND_EMAIL)

        logger.warning.assert_not_called()


# =============================================================================
# Customer.io Adapter
# =============================================================================


class TestCustomerIOTracker:
    """Tests for CustomerIOTracker."""

    @pytest.mark.parametrize("region, expected", [("us", Regions.US), ("eu", Regions.EU)])
    def test_region_selection(self, region: str, expected) -> None:
        credentials = CustomerIOCredentials(site_id="site", api_key="key", region=region)

        with patch("opencdp._dual_write.CustomerIO") as customer_io:
            CustomerIOTracker(credentials)

        customer_io.assert_called_once_with(
            site_id="site", api_key="key", region=expected, retries=0
        )

    async def test_calls_forwarded(self) -> None:
        credentials = CustomerIOCredentials(site_id="site", api_key="key")

        with patch("opencdp._dual_write.CustomerIO") as customer_io:
            client = customer_io.return_value
            client.get_customer_query_string.return_value = "/customers/user-123"
            client.get_event_query_string.return_value = "/customers/user-123/events"
            client.get_device_query_string.return_value = "/customers/user-123/devices"

            tracker = CustomerIOTracker(credentials)
            await tracker.identify("user-123", {"plan": "pro"})
            await tracker.track("user-123", "purchase", {"total": 42})
            await tracker.add_device("user-123", "device-1", "ios", {"apn_token": "apn"})

        assert client.send_request.call_args_list == [
            call("PUT", "/customers/user-123", {"plan": "pro"}),
            call("POST", "/customers/user-123/events", {"name": "purchase", "data": {"total": 42}}),
            call(
                "PUT",
                "/customers/user-123/devices",
                {"device": {"apn_token": "apn", "id": "device-1", "platform": "ios"}},
            ),
        ]

    async def test_colliding_property_names_kept_in_payload(self) -> None:
        """Properties named name, id or customer_id stay inside the payload."""
        credentials = CustomerIOCredentials(site_id="site", api_key="key")

        with patch("opencdp._dual_write.CustomerIO") as customer_io:
            client = customer_io.return_value
            tracker = CustomerIOTracker(credentials)
            await tracker.track("user-123", "purchase", {"name": "Blue shoes", "price": 10})
            await tracker.identify("user-123", {"id": "legacy-7", "customer_id": "c-1"})

        track_call, identify_call = client.send_request.call_args_list
        assert track_call.args[2] == {
            "name": "purchase",
            "data": {"name": "Blue shoes", "price": 10},
        }
        assert identify_call.args[2] == {"id": "legacy-7", "customer_id": "c-1"}
        client.get_event_query_string.assert_called_once_with("user-123")
        client.get_customer_query_string.assert_called_once_with("user-123")
