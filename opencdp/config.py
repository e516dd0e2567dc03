"""Client configuration.

``ClientConfig`` is resolved once when a client is constructed and is
read-only afterwards.

Example:
    Explicit configuration::

        config = ClientConfig(api_key="cdp_live_...", fail_on_exception=True)

    From the environment (a ``.env`` file is loaded first, if present)::

        config = ClientConfig.from_env()
"""

import os
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_ENDPOINT = "https://api.opencdp.io/gateway/data-gateway"
DEFAULT_TIMEOUT_MS = 10_000

_TRUTHY = {"1", "true", "yes", "on"}


class CustomerIOCredentials(BaseModel):
    """Credentials for the Customer.io track API used for dual-write.

    Attributes:
        site_id: Customer.io site id.
        api_key: Customer.io track API key.
        region: Data center, "us" or "eu".
    """

    model_config = ConfigDict(frozen=True)

    site_id: str
    api_key: str
    region: Literal["us", "eu"] = "us"


class ClientConfig(BaseModel):
    """Immutable configuration for a CDPClient.

    Attributes:
        api_key: OpenCDP API key, sent as the Authorization header.
        endpoint: Base URL of the OpenCDP API.
        timeout: Per-request timeout in milliseconds.
        max_concurrent_requests: Requested concurrency ceiling. Values above
            30 are capped; unset or non-positive values mean 10.
        fail_on_exception: Raise errors to the caller instead of logging
            and resolving.
        debug: Enable verbose logging.
        customer_io: Credentials for the secondary tracking service.
        send_to_customer_io: Mirror profile updates to Customer.io. Only
            effective when ``customer_io`` is also set.
    """

    model_config = ConfigDict(frozen=True)

    api_key: str
    endpoint: str = DEFAULT_ENDPOINT
    timeout: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)
    max_concurrent_requests: int | None = None
    fail_on_exception: bool = False
    debug: bool = False
    customer_io: CustomerIOCredentials | None = None
    send_to_customer_io: bool = False

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000

    @property
    def dual_write_enabled(self) -> bool:
        """Whether profile updates are mirrored to Customer.io."""
        return self.send_to_customer_io and self.customer_io is not None

    @classmethod
    def from_env(cls, dotenv_path: str | os.PathLike[str] | None = None) -> "ClientConfig":
        """Build a configuration from environment variables.

        Reads ``OPENCDP_API_KEY`` (required), ``OPENCDP_ENDPOINT``,
        ``OPENCDP_TIMEOUT_MS``, ``OPENCDP_MAX_CONCURRENT_REQUESTS``,
        ``OPENCDP_FAIL_ON_EXCEPTION``, ``OPENCDP_DEBUG``,
        ``OPENCDP_SEND_TO_CUSTOMER_IO``, ``CUSTOMERIO_SITE_ID``,
        ``CUSTOMERIO_API_KEY`` and ``CUSTOMERIO_REGION``. Variables already
        set in the environment win over the ``.env`` file.

        Args:
            dotenv_path: Path of the .env file. Defaults to searching from
                the current directory upwards.

        Raises:
            KeyError: If OPENCDP_API_KEY is not set.
        """
        load_dotenv(dotenv_path)
        env = os.environ

        customer_io = None
        if env.get("CUSTOMERIO_SITE_ID") and env.get("CUSTOMERIO_API_KEY"):
            customer_io = CustomerIOCredentials(
                site_id=env["CUSTOMERIO_SITE_ID"],
                api_key=env["CUSTOMERIO_API_KEY"],
                region=env.get("CUSTOMERIO_REGION", "us").lower(),
            )

        max_concurrent = env.get("OPENCDP_MAX_CONCURRENT_REQUESTS")
        return cls(
            api_key=env["OPENCDP_API_KEY"],
            endpoint=env.get("OPENCDP_ENDPOINT") or DEFAULT_ENDPOINT,
            timeout=int(env.get("OPENCDP_TIMEOUT_MS") or DEFAULT_TIMEOUT_MS),
            max_concurrent_requests=int(max_concurrent) if max_concurrent else None,
            fail_on_exception=_env_flag(env.get("OPENCDP_FAIL_ON_EXCEPTION")),
            debug=_env_flag(env.get("OPENCDP_DEBUG")),
            customer_io=customer_io,
            send_to_customer_io=_env_flag(env.get("OPENCDP_SEND_TO_CUSTOMER_IO")),
        )


def _env_flag(value: str | None) -> bool:
    return value is not None and value.strip().lower() in _TRUTHY
