"""Internal HTTP transport for the OpenCDP client.

This module provides the low-level HTTP communication layer used by
``CDPClient``. It handles:
- Making authenticated JSON requests over a pooled httpx.AsyncClient
- Mapping httpx failures and error statuses onto TransportError subclasses

There is no retry logic: every failure surfaces exactly once.

This is an internal module and should not be imported directly by users.
"""

from typing import Any, Literal

import httpx

from opencdp.exceptions import (
    APIError,
    AuthenticationError,
    ConnectionError,
    NotFoundError,
    RateLimitError,
    ServerError,
    TimeoutError,
    TransportError,
)

# HTTP methods used by the client
HttpMethod = Literal["GET", "POST"]

DEFAULT_POOL_LIMITS = httpx.Limits(
    max_connections=50,
    max_keepalive_connections=10,
    keepalive_expiry=30.0,
)


def _response_body(response: httpx.Response) -> Any:
    """Return the parsed JSON body, falling back to the raw text."""
    try:
        return response.json()
    except ValueError:
        return response.text or None


def _request_url(response: httpx.Response) -> str | None:
    # Responses built by hand in tests carry no request
    try:
        return str(response.request.url)
    except RuntimeError:
        return None


def _raise_for_status(response: httpx.Response) -> None:
    """Raise an appropriate exception for error status codes.

    Args:
        response: The HTTP response to check.

    Raises:
        AuthenticationError: For HTTP 401 and 403 responses.
        NotFoundError: For HTTP 404 responses.
        RateLimitError: For HTTP 429 responses.
        ServerError: For HTTP 5xx responses.
        APIError: For other HTTP 4xx responses.
    """
    if response.is_success:
        return

    status_code = response.status_code
    message = f"Request failed with status code {status_code}"
    url = _request_url(response)

    if status_code in (401, 403):
        error_cls: type[APIError] = AuthenticationError
    elif status_code == 404:
        error_cls = NotFoundError
    elif status_code == 429:
        error_cls = RateLimitError
    elif status_code >= 500:
        error_cls = ServerError
    else:
        error_cls = APIError

    raise error_cls(
        message=message,
        status_code=status_code,
        response_body=_response_body(response),
        url=url,
    )


class AsyncHTTPClient:
    """Asynchronous HTTP client for the OpenCDP API.

    Wraps httpx.AsyncClient with authentication headers, a single
    per-request timeout and error mapping.

    Attributes:
        base_url: The base URL for all API requests.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the async HTTP client.

        Args:
            base_url: The base URL for all API requests.
            api_key: Value of the Authorization header.
            timeout: Request timeout in seconds.
            transport: Custom transport (e.g., MockTransport for testing).
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={
                "Authorization": api_key,
                "Content-Type": "application/json",
            },
            limits=DEFAULT_POOL_LIMITS,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client and release pooled connections."""
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncHTTPClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def request(
        self,
        method: HttpMethod,
        path: str,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Make a request and return the parsed JSON response.

        Args:
            method: The HTTP method.
            path: The URL path (appended to base_url).
            json: JSON body to send with the request.

        Returns:
            The parsed JSON response body, or None for empty responses.

        Raises:
            ConnectionError: If the connection fails.
            TimeoutError: If the request times out.
            APIError: If the server returns an error response.
            TransportError: For any other transport-level failure.
        """
        url = f"{self.base_url}{path}"

        try:
            response = await self._client.request(method=method, url=path, json=json)
        except httpx.TimeoutException as e:
            raise TimeoutError(
                message=f"Request to {url} timed out",
                timeout=self.timeout,
                url=url,
            ) from e
        except httpx.ConnectError as e:
            raise ConnectionError(
                message=f"Failed to connect to {url}",
                url=url,
                cause=e,
            ) from e
        except httpx.TransportError as e:
            raise TransportError(f"Request to {url} failed: {e}", url=url) from e

        _raise_for_status(response)

        if response.content:
            return _response_body(response)
        return None

    async def get(self, path: str) -> Any:
        return await self.request("GET", path)

    async def post(self, path: str, json: dict[str, Any] | None = None) -> Any:
        return await self.request("POST", path, json=json)
