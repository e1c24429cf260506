"""Base HTTP client for Asset Bridge.

This module provides the async HTTP helper shared by the target gateway and
the source adapters: connection pooling, optional rate limiting, request and
response logging, and mapping of error responses to exceptions. Each call has
its own timeout and is never retried.
"""

import asyncio
import time
from typing import Any
from urllib.parse import urljoin

import httpx

from asset_bridge.client.exceptions import (
    APIError,
    AuthenticationError,
    AuthorizationError,
    NetworkError,
    NotFoundError,
    ServerError,
)
from asset_bridge.utils.logging import (
    get_logger,
    log_api_request,
    sanitize_payload,
    should_log_payloads,
    truncate_payload,
)

logger = get_logger(__name__)


class BaseAPIClient:
    """Base async HTTP client with rate limiting and error mapping.

    This client provides:
    - Connection pooling
    - Optional rate limiting
    - Request/response logging
    - Proper error handling and exception mapping
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        verify_ssl: bool = True,
        timeout: float = 60,
        rate_limit: int = 0,
        auth: httpx.Auth | tuple[str, str] | None = None,
        log_payloads: bool = False,
        max_payload_size: int = 10000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize base API client.

        Args:
            base_url: Base URL for API requests
            headers: Extra headers sent with every request
            verify_ssl: Whether to verify SSL certificates
            timeout: Per-request timeout in seconds
            rate_limit: Maximum requests per second (0 disables limiting)
            auth: Default httpx authentication
            log_payloads: Enable request/response payload logging at DEBUG level
            max_payload_size: Maximum payload size (chars) to log before truncation
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.verify_ssl = verify_ssl

        self.log_payloads = log_payloads
        self.max_payload_size = max_payload_size

        self.rate_limit = rate_limit
        self._rate_limit_lock = asyncio.Lock()
        self._last_request_time: float = 0
        self._min_request_interval = 1.0 / rate_limit if rate_limit > 0 else 0

        client_kwargs: dict[str, Any] = {
            "headers": self._build_headers(headers),
            "timeout": httpx.Timeout(timeout, connect=min(10.0, timeout)),
            "verify": verify_ssl,
            "follow_redirects": True,
        }
        if auth is not None:
            client_kwargs["auth"] = auth
        if transport is not None:
            client_kwargs["transport"] = transport

        self.client = httpx.AsyncClient(**client_kwargs)

        logger.debug("client_initialized", base_url=self.base_url, rate_limit=rate_limit)

    def _build_headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        """Build HTTP headers for requests.

        Returns:
            Dictionary of HTTP headers
        """
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def set_header(self, name: str, value: str) -> None:
        """Set a header on all subsequent requests (e.g. a session token)."""
        self.client.headers[name] = value

    def _build_url(self, endpoint: str) -> str:
        """Build full URL from endpoint.

        Args:
            endpoint: API endpoint path

        Returns:
            Full URL
        """
        endpoint = endpoint.lstrip("/")
        return urljoin(f"{self.base_url}/", endpoint)

    async def _rate_limit_wait(self) -> None:
        """Implement rate limiting by waiting if necessary."""
        if self._min_request_interval > 0:
            async with self._rate_limit_lock:
                now = time.time()
                time_since_last = now - self._last_request_time

                if time_since_last < self._min_request_interval:
                    await asyncio.sleep(self._min_request_interval - time_since_last)

                self._last_request_time = time.time()

    def _handle_error_response(self, response: httpx.Response) -> None:
        """Handle error responses by raising appropriate exceptions.

        Args:
            response: HTTP response object

        Raises:
            AuthenticationError: For 401 responses
            AuthorizationError: For 403 responses
            NotFoundError: For 404 responses
            ServerError: For 5xx responses
            APIError: For other error responses
        """
        status_code = response.status_code

        try:
            error_data = response.json()
        except ValueError:
            error_data = {"detail": response.text}

        if isinstance(error_data, list):
            error_message = (
                ", ".join(str(item) for item in error_data) if error_data else "Unknown error"
            )
            error_data = {"detail": error_message, "_raw_list": error_data}
        elif isinstance(error_data, dict):
            error_message = error_data.get("detail", error_data.get("message", "Unknown error"))
        else:
            error_message = str(error_data)
            error_data = {"detail": error_message}

        if status_code == 401:
            raise AuthenticationError(
                message="Authentication failed", status_code=status_code, response=error_data
            )
        elif status_code == 403:
            raise AuthorizationError(
                message="Authorization failed", status_code=status_code, response=error_data
            )
        elif status_code == 404:
            raise NotFoundError(
                message="Resource not found", status_code=status_code, response=error_data
            )
        elif 500 <= status_code < 600:
            raise ServerError(
                message=f"Server error: {error_message}",
                status_code=status_code,
                response=error_data,
            )
        else:
            raise APIError(
                message=f"API error: {error_message}",
                status_code=status_code,
                response=error_data,
            )

    async def request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | list[Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        """Make an HTTP request with rate limiting and error handling.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, etc.)
            endpoint: API endpoint path
            params: Query parameters
            json_data: JSON request body
            **kwargs: Additional arguments passed to httpx

        Returns:
            Parsed JSON response (empty dict for an empty body)

        Raises:
            NetworkError: For network-related errors
            Various APIError subclasses: For API errors
        """
        url = self._build_url(endpoint)

        await self._rate_limit_wait()

        if should_log_payloads(logger, self.log_payloads) and json_data is not None:
            logger.debug(
                "api_request_payload",
                method=method,
                url=url,
                payload=truncate_payload(sanitize_payload(json_data), self.max_payload_size),
            )

        start_time = time.time()

        try:
            response = await self.client.request(
                method=method, url=url, params=params, json=json_data, **kwargs
            )
        except httpx.TimeoutException as e:
            logger.error("timeout_error", method=method, url=url, error=str(e))
            raise NetworkError(f"Request timeout: {e}") from e
        except httpx.TransportError as e:
            logger.error("network_error", method=method, url=url, error=str(e))
            raise NetworkError(f"Network error: {e}") from e

        log_api_request(
            logger,
            method=method,
            url=url,
            status_code=response.status_code,
            duration_ms=(time.time() - start_time) * 1000,
        )

        if should_log_payloads(logger, self.log_payloads) and response.text:
            logger.debug(
                "api_response_payload",
                method=method,
                url=url,
                status_code=response.status_code,
                payload=response.text[: self.max_payload_size],
                payload_size=len(response.text),
            )

        if response.status_code >= 400:
            self._handle_error_response(response)

        if not response.content:
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise APIError(
                message="Response is not valid JSON",
                status_code=response.status_code,
                response={"detail": response.text[:200]},
            ) from e

    async def get(self, endpoint: str, params: dict[str, Any] | None = None, **kwargs: Any) -> Any:
        """Make a GET request."""
        return await self.request("GET", endpoint, params=params, **kwargs)

    async def post(
        self,
        endpoint: str,
        json_data: dict[str, Any] | list[Any] | None = None,
        params: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        """Make a POST request."""
        return await self.request("POST", endpoint, params=params, json_data=json_data, **kwargs)

    async def put(
        self,
        endpoint: str,
        json_data: dict[str, Any] | list[Any] | None = None,
        params: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        """Make a PUT request."""
        return await self.request("PUT", endpoint, params=params, json_data=json_data, **kwargs)

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self.client.aclose()
        logger.debug("client_closed", base_url=self.base_url)

    async def __aenter__(self) -> "BaseAPIClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
