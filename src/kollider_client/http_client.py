"""
HTTP client for Kollider REST API.

Handles request execution, retry logic, authentication, and response processing.
"""

import asyncio
import json
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import aiohttp
from aiohttp import ClientResponse, ClientSession

from .auth import KolliderSigner, serialize_body
from .errors import AuthenticationError, KolliderError
from .models.config import ConnectionConfig, RetryConfig


class HttpClient:
    """HTTP client specialized for Kollider API interactions."""

    def __init__(
        self,
        config: ConnectionConfig,
        retry_config: Optional[RetryConfig] = None,
    ):
        """Initialize HTTP client with configuration."""
        self._config = config
        self._retry_config = retry_config or RetryConfig()
        self._signer = KolliderSigner(config.credentials) if config.credentials else None

    @property
    def has_credentials(self) -> bool:
        return self._signer is not None

    async def request(
        self,
        session: ClientSession,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        auth: bool = False,
    ) -> Any:
        """
        Execute HTTP request with retry logic and optional authentication.

        Args:
            session: aiohttp session
            method: HTTP method
            endpoint: Path relative to the base URL, e.g. "/user/account"
            params: Query parameters
            data: JSON body
            auth: Sign the request with the configured credentials

        Raises:
            AuthenticationError: auth requested without credentials
            HttpClientError: non-success response or exhausted retries
        """
        method = method.upper()
        url = f"{self._config.base_url}{endpoint}"
        body = serialize_body(data) if data is not None else None

        headers: Dict[str, str] = {}
        if body is not None:
            headers["Content-Type"] = "application/json"

        request_params = {key: str(value) for key, value in (params or {}).items() if value is not None}

        return await self._execute_with_retry(
            session, method, url, request_params, body, headers, auth
        )

    def _add_authentication(
        self,
        method: str,
        url: str,
        body: Optional[str],
        headers: Dict[str, str],
    ) -> None:
        """Sign timestamp + method + path + body into k-* headers."""
        if self._signer is None:
            raise AuthenticationError(
                "This endpoint requires API credentials. "
                "Set KOLLIDER_API_KEY, KOLLIDER_API_SECRET and KOLLIDER_API_PASSWORD."
            )
        headers.update(self._signer.rest_headers(method, urlparse(url).path, body))

    async def _execute_with_retry(
        self,
        session: ClientSession,
        method: str,
        url: str,
        params: Dict[str, str],
        body: Optional[str],
        headers: Dict[str, str],
        auth: bool,
    ) -> Any:
        """Execute request with retry logic."""
        last_exception = None

        for attempt in range(self._retry_config.max_retries + 1):
            try:
                request_headers = dict(headers)
                # fresh timestamp on every attempt
                if auth:
                    self._add_authentication(method, url, body, request_headers)

                request_kwargs: Dict[str, Any] = {
                    "method": method,
                    "url": url,
                    "headers": request_headers,
                }
                if params:
                    request_kwargs["params"] = params
                if body is not None:
                    request_kwargs["data"] = body

                async with session.request(**request_kwargs) as response:
                    response_data = await self._process_response(response)

                    if response.status < 400 and not _is_error_body(response_data):
                        return response_data

                    message = _describe_error(response.status, response_data)

                    if response.status < 400:
                        raise HttpClientClientError(
                            message, status_code=response.status, response_data=response_data
                        )

                    if response.status == 401:
                        raise HttpClientClientError(
                            f"Authentication failed: Please check your API credentials. {message}",
                            status_code=response.status,
                            response_data=response_data,
                        )

                    # Retry on configured server errors
                    if response.status in self._retry_config.retry_on_status:
                        raise HttpServerError(
                            message, status_code=response.status, response_data=response_data
                        )

                    raise HttpClientClientError(
                        message, status_code=response.status, response_data=response_data
                    )

            except (HttpServerError, aiohttp.ClientError) as e:
                last_exception = e

                if attempt == self._retry_config.max_retries:
                    break

                delay = self._retry_config.retry_delay * (
                    self._retry_config.backoff_factor ** attempt
                )
                await asyncio.sleep(delay)

        if isinstance(last_exception, HttpClientError):
            raise last_exception
        raise HttpClientError(f"Request failed after all retries: {last_exception}") from last_exception

    async def _process_response(self, response: ClientResponse) -> Any:
        """Process HTTP response and return data."""
        response_text = await response.text()

        if not response_text:
            return None

        try:
            return json.loads(response_text)
        except json.JSONDecodeError as e:
            raise HttpClientError(
                f"Invalid JSON response (Status {response.status}): {response_text[:200]}",
                status_code=response.status,
            ) from e


def _is_error_body(data: Any) -> bool:
    return isinstance(data, dict) and "error" in data and "msg" in data


def _describe_error(status: int, data: Any) -> str:
    """Render Kollider error bodies: {"error": "...", "msg": "..."}."""
    if _is_error_body(data):
        error = data["error"]
        if isinstance(error, dict) and "GeneralError" in error:
            return f"Kollider general error {error['GeneralError']}: {data['msg']}"
        return f"Kollider error {error}: {data['msg']}"
    return f"HTTP {status}: {data}"


class HttpClientError(KolliderError):
    """Base exception for HTTP client errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data


class HttpServerError(HttpClientError):
    """Exception for server errors (5xx)."""
    pass


class HttpClientClientError(HttpClientError):
    """Exception for client errors (4xx) and error bodies."""
    pass
