"""HTTP client for the storefront API."""

from typing import Any, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from cartsync.config import build_api_url
from cartsync.errors import NetworkFailure
from cartsync.logging import get_logger, sanitize_string_for_logging

logger = get_logger(__name__)


class ApiClient:
    """
    Thin JSON client over a shared httpx.AsyncClient.

    Every non-2xx response becomes NetworkFailure with the backend's message
    and error code. GETs are retried on transport errors; writes are sent
    once.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http_client = http_client

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Lazy creation of shared httpx client with timeouts."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=5.0),
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            )
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def url_for(self, endpoint: str) -> str:
        return build_api_url(self.base_url, endpoint)

    async def get(self, endpoint: str, headers: Optional[dict[str, str]] = None) -> dict[str, Any]:
        url = self.url_for(endpoint)
        try:
            response = await self._send_with_retry("GET", url, headers)
        except httpx.RequestError as e:
            logger.error("GET %s failed: %s", endpoint, type(e).__name__)
            raise NetworkFailure(f"Failed to connect to cart service: {e!s}") from e
        return self._parse(response, "GET", endpoint)

    async def post(
        self,
        endpoint: str,
        json: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        return await self.request("POST", endpoint, json=json, headers=headers)

    async def put(
        self,
        endpoint: str,
        json: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        return await self.request("PUT", endpoint, json=json, headers=headers)

    async def delete(self, endpoint: str, headers: Optional[dict[str, str]] = None) -> dict[str, Any]:
        return await self.request("DELETE", endpoint, headers=headers)

    async def request(
        self,
        method: str,
        endpoint: str,
        json: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        url = self.url_for(endpoint)
        try:
            response = await self._send(method, url, headers, json)
        except httpx.RequestError as e:
            logger.error("%s %s failed: %s", method, endpoint, type(e).__name__)
            raise NetworkFailure(f"Failed to connect to cart service: {e!s}") from e
        return self._parse(response, method, endpoint)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, max=2),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _send_with_retry(
        self, method: str, url: str, headers: Optional[dict[str, str]]
    ) -> httpx.Response:
        return await self._send(method, url, headers)

    async def _send(
        self,
        method: str,
        url: str,
        headers: Optional[dict[str, str]],
        json: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        client = await self._get_http_client()
        request_headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if headers:
            request_headers.update(headers)
        return await client.request(method, url, headers=request_headers, json=json)

    @staticmethod
    def _parse(response: httpx.Response, method: str, endpoint: str) -> dict[str, Any]:
        if not response.is_success:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            if not isinstance(error_data, dict):
                error_data = {}

            message = error_data.get("message") or error_data.get("detail")
            if not isinstance(message, str) or not message:
                message = f"HTTP error! status: {response.status_code}"
            code = error_data.get("error_code") or error_data.get("code")

            logger.error(
                "%s %s returned %s: %s",
                method,
                endpoint,
                response.status_code,
                sanitize_string_for_logging(message),
            )
            raise NetworkFailure(
                message,
                status_code=response.status_code,
                code=str(code) if code else None,
            )

        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise NetworkFailure(
                "Cart service returned a non-JSON response",
                status_code=response.status_code,
            ) from e
        return data if isinstance(data, dict) else {"data": data}
