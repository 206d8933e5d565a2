"""Base HTTP provider.

Every call opens its own ``httpx.AsyncClient``; providers keep no
connection state between operations. Failures never fall back to a
default value: transport errors, HTTP error statuses, JSON-RPC errors and
malformed replies all raise ProviderError with the provider's detail.

Tests pass an ``httpx.MockTransport`` as ``transport``.
"""

import logging
from typing import Any, Optional

import httpx

from dexwallet.config import ChainEndpoint
from dexwallet.errors import ProviderError

logger = logging.getLogger(__name__)


class RpcError(ProviderError):
    """The node answered with a JSON-RPC error object."""

    code = "rpc_error"


class BaseProvider:
    """HTTP client wrapper bound to one ChainEndpoint."""

    name = "provider"

    def __init__(
        self,
        endpoint: ChainEndpoint,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint
        self.transport = transport

    @property
    def base_url(self) -> str:
        return self.endpoint.rpc_url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        """Extra request headers (API keys)."""
        return {}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.endpoint.timeout,
            transport=self.transport,
            headers=self._headers(),
        )

    async def _request(self, method: str, path: str = "", **kwargs: Any) -> httpx.Response:
        """Send one request.

        Raises:
            ProviderError: On transport failure (timeout, connection error)
        """
        url = f"{self.base_url}{path}"
        try:
            async with self._client() as client:
                return await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{self.name} {method} {path or '/'} failed: {e}")
            raise ProviderError(
                f"{self.name} request failed: {e.__class__.__name__}",
                provider=self.name,
                detail=str(e),
            ) from e

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code >= 400:
            logger.error(f"{self.name} HTTP {response.status_code}: {response.text[:200]}")
            raise ProviderError(
                f"{self.name} returned HTTP {response.status_code}",
                provider=self.name,
                detail=response.text,
            )

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                f"{self.name} returned malformed JSON",
                provider=self.name,
                detail=response.text[:200],
            ) from e

    async def get_json(self, path: str, **kwargs: Any) -> Any:
        response = await self._request("GET", path, **kwargs)
        self._raise_for_status(response)
        return self._json(response)


class JsonRpcProvider(BaseProvider):
    """JSON-RPC 2.0 over HTTP POST."""

    def _headers(self) -> dict[str, str]:
        if self.endpoint.has_api_key:
            return {"Authorization": f"Bearer {self.endpoint.api_key}"}
        return {}

    async def rpc(self, method: str, params: Optional[list] = None) -> Any:
        """Call a JSON-RPC method and return its ``result``.

        Raises:
            RpcError: If the node returns an error object
            ProviderError: On transport, HTTP or format failure
        """
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": method,
            "params": params if params is not None else [],
        }
        response = await self._request("POST", json=payload)
        self._raise_for_status(response)
        data = self._json(response)

        if not isinstance(data, dict):
            raise ProviderError(
                f"{self.name} returned an invalid JSON-RPC reply", provider=self.name, detail=data
            )
        if data.get("error"):
            error = data["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            logger.warning(f"{self.name} {method} error: {message}")
            raise RpcError(f"{method}: {message}", provider=self.name, detail=error)
        if "result" not in data:
            raise ProviderError(
                f"{self.name} reply to {method} has no result", provider=self.name, detail=data
            )
        return data["result"]


def parse_hex_int(value: Any, field: str, provider: str) -> int:
    """Parse a 0x-prefixed quantity from a JSON-RPC reply."""
    try:
        return int(value, 16)
    except (TypeError, ValueError) as e:
        raise ProviderError(
            f"{provider} returned an invalid {field}", provider=provider, detail=value
        ) from e
