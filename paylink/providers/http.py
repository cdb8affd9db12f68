"""
HTTP transport shared by gateway adapters.

Wraps a single ``httpx.AsyncClient`` per adapter and translates transport
failures into the payment error taxonomy:

  - timeouts, connection errors      → ProviderUnavailable
  - 429 and 5xx responses            → ProviderUnavailable
  - undecodable success bodies       → ProviderUnavailable

4xx responses are returned to the adapter, which knows whether they mean a
rejected request (at link creation) or a declined/stale payment (at
approval). No retries happen here; the caller decides whether to try again.
"""

from typing import Any, Optional

import httpx

from paylink.engine.errors import ProviderUnavailable


class ProviderHttpClient:
    """Async HTTP client bound to one gateway's base URL and credentials."""

    def __init__(
        self,
        provider: str,
        base_url: str,
        *,
        timeout: float = 10.0,
        auth: Optional[httpx.Auth] = None,
        headers: Optional[dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.provider = provider
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            auth=auth,
            headers={"Accept": "application/json", **(headers or {})},
            transport=transport,
        )

    @property
    def headers(self) -> httpx.Headers:
        return self._client.headers

    async def send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Issue a request; raise ProviderUnavailable for transient failures."""
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderUnavailable(self.provider, f"request timed out: {e}") from e
        except httpx.TransportError as e:
            raise ProviderUnavailable(self.provider, f"transport error: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise ProviderUnavailable(
                self.provider,
                f"gateway returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response

    def json(self, response: httpx.Response) -> dict[str, Any]:
        """
        Decode a JSON object body.

        Error bodies that are not JSON decode to an empty dict so the adapter
        can fall back to a generic message; a success body that is not a JSON
        object means the gateway answered with something we cannot trust.
        """
        try:
            data = response.json()
        except ValueError as e:
            if response.is_success:
                raise ProviderUnavailable(
                    self.provider, "malformed response body", status_code=response.status_code
                ) from e
            return {}
        if not isinstance(data, dict):
            if response.is_success:
                raise ProviderUnavailable(
                    self.provider, "unexpected response shape", status_code=response.status_code
                )
            return {}
        return data

    async def aclose(self) -> None:
        await self._client.aclose()
