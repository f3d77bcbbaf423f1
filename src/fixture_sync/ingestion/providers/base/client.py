from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from .errors import (
    ProviderClientError,
    ProviderRateLimited,
    ProviderRequestError,
    ProviderServerError,
    ProviderTransportError,
)

Json = dict[str, Any]


def parse_retry_after(headers: Mapping[str, str]) -> float | None:
    """Seconds to wait from `Retry-After`, falling back to `X-RateLimit-Reset`."""
    for name in ("retry-after", "x-ratelimit-reset"):
        raw = headers.get(name)
        if raw is None:
            continue
        try:
            value = float(raw)
        except (TypeError, ValueError):
            continue
        if value >= 0:
            return value
    return None


@dataclass
class BaseHttpClient:
    """
    Provider-agnostic async HTTP client wrapper.

    - Uses a single underlying httpx.AsyncClient for connection pooling.
    - Maps transport failures and non-2xx statuses onto the provider error taxonomy
      (transport / 5xx / 4xx / 429) so retry classification never looks at raw httpx types.
    - Provider-specific clients wrap this and add auth + endpoint helpers.
    """

    base_url: str
    timeout_s: float = 60.0
    connect_timeout_s: float = 10.0
    headers: Mapping[str, str] = field(default_factory=dict)
    max_connections: int = 200

    transport: httpx.AsyncBaseTransport | None = None

    def __post_init__(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=self.base_url.rstrip("/") + "/",
            timeout=httpx.Timeout(self.timeout_s, connect=self.connect_timeout_s),
            headers=dict(self.headers),
            limits=httpx.Limits(max_connections=self.max_connections),
            transport=self.transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> BaseHttpClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def request_json_with_headers(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> tuple[Json, httpx.Headers]:
        """
        Perform one HTTP request and return (parsed JSON object, response headers).
        Raises a ProviderRequestError subclass on transport issues / non-2xx.
        """
        try:
            resp = await self._client.request(
                method=method,
                url=path.lstrip("/"),
                params=params,
                headers=headers,
            )
        except (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError) as e:
            raise ProviderTransportError(f"{e.__class__.__name__}: {e}") from e

        status = resp.status_code
        if status == 429:
            raise ProviderRateLimited(
                "Provider rate limited the request (HTTP 429).",
                retry_after_s=parse_retry_after(resp.headers),
            )
        if status >= 500:
            raise ProviderServerError(
                f"HTTP {status} for {method} {resp.request.url}", status_code=status
            )
        if status >= 400:
            raise ProviderClientError(
                f"HTTP {status} for {method} {resp.request.url}", status_code=status
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderRequestError("Response was not valid JSON.") from e

        if not isinstance(data, dict):
            raise ProviderRequestError(f"Expected JSON object, got {type(data)}")

        return data, resp.headers

    async def get_json_with_headers(
        self,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> tuple[Json, httpx.Headers]:
        return await self.request_json_with_headers("GET", path, params=params, headers=headers)
