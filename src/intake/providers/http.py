"""
Shared httpx plumbing for the provider clients.

Every client POSTs JSON and maps failures onto the intake error hierarchy:

    httpx.TimeoutException  → TimeoutExpired   (retryable)
    httpx.TransportError    → NetworkError     (retryable)
    HTTP 5xx                → ProviderError    (retryable)
    HTTP 4xx                → ProviderError    (not retryable)
    bad JSON / shape        → ProviderError    (not retryable)

Clients accept an injected ``httpx.AsyncClient`` so tests can pass one
built on ``httpx.MockTransport``; otherwise they own a client and must be
closed with :meth:`HttpProvider.aclose`.
"""

from __future__ import annotations

from typing import Any

import httpx

from intake.core.errors import NetworkError, ProviderError, TimeoutExpired
from intake.core.logging import get_logger

logger = get_logger(__name__)


class HttpProvider:
    """Base class for JSON-over-HTTP provider clients."""

    service: str = "provider"

    def __init__(
        self,
        base_url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._headers = {"Content-Type": "application/json", **(headers or {})}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10.0))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.post(url, json=payload, headers=self._headers)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise TimeoutExpired(self.timeout, operation=f"{self.service} POST", cause=exc).with_context(
                service=self.service, url=url
            ) from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"{self.service} unreachable: {exc}", cause=exc).with_context(
                service=self.service, url=url
            ) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.warning("provider_http_error", service=self.service, http_status=status)
            raise ProviderError(
                f"{self.service} returned HTTP {status}",
                http_status=status,
                cause=exc,
            ).with_context(service=self.service, url=url) from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(f"{self.service} returned invalid JSON", cause=exc).with_context(
                service=self.service, url=url
            ) from exc
        if not isinstance(data, dict):
            raise ProviderError(f"{self.service} returned unexpected payload").with_context(
                service=self.service, url=url
            )
        return data
