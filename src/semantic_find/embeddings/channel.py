"""
Message channels between a search session and the model host.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from ..errors import TransportError

if TYPE_CHECKING:
    from ..backend.host import ModelHost


class BackendChannel(Protocol):
    """Asynchronous request/response transport to an embedding backend."""

    async def open(self) -> None:
        """Provision the backend so that it can receive messages."""

    async def send(self, message: dict[str, Any]) -> dict[str, Any]:
        """Deliver *message* and return the backend's reply."""

    async def close(self) -> None:
        """Release transport resources."""


class InProcessChannel:
    """
    Talk to a ``ModelHost`` living in the same process.

    Messages are deep-copied in both directions so that neither side can
    share mutable state with the other, as with a real context boundary.
    """

    def __init__(self, host: "ModelHost") -> None:
        self.host = host

    async def open(self) -> None:
        self.host.start()

    async def send(self, message: dict[str, Any]) -> dict[str, Any]:
        reply = await self.host.handle_message(copy.deepcopy(message))
        return copy.deepcopy(reply)

    async def close(self) -> None:
        return None


class HttpChannel:
    """Post message envelopes to a model host service over HTTP."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def open(self) -> None:
        try:
            response = await self._client.get(f"{self.base_url}/health")
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransportError(f"Model host at {self.base_url} is unreachable: {exc}") from exc

    async def send(self, message: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.post(f"{self.base_url}/rpc", json=message)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise TransportError(f"Model host request failed: {exc}") from exc
        except ValueError as exc:
            raise TransportError(f"Model host returned invalid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise TransportError("Model host returned a non-object reply")
        return payload

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
