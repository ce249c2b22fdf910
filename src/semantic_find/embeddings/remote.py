"""
Remote embedding provider and the RPC client it speaks through.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from ..errors import ModelUnavailableError, TransportError
from ..models import MODEL_HOST_TARGET, BackendRequest, BackendStatus, MessageType, ModelState
from .base import coerce_vector, l2_normalize
from .channel import BackendChannel

logger = logging.getLogger(__name__)

DEFAULT_REMOTE_MODEL_ID = "model-host"


class RpcClient:
    """
    Correlated request/response calls over a ``BackendChannel``.

    Provisioning the backend happens once, with bounded retry and exponential
    backoff, and is memoized. Individual requests are never retried: every
    failure surfaces as ``TransportError`` for the caller to act on.
    """

    def __init__(
        self,
        channel: BackendChannel,
        *,
        target: str = MODEL_HOST_TARGET,
        timeout: float = 10.0,
        provision_attempts: int = 3,
        provision_backoff: float = 0.25,
    ) -> None:
        self.channel = channel
        self.target = target
        self.timeout = timeout
        self.provision_attempts = provision_attempts
        self.provision_backoff = provision_backoff
        self._connected = False
        self._connect_lock = asyncio.Lock()

    async def connect(self) -> None:
        if self._connected:
            return
        async with self._connect_lock:
            if self._connected:
                return
            last_error: Exception | None = None
            for attempt in range(self.provision_attempts):
                try:
                    await asyncio.wait_for(self.channel.open(), self.timeout)
                except (TransportError, asyncio.TimeoutError, OSError) as exc:
                    last_error = exc
                    logger.debug(
                        "Backend provisioning attempt %d/%d failed: %s",
                        attempt + 1,
                        self.provision_attempts,
                        exc,
                    )
                    if attempt + 1 < self.provision_attempts:
                        await asyncio.sleep(self.provision_backoff * (2**attempt))
                    continue
                self._connected = True
                return
            raise TransportError(f"Could not provision embedding backend: {last_error}")

    async def request(self, message_type: MessageType, **fields: Any) -> dict[str, Any]:
        await self.connect()
        envelope = BackendRequest(
            id=uuid.uuid4().hex, type=message_type, target=self.target, **fields
        )
        try:
            reply = await asyncio.wait_for(
                self.channel.send(envelope.to_message()), self.timeout
            )
        except asyncio.TimeoutError as exc:
            raise TransportError(
                f"{message_type} timed out after {self.timeout:.1f}s"
            ) from exc
        except TransportError:
            raise
        except Exception as exc:
            raise TransportError(f"{message_type} failed on the channel: {exc}") from exc

        if not isinstance(reply, Mapping):
            raise TransportError(f"{message_type} reply is not a message object")
        if reply.get("id") != envelope.id:
            raise TransportError(f"{message_type} reply does not match request id")
        return dict(reply)

    async def close(self) -> None:
        await self.channel.close()


class RemoteProvider:
    """Delegate embedding to the model host through an ``RpcClient``."""

    def __init__(self, client: RpcClient, *, model_id: str = DEFAULT_REMOTE_MODEL_ID) -> None:
        self.client = client
        self._model_id = model_id

    @property
    def model_id(self) -> str:
        return self._model_id

    async def backend_status(self) -> BackendStatus:
        reply = await self.client.request("GET_MODEL_STATUS")
        try:
            status = BackendStatus.model_validate(reply)
        except ValidationError as exc:
            raise TransportError(f"Malformed status reply: {exc}") from exc
        if status.model:
            self._model_id = f"remote:{status.model}"
        return status

    async def status(self) -> ModelState:
        return (await self.backend_status()).to_model_state()

    async def embed(self, text: str) -> list[float]:
        reply = await self.client.request("GENERATE_EMBEDDING", text=text)
        if reply.get("success") is False or reply.get("error"):
            raise ModelUnavailableError(f"Model host could not embed text: {reply.get('error')}")
        return l2_normalize(coerce_vector(reply))
