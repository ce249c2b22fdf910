"""
Session-facing embedding provider with caching and permanent local fallback.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from ..config import SearchSettings
from ..errors import EmbeddingFormatError, ModelUnavailableError, TransportError
from ..models import ModelState, ModelStatus
from .base import Encoder
from .cache import EmbeddingCache
from .channel import BackendChannel, HttpChannel
from .encoders import build_encoder
from .local import LocalProvider
from .progress import ProgressTracker
from .remote import RemoteProvider, RpcClient

logger = logging.getLogger(__name__)

StateCallback = Callable[[ModelState], None]

FALLBACK_WARNING = "Embedding backend unavailable; using the local model"

_REMOTE_FAILURES = (TransportError, EmbeddingFormatError, ModelUnavailableError)


class SessionEmbeddingProvider:
    """
    Resolve which model embeds text for one session, and cache its output.

    The remote backend is preferred when one is configured and reports ready.
    Any transport failure, malformed payload, or unusable backend switches the
    session to the local model for good; the remote path is never retried.
    """

    def __init__(
        self,
        *,
        local: LocalProvider,
        remote: RemoteProvider | None = None,
        cache: EmbeddingCache | None = None,
        status_poll_interval: float = 0.5,
        model_ready_timeout: float = 120.0,
    ) -> None:
        self.local = local
        self.remote = remote
        self.cache = cache or EmbeddingCache()
        self.status_poll_interval = status_poll_interval
        self.model_ready_timeout = model_ready_timeout
        self.state = ModelState()
        self.warnings: list[str] = []
        self.fallen_back = remote is None
        self._active: LocalProvider | RemoteProvider | None = None
        self._prepare_lock = asyncio.Lock()

    @property
    def model_id(self) -> str:
        if self._active is not None:
            return self._active.model_id
        if self.remote is not None and not self.fallen_back:
            return self.remote.model_id
        return self.local.model_id

    @property
    def using_remote(self) -> bool:
        return self._active is not None and self._active is self.remote

    async def status(self) -> ModelState:
        return self.state.model_copy()

    async def prepare(self, on_state: StateCallback | None = None) -> ModelState:
        """
        Bring a model to readiness, reporting monotone progress via *on_state*.

        Returns the final state; a ``failed`` state means neither the backend
        nor the local model could be used.
        """
        async with self._prepare_lock:
            if self._active is not None:
                return self.state.model_copy()

            tracker = ProgressTracker()
            publish = self._publisher(on_state)

            if self.remote is not None and not self.fallen_back:
                try:
                    remote_state = await asyncio.wait_for(
                        self._await_remote(tracker, publish), self.model_ready_timeout
                    )
                except asyncio.TimeoutError:
                    self._fall_back("backend did not become ready in time")
                except _REMOTE_FAILURES as exc:
                    self._fall_back(str(exc))
                else:
                    if remote_state.ready:
                        self._active = self.remote
                        publish(ModelState(status=ModelStatus.READY, progress=tracker.complete()))
                        return self.state.model_copy()
                    self._fall_back(remote_state.error_detail or "backend reported failure")

            return await self._activate_local(tracker, publish)

    async def embed(self, text: str) -> list[float]:
        vector, _ = await self.embed_with_model(text)
        return vector

    async def embed_with_model(self, text: str) -> tuple[list[float], str]:
        """Embed *text* and report which model produced the vector."""
        if self._active is None:
            await self.prepare()
        provider = self._active
        if provider is None:
            raise ModelUnavailableError(
                self.state.error_detail or "No embedding model is available"
            )

        cached = self.cache.get(provider.model_id, text)
        if cached is not None:
            return cached, provider.model_id

        try:
            vector = await provider.embed(text)
        except _REMOTE_FAILURES as exc:
            if provider is not self.remote:
                raise
            self._fall_back(str(exc))
            await self._ensure_local()
            provider = self.local
            cached = self.cache.get(provider.model_id, text)
            if cached is not None:
                return cached, provider.model_id
            vector = await provider.embed(text)

        self.cache.put(provider.model_id, text, vector)
        return vector, provider.model_id

    def _fall_back(self, reason: str) -> None:
        if self._active is self.remote:
            self._active = None
        if self.fallen_back:
            return
        self.fallen_back = True
        logger.warning("Switching to local embedding model: %s", reason)
        self.warnings.append(FALLBACK_WARNING)

    async def _ensure_local(self) -> None:
        async with self._prepare_lock:
            if self._active is None:
                await self._activate_local(ProgressTracker(), self._publisher(None))
        if self._active is None:
            raise ModelUnavailableError(
                self.state.error_detail or "Local embedding model failed to load"
            )

    async def _await_remote(
        self, tracker: ProgressTracker, publish: StateCallback
    ) -> ModelState:
        assert self.remote is not None
        while True:
            backend = await self.remote.backend_status()
            state = backend.to_model_state()
            if state.status in (ModelStatus.READY, ModelStatus.FAILED):
                return state
            publish(
                ModelState(status=ModelStatus.LOADING, progress=tracker.observe(backend.progress))
            )
            await asyncio.sleep(self.status_poll_interval)

    async def _activate_local(
        self, tracker: ProgressTracker, publish: StateCallback
    ) -> ModelState:
        publish(ModelState(status=ModelStatus.LOADING, progress=tracker.value))

        def on_progress(reported: float | None) -> None:
            if not tracker.completed:
                publish(ModelState(status=ModelStatus.LOADING, progress=tracker.observe(reported)))

        started = time.monotonic()
        try:
            await self.local.load(on_progress)
        except ModelUnavailableError as exc:
            publish(ModelState(status=ModelStatus.FAILED, error_detail=str(exc)))
            return self.state.model_copy()
        logger.info(
            "Local model %s ready in %.2fs", self.local.model_id, time.monotonic() - started
        )
        self._active = self.local
        publish(ModelState(status=ModelStatus.READY, progress=tracker.complete()))
        return self.state.model_copy()

    def _publisher(self, on_state: StateCallback | None) -> StateCallback:
        def publish(state: ModelState) -> None:
            self.state = state
            if on_state is not None:
                on_state(state.model_copy())

        return publish


def create_embedding_provider(
    settings: SearchSettings,
    *,
    channel: BackendChannel | None = None,
    local_encoder: Encoder | None = None,
    cache: EmbeddingCache | None = None,
) -> SessionEmbeddingProvider:
    """Wire the remote and local providers selected by *settings*."""
    local = LocalProvider(local_encoder or build_encoder(settings.local_encoder))
    if channel is None and settings.backend_url:
        channel = HttpChannel(settings.backend_url, timeout=settings.request_timeout)

    remote: RemoteProvider | None = None
    if channel is not None:
        remote = RemoteProvider(
            RpcClient(
                channel,
                timeout=settings.request_timeout,
                provision_attempts=settings.provision_attempts,
                provision_backoff=settings.provision_backoff,
            )
        )

    return SessionEmbeddingProvider(
        local=local,
        remote=remote,
        cache=cache or EmbeddingCache(settings.cache_key_prefix_length),
        status_poll_interval=settings.status_poll_interval,
        model_ready_timeout=settings.model_ready_timeout,
    )
