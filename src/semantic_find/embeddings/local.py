"""
Embedding provider backed by an in-process encoder.
"""

from __future__ import annotations

import asyncio
import logging

from ..errors import ModelUnavailableError
from ..models import ModelState, ModelStatus
from .base import Encoder, ProgressCallback, coerce_vector, l2_normalize

logger = logging.getLogger(__name__)


class LocalProvider:
    """Run an ``Encoder`` in this process, off the event loop."""

    def __init__(self, encoder: Encoder) -> None:
        self.encoder = encoder
        self._state = ModelState()
        self._load_lock = asyncio.Lock()

    @property
    def model_id(self) -> str:
        return self.encoder.model_id

    async def status(self) -> ModelState:
        return self._state.model_copy()

    async def load(self, progress: ProgressCallback | None = None) -> ModelState:
        """Load the encoder once; concurrent callers share the same load."""
        async with self._load_lock:
            if self._state.status == ModelStatus.READY:
                return self._state.model_copy()
            self._state = ModelState(status=ModelStatus.LOADING)
            loop = asyncio.get_running_loop()

            def report(value: float | None) -> None:
                # Encoders report from the worker thread.
                if progress is not None:
                    loop.call_soon_threadsafe(progress, value)

            try:
                await asyncio.to_thread(self.encoder.load, report)
            except Exception as exc:
                logger.error("Local model %s failed to load: %s", self.model_id, exc)
                self._state = ModelState(status=ModelStatus.FAILED, error_detail=str(exc))
                raise ModelUnavailableError(f"Local model failed to load: {exc}") from exc
            self._state = ModelState(status=ModelStatus.READY, progress=100)
            return self._state.model_copy()

    async def embed(self, text: str) -> list[float]:
        if self._state.status != ModelStatus.READY:
            await self.load()
        try:
            vectors = await asyncio.to_thread(self.encoder.encode, [text])
        except Exception as exc:
            raise ModelUnavailableError(f"Local model failed to embed: {exc}") from exc
        return l2_normalize(coerce_vector(vectors[0]))
