"""
Model host: owns an encoder and answers status/embedding messages.

The host loads its encoder in the background as soon as it is started and
reports progress while doing so. Sessions reach it through a
``BackendChannel``, either in-process or over HTTP.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..embeddings.base import Encoder
from ..embeddings.progress import ProgressTracker
from ..models import MODEL_HOST_TARGET

logger = logging.getLogger(__name__)

# Sent through the model once after loading to prove it can embed.
WARMUP_TEXT = "test"


class ModelHost:
    """Background-loaded encoder behind a message interface."""

    def __init__(self, encoder: Encoder, *, name: str = MODEL_HOST_TARGET) -> None:
        self.encoder = encoder
        self.name = name
        self.ready = False
        self.loading = False
        self.error: str | None = None
        self.dimension: int | None = None
        self._tracker = ProgressTracker()
        self._load_task: asyncio.Task[None] | None = None

    @property
    def progress(self) -> int:
        return self._tracker.value

    def start(self) -> asyncio.Task[None]:
        """Begin loading the encoder; repeated calls return the same task."""
        if self._load_task is None:
            self._load_task = asyncio.get_running_loop().create_task(self._load())
        return self._load_task

    async def wait_ready(self) -> bool:
        await self.start()
        return self.ready

    def status_payload(self) -> dict[str, Any]:
        return {
            "ready": self.ready,
            "loading": self.loading,
            "progress": self.progress,
            "error": self.error,
            "host": self.name,
            "model": self.encoder.model_id,
        }

    async def embed(self, text: str) -> list[float]:
        if not self.ready:
            await self.start()
            if not self.ready:
                raise RuntimeError(self.error or "Model loading failed")
        vectors = await asyncio.to_thread(self.encoder.encode, [text])
        return [float(value) for value in vectors[0]]

    async def handle_message(self, message: dict[str, Any]) -> dict[str, Any]:
        """Answer one message envelope, echoing its correlation id."""
        reply: dict[str, Any] = {"id": message.get("id")}
        message_type = message.get("type")
        self.start()

        if message_type == "GET_MODEL_STATUS":
            reply.update(self.status_payload())
            return reply

        if message_type == "GENERATE_EMBEDDING":
            text = message.get("text")
            if not text:
                reply.update({"error": "No text provided", "success": False})
                return reply
            try:
                embedding = await self.embed(text)
            except Exception as exc:
                logger.error("Error generating embedding: %s", exc)
                reply.update({"error": str(exc), "success": False})
                return reply
            reply.update(
                {"embedding": embedding, "data": embedding, "success": True, "error": None}
            )
            return reply

        reply.update({"error": f"Unsupported message type: {message_type!r}", "success": False})
        return reply

    async def _load(self) -> None:
        self.loading = True
        self.error = None
        loop = asyncio.get_running_loop()

        def report(value: float | None) -> None:
            loop.call_soon_threadsafe(self._tracker.observe, value)

        logger.info("Loading model: %s", self.encoder.model_id)
        try:
            await asyncio.to_thread(self.encoder.load, report)
            warmup = await asyncio.to_thread(self.encoder.encode, [WARMUP_TEXT])
            self.dimension = len(warmup[0])
        except Exception as exc:
            logger.error("Error loading embedding model: %s", exc)
            self.error = str(exc)
        else:
            self.ready = True
            self._tracker.complete()
            logger.info(
                "Model %s ready, embedding length %d", self.encoder.model_id, self.dimension
            )
        finally:
            self.loading = False
