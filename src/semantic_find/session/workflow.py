"""
Page indexing workflow: extract chunks, bring up a model, embed in batches.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Callable

from workflows import Context, Workflow, step
from workflows.events import Event, StartEvent, StopEvent

from ..content.document import PageDocument
from ..content.segmenter import Segmenter, TextChunk
from ..embeddings.provider import SessionEmbeddingProvider
from ..errors import SemanticFindError
from ..models import ModelState, ModelStatus
from ..storage.base import PageStore
from .state import (
    STATUS_EMPTY,
    STATUS_EXTRACTING,
    STATUS_MODEL_ERROR,
    STATUS_READY,
    SessionPhase,
    status_embedding,
    status_loading_model,
)

logger = logging.getLogger(__name__)

BatchCallback = Callable[[int, int], None]


class ActivateEvent(StartEvent):
    page_key: str | None = None


class ChunksExtractedEvent(Event):
    chunk_count: int


class IndexStatusEvent(Event):
    phase: SessionPhase
    status: str
    progress: int = 0
    model_status: ModelStatus | None = None


class PageIndexedEvent(StopEvent):
    chunk_count: int = 0
    embedded_count: int = 0
    model_id: str | None = None
    empty: bool = False
    from_store: bool = False
    error: str | None = None


async def embed_in_batches(
    provider: SessionEmbeddingProvider,
    chunks: list[TextChunk],
    *,
    batch_size: int,
    on_batch: BatchCallback | None = None,
) -> str:
    """
    Attach embeddings to *chunks*, ``batch_size`` requests at a time.

    Requests inside a batch run concurrently; batches run one after another
    with a yield to the event loop in between. If the provider switches
    models part-way through, chunks embedded by the replaced model are
    embedded again so every vector comes from the same model. Returns that
    model's id.
    """
    total = len(chunks)
    embedded_with: dict[str, str] = {}

    async def embed_one(chunk: TextChunk) -> None:
        try:
            vector, model_id = await provider.embed_with_model(chunk.text)
        except SemanticFindError as exc:
            logger.warning("Could not embed chunk %s: %s", chunk.id, exc)
            chunk.embedding = None
            return
        chunk.attach_embedding(vector)
        embedded_with[chunk.id] = model_id

    pending = list(chunks)
    done = 0
    while pending:
        for start in range(0, len(pending), batch_size):
            batch = pending[start : start + batch_size]
            await asyncio.gather(*(embed_one(chunk) for chunk in batch))
            done += len(batch)
            if on_batch is not None:
                on_batch(min(done, total), total)
            await asyncio.sleep(0)

        model_id = provider.model_id
        pending = [
            chunk
            for chunk in chunks
            if chunk.embedding is not None and embedded_with.get(chunk.id) != model_id
        ]
        if pending:
            logger.info("Re-embedding %d chunks with %s", len(pending), model_id)
            done = total - len(pending)
    return provider.model_id


class PageIndexWorkflow(Workflow):
    """
    Build the embedded chunk set for one page.

    The document, provider and store are not serializable, so they live on
    the workflow instance rather than in events; so do the produced chunks.
    """

    def __init__(
        self,
        *,
        document: PageDocument,
        segmenter: Segmenter,
        provider: SessionEmbeddingProvider,
        batch_size: int = 5,
        store: PageStore | None = None,
        timeout: float | None = 600.0,
    ) -> None:
        super().__init__(timeout=timeout)
        self.document = document
        self.segmenter = segmenter
        self.provider = provider
        self.batch_size = batch_size
        self.store = store
        self.chunks: list[TextChunk] = []
        self.model_state: ModelState = ModelState()
        self._prepare_task: asyncio.Task[ModelState] | None = None
        self._page_key: str | None = None

    @step
    async def extract(
        self, ev: ActivateEvent, ctx: Context
    ) -> ChunksExtractedEvent | PageIndexedEvent:
        self._page_key = ev.page_key
        ctx.write_event_to_stream(
            IndexStatusEvent(phase=SessionPhase.EXTRACTING, status=STATUS_EXTRACTING)
        )

        def on_model_state(state: ModelState) -> None:
            self.model_state = state
            if state.status == ModelStatus.LOADING:
                ctx.write_event_to_stream(
                    IndexStatusEvent(
                        phase=SessionPhase.LOADING_MODEL,
                        status=status_loading_model(state.progress),
                        progress=state.progress,
                        model_status=state.status,
                    )
                )

        self._prepare_task = asyncio.create_task(self.provider.prepare(on_model_state))

        self.chunks = self.segmenter.segment_document(self.document)
        if not self.chunks:
            self._prepare_task.cancel()
            ctx.write_event_to_stream(
                IndexStatusEvent(phase=SessionPhase.READY, status=STATUS_EMPTY)
            )
            return PageIndexedEvent(empty=True)
        return ChunksExtractedEvent(chunk_count=len(self.chunks))

    @step
    async def embed_chunks(self, ev: ChunksExtractedEvent, ctx: Context) -> PageIndexedEvent:
        assert self._prepare_task is not None
        self.model_state = await self._prepare_task
        if self.model_state.status == ModelStatus.FAILED:
            logger.error("Embedding model unavailable: %s", self.model_state.error_detail)
            ctx.write_event_to_stream(
                IndexStatusEvent(
                    phase=SessionPhase.ERROR,
                    status=STATUS_MODEL_ERROR,
                    model_status=ModelStatus.FAILED,
                )
            )
            return PageIndexedEvent(chunk_count=ev.chunk_count, error=STATUS_MODEL_ERROR)

        if self._load_from_store():
            ctx.write_event_to_stream(
                IndexStatusEvent(phase=SessionPhase.READY, status=STATUS_READY, progress=100)
            )
            return PageIndexedEvent(
                chunk_count=ev.chunk_count,
                embedded_count=ev.chunk_count,
                model_id=self.provider.model_id,
                from_store=True,
            )

        ctx.write_event_to_stream(
            IndexStatusEvent(phase=SessionPhase.EMBEDDING, status=status_embedding(0))
        )

        def on_batch(done: int, total: int) -> None:
            percent = math.floor(done / total * 100)
            ctx.write_event_to_stream(
                IndexStatusEvent(
                    phase=SessionPhase.EMBEDDING,
                    status=status_embedding(percent),
                    progress=percent,
                )
            )

        model_id = await embed_in_batches(
            self.provider, self.chunks, batch_size=self.batch_size, on_batch=on_batch
        )
        embedded = {
            chunk.id: chunk.embedding for chunk in self.chunks if chunk.embedding is not None
        }
        logger.info("Embedded %d/%d chunks with %s", len(embedded), len(self.chunks), model_id)
        if self.store is not None and self._page_key and embedded:
            self.store.put(self._page_key, model_id, embedded)

        ctx.write_event_to_stream(
            IndexStatusEvent(phase=SessionPhase.READY, status=STATUS_READY, progress=100)
        )
        return PageIndexedEvent(
            chunk_count=len(self.chunks),
            embedded_count=len(embedded),
            model_id=model_id,
        )

    def _load_from_store(self) -> bool:
        if self.store is None or not self._page_key:
            return False
        stored = self.store.get(self._page_key, self.provider.model_id)
        if not stored or any(chunk.id not in stored for chunk in self.chunks):
            return False
        for chunk in self.chunks:
            chunk.attach_embedding(stored[chunk.id])
        logger.info("Reused %d stored embeddings for %s", len(self.chunks), self._page_key)
        return True
