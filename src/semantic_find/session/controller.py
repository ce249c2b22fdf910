"""
Search session controller.

Owns the one ``SessionState`` for a page and drives segmentation, embedding,
ranking and highlighting in response to activation, queries and navigation.
Every asynchronous completion is checked against the session epoch; a reset
or deactivation bumps the epoch so late results are dropped without
touching state.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from ..config import SearchSettings
from ..content.document import PageDocument
from ..content.segmenter import Segmenter
from ..embeddings.cache import EmbeddingCache
from ..embeddings.provider import SessionEmbeddingProvider, create_embedding_provider
from ..errors import SemanticFindError
from ..search.highlighter import Highlighter
from ..search.locator import MatchLocator
from ..search.ranker import SearchResult, rank
from ..storage.base import PageStore
from .state import (
    STATUS_EMPTY,
    STATUS_MODEL_ERROR,
    STATUS_NO_MATCHES,
    STATUS_NOT_READY,
    STATUS_READY,
    STATUS_SEARCH_ERROR,
    STATUS_SEARCHING,
    OutcomeKind,
    SearchOutcome,
    SessionPhase,
    SessionState,
    status_query_too_short,
    status_results,
)
from .workflow import (
    ActivateEvent,
    IndexStatusEvent,
    PageIndexedEvent,
    PageIndexWorkflow,
    embed_in_batches,
)

logger = logging.getLogger(__name__)

StatusCallback = Callable[[SessionState], None]
ProviderFactory = Callable[[EmbeddingCache], SessionEmbeddingProvider]


class SearchSessionController:
    """State machine for semantic search over one page at a time."""

    def __init__(
        self,
        document: PageDocument,
        settings: SearchSettings | None = None,
        *,
        provider: SessionEmbeddingProvider | None = None,
        provider_factory: ProviderFactory | None = None,
        store: PageStore | None = None,
        page_key: str | None = None,
        on_status: StatusCallback | None = None,
    ) -> None:
        self.settings = settings or SearchSettings()
        self.store = store
        self.on_status = on_status
        if provider_factory is not None:
            self._provider_factory = provider_factory
        elif provider is not None:
            self._provider_factory = self._reuse_provider
        else:
            self._provider_factory = self._default_provider
        self.segmenter = Segmenter(self.settings.segmenter)
        self._indexing: asyncio.Task[None] | None = None
        self._query_seq = 0

        self.state = SessionState(
            cache=provider.cache if provider is not None else self._new_cache()
        )
        self.provider = provider or self._provider_factory(self.state.cache)
        self._bind_document(document, page_key)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def activate(self) -> SessionState:
        """
        Open the search UI, indexing the page unless this session already has.

        Returns once the session is ready (or has ended in an empty or error
        state). A completed chunk set is reused as-is.
        """
        self.state.active = True
        if self.state.indexed:
            self.state.phase = SessionPhase.READY
            self._set_status(STATUS_EMPTY if self.state.empty else STATUS_READY)
            return self.state

        if self._indexing is None or self._indexing.done():
            self._indexing = asyncio.create_task(self._run_indexing(self.state.epoch))
        await asyncio.shield(self._indexing)
        return self.state

    def deactivate(self) -> None:
        """Close the search UI; a completed chunk set survives for reuse."""
        self.highlighter.clear()
        self.state.epoch += 1
        self.state.active = False
        self.state.results = []
        self.state.cursor = None
        if not self.state.indexed:
            # Any in-flight pass now belongs to a stale epoch.
            self.state.chunks = []
            self._indexing = None
        self.state.phase = SessionPhase.IDLE
        self._set_status("")
        logger.debug("Session deactivated (epoch %d)", self.state.epoch)

    def reset(self) -> None:
        """Discard the session entirely; the next activation starts over."""
        self.highlighter.clear()
        epoch = self.state.epoch + 1
        self.state = SessionState(epoch=epoch, cache=self._new_cache())
        self.provider = self._provider_factory(self.state.cache)
        self._indexing = None
        self._set_status("")
        logger.debug("Session reset (epoch %d)", epoch)

    def load_page(self, document: PageDocument, *, page_key: str | None = None) -> None:
        """Switch to a new page; nothing from the previous page is kept."""
        self.reset()
        self._bind_document(document, page_key)

    async def toggle(self) -> SessionState:
        if self.state.active:
            self.deactivate()
            return self.state
        return await self.activate()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def submit_query(self, text: str) -> SearchOutcome:
        query = text.strip()
        state = self.state

        if state.indexing:
            return self._reject(query, STATUS_NOT_READY)
        if state.indexed and state.empty:
            self._set_status(STATUS_EMPTY)
            return SearchOutcome(
                kind=OutcomeKind.EXTRACTION_EMPTY, status=STATUS_EMPTY, query=query
            )
        if state.phase == SessionPhase.ERROR and not state.indexed:
            self._set_status(STATUS_MODEL_ERROR)
            return SearchOutcome(
                kind=OutcomeKind.ERROR, status=STATUS_MODEL_ERROR, query=query
            )
        if not state.indexed:
            return self._reject(query, STATUS_NOT_READY)
        if len(query) < self.settings.min_query_length:
            return self._reject(query, status_query_too_short(self.settings.min_query_length))

        epoch = state.epoch
        self._query_seq += 1
        seq = self._query_seq

        self.highlighter.clear()
        state.results = []
        state.cursor = None
        state.phase = SessionPhase.SEARCHING
        self._set_status(STATUS_SEARCHING)

        try:
            ranked = await self._rank_query(query, epoch, seq)
        except SemanticFindError as exc:
            if self._is_stale(epoch, seq):
                return SearchOutcome(kind=OutcomeKind.DISCARDED, status="", query=query)
            logger.error("Error performing semantic search: %s", exc)
            state.phase = SessionPhase.ERROR
            self._set_status(STATUS_SEARCH_ERROR)
            return SearchOutcome(
                kind=OutcomeKind.ERROR,
                status=STATUS_SEARCH_ERROR,
                query=query,
                warnings=list(state.warnings),
            )
        if ranked is None:
            return SearchOutcome(kind=OutcomeKind.DISCARDED, status="", query=query)

        located = self.locator.locate(ranked)
        highlighted = self.highlighter.highlight(located)
        state.results = highlighted
        state.cursor = self.highlighter.cursor
        state.phase = SessionPhase.READY

        if highlighted:
            status = status_results(len(highlighted))
            kind = OutcomeKind.RESULTS
        else:
            status = STATUS_NO_MATCHES
            kind = OutcomeKind.NO_MATCHES
        self._set_status(status)
        return SearchOutcome(
            kind=kind,
            status=status,
            query=query,
            results=list(highlighted),
            warnings=list(state.warnings),
        )

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    @property
    def active_result(self) -> SearchResult | None:
        return self.highlighter.active_result

    def next_result(self) -> SearchResult | None:
        result = self.highlighter.next()
        self.state.cursor = self.highlighter.cursor
        return result

    def previous_result(self) -> SearchResult | None:
        result = self.highlighter.previous()
        self.state.cursor = self.highlighter.cursor
        return result

    def jump_to(self, index: int) -> SearchResult:
        result = self.highlighter.jump_to(index)
        self.state.cursor = self.highlighter.cursor
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run_indexing(self, epoch: int) -> None:
        workflow = PageIndexWorkflow(
            document=self.document,
            segmenter=self.segmenter,
            provider=self.provider,
            batch_size=self.settings.batch_size,
            store=self.store,
            timeout=self.settings.index_timeout,
        )
        handler = workflow.run(start_event=ActivateEvent(page_key=self.page_key))
        try:
            async for event in handler.stream_events():
                if epoch != self.state.epoch:
                    continue
                if isinstance(event, IndexStatusEvent):
                    self.state.phase = event.phase
                    self.state.progress = event.progress
                    self.state.model_state = workflow.model_state
                    self._set_status(event.status)
            result = await handler
        except Exception as exc:
            if epoch != self.state.epoch:
                return
            logger.error("Indexing failed: %s", exc)
            self.state.phase = SessionPhase.ERROR
            self._set_status(STATUS_MODEL_ERROR)
            return

        if epoch != self.state.epoch:
            logger.debug("Discarding indexing result from stale epoch %d", epoch)
            return
        self._apply_index_result(workflow, result)

    def _apply_index_result(self, workflow: PageIndexWorkflow, result: PageIndexedEvent) -> None:
        state = self.state
        state.model_state = workflow.model_state
        self._collect_warnings()

        if result.error:
            state.phase = SessionPhase.ERROR
            self._set_status(result.error)
            return

        state.chunks = workflow.chunks
        state.empty = result.empty
        state.indexed = True
        state.embedding_model_id = result.model_id
        state.phase = SessionPhase.READY
        state.progress = 100
        self._set_status(STATUS_EMPTY if result.empty else STATUS_READY)
        logger.info(
            "Session ready: %d chunks, %d embedded", result.chunk_count, result.embedded_count
        )

    async def _rank_query(self, query: str, epoch: int, seq: int) -> list[SearchResult] | None:
        """Embed and rank *query*; None when the query was superseded."""
        vector, model_id = await self.provider.embed_with_model(query)
        if self._is_stale(epoch, seq):
            return None

        if model_id != self.state.embedding_model_id:
            # The provider switched models since indexing; bring chunks in line.
            chunks = self.state.chunks
            final_model = await embed_in_batches(
                self.provider, chunks, batch_size=self.settings.batch_size
            )
            if self._is_stale(epoch, seq):
                return None
            self.state.embedding_model_id = final_model
            if final_model != model_id:
                vector, model_id = await self.provider.embed_with_model(query)
                if self._is_stale(epoch, seq):
                    return None
        self._collect_warnings()

        return rank(
            vector,
            self.state.chunks,
            threshold=self.settings.similarity_threshold,
            top_k=self.settings.top_k,
        )

    def _is_stale(self, epoch: int, seq: int) -> bool:
        return epoch != self.state.epoch or seq != self._query_seq

    def _reject(self, query: str, status: str) -> SearchOutcome:
        self._set_status(status)
        return SearchOutcome(kind=OutcomeKind.REJECTED, status=status, query=query)

    def _collect_warnings(self) -> None:
        for warning in self.provider.warnings:
            if warning not in self.state.warnings:
                self.state.warnings.append(warning)

    def _set_status(self, text: str) -> None:
        self.state.status_text = text
        if self.on_status is not None:
            self.on_status(self.state)

    def _bind_document(self, document: PageDocument, page_key: str | None) -> None:
        self.document = document
        self.page_key = page_key or document.url
        self.locator = MatchLocator(document, max_match_length=self.settings.max_match_length)
        self.highlighter = Highlighter(document, self.locator)

    def _new_cache(self) -> EmbeddingCache:
        return EmbeddingCache(self.settings.cache_key_prefix_length)

    def _default_provider(self, cache: EmbeddingCache) -> SessionEmbeddingProvider:
        return create_embedding_provider(self.settings, cache=cache)

    def _reuse_provider(self, cache: EmbeddingCache) -> SessionEmbeddingProvider:
        self.provider.cache = cache
        return self.provider
