"""
Session phases, outcomes and the single mutable session record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ..content.segmenter import TextChunk
from ..embeddings.cache import EmbeddingCache
from ..models import ModelState
from ..search.ranker import SearchResult

STATUS_EXTRACTING = "Extracting page content..."
STATUS_READY = "Ready to search..."
STATUS_EMPTY = "No content found to search"
STATUS_NOT_READY = "Not ready yet - still embedding the page"
STATUS_SEARCHING = "Searching..."
STATUS_NO_MATCHES = "No matching content found"
STATUS_SEARCH_ERROR = "Error performing search"
STATUS_MODEL_ERROR = "Error loading embedding model"


def status_loading_model(progress: int) -> str:
    return f"Loading model: {progress}%"


def status_embedding(progress: int) -> str:
    return f"Embedding website... {progress}%"


def status_query_too_short(min_length: int) -> str:
    return f"Query must be at least {min_length} characters"


def status_results(count: int) -> str:
    return f"{count} results found"


class SessionPhase(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    LOADING_MODEL = "loading_model"
    EMBEDDING = "embedding"
    READY = "ready"
    SEARCHING = "searching"
    ERROR = "error"


# Phases during which the chunk set is still being built.
INDEXING_PHASES = frozenset(
    {SessionPhase.EXTRACTING, SessionPhase.LOADING_MODEL, SessionPhase.EMBEDDING}
)


class OutcomeKind(str, Enum):
    RESULTS = "results"
    NO_MATCHES = "no_matches"
    EXTRACTION_EMPTY = "extraction_empty"
    REJECTED = "rejected"
    ERROR = "error"
    DISCARDED = "discarded"


@dataclass
class SearchOutcome:
    """What one query submission produced, with the status shown for it."""

    kind: OutcomeKind
    status: str
    query: str = ""
    results: list[SearchResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.kind in (OutcomeKind.RESULTS, OutcomeKind.NO_MATCHES)


@dataclass
class SessionState:
    """Everything one page session knows; replaced wholesale on reset."""

    epoch: int = 0
    phase: SessionPhase = SessionPhase.IDLE
    chunks: list[TextChunk] = field(default_factory=list)
    cache: EmbeddingCache = field(default_factory=EmbeddingCache)
    results: list[SearchResult] = field(default_factory=list)
    cursor: int | None = None
    status_text: str = ""
    progress: int = 0
    warnings: list[str] = field(default_factory=list)
    model_state: ModelState = field(default_factory=ModelState)
    embedding_model_id: str | None = None
    active: bool = False
    empty: bool = False
    indexed: bool = False

    @property
    def indexing(self) -> bool:
        return self.phase in INDEXING_PHASES

    @property
    def embedded_count(self) -> int:
        return sum(1 for chunk in self.chunks if chunk.embedding is not None)
