"""
SemanticFind - semantic search over the visible text of a web page.

Pages are segmented into short passages, embedded by a model host or a local
encoder, ranked against a query by cosine similarity, and the best matches
are highlighted back in the page tree.

Example usage:
    >>> from semantic_find import PageDocument, SearchSessionController
    >>> controller = SearchSessionController(PageDocument.from_html(html))
    >>> await controller.activate()
    >>> outcome = await controller.submit_query("refund policy")
"""

from .config import SearchSettings, SegmenterOptions
from .content import PageDocument, Segmenter, TextChunk
from .embeddings import (
    EmbeddingCache,
    LocalProvider,
    RemoteProvider,
    SessionEmbeddingProvider,
    create_embedding_provider,
)
from .errors import (
    DimensionMismatchError,
    EmbeddingFormatError,
    ModelUnavailableError,
    SemanticFindError,
    TransportError,
)
from .models import ModelState, ModelStatus
from .search import Highlighter, MatchLocator, SearchResult, rank, similarity
from .session import OutcomeKind, SearchOutcome, SearchSessionController, SessionPhase

__all__ = [
    # Configuration
    "SearchSettings",
    "SegmenterOptions",
    # Content
    "PageDocument",
    "Segmenter",
    "TextChunk",
    # Embeddings
    "EmbeddingCache",
    "LocalProvider",
    "RemoteProvider",
    "SessionEmbeddingProvider",
    "create_embedding_provider",
    # Errors
    "DimensionMismatchError",
    "EmbeddingFormatError",
    "ModelUnavailableError",
    "SemanticFindError",
    "TransportError",
    # Models
    "ModelState",
    "ModelStatus",
    # Search
    "Highlighter",
    "MatchLocator",
    "SearchResult",
    "rank",
    "similarity",
    # Session
    "OutcomeKind",
    "SearchOutcome",
    "SearchSessionController",
    "SessionPhase",
]
