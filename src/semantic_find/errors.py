"""
Exception taxonomy for semantic search.

Empty extraction and "no matches above threshold" are ordinary outcomes and
are reported through ``OutcomeKind`` rather than raised.
"""

from __future__ import annotations


class SemanticFindError(Exception):
    """Base class for all semantic search errors."""


class ModelUnavailableError(SemanticFindError):
    """No embedding model could be brought up (remote and local both failed)."""


class TransportError(SemanticFindError):
    """The backend channel failed, timed out, or broke the message handshake."""


class EmbeddingFormatError(SemanticFindError):
    """A backend payload contained no extractable numeric vector."""


class DimensionMismatchError(SemanticFindError):
    """Two vectors of different lengths were compared."""

    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"Vectors must have the same length ({left} != {right})")
        self.left = left
        self.right = right
