"""
Similarity scoring and ranking of embedded chunks against a query.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

from ..content.segmenter import TextChunk
from ..errors import DimensionMismatchError

DEFAULT_THRESHOLD = 0.3
DEFAULT_TOP_K = 10


@dataclass(eq=False)
class SearchResult:
    """A ranked chunk, later enriched with where it lives in the page."""

    chunk: TextChunk
    score: float
    order: int
    resolved_ref: object | None = None
    vertical_position: float = math.inf
    visible: bool = False

    @property
    def element(self):
        """The resolved element, or None if unresolved or since discarded."""
        if self.resolved_ref is None:
            return None
        return self.resolved_ref()

    @property
    def navigable(self) -> bool:
        return self.visible and self.element is not None


def similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity; exactly 0.0 when either vector has zero magnitude."""
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))
    norm_a = math.sqrt(sum(value * value for value in a))
    norm_b = math.sqrt(sum(value * value for value in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    return max(-1.0, min(1.0, dot / (norm_a * norm_b)))


def rank(
    query_embedding: Sequence[float],
    chunks: Iterable[TextChunk],
    *,
    threshold: float = DEFAULT_THRESHOLD,
    top_k: int = DEFAULT_TOP_K,
) -> list[SearchResult]:
    """
    Score embedded chunks and keep the best ones above *threshold*.

    Chunks without an embedding are skipped. Ties keep chunk order.
    """
    scored: list[SearchResult] = []
    for order, chunk in enumerate(chunks):
        if chunk.embedding is None:
            continue
        score = similarity(query_embedding, chunk.embedding)
        if score > threshold:
            scored.append(SearchResult(chunk=chunk, score=score, order=order))
    # sorted() is stable, so equal scores stay in chunk order.
    ranked = sorted(scored, key=lambda result: -result.score)
    return ranked[: max(top_k, 0)]
