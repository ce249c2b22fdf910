"""
Page-store interface for persisting chunk embeddings across sessions.
"""

from __future__ import annotations

from typing import Mapping, Protocol


class PageStore(Protocol):
    """Protocol for a durable page -> chunk embedding cache."""

    def get(self, page_key: str, model_id: str) -> dict[str, list[float]] | None:
        """Return chunk id -> embedding for a page, or None if never stored."""

    def put(
        self, page_key: str, model_id: str, embeddings: Mapping[str, list[float]]
    ) -> int:
        """Replace the stored embeddings for a page. Return count written."""

    def delete(self, page_key: str, model_id: str | None = None) -> int:
        """Forget a page, for one model or all of them. Return rows removed."""

    def close(self) -> None:
        """Release underlying resources."""
