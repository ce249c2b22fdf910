"""
Per-session embedding cache.
"""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")


class EmbeddingCache:
    """
    Read-through map from normalized text keys to unit vectors.

    Entries live for the whole session and are never invalidated. Concurrent
    misses on the same key may each compute and store; the last write wins.
    """

    def __init__(self, prefix_length: int = 100) -> None:
        if prefix_length <= 0:
            raise ValueError("prefix_length must be > 0")
        self.prefix_length = prefix_length
        self._entries: dict[str, list[float]] = {}
        self.hits = 0
        self.misses = 0

    def key(self, model_id: str, text: str) -> str:
        prefix = _WHITESPACE_RE.sub(" ", text[: self.prefix_length])
        return f"{model_id}:{prefix}"

    def get(self, model_id: str, text: str) -> list[float] | None:
        vector = self._entries.get(self.key(model_id, text))
        if vector is None:
            self.misses += 1
        else:
            self.hits += 1
        return vector

    def put(self, model_id: str, text: str, vector: list[float]) -> None:
        self._entries[self.key(model_id, text)] = vector

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
