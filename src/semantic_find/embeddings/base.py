"""
Embedding interfaces and vector helpers.
"""

from __future__ import annotations

import array
import math
import struct
from collections.abc import Mapping, Sequence
from typing import Any, Callable, Protocol

from ..errors import EmbeddingFormatError
from ..models import ModelState

ProgressCallback = Callable[[float | None], None]

# Field names under which hosts conventionally wrap a numeric buffer.
WRAPPER_FIELDS: tuple[str, ...] = ("embedding", "data", "vector", "values")

_MAX_WRAPPER_DEPTH = 4


class Encoder(Protocol):
    """A model that turns texts into dense vectors."""

    @property
    def model_id(self) -> str:
        """Stable identifier used in cache keys."""

    def load(self, progress: ProgressCallback | None = None) -> None:
        """Prepare the model; may block while weights download."""

    def encode(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* in order."""


class EmbeddingProvider(Protocol):
    """Source of unit vectors for arbitrary text."""

    @property
    def model_id(self) -> str:
        """Identity of the model behind this provider."""

    async def status(self) -> ModelState:
        """Report model readiness."""

    async def embed(self, text: str) -> list[float]:
        """Return the L2-normalized embedding of *text*."""


def l2_normalize(vector: Sequence[float]) -> list[float]:
    """Scale *vector* to unit length; a zero vector is returned unchanged."""
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return [float(value) for value in vector]
    return [float(value) / norm for value in vector]


def coerce_vector(payload: Any) -> list[float]:
    """
    Normalize a backend payload into a plain list of floats.

    Accepted shapes, tried in order: numeric sequences, typed buffers
    (``array.array``, float32 ``bytes``/``memoryview``, objects with
    ``tolist()``), index-keyed mappings such as a JSON-serialized typed array
    (``{"0": 0.1, "1": 0.2}``), and wrapper mappings or objects exposing one
    of those under ``embedding``, ``data``, ``vector`` or ``values``.
    """
    vector = _coerce(payload, depth=0)
    if vector is None:
        raise EmbeddingFormatError(
            f"No numeric data could be extracted from payload of type {type(payload).__name__}"
        )
    if not vector:
        raise EmbeddingFormatError("Embedding payload is empty")
    if not all(math.isfinite(value) for value in vector):
        raise EmbeddingFormatError("Embedding payload contains non-finite values")
    return vector


def _coerce(payload: Any, *, depth: int) -> list[float] | None:
    if depth > _MAX_WRAPPER_DEPTH or payload is None:
        return None
    if isinstance(payload, (str, bool)):
        return None
    if isinstance(payload, array.array):
        return [float(value) for value in payload]
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return _from_float32_buffer(bytes(payload))
    if isinstance(payload, Mapping):
        indexed = _from_index_mapping(payload)
        if indexed is not None:
            return indexed
        for field in WRAPPER_FIELDS:
            if field in payload:
                vector = _coerce(payload[field], depth=depth + 1)
                if vector is not None:
                    return vector
        return None
    if isinstance(payload, Sequence):
        return _from_sequence(payload)
    tolist = getattr(payload, "tolist", None)
    if callable(tolist):
        return _coerce(tolist(), depth=depth + 1)
    for field in WRAPPER_FIELDS:
        if hasattr(payload, field):
            vector = _coerce(getattr(payload, field), depth=depth + 1)
            if vector is not None:
                return vector
    return None


def _from_sequence(items: Sequence[Any]) -> list[float] | None:
    values: list[float] = []
    for item in items:
        if isinstance(item, bool) or not isinstance(item, (int, float)):
            return None
        values.append(float(item))
    return values


def _from_index_mapping(payload: Mapping[Any, Any]) -> list[float] | None:
    if not payload:
        return None
    try:
        indexed = sorted((int(key), value) for key, value in payload.items())
    except (TypeError, ValueError):
        return None
    if [index for index, _ in indexed] != list(range(len(indexed))):
        return None
    return _from_sequence([value for _, value in indexed])


def _from_float32_buffer(raw: bytes) -> list[float] | None:
    if not raw or len(raw) % 4:
        return None
    return [float(value) for value in struct.unpack(f"<{len(raw) // 4}f", raw)]
