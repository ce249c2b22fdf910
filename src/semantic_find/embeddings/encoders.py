"""
Concrete text encoders.

``SentenceTransformerEncoder`` runs MiniLM locally, ``GenAIEncoder`` calls
the Google GenAI embedding API, and ``HashingEncoder`` is a deterministic,
dependency-free bag-of-words model for offline use.
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
from typing import Any, Callable

from google.genai import Client as GenAIClient

from .base import Encoder, ProgressCallback, l2_normalize

logger = logging.getLogger(__name__)

_DEFAULT_MINILM_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
_DEFAULT_GENAI_MODEL = "gemini-embedding-001"
_DEFAULT_GENAI_DIM = 768
_DEFAULT_GENAI_BATCH_SIZE = 50
_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


class HashingEncoder:
    """Signed feature hashing over lowercase word tokens."""

    def __init__(self, dimension: int = 256) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be > 0")
        self.dimension = dimension

    @property
    def model_id(self) -> str:
        return f"hash-bow-{self.dimension}"

    def load(self, progress: ProgressCallback | None = None) -> None:
        if progress is not None:
            progress(100.0)

    def encode(self, texts: list[str]) -> list[list[float]]:
        return [self._vectorize(text) for text in texts]

    def _vectorize(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for token in _TOKEN_RE.findall(text.lower()):
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            index = int.from_bytes(digest[:4], "big") % self.dimension
            sign = 1.0 if digest[4] & 1 else -1.0
            vector[index] += sign
        return l2_normalize(vector)


class SentenceTransformerEncoder:
    """MiniLM (or any sentence-transformers model) running in-process."""

    def __init__(self, model_name: str = _DEFAULT_MINILM_MODEL, device: str = "cpu") -> None:
        self.model_name = model_name
        self.device = device
        self._model: Any | None = None

    @property
    def model_id(self) -> str:
        return self.model_name

    def load(self, progress: ProgressCallback | None = None) -> None:
        if self._model is not None:
            return
        # Deferred so that the torch stack is only imported when this encoder is chosen.
        from sentence_transformers import SentenceTransformer

        logger.info("Loading sentence-transformers model: %s", self.model_name)
        self._model = SentenceTransformer(self.model_name, device=self.device)
        if progress is not None:
            progress(100.0)

    def encode(self, texts: list[str]) -> list[list[float]]:
        if self._model is None:
            self.load()
        embeddings = self._model.encode(
            texts,
            normalize_embeddings=True,
            show_progress_bar=False,
        )
        return embeddings.tolist()


class GenAIEncoder:
    """Generate text embeddings via Google GenAI."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        dim: int | None = None,
        batch_size: int | None = None,
        task_type: str = "SEMANTIC_SIMILARITY",
        client: Any | None = None,
    ) -> None:
        self.model = model or os.getenv("SEMANTIC_FIND_GENAI_MODEL", _DEFAULT_GENAI_MODEL)
        self.dim = dim or int(os.getenv("SEMANTIC_FIND_GENAI_DIM", str(_DEFAULT_GENAI_DIM)))
        self.batch_size = batch_size or int(
            os.getenv("SEMANTIC_FIND_GENAI_BATCH_SIZE", str(_DEFAULT_GENAI_BATCH_SIZE))
        )
        self.task_type = task_type

        if client is not None:
            self._client = client
        else:
            resolved_key = api_key or os.getenv("GOOGLE_API_KEY")
            if resolved_key is None:
                raise ValueError(
                    "GOOGLE_API_KEY not found. "
                    "Provide api_key or set the environment variable."
                )
            self._client = GenAIClient(api_key=resolved_key)

    @property
    def model_id(self) -> str:
        return f"{self.model}@{self.dim}"

    def load(self, progress: ProgressCallback | None = None) -> None:
        if progress is not None:
            progress(100.0)

    def encode(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* in batches, preserving order."""
        all_embeddings: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            result = self._client.models.embed_content(
                model=self.model,
                contents=batch,
                config={
                    "task_type": self.task_type,
                    "output_dimensionality": self.dim,
                },
            )
            for emb in result.embeddings:
                all_embeddings.append(l2_normalize(list(emb.values)))
        return all_embeddings


ENCODER_FACTORIES: dict[str, Callable[[], Encoder]] = {
    "minilm": SentenceTransformerEncoder,
    "genai": GenAIEncoder,
    "hash": HashingEncoder,
}


def build_encoder(name: str) -> Encoder:
    try:
        factory = ENCODER_FACTORIES[name]
    except KeyError as exc:
        raise ValueError(
            f"Unknown encoder {name!r}; expected one of {sorted(ENCODER_FACTORIES)}"
        ) from exc
    return factory()
