"""Shared fakes and page fixtures for the test suite."""

from __future__ import annotations

import asyncio
import re
import threading
from typing import Any

import pytest

from semantic_find.embeddings import LocalProvider, SessionEmbeddingProvider
from semantic_find.embeddings.base import ProgressCallback
from semantic_find.errors import TransportError

_TOKEN_RE = re.compile(r"\w+")

TOPICS: dict[str, set[str]] = {
    "cooking": {"recipe", "oven", "bake", "flour", "sugar", "dough", "kitchen", "cook"},
    "astronomy": {"telescope", "planet", "planets", "star", "stars", "galaxy", "orbit", "moon"},
    "finance": {"stock", "stocks", "market", "bond", "bonds", "dividend", "portfolio"},
    "energy": {"solar", "panels", "wind", "turbine", "battery", "grid", "electricity"},
}


# ---------------------------------------------------------------------------
# Encoders
# ---------------------------------------------------------------------------


class KeywordEncoder:
    """One dimension per topic; counts topic keywords. Records every call."""

    def __init__(self, model_id: str = "keyword-topics") -> None:
        self._model_id = model_id
        self.encoded: list[str] = []
        self.load_calls = 0

    @property
    def model_id(self) -> str:
        return self._model_id

    def load(self, progress: ProgressCallback | None = None) -> None:
        self.load_calls += 1
        if progress is not None:
            progress(50.0)
            progress(100.0)

    def encode(self, texts: list[str]) -> list[list[float]]:
        self.encoded.extend(texts)
        return [self.vector(text) for text in texts]

    @staticmethod
    def vector(text: str) -> list[float]:
        tokens = _TOKEN_RE.findall(text.lower())
        return [float(sum(1 for token in tokens if token in words)) for words in TOPICS.values()]

    def count(self, text: str) -> int:
        return self.encoded.count(text)


class GatedEncoder(KeywordEncoder):
    """Blocks every encode call until the gate is opened."""

    def __init__(self) -> None:
        super().__init__(model_id="gated-keyword")
        self.gate = threading.Event()

    def encode(self, texts: list[str]) -> list[list[float]]:
        self.gate.wait(timeout=5)
        return super().encode(texts)


class BrokenEncoder(KeywordEncoder):
    """Fails to load."""

    def load(self, progress: ProgressCallback | None = None) -> None:
        raise RuntimeError("weights missing")


# ---------------------------------------------------------------------------
# Backend channel
# ---------------------------------------------------------------------------

READY_STATUS: dict[str, Any] = {
    "ready": True,
    "loading": False,
    "progress": 100,
    "error": None,
    "host": "test_host",
    "model": "keyword",
}


class ScriptedChannel:
    """
    In-memory backend channel.

    Status replies are consumed from ``statuses`` (the last one repeats).
    Embedding replies are consumed from ``embed_script`` and, once it runs
    out, computed with a ``KeywordEncoder``. Script entries that are
    exceptions are raised instead of returned.
    """

    def __init__(
        self,
        *,
        statuses: list[dict[str, Any]] | None = None,
        embed_script: list[Any] | None = None,
        open_failures: int = 0,
        hang: bool = False,
    ) -> None:
        self.statuses = list(statuses or [READY_STATUS])
        self.embed_script = list(embed_script or [])
        self.encoder = KeywordEncoder()
        self.open_failures = open_failures
        self.hang = hang
        self.broken = False
        self.open_calls = 0
        self.closed = False
        self.sent: list[dict[str, Any]] = []

    @property
    def embed_requests(self) -> list[dict[str, Any]]:
        return [message for message in self.sent if message["type"] == "GENERATE_EMBEDDING"]

    async def open(self) -> None:
        self.open_calls += 1
        if self.open_calls <= self.open_failures:
            raise TransportError("backend not created yet")

    async def send(self, message: dict[str, Any]) -> dict[str, Any]:
        self.sent.append(message)
        if self.hang:
            await asyncio.sleep(3600)
        if self.broken:
            raise TransportError("channel closed")

        if message["type"] == "GET_MODEL_STATUS":
            status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
            return {"id": message["id"], **status}

        if self.embed_script:
            scripted = self.embed_script.pop(0)
            if isinstance(scripted, Exception):
                raise scripted
            return {"id": message["id"], **scripted}
        vector = self.encoder.encode([message["text"]])[0]
        return {"id": message["id"], "embedding": vector, "success": True, "error": None}

    async def close(self) -> None:
        self.closed = True


def local_session_provider(encoder: KeywordEncoder | None = None) -> SessionEmbeddingProvider:
    return SessionEmbeddingProvider(local=LocalProvider(encoder or KeywordEncoder()))


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------

COOKING_TEXT = "Knead the dough, then bake the bread in a hot oven with flour and sugar."
ASTRONOMY_TEXT = "The telescope revealed distant planets orbiting a bright star in our galaxy."
FINANCE_TEXT = "Investors watched the stock market as bond yields and dividend payouts rose."


@pytest.fixture()
def topics_html() -> str:
    return f"""
    <html>
      <head><title>Three topics</title><style>p {{ color: red; }}</style></head>
      <body>
        <nav>Home About Contact</nav>
        <main>
          <section id="kitchen"><p>{COOKING_TEXT}</p></section>
          <section id="sky"><p>{ASTRONOMY_TEXT}</p></section>
          <section id="money"><p>{FINANCE_TEXT}</p></section>
        </main>
        <script>var planets = "telescope";</script>
      </body>
    </html>
    """


@pytest.fixture()
def empty_html() -> str:
    return """
    <html>
      <body>
        <nav>Menu</nav>
        <script>console.log("telescope planets");</script>
        <div hidden><p>Hidden telescope notes</p></div>
      </body>
    </html>
    """
