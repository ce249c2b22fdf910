"""Embedding providers, backend channels, and the per-session cache."""

from .base import EmbeddingProvider, Encoder, coerce_vector, l2_normalize
from .cache import EmbeddingCache
from .channel import BackendChannel, HttpChannel, InProcessChannel
from .encoders import (
    ENCODER_FACTORIES,
    GenAIEncoder,
    HashingEncoder,
    SentenceTransformerEncoder,
    build_encoder,
)
from .local import LocalProvider
from .progress import ProgressTracker
from .provider import SessionEmbeddingProvider, create_embedding_provider
from .remote import RemoteProvider, RpcClient

__all__ = [
    "EmbeddingProvider",
    "Encoder",
    "coerce_vector",
    "l2_normalize",
    "EmbeddingCache",
    "BackendChannel",
    "HttpChannel",
    "InProcessChannel",
    "ENCODER_FACTORIES",
    "GenAIEncoder",
    "HashingEncoder",
    "SentenceTransformerEncoder",
    "build_encoder",
    "LocalProvider",
    "ProgressTracker",
    "SessionEmbeddingProvider",
    "create_embedding_provider",
    "RemoteProvider",
    "RpcClient",
]
