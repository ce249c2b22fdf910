"""
Configuration for segmentation, ranking, embedding, and caching.

Every value has a default; ``SearchSettings.from_env`` applies
``SEMANTIC_FIND_*`` environment overrides on top of them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path


DEFAULT_EXCLUDE_SELECTORS: tuple[str, ...] = (
    "script",
    "style",
    "noscript",
    "iframe",
    "svg",
    "nav",
    "header",
    "footer",
    "aside",
    ".ad",
    ".ads",
    ".advertisement",
    '[aria-hidden="true"]',
)

DEFAULT_CACHE_DB_PATH = "~/.semantic_find/pages.duckdb"
ENV_CACHE_DB_PATH = "SEMANTIC_FIND_CACHE_DB_PATH"
ENV_PREFIX = "SEMANTIC_FIND_"


@dataclass(frozen=True)
class SegmenterOptions:
    """Chunk bounds and exclusions used when segmenting a page."""

    min_chunk_length: int = 50
    max_chunk_length: int = 100
    overlap_percentage: float = 0.0
    exclude_selectors: tuple[str, ...] = DEFAULT_EXCLUDE_SELECTORS

    def __post_init__(self) -> None:
        if self.max_chunk_length <= 0:
            raise ValueError("max_chunk_length must be > 0")
        if self.min_chunk_length < 0:
            raise ValueError("min_chunk_length must be >= 0")
        if self.min_chunk_length > self.max_chunk_length:
            raise ValueError("min_chunk_length must not exceed max_chunk_length")
        if not 0 <= self.overlap_percentage < 100:
            raise ValueError("overlap_percentage must be in [0, 100)")


@dataclass(frozen=True)
class SearchSettings:
    """All tunables for one search session."""

    segmenter: SegmenterOptions = field(default_factory=SegmenterOptions)
    similarity_threshold: float = 0.3
    top_k: int = 10
    batch_size: int = 5
    min_query_length: int = 3
    max_match_length: int = 100
    cache_key_prefix_length: int = 100
    request_timeout: float = 10.0
    provision_attempts: int = 3
    provision_backoff: float = 0.25
    status_poll_interval: float = 0.5
    model_ready_timeout: float = 120.0
    index_timeout: float | None = 600.0
    local_encoder: str = "minilm"
    backend_url: str | None = None
    cache_db_path: str | None = None

    def __post_init__(self) -> None:
        if self.top_k <= 0:
            raise ValueError("top_k must be > 0")
        if self.batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be > 0")
        if self.provision_attempts <= 0:
            raise ValueError("provision_attempts must be > 0")

    @classmethod
    def from_env(cls, **overrides) -> "SearchSettings":
        """Build settings from defaults, environment, then explicit overrides."""
        base = cls()
        segmenter = SegmenterOptions(
            min_chunk_length=_env_int("MIN_CHUNK_LENGTH", base.segmenter.min_chunk_length),
            max_chunk_length=_env_int("MAX_CHUNK_LENGTH", base.segmenter.max_chunk_length),
            overlap_percentage=_env_float(
                "OVERLAP_PERCENTAGE", base.segmenter.overlap_percentage
            ),
        )
        settings = replace(
            base,
            segmenter=segmenter,
            similarity_threshold=_env_float(
                "SIMILARITY_THRESHOLD", base.similarity_threshold
            ),
            top_k=_env_int("TOP_K", base.top_k),
            batch_size=_env_int("BATCH_SIZE", base.batch_size),
            min_query_length=_env_int("MIN_QUERY_LENGTH", base.min_query_length),
            request_timeout=_env_float("REQUEST_TIMEOUT", base.request_timeout),
            local_encoder=os.getenv(f"{ENV_PREFIX}LOCAL_ENCODER", base.local_encoder),
            backend_url=os.getenv(f"{ENV_PREFIX}BACKEND_URL") or base.backend_url,
            cache_db_path=os.getenv(ENV_CACHE_DB_PATH) or base.cache_db_path,
        )
        if overrides:
            settings = replace(settings, **overrides)
        return settings


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(f"{ENV_PREFIX}{name}", str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(f"{ENV_PREFIX}{name}", str(default)))


def resolve_cache_path(override_path: str | None = None) -> str:
    """
    Resolve the DuckDB page-cache path from override, env var, or default.

    Precedence:
    1) explicit override_path
    2) SEMANTIC_FIND_CACHE_DB_PATH
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_CACHE_DB_PATH) or DEFAULT_CACHE_DB_PATH
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)
