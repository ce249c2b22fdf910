"""Durable page caches for semantic search sessions."""

from .base import PageStore
from .duckdb import DuckDBPageStore

__all__ = [
    "PageStore",
    "DuckDBPageStore",
]
