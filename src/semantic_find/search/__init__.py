"""Ranking, re-location and highlighting of search results."""

from .highlighter import ACTIVE_CLASS, Highlighter
from .locator import HIGHLIGHT_CLASS, CompactText, MatchLocator, TextSegment, compact
from .ranker import SearchResult, rank, similarity

__all__ = [
    "ACTIVE_CLASS",
    "Highlighter",
    "HIGHLIGHT_CLASS",
    "CompactText",
    "MatchLocator",
    "TextSegment",
    "compact",
    "SearchResult",
    "rank",
    "similarity",
]
