"""
Re-resolution of ranked chunks to elements in the current page tree.

Chunks are produced from a snapshot that may be older than the tree they are
shown in, so every result is matched again by text before it is highlighted.
Matching ignores whitespace: element text is indexed as a compact string with
a map from each compact character back to its text node and offset.
"""

from __future__ import annotations

import logging
import re
import weakref
from dataclasses import dataclass
from typing import Iterable

from bs4 import NavigableString, Tag

from ..content.document import (
    PageDocument,
    collapse_whitespace,
    element_depth,
    element_text,
    text_nodes,
)
from ..content.segmenter import TextChunk
from .ranker import SearchResult

logger = logging.getLogger(__name__)

HIGHLIGHT_CLASS = "semantic-find-highlight"
DEFAULT_MAX_MATCH_LENGTH = 100

_WHITESPACE_RE = re.compile(r"\s+")


def compact(text: str) -> str:
    """Remove all whitespace from *text*."""
    return _WHITESPACE_RE.sub("", text)


@dataclass(frozen=True)
class TextSegment:
    """A ``[start, end)`` slice of one text node."""

    node: NavigableString
    start: int
    end: int


class CompactText:
    """Whitespace-free view of an element's text with offsets back into it."""

    def __init__(self, element: Tag) -> None:
        self.nodes: list[NavigableString] = list(text_nodes(element))
        chars: list[str] = []
        self.origins: list[tuple[int, int]] = []
        for node_index, node in enumerate(self.nodes):
            for offset, char in enumerate(str(node)):
                if char.isspace():
                    continue
                chars.append(char)
                self.origins.append((node_index, offset))
        self.text = "".join(chars)

    def find(self, key: str) -> list[TextSegment] | None:
        """Return the text-node slices covering the first occurrence of *key*."""
        if not key:
            return None
        start = self.text.find(key)
        if start < 0:
            return None
        first_node, first_offset = self.origins[start]
        last_node, last_offset = self.origins[start + len(key) - 1]

        segments: list[TextSegment] = []
        for node_index in range(first_node, last_node + 1):
            node = self.nodes[node_index]
            seg_start = first_offset if node_index == first_node else 0
            seg_end = last_offset + 1 if node_index == last_node else len(node)
            if seg_end > seg_start:
                segments.append(TextSegment(node=node, start=seg_start, end=seg_end))
        return segments


class MatchLocator:
    """Resolve chunks to the most specific element that still contains them."""

    def __init__(
        self,
        document: PageDocument,
        *,
        max_match_length: int = DEFAULT_MAX_MATCH_LENGTH,
    ) -> None:
        if max_match_length <= 0:
            raise ValueError("max_match_length must be > 0")
        self.document = document
        self.max_match_length = max_match_length

    def match_key(self, chunk: TextChunk) -> str:
        return compact(chunk.text)[: self.max_match_length]

    def locate(self, results: Iterable[SearchResult]) -> list[SearchResult]:
        """
        Resolve each result in place and return the navigable ones.

        The returned list is in document order; results that are unresolved
        or resolve to a hidden element are left out.
        """
        results = list(results)
        elements, compacts = self._candidates()
        positions = self.document.positions()

        for result in results:
            element = self._best_candidate(result.chunk, elements, compacts, positions)
            if element is None:
                result.resolved_ref = None
                result.visible = False
                logger.debug("Chunk %s could not be resolved", result.chunk.id)
                continue
            result.resolved_ref = weakref.ref(element)
            result.visible = self.document.is_visible(element)
            result.vertical_position = positions.get(id(element), float("inf"))

        navigable = [result for result in results if result.navigable]
        # Stable, so results sharing an element keep their score order.
        navigable.sort(key=lambda result: result.vertical_position)
        return navigable

    def resolve(self, chunk: TextChunk) -> Tag | None:
        elements, compacts = self._candidates()
        return self._best_candidate(chunk, elements, compacts, self.document.positions())

    def find_range(self, element: Tag, chunk: TextChunk) -> list[TextSegment] | None:
        """Locate the chunk's characters inside *element*, by text node."""
        return CompactText(element).find(self.match_key(chunk))

    def _candidates(self) -> tuple[list[Tag], dict[int, str]]:
        elements = [
            element
            for element in self.document.elements()
            if not self._is_marker(element) and not self.document.in_overlay(element)
        ]
        return elements, {id(element): compact(element_text(element)) for element in elements}

    def _best_candidate(
        self,
        chunk: TextChunk,
        elements: list[Tag],
        compacts: dict[int, str],
        positions: dict[int, int],
    ) -> Tag | None:
        key = self.match_key(chunk)
        if not key:
            return None
        target_length = len(collapse_whitespace(chunk.text))

        best: Tag | None = None
        best_rank: tuple[bool, int, int, int] | None = None
        for element in elements:
            if key not in compacts[id(element)]:
                continue
            candidate_length = len(collapse_whitespace(element_text(element)))
            # Hidden copies only win when no visible element holds the text.
            rank = (
                not self.document.is_visible(element),
                abs(candidate_length - target_length),
                -element_depth(element),
                positions.get(id(element), 0),
            )
            if best_rank is None or rank < best_rank:
                best, best_rank = element, rank
        return best

    @staticmethod
    def _is_marker(element: Tag) -> bool:
        return element.name == "mark" and HIGHLIGHT_CLASS in (element.get("class") or [])
