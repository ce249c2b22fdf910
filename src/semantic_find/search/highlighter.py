"""
Reversible highlight markers and result navigation.
"""

from __future__ import annotations

import logging

from bs4 import NavigableString, Tag

from ..content.document import PageDocument
from .locator import HIGHLIGHT_CLASS, MatchLocator, TextSegment
from .ranker import SearchResult

logger = logging.getLogger(__name__)

ACTIVE_CLASS = "semantic-find-active"


class Highlighter:
    """
    Wrap located results in ``<mark>`` elements and move between them.

    Markers only ever split and wrap existing text nodes, so ``clear()``
    restores the page's text content exactly. At most one result carries the
    active class at a time.
    """

    def __init__(self, document: PageDocument, locator: MatchLocator | None = None) -> None:
        self.document = document
        self.locator = locator or MatchLocator(document)
        self.results: list[SearchResult] = []
        self.cursor: int | None = None
        self._marks: dict[str, list[Tag]] = {}
        self._hosts: list[Tag] = []

    @property
    def active_result(self) -> SearchResult | None:
        if self.cursor is None:
            return None
        return self.results[self.cursor]

    def __len__(self) -> int:
        return len(self.results)

    def highlight(self, results: list[SearchResult]) -> list[SearchResult]:
        """
        Replace current highlights with markers for *results*.

        Results are expected to be located already. Any whose text can no
        longer be found inside its element are dropped. The first remaining
        result becomes active.
        """
        self.clear()
        highlighted: list[SearchResult] = []
        for result in results:
            element = result.element
            if element is None:
                continue
            segments = self.locator.find_range(element, result.chunk)
            if not segments:
                logger.debug("Text of chunk %s no longer inside its element", result.chunk.id)
                continue
            self._marks[result.chunk.id] = [
                self._wrap(segment, result.chunk.id) for segment in segments
            ]
            self._hosts.append(element)
            highlighted.append(result)

        self.results = highlighted
        if highlighted:
            self.set_active(0)
        return highlighted

    def clear(self) -> None:
        """Unwrap every marker and merge the text nodes it split."""
        for marks in self._marks.values():
            for mark in marks:
                if mark.parent is not None:
                    mark.unwrap()
        for host in self._hosts:
            host.smooth()
        self._marks = {}
        self._hosts = []
        self.results = []
        self.cursor = None

    def marks_for(self, result: SearchResult) -> list[Tag]:
        return list(self._marks.get(result.chunk.id, []))

    def active_marks(self) -> list[Tag]:
        return [
            mark
            for marks in self._marks.values()
            for mark in marks
            if ACTIVE_CLASS in (mark.get("class") or [])
        ]

    def set_active(self, index: int) -> SearchResult:
        if not 0 <= index < len(self.results):
            raise IndexError(f"Result index {index} out of range (0-{len(self.results) - 1})")

        previous = self.active_result
        if previous is not None:
            for mark in self._marks.get(previous.chunk.id, []):
                mark["class"] = [name for name in mark.get("class", []) if name != ACTIVE_CLASS]

        self.cursor = index
        current = self.results[index]
        marks = self._marks.get(current.chunk.id, [])
        for mark in marks:
            mark["class"] = [HIGHLIGHT_CLASS, ACTIVE_CLASS]
        if marks:
            self.document.scroll_into_view(marks[0])
        return current

    def next(self) -> SearchResult | None:
        if not self.results:
            return None
        index = 0 if self.cursor is None else (self.cursor + 1) % len(self.results)
        return self.set_active(index)

    def previous(self) -> SearchResult | None:
        if not self.results:
            return None
        index = (
            len(self.results) - 1
            if self.cursor is None
            else (self.cursor - 1) % len(self.results)
        )
        return self.set_active(index)

    def jump_to(self, index: int) -> SearchResult:
        return self.set_active(index)

    def _wrap(self, segment: TextSegment, chunk_id: str) -> Tag:
        node = segment.node
        text = str(node)
        mark = self.document.soup.new_tag("mark")
        mark["class"] = [HIGHLIGHT_CLASS]
        mark["data-chunk-id"] = chunk_id
        mark.string = text[segment.start : segment.end]

        pieces: list[NavigableString | Tag] = []
        if segment.start > 0:
            pieces.append(NavigableString(text[: segment.start]))
        pieces.append(mark)
        if segment.end < len(text):
            pieces.append(NavigableString(text[segment.end :]))
        node.replace_with(*pieces)
        return mark
