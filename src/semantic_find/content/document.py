"""
Live content tree for a page.

Wraps a BeautifulSoup tree and answers the questions the search engine asks
of it: which elements are visible, what text they carry, where they sit in
reading order, and which element the viewport was last scrolled to.
"""

from __future__ import annotations

import re
import weakref
from dataclasses import dataclass
from typing import Iterable, Iterator

import soupsieve
from bs4 import BeautifulSoup, NavigableString, Tag


OVERLAY_ID = "semantic-find-overlay"

_HIDDEN_STYLE_RE = re.compile(
    r"(?:^|;)\s*(?:display\s*:\s*none|visibility\s*:\s*hidden)\s*(?:!important)?\s*(?:;|$)",
    re.IGNORECASE,
)
_WHITESPACE_RE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs to single spaces and strip the ends."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def text_nodes(element: Tag) -> Iterator[NavigableString]:
    """Yield the readable text nodes under *element* in document order."""
    for node in element.descendants:
        # Comments, doctypes, and script/style strings are distinct subclasses.
        if type(node) is NavigableString:
            yield node


def element_text(element: Tag) -> str:
    return "".join(text_nodes(element))


def dom_path(element: Tag) -> str:
    """Build a readable ``tag#id > tag.class`` path for *element*."""
    parts: list[str] = []
    current: Tag | None = element
    while current is not None and not isinstance(current, BeautifulSoup):
        identifier = current.name
        element_id = current.get("id")
        if element_id:
            identifier += f"#{element_id}"
        else:
            classes = current.get("class") or []
            if classes:
                identifier += "." + ".".join(classes)
        parts.append(identifier)
        current = current.parent
    return " > ".join(reversed(parts))


def element_depth(element: Tag) -> int:
    depth = 0
    current = element.parent
    while current is not None:
        depth += 1
        current = current.parent
    return depth


@dataclass(frozen=True)
class ContentNode:
    """Snapshot of one visible, text-bearing element."""

    element_ref: weakref.ref
    text: str
    path: str
    depth: int
    order: int
    parent_key: int | None

    @property
    def element(self) -> Tag | None:
        return self.element_ref()


class PageDocument:
    """A parsed page whose elements can be snapshotted, measured and highlighted."""

    def __init__(self, soup: BeautifulSoup, *, url: str | None = None) -> None:
        self.soup = soup
        self.url = url
        self._scroll_anchor: weakref.ref | None = None

    @classmethod
    def from_html(cls, html: str | bytes, *, url: str | None = None) -> "PageDocument":
        return cls(BeautifulSoup(html, "html.parser"), url=url)

    @property
    def root(self) -> Tag:
        return self.soup.body or self.soup

    def elements(self) -> list[Tag]:
        """All elements under the root, in document order."""
        return [node for node in self.root.descendants if isinstance(node, Tag)]

    def text_content(self) -> str:
        return element_text(self.root)

    def to_html(self) -> str:
        return str(self.soup)

    def positions(self) -> dict[int, int]:
        """Map ``id(element)`` to its document-order index."""
        return {id(element): index for index, element in enumerate(self.elements())}

    def is_visible(self, element: Tag) -> bool:
        """Return False if *element* or any ancestor is hidden."""
        current: Tag | None = element
        while current is not None and not isinstance(current, BeautifulSoup):
            if current.has_attr("hidden"):
                return False
            style = current.get("style")
            if isinstance(style, str) and _HIDDEN_STYLE_RE.search(style):
                return False
            current = current.parent
        return True

    def in_overlay(self, element: Tag) -> bool:
        current: Tag | None = element
        while current is not None and not isinstance(current, BeautifulSoup):
            if current.get("id") == OVERLAY_ID:
                return True
            current = current.parent
        return False

    def snapshot(self, exclude_selectors: Iterable[str] = ()) -> list[ContentNode]:
        """
        Collect visible elements that own readable text.

        An element qualifies when it is outside every excluded region, visible,
        has non-blank text, and has at least one direct non-blank text child.
        """
        selector = ", ".join(exclude_selectors)
        compiled = soupsieve.compile(selector) if selector else None
        nodes: list[ContentNode] = []
        for order, element in enumerate(self.elements()):
            if not self._has_direct_text(element):
                continue
            if compiled is not None and self._excluded(element, compiled):
                continue
            if self.in_overlay(element) or not self.is_visible(element):
                continue
            text = collapse_whitespace(element_text(element))
            if not text:
                continue
            parent = element.parent
            nodes.append(
                ContentNode(
                    element_ref=weakref.ref(element),
                    text=text,
                    path=dom_path(element),
                    depth=element_depth(element),
                    order=order,
                    parent_key=id(parent) if parent is not None else None,
                )
            )
        return nodes

    def scroll_into_view(self, element: Tag) -> None:
        self._scroll_anchor = weakref.ref(element)

    @property
    def scroll_anchor(self) -> Tag | None:
        if self._scroll_anchor is None:
            return None
        return self._scroll_anchor()

    @staticmethod
    def _has_direct_text(element: Tag) -> bool:
        return any(
            type(child) is NavigableString and child.strip()
            for child in element.children
        )

    @staticmethod
    def _excluded(element: Tag, compiled: soupsieve.SoupSieve) -> bool:
        current: Tag | None = element
        while current is not None and not isinstance(current, BeautifulSoup):
            if compiled.match(current):
                return True
            current = current.parent
        return False
