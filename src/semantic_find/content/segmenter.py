"""
Segmentation of page text into retrievable chunks.
"""

from __future__ import annotations

import hashlib
import logging
import math
import weakref
from dataclasses import dataclass

from ..config import SegmenterOptions
from .document import ContentNode, PageDocument

logger = logging.getLogger(__name__)

# Fraction of the window searched backwards for a whitespace break.
BREAK_ZONE_RATIO = 0.2


def _stable_id(prefix: str, value: str) -> str:
    digest = hashlib.sha1(value.encode("utf-8")).hexdigest()
    return f"{prefix}_{digest}"


@dataclass(eq=False)
class TextChunk:
    """A bounded unit of page text, optionally carrying its embedding."""

    id: str
    text: str
    source_ref: weakref.ref | None
    dom_path: str
    position: int = 0
    embedding: list[float] | None = None

    @property
    def source(self):
        """The originating element, or None once it has been discarded."""
        if self.source_ref is None:
            return None
        return self.source_ref()

    def attach_embedding(self, embedding: list[float]) -> None:
        self.embedding = embedding


class Segmenter:
    """
    Group sibling text nodes and split long runs into overlapping windows.

    Output is deterministic for an unchanged snapshot and options: chunk ids
    are derived from node order and fragment offsets, not from randomness.
    """

    def __init__(self, options: SegmenterOptions | None = None) -> None:
        self.options = options or SegmenterOptions()

    def segment_document(self, document: PageDocument) -> list[TextChunk]:
        """Snapshot *document* and segment its visible text."""
        nodes = document.snapshot(self.options.exclude_selectors)
        chunks = self.segment(nodes)
        logger.info("Created %d semantic chunks from %d nodes", len(chunks), len(nodes))
        return chunks

    def segment(self, nodes: list[ContentNode]) -> list[TextChunk]:
        groups: dict[int | None, list[ContentNode]] = {}
        for node in nodes:
            groups.setdefault(node.parent_key, []).append(node)

        chunks: list[TextChunk] = []
        for group in groups.values():
            lead = group[0]
            if len(group) == 1:
                text = lead.text
            else:
                text = " ".join(node.text for node in group)
            chunks.extend(self._split(text, lead))
        return chunks

    def split_text(self, text: str) -> list[tuple[int, str]]:
        """
        Split *text* into ``(start_offset, fragment)`` windows.

        Fragments shorter than the minimum are dropped unless the text
        produced only one fragment.
        """
        max_length = self.options.max_chunk_length
        if len(text) <= max_length:
            fragment = text.strip()
            return [(0, fragment)] if fragment else []

        break_zone = math.floor(max_length * BREAK_ZONE_RATIO)
        fragments: list[tuple[int, str]] = []
        start = 0
        total = len(text)
        while start < total:
            end = min(start + max_length, total)
            if end < total and break_zone > 0:
                boundary = text.rfind(" ", end - break_zone, end)
                if boundary > start:
                    end = boundary

            fragment = text[start:end].strip()
            if fragment:
                fragments.append((start, fragment))

            if end >= total:
                break
            overlap = math.floor((end - start) * self.options.overlap_percentage / 100)
            next_start = end - overlap
            start = next_start if next_start > start else end

        if len(fragments) <= 1:
            return fragments
        return [
            (offset, fragment)
            for offset, fragment in fragments
            if len(fragment) >= self.options.min_chunk_length
        ]

    def _split(self, text: str, lead: ContentNode) -> list[TextChunk]:
        return [
            TextChunk(
                id=_stable_id("chunk", f"{lead.path}:{lead.order}:{position}:{offset}"),
                text=fragment,
                source_ref=lead.element_ref,
                dom_path=lead.path,
                position=position,
            )
            for position, (offset, fragment) in enumerate(self.split_text(text))
        ]
