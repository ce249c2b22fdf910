"""Page content access and segmentation."""

from .document import (
    OVERLAY_ID,
    ContentNode,
    PageDocument,
    collapse_whitespace,
    element_text,
    text_nodes,
)
from .segmenter import Segmenter, TextChunk

__all__ = [
    "OVERLAY_ID",
    "ContentNode",
    "PageDocument",
    "collapse_whitespace",
    "element_text",
    "text_nodes",
    "Segmenter",
    "TextChunk",
]
