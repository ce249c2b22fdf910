"""Search session state machine and the page indexing workflow."""

from .controller import SearchSessionController
from .state import OutcomeKind, SearchOutcome, SessionPhase, SessionState
from .workflow import (
    ActivateEvent,
    ChunksExtractedEvent,
    IndexStatusEvent,
    PageIndexedEvent,
    PageIndexWorkflow,
    embed_in_batches,
)

__all__ = [
    "SearchSessionController",
    "OutcomeKind",
    "SearchOutcome",
    "SessionPhase",
    "SessionState",
    "ActivateEvent",
    "ChunksExtractedEvent",
    "IndexStatusEvent",
    "PageIndexedEvent",
    "PageIndexWorkflow",
    "embed_in_batches",
]
