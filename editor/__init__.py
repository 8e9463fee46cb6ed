"""
Editor Package

Integration layer used by the hosting forms: cascade sessions with fetch
tickets, and document editors with gated saves.
"""

from .session import FetchTicket, CascadeSession
from .document_editor import EditorClosed, SaveOutcome, DocumentEditor

__all__ = [
    "FetchTicket",
    "CascadeSession",
    "EditorClosed",
    "SaveOutcome",
    "DocumentEditor",
]
