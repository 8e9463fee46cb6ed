"""
Documents Package

Header/lines documents edited in memory: the ordered line set, the draft
that pairs it with its header, header edits and required-field checks.
"""

from .lines import LineNotFound, DocumentLineSet
from .draft import DocumentDraft
from .header import edit_header
from .validation import (
    CATEGORY_KEY,
    SUB_CATEGORY_KEY,
    FieldError,
    validate_header,
    validate_line,
)

__all__ = [
    "LineNotFound",
    "DocumentLineSet",
    "DocumentDraft",
    "edit_header",
    "CATEGORY_KEY",
    "SUB_CATEGORY_KEY",
    "FieldError",
    "validate_header",
    "validate_line",
]
