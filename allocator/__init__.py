"""
Allocator Package

Sequential prefix + counter codes (employee numbers, document codes).
"""

from .engine import (
    SequentialCodeAllocator,
    format_code,
    preview_code,
    select_active_parameters,
)

__all__ = [
    "SequentialCodeAllocator",
    "format_code",
    "preview_code",
    "select_active_parameters",
]
