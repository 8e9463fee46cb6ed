"""
Reconciliation Package

Save gating for header/lines documents: the header amount excl. tax must
match the sum of the lines within a tolerance, and a document needs at
least one line.
"""

from .engine import (
    AddLine,
    EditLine,
    RemoveLine,
    MutationOutcome,
    DocumentReconciler,
    amounts_match,
    apply_line_mutation,
    can_save,
    evaluate,
    format_amount,
)

__all__ = [
    "AddLine",
    "EditLine",
    "RemoveLine",
    "MutationOutcome",
    "DocumentReconciler",
    "amounts_match",
    "apply_line_mutation",
    "can_save",
    "evaluate",
    "format_amount",
]
