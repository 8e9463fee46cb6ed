"""Reconciliation engine for header/lines documents.

Exposes:
- evaluate(header, lines) -> ReconciliationResult
- apply_line_mutation(draft, mutation) -> MutationOutcome
- can_save(result) -> bool
- DocumentReconciler: the same operations bound to one tolerance
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Mapping, Optional, Union

from core.config import get_settings
from core.observability.logging import get_logger
from documents.draft import DocumentDraft
from documents.lines import DocumentLineSet
from models.documents import (
    DocumentHeader,
    DocumentLine,
    LineDeletion,
    LineRef,
    ReconciliationReason,
    ReconciliationResult,
)


logger = get_logger(__name__)


# =============================================================================
# Utility Functions
# =============================================================================

CENT = Decimal("0.01")


def to_decimal(value) -> Optional[Decimal]:
    """Convert value to Decimal."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def amounts_match(
    a: Optional[Decimal],
    b: Optional[Decimal],
    tolerance: Decimal,
) -> bool:
    """Check if two amounts match within tolerance."""
    if a is None or b is None:
        return False
    return abs(a - b) <= tolerance


def format_amount(value: Decimal) -> str:
    """Format an amount to 2 decimals for display."""
    return str(value.quantize(CENT, rounding=ROUND_HALF_UP))


def _resolve_tolerance(tolerance) -> Decimal:
    if tolerance is None:
        return get_settings().recon_tolerance
    tolerance = to_decimal(tolerance)
    if tolerance <= 0:
        raise ValueError(f"Reconciliation tolerance must be greater than 0, got {tolerance}")
    return tolerance


def _as_line_set(lines: Union[DocumentLineSet, Iterable[DocumentLine]]) -> DocumentLineSet:
    if isinstance(lines, DocumentLineSet):
        return lines
    return DocumentLineSet(lines)


# =============================================================================
# Evaluation
# =============================================================================

def evaluate(
    header: DocumentHeader,
    lines: Union[DocumentLineSet, Iterable[DocumentLine]],
    tolerance: Optional[Decimal] = None,
) -> ReconciliationResult:
    """Check a header's amount excl. tax against its lines.

    Args:
        header: Document header
        lines: Current lines
        tolerance: Maximum accepted deviation (defaults to RECON_TOLERANCE)

    Returns:
        ReconciliationResult (ok, no-lines or amount-mismatch)

    Raises:
        ValueError: If tolerance is not greater than 0
    """
    tolerance = _resolve_tolerance(tolerance)
    line_set = _as_line_set(lines)
    line_total = line_set.total()
    header_amount = header.amount_excl_tax

    if len(line_set) == 0:
        return ReconciliationResult(
            is_valid=False,
            reason=ReconciliationReason.NO_LINES,
            line_total=line_total,
            deviation=None,
            header_amount=header_amount,
            tolerance=tolerance,
            message="The document has no lines: add at least one line before saving",
        )

    deviation = abs(header_amount - line_total)

    if not amounts_match(header_amount, line_total, tolerance):
        return ReconciliationResult(
            is_valid=False,
            reason=ReconciliationReason.AMOUNT_MISMATCH,
            line_total=line_total,
            deviation=deviation,
            header_amount=header_amount,
            tolerance=tolerance,
            message=(
                f"Line total ({format_amount(line_total)}) does not match the header amount "
                f"excl. tax ({format_amount(header_amount)}). "
                f"Difference: {format_amount(deviation)}"
            ),
        )

    return ReconciliationResult(
        is_valid=True,
        reason=ReconciliationReason.OK,
        line_total=line_total,
        deviation=deviation,
        header_amount=header_amount,
        tolerance=tolerance,
        message=f"Line total matches the header amount excl. tax ({format_amount(header_amount)})",
    )


def can_save(result: ReconciliationResult) -> bool:
    """Save gate: persistence may only run for a valid reconciliation."""
    return result.is_valid


# =============================================================================
# Line Mutations
# =============================================================================

LineIdentity = Union[LineRef, str, int]


def _as_ref(identity: LineIdentity) -> LineRef:
    """Accept a LineRef, a persisted line id or a slot."""
    if isinstance(identity, LineRef):
        return identity
    if isinstance(identity, bool):
        raise TypeError("A line identity cannot be a bool")
    if isinstance(identity, int):
        return LineRef.at(identity)
    return LineRef.persisted(identity)


@dataclass(frozen=True)
class AddLine:
    line: Union[DocumentLine, Mapping[str, Any]]


@dataclass(frozen=True)
class EditLine:
    identity: LineIdentity
    patch: Union[DocumentLine, Mapping[str, Any]] = field(default_factory=dict)


@dataclass(frozen=True)
class RemoveLine:
    identity: LineIdentity


LineMutation = Union[AddLine, EditLine, RemoveLine]


@dataclass(frozen=True)
class MutationOutcome:
    """Result of one line mutation.

    Attributes:
        draft: New draft; its header is the input header object itself
        deletion: Storage delete instruction when a persisted line was removed
        reconciliation: Evaluation of the new draft
    """
    draft: DocumentDraft
    reconciliation: ReconciliationResult
    deletion: Optional[LineDeletion] = None


def apply_line_mutation(
    draft: DocumentDraft,
    mutation: LineMutation,
    tolerance: Optional[Decimal] = None,
) -> MutationOutcome:
    """Apply an add/edit/remove to the lines of a draft.

    Only the lines change: the header is passed through untouched, so header
    edits made before opening a line editor survive the line edit.

    Args:
        draft: Current draft
        mutation: AddLine, EditLine or RemoveLine
        tolerance: Maximum accepted deviation (defaults to RECON_TOLERANCE)

    Returns:
        MutationOutcome

    Raises:
        LineNotFound: If an edit/remove identity matches no line
        TypeError: If the mutation type is unknown
    """
    deletion = None

    if isinstance(mutation, AddLine):
        lines = draft.lines.add(mutation.line)
    elif isinstance(mutation, EditLine):
        lines = draft.lines.update(_as_ref(mutation.identity), mutation.patch)
    elif isinstance(mutation, RemoveLine):
        ref = _as_ref(mutation.identity)
        removed = draft.lines.lines[draft.lines.index_of(ref)]
        lines = draft.lines.remove(ref)
        if removed.id is not None:
            deletion = LineDeletion(line_id=removed.id)
    else:
        raise TypeError(f"Unknown line mutation: {type(mutation).__name__}")

    new_draft = DocumentDraft(
        header=draft.header,
        lines=lines,
        deletions=draft.deletions + ((deletion,) if deletion is not None else ()),
    )
    result = evaluate(new_draft.header, new_draft.lines, tolerance)

    logger.debug(
        f"Applied {type(mutation).__name__}",
        extra_fields={
            "lines": len(lines),
            "line_total": str(result.line_total),
            "reason": result.reason.value,
            "deleted_line": deletion.line_id if deletion else None,
        },
    )
    return MutationOutcome(draft=new_draft, reconciliation=result, deletion=deletion)


# =============================================================================
# Reconciler
# =============================================================================

class DocumentReconciler:
    """
    Save-eligibility checks bound to one tolerance.

    Usage:
        reconciler = DocumentReconciler()
        outcome = reconciler.apply_line_mutation(draft, AddLine(line))
        if reconciler.can_save(outcome.reconciliation):
            ...
    """

    def __init__(self, tolerance: Optional[Decimal] = None):
        self.tolerance = _resolve_tolerance(tolerance)

    def evaluate(
        self,
        header: DocumentHeader,
        lines: Union[DocumentLineSet, Iterable[DocumentLine]],
    ) -> ReconciliationResult:
        return evaluate(header, lines, self.tolerance)

    def apply_line_mutation(self, draft: DocumentDraft, mutation: LineMutation) -> MutationOutcome:
        return apply_line_mutation(draft, mutation, self.tolerance)

    @staticmethod
    def can_save(result: ReconciliationResult) -> bool:
        return can_save(result)
