"""Document models: header, lines, line identities and reconciliation results.

The header carries its own claimed amounts (excl. tax, tax, incl. tax); they
are independently editable and are never derived from the lines. The lines
carry the analytical split of the excl. tax amount.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.values import DateValue, DecimalValue, OptionalKey


def _new_draft_key() -> str:
    return uuid.uuid4().hex


class DocumentHeader(BaseModel):
    """Header of a document (e.g. a purchase invoice).

    Attributes:
        id: Storage identifier, None until first save
        amount_excl_tax: Header amount excluding tax (reconciled against lines)
        tax_amount: Header tax amount
        amount_incl_tax: Header amount including tax
        document_date: Document date
        entity_id: Owning entity
        counterpart_id: Supplier / third party
        payment_mode_id: Payment mode
        document_type_id: Document type
        document_number: Supplier document number
        code: Allocated sequential code, if any
        comment: Free text
        attributes: Other descriptive fields, opaque here
    """
    model_config = ConfigDict(frozen=True)

    id: Optional[OptionalKey] = None
    amount_excl_tax: DecimalValue = Decimal("0")
    tax_amount: Optional[DecimalValue] = Decimal("0")
    amount_incl_tax: DecimalValue = Decimal("0")
    document_date: Optional[DateValue] = None
    entity_id: Optional[OptionalKey] = None
    counterpart_id: Optional[OptionalKey] = None
    payment_mode_id: Optional[OptionalKey] = None
    document_type_id: Optional[OptionalKey] = None
    document_number: Optional[OptionalKey] = None
    code: Optional[OptionalKey] = None
    comment: Optional[str] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)


class DocumentLine(BaseModel):
    """One analytical line of a document.

    Attributes:
        id: Storage identifier, None for a draft line
        draft_key: Client-generated key identifying the line while it has no id
        amount_excl_tax: Line amount excluding tax
        tax_amount: Line tax amount
        classification: Classification keys (category_id, sub_category_id, ...)
        comment: Free text
    """
    model_config = ConfigDict(frozen=True)

    id: Optional[OptionalKey] = None
    draft_key: str = Field(default_factory=_new_draft_key)
    amount_excl_tax: DecimalValue = Decimal("0")
    tax_amount: Optional[DecimalValue] = Decimal("0")
    classification: Dict[str, Optional[str]] = Field(default_factory=dict)
    comment: Optional[str] = None

    @property
    def is_draft(self) -> bool:
        return self.id is None


@dataclass(frozen=True)
class LineRef:
    """Identity of a line inside a line set.

    Exactly one of line_id (persisted line), draft_key (unsaved line) or
    slot (position) is used, in that order of precedence.
    """
    line_id: Optional[str] = None
    draft_key: Optional[str] = None
    slot: Optional[int] = None

    def __post_init__(self):
        if self.line_id is None and self.draft_key is None and self.slot is None:
            raise ValueError("LineRef needs a line_id, a draft_key or a slot")

    @classmethod
    def persisted(cls, line_id: str) -> "LineRef":
        return cls(line_id=line_id)

    @classmethod
    def draft(cls, draft_key: str) -> "LineRef":
        return cls(draft_key=draft_key)

    @classmethod
    def at(cls, slot: int) -> "LineRef":
        return cls(slot=slot)

    def __str__(self) -> str:
        if self.line_id is not None:
            return f"line:{self.line_id}"
        if self.draft_key is not None:
            return f"draft:{self.draft_key}"
        return f"slot:{self.slot}"


class LineDeletion(BaseModel):
    """Instruction for the store to delete a persisted line at save time."""
    model_config = ConfigDict(frozen=True)

    line_id: str


class ReconciliationReason(str, Enum):
    """Why a document is (not) save-eligible."""
    OK = "ok"
    NO_LINES = "no-lines"
    AMOUNT_MISMATCH = "amount-mismatch"


class ReconciliationResult(BaseModel):
    """Outcome of reconciling a header against its lines.

    Attributes:
        is_valid: Whether the document may be saved
        reason: ok, no-lines or amount-mismatch
        line_total: Sum of line amounts excl. tax
        deviation: |header.amount_excl_tax - line_total|, None when there are no lines
        header_amount: Header amount excl. tax used for the comparison
        tolerance: Maximum accepted deviation
        message: User-facing explanation (carries the exact deviation)
    """
    model_config = ConfigDict(frozen=True)

    is_valid: bool
    reason: ReconciliationReason
    line_total: Decimal = Decimal("0")
    deviation: Optional[Decimal] = None
    header_amount: Decimal = Decimal("0")
    tolerance: Decimal = Decimal("0.01")
    message: str = ""


class DocumentRecord(BaseModel):
    """A document as returned by the store."""
    model_config = ConfigDict(frozen=True)

    header: DocumentHeader
    lines: tuple[DocumentLine, ...] = ()
