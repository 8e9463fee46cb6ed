"""
Required-field validation of headers and lines.

Results are lists of FieldError; an empty list means valid. Nothing here
raises: a missing field is an expected, user-correctable state.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List

from models.documents import DocumentHeader, DocumentLine
from models.values import is_empty_key


CATEGORY_KEY = "category_id"
SUB_CATEGORY_KEY = "sub_category_id"


@dataclass(frozen=True)
class FieldError:
    """A field that blocks saving."""
    field: str
    message: str


def validate_header(header: DocumentHeader) -> List[FieldError]:
    errors: List[FieldError] = []

    if is_empty_key(header.entity_id):
        errors.append(FieldError("entity_id", "Entity is required"))
    if is_empty_key(header.counterpart_id):
        errors.append(FieldError("counterpart_id", "Counterpart is required"))
    if header.document_date is None:
        errors.append(FieldError("document_date", "Document date is required"))
    if is_empty_key(header.payment_mode_id):
        errors.append(FieldError("payment_mode_id", "Payment mode is required"))
    if header.amount_excl_tax <= Decimal("0"):
        errors.append(FieldError("amount_excl_tax", "Amount excl. tax must be greater than 0"))
    # Zero tax is allowed, a missing one is not
    if header.tax_amount is None:
        errors.append(FieldError("tax_amount", "Tax amount is required"))
    if header.amount_incl_tax <= Decimal("0"):
        errors.append(FieldError("amount_incl_tax", "Amount incl. tax must be greater than 0"))

    return errors


def validate_line(line: DocumentLine) -> List[FieldError]:
    errors: List[FieldError] = []

    if is_empty_key(line.classification.get(CATEGORY_KEY)):
        errors.append(FieldError(CATEGORY_KEY, "Category is required"))
    if is_empty_key(line.classification.get(SUB_CATEGORY_KEY)):
        errors.append(FieldError(SUB_CATEGORY_KEY, "Sub-category is required"))
    if line.amount_excl_tax <= Decimal("0"):
        errors.append(FieldError("amount_excl_tax", "Line amount excl. tax must be greater than 0"))

    return errors
