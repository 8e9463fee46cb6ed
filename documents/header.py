"""Header field edits."""

from decimal import Decimal
from typing import Any

from models.documents import DocumentHeader


# Edits of these fields recompute the amount incl. tax
_RECOMPUTING_FIELDS = ("amount_excl_tax", "tax_amount")


def edit_header(header: DocumentHeader, **changes: Any) -> DocumentHeader:
    """
    Return a copy of the header with the given fields changed.

    Editing the amount excl. tax or the tax amount sets the amount incl. tax
    to their sum, unless the same edit also sets the amount incl. tax
    explicitly. A direct edit of the amount incl. tax is kept as typed.

    Args:
        header: Header to edit
        **changes: Field name → new value (raw values are parsed)

    Returns:
        New DocumentHeader

    Raises:
        ValueError: If a field name is unknown
        pydantic.ValidationError: If a value does not parse
    """
    unknown = set(changes) - set(DocumentHeader.model_fields)
    if unknown:
        raise ValueError(f"Unknown header fields: {sorted(unknown)}")
    if "id" in changes:
        raise ValueError("The header id cannot be edited")

    edited = DocumentHeader.model_validate({**header.model_dump(), **changes})

    if "amount_incl_tax" not in changes and any(f in changes for f in _RECOMPUTING_FIELDS):
        tax = edited.tax_amount if edited.tax_amount is not None else Decimal("0")
        edited = edited.model_copy(update={"amount_incl_tax": edited.amount_excl_tax + tax})

    return edited
