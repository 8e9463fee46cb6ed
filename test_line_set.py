"""
Document Line Set Tests

Validates the ordered line collection and the header-side helpers:
1. add/update/remove are pure and keep insertion order
2. Lines are matched by id, draft key or slot
3. Amounts parse French and English separators; bad input is a validation error
4. Header edits recompute the amount incl. tax
5. Required-field validation
"""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from documents import (
    DocumentLineSet,
    LineNotFound,
    edit_header,
    validate_header,
    validate_line,
)
from models import DocumentHeader, DocumentLine, LineRef


def line(amount, line_id=None, **classification):
    return DocumentLine(id=line_id, amount_excl_tax=amount, classification=classification)


class TestDocumentLineSet:
    """Test line collection management."""

    def test_add_appends(self):
        first, second = line("10"), line("20")

        lines = DocumentLineSet().add(first).add(second)

        assert list(lines) == [first, second]
        assert len(lines) == 2

    def test_add_accepts_dicts(self):
        lines = DocumentLineSet().add({"amount_excl_tax": "12,50"})

        assert lines.total() == Decimal("12.50")
        assert lines.lines[0].is_draft

    def test_operations_do_not_mutate(self):
        original = DocumentLineSet([line("10")])

        original.add(line("5"))
        original.remove(LineRef.at(0))

        assert len(original) == 1

    def test_total_and_tax_total(self):
        lines = DocumentLineSet([
            DocumentLine(amount_excl_tax="33.33", tax_amount="6.67"),
            DocumentLine(amount_excl_tax="66.67", tax_amount=None),
        ])

        assert lines.total() == Decimal("100.00")
        assert lines.tax_total() == Decimal("6.67")

    def test_empty_totals(self):
        assert DocumentLineSet().total() == Decimal("0")
        assert DocumentLineSet().tax_total() == Decimal("0")

    def test_round_trip(self):
        """Removing the line just added restores the set."""
        original = DocumentLineSet([line("10", "L-1"), line("20")])
        added = line("5")

        grown = original.add(added)
        restored = grown.remove(grown.identity_of(added))

        assert restored == original

    def test_identity_of(self):
        persisted, draft = line("10", "L-1"), line("20")
        lines = DocumentLineSet([persisted, draft])

        assert lines.identity_of(persisted) == LineRef.persisted("L-1")
        assert lines.identity_of(draft) == LineRef.draft(draft.draft_key)

    def test_update_by_id_merges(self):
        lines = DocumentLineSet([line("10", "L-1", category_id="CAT-1"), line("20", "L-2")])

        updated = lines.update(LineRef.persisted("L-1"), {"amount_excl_tax": "15"})

        assert updated.lines[0].amount_excl_tax == Decimal("15")
        assert updated.lines[0].classification == {"category_id": "CAT-1"}
        assert updated.lines[0].id == "L-1"
        assert updated.lines[1] == lines.lines[1]

    def test_update_by_draft_key(self):
        draft = line("10")
        lines = DocumentLineSet([line("1", "L-1"), draft])

        updated = lines.update(LineRef.draft(draft.draft_key), {"comment": "fuel"})

        assert updated.lines[1].comment == "fuel"
        assert updated.lines[1].draft_key == draft.draft_key

    def test_update_by_slot(self):
        lines = DocumentLineSet([line("10"), line("20")])

        updated = lines.update(LineRef.at(1), {"amount_excl_tax": "25"})

        assert updated.total() == Decimal("35")

    def test_update_keeps_identity(self):
        """A patch cannot change the id or draft key of a line."""
        target = line("10", "L-1")
        lines = DocumentLineSet([target])

        updated = lines.update(LineRef.persisted("L-1"), {"id": "L-9", "draft_key": "x", "comment": "c"})

        assert updated.lines[0].id == "L-1"
        assert updated.lines[0].draft_key == target.draft_key

    def test_update_with_line_patch(self):
        lines = DocumentLineSet([line("10", "L-1", category_id="CAT-1")])

        updated = lines.update(LineRef.persisted("L-1"), DocumentLine(amount_excl_tax="99"))

        assert updated.lines[0].amount_excl_tax == Decimal("99")
        assert updated.lines[0].classification == {"category_id": "CAT-1"}

    @pytest.mark.parametrize("ref", [
        LineRef.persisted("missing"),
        LineRef.draft("missing"),
        LineRef.at(3),
        LineRef.at(-1),
    ])
    def test_missing_line(self, ref):
        lines = DocumentLineSet([line("10", "L-1")])

        with pytest.raises(LineNotFound):
            lines.update(ref, {"comment": "x"})
        with pytest.raises(LineNotFound):
            lines.remove(ref)
        assert lines.find(ref) is None

    def test_persisted_ids(self):
        lines = DocumentLineSet([line("1", "L-1"), line("2"), line("3", "L-3")])

        assert lines.persisted_ids() == ("L-1", "L-3")

    def test_line_ref_requires_identity(self):
        with pytest.raises(ValueError):
            LineRef()


class TestAmountParsing:
    """Test amounts typed in the form's formats."""

    @pytest.mark.parametrize("typed, expected", [
        ("1.234,50", Decimal("1234.50")),
        ("1 234,50 €", Decimal("1234.50")),
        ("1,234.50", Decimal("1234.50")),
        ("12,50", Decimal("12.50")),
        ("1.234.567,89", Decimal("1234567.89")),
        ("(12.00)", Decimal("-12.00")),
    ])
    def test_separators(self, typed, expected):
        assert DocumentHeader(amount_excl_tax=typed).amount_excl_tax == expected

    def test_ambiguous_thousands_comma_rejected(self):
        """A lone comma before three digits reads either way."""
        with pytest.raises(ValidationError, match="Ambiguous amount"):
            DocumentHeader(amount_excl_tax="1,234")

    def test_garbage_raises_validation_error(self):
        with pytest.raises(ValidationError, match="Cannot parse amount"):
            DocumentHeader(amount_excl_tax="12abc")
        with pytest.raises(ValidationError):
            DocumentLine(amount_excl_tax="abc")
        with pytest.raises(ValidationError):
            edit_header(DocumentHeader(), tax_amount="1O,00")


class TestEditHeader:
    """Test header field edits."""

    def test_excl_tax_edit_recomputes_incl_tax(self):
        header = DocumentHeader(amount_excl_tax="100", tax_amount="20", amount_incl_tax="120")

        edited = edit_header(header, amount_excl_tax="150")

        assert edited.amount_incl_tax == Decimal("170")
        assert header.amount_excl_tax == Decimal("100")

    def test_tax_edit_recomputes_incl_tax(self):
        header = DocumentHeader(amount_excl_tax="100", tax_amount="20", amount_incl_tax="120")

        assert edit_header(header, tax_amount="5.5").amount_incl_tax == Decimal("105.5")

    def test_direct_incl_tax_edit_is_kept(self):
        header = DocumentHeader(amount_excl_tax="100", tax_amount="20", amount_incl_tax="120")

        assert edit_header(header, amount_incl_tax="121").amount_incl_tax == Decimal("121")
        assert edit_header(header, amount_excl_tax="90", amount_incl_tax="100").amount_incl_tax == Decimal("100")

    def test_other_fields(self):
        header = DocumentHeader(amount_excl_tax="100")

        edited = edit_header(header, document_date="31/01/2024", counterpart_id="TIERS-1")

        assert edited.document_date == date(2024, 1, 31)
        assert edited.counterpart_id == "TIERS-1"
        assert edited.amount_incl_tax == header.amount_incl_tax

    def test_unknown_field(self):
        with pytest.raises(ValueError):
            edit_header(DocumentHeader(), total="1")

    def test_id_cannot_change(self):
        with pytest.raises(ValueError):
            edit_header(DocumentHeader(id="DOC-1"), id="DOC-2")


class TestValidation:
    """Test required-field checks."""

    def complete_header(self, **overrides):
        values = dict(
            entity_id="ENT-1",
            counterpart_id="TIERS-1",
            document_date="2024-01-31",
            payment_mode_id="PM-1",
            amount_excl_tax="100",
            tax_amount="0",
            amount_incl_tax="100",
        )
        values.update(overrides)
        return DocumentHeader(**values)

    def test_complete_header(self):
        """Zero tax is a valid tax amount."""
        assert validate_header(self.complete_header()) == []

    def test_missing_header_fields(self):
        header = DocumentHeader(tax_amount=None)

        fields = {error.field for error in validate_header(header)}

        assert fields == {
            "entity_id", "counterpart_id", "document_date", "payment_mode_id",
            "amount_excl_tax", "tax_amount", "amount_incl_tax",
        }

    def test_empty_dropdown_counts_as_missing(self):
        errors = validate_header(self.complete_header(payment_mode_id=""))

        assert [error.field for error in errors] == ["payment_mode_id"]

    def test_complete_line(self):
        assert validate_line(line("10", category_id="CAT-1", sub_category_id="SUB-1")) == []

    def test_incomplete_line(self):
        errors = validate_line(line("0", category_id="CAT-1", sub_category_id=None))

        assert {error.field for error in errors} == {"sub_category_id", "amount_excl_tax"}
