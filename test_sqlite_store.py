"""
SQLite Store Tests

Validates the SQLite implementation of the reference store:
1. Catalog fetches are tenant-scoped, filtered and ordered by label
2. Documents round-trip with Decimal amounts; saves are all-or-nothing
3. Allocator state is read from and written to the active parameter row
"""

import sqlite3
from datetime import date
from decimal import Decimal

import pytest

from allocator import SequentialCodeAllocator
from models import (
    AllocatorParameters,
    AllocatorState,
    DocumentHeader,
    DocumentLine,
    LineDeletion,
    ReferenceRow,
)
from store import AllocatorNotConfigured, CatalogScope, DocumentNotFound, SqliteStore, StoreError


TENANT = "T-001"
TODAY = date(2024, 6, 15)


@pytest.fixture
def store(tmp_path):
    return SqliteStore(tmp_path / "forms.db", today=lambda: TODAY)


def row(row_id, parent=None, label=None):
    return ReferenceRow(id=row_id, parent_key=parent, display_fields={"label": label or row_id})


class TestCatalogs:
    """Test catalog fetches."""

    def test_ordered_by_label(self, store):
        store.add_reference_row("flow_nature", TENANT, row("N-1", label="Salaries"))
        store.add_reference_row("flow_nature", TENANT, row("N-2", label="Fuel"))
        store.add_reference_row("flow_nature", TENANT, row("N-3", label="Rent"))

        rows = store.fetch_catalog("flow_nature", CatalogScope(tenant_id=TENANT))

        assert [r.label for r in rows] == ["Fuel", "Rent", "Salaries"]

    def test_tenant_isolation(self, store):
        store.add_reference_row("flow_category", TENANT, row("CAT-1", "ENT-1"))
        store.add_reference_row("flow_category", "T-OTHER", row("CAT-9", "ENT-9"))

        rows = store.fetch_catalog("flow_category", CatalogScope(tenant_id=TENANT))

        assert [r.id for r in rows] == ["CAT-1"]

    def test_entity_filter_keeps_global_rows(self, store):
        store.add_reference_row("flow_nature", TENANT, row("N-1", "ENT-1"), entity_id="ENT-1")
        store.add_reference_row("flow_nature", TENANT, row("N-2", "ENT-2"), entity_id="ENT-2")
        store.add_reference_row("flow_nature", TENANT, row("N-G"))

        rows = store.fetch_catalog("flow_nature", CatalogScope(tenant_id=TENANT, entity_id="ENT-1"))

        assert {r.id for r in rows} == {"N-1", "N-G"}
        assert {r.id: r.parent_key for r in rows} == {"N-1": "ENT-1", "N-G": None}

    def test_parent_filter(self, store):
        store.add_reference_row("flow_sub_category", TENANT, row("SUB-1", "CAT-1"))
        store.add_reference_row("flow_sub_category", TENANT, row("SUB-2", "CAT-2"))

        rows = store.fetch_catalog("flow_sub_category", CatalogScope(tenant_id=TENANT, parent_key="CAT-2"))

        assert [r.id for r in rows] == ["SUB-2"]

    def test_inactive_rows(self, store):
        store.add_reference_row("hr_contract", TENANT, row("K-1", "EMP-1"))
        store.add_reference_row("hr_contract", TENANT, row("K-2", "EMP-1"), is_active=False)

        active = store.fetch_catalog("hr_contract", CatalogScope(tenant_id=TENANT))
        everything = store.fetch_catalog("hr_contract", CatalogScope(tenant_id=TENANT, active_only=False))

        assert [r.id for r in active] == ["K-1"]
        assert [r.id for r in everything] == ["K-1", "K-2"]

    def test_scope_requires_tenant(self):
        with pytest.raises(ValueError):
            CatalogScope(tenant_id="")


class TestDocuments:
    """Test document persistence."""

    def header(self, **values):
        return DocumentHeader(
            amount_excl_tax="100.10",
            tax_amount="20.02",
            amount_incl_tax="120.12",
            document_date=date(2024, 1, 31),
            entity_id="ENT-1",
            attributes={"reference": "PO-7"},
            **values,
        )

    def test_round_trip(self, store):
        lines = [
            DocumentLine(amount_excl_tax="60.05", classification={"category_id": "CAT-1"}),
            DocumentLine(amount_excl_tax="40.05", tax_amount=None, comment="misc"),
        ]

        document_id = store.persist_document(self.header(), lines)
        record = store.fetch_document(document_id)

        assert record.header.id == document_id
        assert record.header.amount_excl_tax == Decimal("100.10")
        assert record.header.document_date == date(2024, 1, 31)
        assert record.header.attributes == {"reference": "PO-7"}
        assert [line.amount_excl_tax for line in record.lines] == [Decimal("60.05"), Decimal("40.05")]
        assert record.lines[0].classification == {"category_id": "CAT-1"}
        assert record.lines[1].tax_amount is None
        assert all(line.id for line in record.lines)

    def test_update_and_delete_lines(self, store):
        document_id = store.persist_document(self.header(), [
            DocumentLine(amount_excl_tax="60.05"),
            DocumentLine(amount_excl_tax="40.05"),
        ])
        first, second = store.fetch_document(document_id).lines

        store.persist_document(
            self.header(id=document_id, comment="edited"),
            [first.model_copy(update={"amount_excl_tax": Decimal("100.10")})],
            [LineDeletion(line_id=second.id)],
        )
        record = store.fetch_document(document_id)

        assert record.header.comment == "edited"
        assert [line.id for line in record.lines] == [first.id]
        assert record.lines[0].amount_excl_tax == Decimal("100.10")

    def test_missing_document(self, store):
        with pytest.raises(DocumentNotFound):
            store.fetch_document("nope")
        with pytest.raises(DocumentNotFound):
            store.persist_document(self.header(id="nope"), [])

    def test_failed_save_stores_nothing(self, store, tmp_path):
        """A failure half-way through rolls the whole document back."""
        conn = sqlite3.connect(str(tmp_path / "forms.db"))
        conn.execute("""
            CREATE TRIGGER refuse_lines BEFORE INSERT ON document_line
            BEGIN SELECT RAISE(ABORT, 'line refused'); END
        """)
        conn.commit()
        conn.close()

        with pytest.raises(StoreError):
            store.persist_document(self.header(), [DocumentLine(amount_excl_tax="100.10")])

        conn = sqlite3.connect(str(tmp_path / "forms.db"))
        count = conn.execute("SELECT COUNT(*) FROM document").fetchone()[0]
        conn.close()
        assert count == 0


class TestAllocatorState:
    """Test allocator parameters in SQLite."""

    def test_allocate_round_trip(self, store):
        store.add_allocator_parameters(AllocatorParameters(
            scope_key="C-1",
            state=AllocatorState(prefix="EMP", counter=41, width=4),
            start_date=date(2024, 1, 1),
        ))

        allocator = SequentialCodeAllocator()

        assert allocator.allocate(store, "C-1") == "EMP0042"
        assert allocator.allocate(store, "C-1") == "EMP0043"
        assert store.fetch_allocator_state("C-1").counter == 43

    def test_updates_the_active_row_only(self, store):
        store.add_allocator_parameters(AllocatorParameters(
            scope_key="C-1",
            state=AllocatorState(prefix="OLD", counter=5, width=3),
            start_date=date(2023, 1, 1),
            end_date=date(2024, 1, 1),
        ))
        store.add_allocator_parameters(AllocatorParameters(
            scope_key="C-1",
            state=AllocatorState(prefix="NEW", counter=1, width=3),
            start_date=date(2024, 1, 1),
        ))

        assert SequentialCodeAllocator().allocate(store, "C-1") == "NEW002"
        assert store.fetch_allocator_state("C-1").prefix == "NEW"

    def test_null_counter_and_width_use_defaults(self, store, tmp_path):
        conn = sqlite3.connect(str(tmp_path / "forms.db"))
        conn.execute(
            "INSERT INTO allocator_parameters (scope_key, prefix, counter, width, start_date) "
            "VALUES ('C-1', 'MAT', NULL, NULL, '2024-01-01')"
        )
        conn.commit()
        conn.close()

        state = store.fetch_allocator_state("C-1")

        assert state.counter == 1
        assert state.width == 3

    def test_missing_prefix(self, store):
        store.add_allocator_parameters(AllocatorParameters(
            scope_key="C-1",
            state=AllocatorState(prefix="", counter=1, width=3),
            start_date=date(2024, 1, 1),
        ))

        with pytest.raises(AllocatorNotConfigured):
            store.fetch_allocator_state("C-1")
