"""In-memory store for tests and demos."""

import itertools
from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from core.observability.logging import get_logger
from models.allocator import AllocatorParameters, AllocatorState
from models.documents import DocumentHeader, DocumentLine, DocumentRecord, LineDeletion
from models.reference import ReferenceRow
from store.base import (
    CatalogScope,
    DocumentNotFound,
    ReferenceStore,
    StoreError,
)


logger = get_logger(__name__)


@dataclass(frozen=True)
class _StoredRow:
    tenant_id: str
    row: ReferenceRow
    entity_id: Optional[str] = None
    is_active: bool = True


class InMemoryStore(ReferenceStore):
    """
    Dictionary-backed ReferenceStore.

    Usage:
        store = InMemoryStore()
        store.add_reference_row("flow_category", "T-001", ReferenceRow(id="CAT-1", parent_key="ENT-1"))
        rows = store.fetch_catalog("flow_category", CatalogScope(tenant_id="T-001"))
    """

    def __init__(self, today: Callable[[], date] = date.today):
        self._catalogs: Dict[str, List[_StoredRow]] = {}
        self._documents: Dict[str, DocumentRecord] = {}
        self._allocator_params: List[AllocatorParameters] = []
        self._today = today
        self._ids = itertools.count(1)

    # =========================================================================
    # Seeding
    # =========================================================================

    def add_reference_row(
        self,
        catalog: str,
        tenant_id: str,
        row: ReferenceRow,
        entity_id: Optional[str] = None,
        is_active: bool = True,
    ) -> None:
        self._catalogs.setdefault(catalog, []).append(
            _StoredRow(tenant_id=tenant_id, row=row, entity_id=entity_id, is_active=is_active)
        )

    def add_allocator_parameters(self, params: AllocatorParameters) -> None:
        self._allocator_params.append(params)

    # =========================================================================
    # Catalogs
    # =========================================================================

    def fetch_catalog(self, catalog: str, scope: CatalogScope) -> List[ReferenceRow]:
        if catalog not in self._catalogs:
            raise StoreError(f"Unknown catalog: {catalog}", operation="fetch_catalog")

        rows = []
        for stored in self._catalogs[catalog]:
            if stored.tenant_id != scope.tenant_id:
                continue
            if scope.active_only and not stored.is_active:
                continue
            if scope.entity_id is not None and stored.entity_id not in (None, scope.entity_id):
                continue
            if scope.parent_key is not None and not (
                stored.row.is_global or stored.row.parent_key == scope.parent_key
            ):
                continue
            rows.append(stored.row)

        rows.sort(key=lambda row: row.label)
        logger.debug(f"Fetched {len(rows)} rows", extra_fields={"catalog": catalog})
        return rows

    # =========================================================================
    # Documents
    # =========================================================================

    def _next_id(self, kind: str) -> str:
        return f"{kind}-{next(self._ids)}"

    def fetch_document(self, document_id: str) -> DocumentRecord:
        try:
            return self._documents[document_id]
        except KeyError:
            raise DocumentNotFound(document_id)

    def persist_document(
        self,
        header: DocumentHeader,
        lines: Sequence[DocumentLine],
        deletions: Sequence[LineDeletion] = (),
    ) -> str:
        if header.id is not None and header.id not in self._documents:
            raise DocumentNotFound(header.id)

        # Build the whole record before touching stored state
        document_id = header.id or self._next_id("DOC")
        existing_ids = {
            line.id for line in self._documents[document_id].lines
        } if document_id in self._documents else set()

        deleted = {deletion.line_id for deletion in deletions}
        unknown = deleted - existing_ids
        if unknown:
            raise StoreError(
                f"Cannot delete lines not stored on {document_id}: {sorted(unknown)}",
                operation="persist_document",
            )

        incoming_ids = {line.id for line in lines if line.id is not None}
        # Lines neither sent nor deleted stay stored, as with an upsert
        untouched = tuple(
            line for line in self._documents[document_id].lines
            if line.id not in deleted and line.id not in incoming_ids
        ) if document_id in self._documents else ()

        stored_lines: Tuple[DocumentLine, ...] = untouched + tuple(
            line if line.id is not None else line.model_copy(update={"id": self._next_id("LINE")})
            for line in lines
        )
        record = DocumentRecord(
            header=header.model_copy(update={"id": document_id}),
            lines=stored_lines,
        )
        self._documents[document_id] = record

        logger.info(
            f"Stored document {document_id}",
            extra_fields={"lines": len(stored_lines), "deleted_lines": len(deleted)},
        )
        return document_id

    # =========================================================================
    # Allocator
    # =========================================================================

    def _active_parameters(self, scope_key: str) -> AllocatorParameters:
        from allocator.engine import select_active_parameters
        return select_active_parameters(self._allocator_params, scope_key, self._today())

    def fetch_allocator_state(self, scope_key: str) -> AllocatorState:
        return self._active_parameters(scope_key).state

    def persist_allocator_state(self, scope_key: str, state: AllocatorState) -> None:
        current = self._active_parameters(scope_key)
        index = self._allocator_params.index(current)
        self._allocator_params[index] = current.model_copy(update={"state": state})
