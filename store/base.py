"""
Reference Store Interface

Abstract collaborator the core reads reference rows and documents from, and
writes documents and allocator counters to. The tenant is always passed
explicitly; implementations never read an ambient "current profile".

Implementations:
- store.memory.InMemoryStore
- store.db.SqliteStore
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

from models.allocator import AllocatorState
from models.documents import DocumentHeader, DocumentLine, DocumentRecord, LineDeletion
from models.reference import ReferenceRow


class StoreError(Exception):
    """Base error for store operations."""
    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.operation = operation


class DocumentNotFound(StoreError):
    """No document with the requested id."""
    def __init__(self, document_id: str):
        super().__init__(f"Document not found: {document_id}", operation="fetch_document")
        self.document_id = document_id


class AllocatorNotConfigured(StoreError):
    """No usable allocator parameters for a scope (missing row or prefix)."""
    def __init__(self, scope_key: str, reason: str):
        super().__init__(f"Allocator for '{scope_key}' is not configured: {reason}", operation="allocator")
        self.scope_key = scope_key
        self.reason = reason


@dataclass(frozen=True)
class CatalogScope:
    """Filter for a catalog fetch.

    Attributes:
        tenant_id: Client contract the rows belong to (always required)
        entity_id: Restrict to rows of this entity (and global rows)
        parent_key: Restrict to children of this parent (and global rows)
        active_only: Skip rows flagged inactive
    """
    tenant_id: str
    entity_id: Optional[str] = None
    parent_key: Optional[str] = None
    active_only: bool = True

    def __post_init__(self):
        if not self.tenant_id:
            raise ValueError("A catalog scope needs a tenant_id")


class ReferenceStore(ABC):
    """
    Abstract store used by the editor layer.

    persist_document is atomic: it either stores header, lines and deletions
    together or raises and stores nothing.
    """

    @abstractmethod
    def fetch_catalog(self, catalog: str, scope: CatalogScope) -> List[ReferenceRow]:
        """
        Fetch the rows of a reference catalog, ordered by display label.

        Args:
            catalog: Catalog name (e.g. "flow_sub_category")
            scope: Tenant and optional filters

        Returns:
            Rows, each with its (nullable) parent_key

        Raises:
            StoreError: If the catalog is unknown or the fetch fails
        """
        pass

    @abstractmethod
    def fetch_document(self, document_id: str) -> DocumentRecord:
        """
        Fetch a document with its lines.

        Raises:
            DocumentNotFound: If no document has this id
        """
        pass

    @abstractmethod
    def persist_document(
        self,
        header: DocumentHeader,
        lines: Sequence[DocumentLine],
        deletions: Sequence[LineDeletion] = (),
    ) -> str:
        """
        Store a document: insert or update the header, upsert the lines and
        delete the removed persisted lines.

        Returns:
            Document id (new id for a first save)

        Raises:
            StoreError: If the write fails (nothing is stored)
        """
        pass

    @abstractmethod
    def fetch_allocator_state(self, scope_key: str) -> AllocatorState:
        """
        Read the current allocator state of a scope.

        Raises:
            AllocatorNotConfigured: If the scope has no active parameters
        """
        pass

    @abstractmethod
    def persist_allocator_state(self, scope_key: str, state: AllocatorState) -> None:
        """
        Write back an advanced allocator state.

        Raises:
            AllocatorNotConfigured: If the scope has no active parameters
            StoreError: If the write fails
        """
        pass
