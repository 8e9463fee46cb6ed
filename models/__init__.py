"""Models Package.

Data models shared by the form components:
- Reference catalogs and their visibility policies
- Document headers, lines and reconciliation results
- Sequential code allocator state
"""

from models.reference import (
    ReferenceRow,
    ReferenceCatalog,
    CatalogPolicy,
    NoParentPolicy,
)

from models.documents import (
    DocumentHeader,
    DocumentLine,
    DocumentRecord,
    LineRef,
    LineDeletion,
    ReconciliationReason,
    ReconciliationResult,
)

from models.allocator import (
    AllocatorState,
    AllocatorParameters,
    AllocationResult,
)

from models.values import is_empty_key

__all__ = [
    # Reference
    "ReferenceRow",
    "ReferenceCatalog",
    "CatalogPolicy",
    "NoParentPolicy",
    # Documents
    "DocumentHeader",
    "DocumentLine",
    "DocumentRecord",
    "LineRef",
    "LineDeletion",
    "ReconciliationReason",
    "ReconciliationResult",
    # Allocator
    "AllocatorState",
    "AllocatorParameters",
    "AllocationResult",
    # Helpers
    "is_empty_key",
]
