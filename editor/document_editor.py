"""
Document Editor

Single-user editing session of one header/lines document:
- header edits and line mutations on an in-memory draft
- reconciliation after every change
- save gated on reconciliation and required fields, flushed atomically
- code generation through the sequential allocator
"""

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple, Union

from allocator.engine import SequentialCodeAllocator
from core.observability.logging import get_logger, with_correlation
from documents.draft import DocumentDraft
from documents.header import edit_header
from documents.lines import DocumentLineSet
from documents.validation import FieldError, validate_header, validate_line
from models.documents import (
    DocumentHeader,
    DocumentLine,
    DocumentRecord,
    LineDeletion,
    ReconciliationResult,
)
from reconciliation.engine import (
    AddLine,
    DocumentReconciler,
    EditLine,
    LineIdentity,
    MutationOutcome,
    RemoveLine,
)
from store.base import ReferenceStore


logger = get_logger(__name__)


class EditorClosed(Exception):
    """The editor was closed; its draft can no longer change."""
    pass


@dataclass(frozen=True)
class SaveOutcome:
    """Result of a save attempt.

    Attributes:
        saved: True when the store accepted the document
        reconciliation: Evaluation the save was gated on
        errors: Required-field errors that blocked the save
        document_id: Stored document id (None when not saved)
    """
    saved: bool
    reconciliation: ReconciliationResult
    errors: Tuple[FieldError, ...] = ()
    document_id: Optional[str] = None


class DocumentEditor:
    """
    Edit one document against a store.

    Usage:
        editor = DocumentEditor(store, tenant_id="T-001", form="purchase_invoice")
        editor.new(DocumentHeader(entity_id="ENT-1", amount_excl_tax="100.00"))
        editor.add_line({"amount_excl_tax": "100.00", "classification": {...}})
        outcome = editor.save()
        if not outcome.saved:
            show(outcome.reconciliation.message)
    """

    def __init__(
        self,
        store: ReferenceStore,
        tenant_id: Optional[str] = None,
        form: str = "document",
        reconciler: Optional[DocumentReconciler] = None,
        allocator: Optional[SequentialCodeAllocator] = None,
    ):
        self.store = store
        self.tenant_id = tenant_id
        self.form = form
        self.reconciler = reconciler or DocumentReconciler()
        self.allocator = allocator or SequentialCodeAllocator()
        self._draft = DocumentDraft(header=DocumentHeader())
        self._evaluation = self.reconciler.evaluate(self._draft.header, self._draft.lines)
        # Draft persisted by the last save whose reload did not complete
        self._unreloaded: Optional[DocumentDraft] = None
        self._closed = False

    # =========================================================================
    # State
    # =========================================================================

    @property
    def draft(self) -> DocumentDraft:
        return self._draft

    @property
    def header(self) -> DocumentHeader:
        return self._draft.header

    @property
    def lines(self) -> DocumentLineSet:
        return self._draft.lines

    @property
    def pending_deletions(self) -> Tuple[LineDeletion, ...]:
        return self._draft.deletions

    @property
    def evaluation(self) -> ReconciliationResult:
        return self._evaluation

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _context(self):
        return with_correlation(tenant_id=self.tenant_id, form=self.form, document_id=self.header.id)

    def _ensure_open(self) -> None:
        if self._closed:
            raise EditorClosed(f"Editor for {self.form} is closed")

    def _set_draft(self, draft: DocumentDraft) -> ReconciliationResult:
        self._draft = draft
        self._evaluation = self.reconciler.evaluate(draft.header, draft.lines)
        return self._evaluation

    # =========================================================================
    # Loading
    # =========================================================================

    def new(self, header: Optional[DocumentHeader] = None) -> ReconciliationResult:
        """Start a new document (no lines)."""
        self._ensure_open()
        return self._set_draft(DocumentDraft(header=header or DocumentHeader()))

    def open(self, document_id: str) -> ReconciliationResult:
        """
        Load an existing document from the store.

        Raises:
            DocumentNotFound: If the store has no such document
        """
        self._ensure_open()
        record = self.store.fetch_document(document_id)
        result = self._load(record)
        with self._context():
            logger.debug("Opened document", extra_fields={"lines": len(record.lines)})
        return result

    def _load(self, record: DocumentRecord) -> ReconciliationResult:
        return self._set_draft(DocumentDraft.of(record.header, record.lines))

    # =========================================================================
    # Editing
    # =========================================================================

    def edit_header(self, **changes: Any) -> ReconciliationResult:
        """Change header fields; lines are left as they are."""
        self._ensure_open()
        return self._set_draft(self._draft.with_header(edit_header(self.header, **changes)))

    def _mutate(self, mutation) -> MutationOutcome:
        self._ensure_open()
        outcome = self.reconciler.apply_line_mutation(self._draft, mutation)
        self._draft = outcome.draft
        self._evaluation = outcome.reconciliation
        return outcome

    def add_line(self, line: Union[DocumentLine, Mapping[str, Any]]) -> MutationOutcome:
        return self._mutate(AddLine(line))

    def edit_line(self, identity: LineIdentity, patch: Union[DocumentLine, Mapping[str, Any]]) -> MutationOutcome:
        """
        Raises:
            LineNotFound: If no line matches identity
        """
        return self._mutate(EditLine(identity, patch))

    def remove_line(self, identity: LineIdentity) -> MutationOutcome:
        """
        Remove a line. A persisted line is deleted from the store at save time.

        Raises:
            LineNotFound: If no line matches identity
        """
        return self._mutate(RemoveLine(identity))

    # =========================================================================
    # Validation & save
    # =========================================================================

    def validate(self) -> List[FieldError]:
        """Required-field errors of the header and every line."""
        errors = validate_header(self.header)
        for index, line in enumerate(self.lines):
            errors.extend(
                FieldError(f"lines[{index}].{error.field}", error.message)
                for error in validate_line(line)
            )
        return errors

    def save(self) -> SaveOutcome:
        """
        Persist the draft if it reconciles and has no field errors.

        The store is not called for a blocked save. A failed persist is
        propagated and leaves the draft untouched. Once the persist succeeds
        the draft carries the document id and no pending deletions, even if
        the reload fails; retrying an unchanged draft then only reloads.

        Raises:
            StoreError: If the store rejects the document
        """
        self._ensure_open()
        evaluation = self.reconciler.evaluate(self.header, self.lines)
        errors = tuple(self.validate())

        with self._context():
            if not self.reconciler.can_save(evaluation) or errors:
                logger.warning(
                    f"Save blocked: {evaluation.message}" if not evaluation.is_valid
                    else f"Save blocked: {len(errors)} field errors",
                    extra_fields={
                        "reason": evaluation.reason.value,
                        "deviation": str(evaluation.deviation) if evaluation.deviation is not None else None,
                        "fields": [error.field for error in errors],
                    },
                )
                self._evaluation = evaluation
                return SaveOutcome(saved=False, reconciliation=evaluation, errors=errors)

            if self._draft is self._unreloaded:
                # Persisted already, only the reload failed
                document_id = self.header.id
                logger.info(f"Retrying reload of document {document_id}")
            else:
                document_id = self.store.persist_document(
                    self.header,
                    list(self.lines),
                    list(self.pending_deletions),
                )
                logger.info(
                    f"Saved document {document_id}",
                    extra_fields={"lines": len(self.lines), "deleted_lines": len(self.pending_deletions)},
                )
                self._set_draft(DocumentDraft(
                    header=self.header.model_copy(update={"id": document_id}),
                    lines=self.lines,
                ))
                self._unreloaded = self._draft

        # Reload so persisted lines carry their ids
        self._load(self.store.fetch_document(document_id))
        self._unreloaded = None
        return SaveOutcome(saved=True, reconciliation=evaluation, document_id=document_id)

    # =========================================================================
    # Code generation
    # =========================================================================

    def generate_code(self, scope_key: str) -> str:
        """
        Allocate the next code of a sequence and write it into the header.

        Raises:
            AllocatorNotConfigured: If the scope has no usable parameters
            StoreError: If the allocator state cannot be written
        """
        self._ensure_open()
        with self._context():
            code = self.allocator.allocate(self.store, scope_key)
        self.edit_header(code=code)
        return code

    def close(self) -> None:
        self._closed = True
