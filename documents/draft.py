"""In-memory draft of a document being edited."""

from dataclasses import dataclass, field, replace
from typing import Iterable, Tuple

from documents.lines import DocumentLineSet
from models.documents import DocumentHeader, DocumentLine, LineDeletion


@dataclass(frozen=True)
class DocumentDraft:
    """Header, lines and pending persisted-line deletions of one document.

    Attributes:
        header: Header as last edited
        lines: Current lines
        deletions: Persisted lines removed since the document was opened
    """
    header: DocumentHeader
    lines: DocumentLineSet = field(default_factory=DocumentLineSet)
    deletions: Tuple[LineDeletion, ...] = ()

    @classmethod
    def of(cls, header: DocumentHeader, lines: Iterable[DocumentLine] = ()) -> "DocumentDraft":
        return cls(header=header, lines=DocumentLineSet(lines))

    def with_header(self, header: DocumentHeader) -> "DocumentDraft":
        return replace(self, header=header)

    def with_lines(self, lines: DocumentLineSet) -> "DocumentDraft":
        return replace(self, lines=lines)
