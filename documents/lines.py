"""Ordered, immutable collection of document lines.

Every operation returns a new `DocumentLineSet`; none touches the header or
performs I/O. Lines are matched by persisted id, else by their client draft
key, else by slot (position).
"""

from decimal import Decimal
from typing import Any, Iterable, Iterator, Mapping, Optional, Tuple, Union

from models.documents import DocumentLine, LineRef


# Fields a patch may never change: they define the line's identity
_IDENTITY_FIELDS = ("id", "draft_key")


class LineNotFound(Exception):
    """No line in the set matches the given identity."""
    def __init__(self, ref: LineRef):
        super().__init__(f"No line matches {ref}")
        self.ref = ref


class DocumentLineSet:
    """Lines of one document, in insertion order."""

    def __init__(self, lines: Iterable[DocumentLine] = ()):
        self._lines: Tuple[DocumentLine, ...] = tuple(lines)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def lines(self) -> Tuple[DocumentLine, ...]:
        return self._lines

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[DocumentLine]:
        return iter(self._lines)

    def __eq__(self, other) -> bool:
        if not isinstance(other, DocumentLineSet):
            return NotImplemented
        return self._lines == other._lines

    def __repr__(self) -> str:
        return f"DocumentLineSet({len(self._lines)} lines, total={self.total()})"

    def total(self) -> Decimal:
        """Sum of line amounts excl. tax."""
        return sum((line.amount_excl_tax for line in self._lines), Decimal("0"))

    def tax_total(self) -> Decimal:
        """Sum of line tax amounts (missing tax counts as 0)."""
        return sum((line.tax_amount or Decimal("0") for line in self._lines), Decimal("0"))

    def persisted_ids(self) -> Tuple[str, ...]:
        return tuple(line.id for line in self._lines if line.id is not None)

    def identity_of(self, line: DocumentLine) -> LineRef:
        """Identity to use for this line in update/remove calls."""
        if line.id is not None:
            return LineRef.persisted(line.id)
        return LineRef.draft(line.draft_key)

    def index_of(self, ref: LineRef) -> int:
        """
        Position of the line matching ref.

        Raises:
            LineNotFound: If no line matches
        """
        if ref.line_id is not None:
            for index, line in enumerate(self._lines):
                if line.id == ref.line_id:
                    return index
        elif ref.draft_key is not None:
            for index, line in enumerate(self._lines):
                if line.draft_key == ref.draft_key:
                    return index
        elif 0 <= ref.slot < len(self._lines):
            return ref.slot
        raise LineNotFound(ref)

    def find(self, ref: LineRef) -> Optional[DocumentLine]:
        try:
            return self._lines[self.index_of(ref)]
        except LineNotFound:
            return None

    # ------------------------------------------------------------------
    # Mutations (pure)
    # ------------------------------------------------------------------

    def add(self, line: Union[DocumentLine, Mapping[str, Any]]) -> "DocumentLineSet":
        """Append a line at the end."""
        if not isinstance(line, DocumentLine):
            line = DocumentLine.model_validate(line)
        return DocumentLineSet(self._lines + (line,))

    def update(self, ref: LineRef, patch: Union[DocumentLine, Mapping[str, Any]]) -> "DocumentLineSet":
        """
        Replace the matching line with a merged copy.

        The identity of the line (id, draft key) is kept whatever the patch says.

        Raises:
            LineNotFound: If no line matches
        """
        index = self.index_of(ref)
        current = self._lines[index]

        if isinstance(patch, DocumentLine):
            changes = patch.model_dump(exclude_unset=True)
        else:
            changes = dict(patch)
        for key in _IDENTITY_FIELDS:
            changes.pop(key, None)

        merged = DocumentLine.model_validate({**current.model_dump(), **changes})
        return DocumentLineSet(self._lines[:index] + (merged,) + self._lines[index + 1:])

    def remove(self, ref: LineRef) -> "DocumentLineSet":
        """
        Drop the matching line.

        Raises:
            LineNotFound: If no line matches
        """
        index = self.index_of(ref)
        return DocumentLineSet(self._lines[:index] + self._lines[index + 1:])
