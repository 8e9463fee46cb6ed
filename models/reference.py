"""Reference catalog models.

A reference catalog is one fetch worth of rows for a dropdown (entities,
flow categories, sub-categories, natures, contracts...). Rows are never
mutated by the form components: a new fetch produces a new catalog.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models.values import OptionalKey, is_empty_key


class NoParentPolicy(str, Enum):
    """What a child catalog shows while no parent is selected."""
    EMPTY = "empty"              # Force the parent choice first
    GLOBAL_ONLY = "global_only"  # Show unscoped rows only


class ReferenceRow(BaseModel):
    """A single reference row.

    Attributes:
        id: Opaque unique identifier
        parent_key: Identifier of the owning parent scope; None means the row
            is global (unscoped)
        display_fields: Label data (code, libelle, ...), not interpreted here
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Row identifier")
    parent_key: Optional[OptionalKey] = Field(default=None, description="Owning parent scope, None if global")
    display_fields: Dict[str, Any] = Field(default_factory=dict, description="Label data")

    @property
    def is_global(self) -> bool:
        return is_empty_key(self.parent_key)

    @property
    def label(self) -> str:
        for key in ("label", "libelle", "code"):
            value = self.display_fields.get(key)
            if value:
                return str(value)
        return self.id


class ReferenceCatalog(BaseModel):
    """Immutable snapshot of the rows of one catalog, as returned by one fetch."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Catalog name (e.g. 'flow_category')")
    rows: Tuple[ReferenceRow, ...] = Field(default_factory=tuple, description="Rows in display order")
    fetched_at: datetime = Field(default_factory=datetime.utcnow, description="Fetch timestamp")

    @classmethod
    def of(cls, name: str, rows: Iterable[ReferenceRow | Dict[str, Any]]) -> "ReferenceCatalog":
        """Build a catalog from rows or plain dicts."""
        return cls(name=name, rows=tuple(
            row if isinstance(row, ReferenceRow) else ReferenceRow.model_validate(row)
            for row in rows
        ))

    @property
    def size(self) -> int:
        return len(self.rows)

    def ids(self) -> Tuple[str, ...]:
        return tuple(row.id for row in self.rows)

    def get(self, row_id: str) -> Optional[ReferenceRow]:
        for row in self.rows:
            if row.id == row_id:
                return row
        return None

    def contains(self, row_id: str) -> bool:
        return self.get(row_id) is not None

    def has_global_rows(self) -> bool:
        return any(row.is_global for row in self.rows)


class CatalogPolicy(BaseModel):
    """Visibility policy for a child catalog.

    Both settings are explicit. `global_rows_visible` may stay undeclared
    (None) only for catalogs that never contain unscoped rows.

    Attributes:
        name: Catalog name the policy applies to
        global_rows_visible: Whether rows without parent_key are visible
            under every parent
        when_no_parent: Visible set while no parent is selected
    """
    model_config = ConfigDict(frozen=True)

    name: str
    when_no_parent: NoParentPolicy
    global_rows_visible: Optional[bool] = None

    @model_validator(mode="after")
    def _global_only_shows_globals(self) -> "CatalogPolicy":
        if self.when_no_parent == NoParentPolicy.GLOBAL_ONLY and not self.global_rows_visible:
            raise ValueError(
                f"Catalog '{self.name}' shows global rows only without a parent, "
                f"so global_rows_visible must be True"
            )
        return self
