"""
Cascading Selector

Keeps a child selection consistent with a changing parent selection:
1. Compute the visible child rows for the selected parent (plus global rows
   when the catalog policy says so)
2. Decide whether an existing child selection survives a catalog or filter
   change, keeping the value a record was loaded with while it hydrates
3. Hard-reset the child on every parent change

The module-level functions are pure; `CascadingSelector` holds one
`CascadeState` and applies them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple, Union

from core.observability.logging import get_logger
from models.reference import CatalogPolicy, NoParentPolicy, ReferenceCatalog, ReferenceRow
from models.values import is_empty_key


logger = get_logger(__name__)


class InvalidCatalogPolicy(Exception):
    """A catalog policy is missing a declaration the catalog content requires."""
    def __init__(self, message: str, catalog: Optional[str] = None):
        super().__init__(message)
        self.catalog = catalog


class SelectionAction(str, Enum):
    """What happened to the child selection."""
    KEEP = "keep"          # Still valid (or nothing selected)
    RETAIN = "retain"      # Not visible yet, kept because the record is hydrating
    CLEAR = "clear"        # Invalidated and cleared


@dataclass(frozen=True)
class SelectionDecision:
    """Result of a reconciliation step.

    Attributes:
        action: keep, retain or clear
        child_selection: Selection after the step (None when cleared)
        previous_selection: Selection before the step
        reprompt: True when the caller must ask the user to choose again
    """
    action: SelectionAction
    child_selection: Optional[str]
    previous_selection: Optional[str] = None
    reprompt: bool = False

    @property
    def cleared(self) -> bool:
        return self.action == SelectionAction.CLEAR


# =============================================================================
# Pure operations
# =============================================================================

def _rows_of(children) -> Tuple[ReferenceRow, ...]:
    if isinstance(children, ReferenceCatalog):
        return children.rows
    return tuple(children or ())


def compute_visible(
    children: Union[ReferenceCatalog, Iterable[ReferenceRow]],
    parent_selection: Optional[str],
    policy: CatalogPolicy,
) -> Tuple[ReferenceRow, ...]:
    """
    Compute the child rows visible under the selected parent.

    Args:
        children: Full child catalog (or its rows)
        parent_selection: Selected parent id, None/"" when none is chosen
        policy: Visibility policy declared for this catalog

    Returns:
        Visible rows, in catalog order

    Raises:
        InvalidCatalogPolicy: If the catalog holds global rows and the policy
            does not declare whether they are visible
    """
    rows = _rows_of(children)
    has_global = any(row.is_global for row in rows)

    if policy.global_rows_visible is None and has_global:
        raise InvalidCatalogPolicy(
            f"Catalog '{policy.name}' contains unscoped rows but its policy does not "
            f"declare global_rows_visible",
            catalog=policy.name,
        )

    if is_empty_key(parent_selection):
        if policy.when_no_parent == NoParentPolicy.GLOBAL_ONLY:
            return tuple(row for row in rows if row.is_global)
        return ()

    include_global = bool(policy.global_rows_visible)
    return tuple(
        row for row in rows
        if row.parent_key == parent_selection or (include_global and row.is_global)
    )


def reconcile_selection(
    visible_children: Iterable[ReferenceRow],
    child_selection: Optional[str],
    is_hydrating: bool,
    externally_supplied_value: Optional[str],
) -> SelectionDecision:
    """
    Decide whether the current child selection survives.

    A selection that is not visible is cleared, except while the record is
    hydrating and the selection is the value the record was loaded with:
    its supporting catalog has simply not arrived yet.

    Args:
        visible_children: Rows currently visible
        child_selection: Current child selection
        is_hydrating: True only during the initial load of an existing record
        externally_supplied_value: Child value the record was loaded with

    Returns:
        SelectionDecision
    """
    if is_empty_key(child_selection):
        return SelectionDecision(SelectionAction.KEEP, None)

    if any(row.id == child_selection for row in visible_children):
        return SelectionDecision(SelectionAction.KEEP, child_selection, child_selection)

    if is_hydrating and child_selection == externally_supplied_value:
        return SelectionDecision(SelectionAction.RETAIN, child_selection, child_selection)

    return SelectionDecision(
        SelectionAction.CLEAR,
        None,
        previous_selection=child_selection,
        reprompt=True,
    )


# =============================================================================
# Stateful selector
# =============================================================================

@dataclass
class CascadeState:
    """Selection state of one parent/child pair.

    `visible_children` is derived, never stored. `is_hydrating` only ever
    goes from True to False.
    """
    policy: CatalogPolicy
    child_catalog: ReferenceCatalog
    parent_selection: Optional[str] = None
    child_selection: Optional[str] = None
    initial_child: Optional[str] = None
    is_hydrating: bool = False

    @property
    def visible_children(self) -> Tuple[ReferenceRow, ...]:
        return compute_visible(self.child_catalog, self.parent_selection, self.policy)


class CascadingSelector:
    """
    Dependent dropdown state machine.

    Usage:
        selector = CascadingSelector(SUB_CATEGORY_POLICY)
        selector.hydrate(parent="CAT-1", child="SUB-7")  # edit mode
        selector.load_catalog(sub_categories)             # fetch completed
        selector.complete_hydration()
        decision = selector.on_parent_changed("CAT-2")    # user input
    """

    def __init__(
        self,
        policy: CatalogPolicy,
        catalog: Optional[ReferenceCatalog] = None,
        parent_selection: Optional[str] = None,
        child_selection: Optional[str] = None,
    ):
        """
        Initialize a selector for a new record.

        Args:
            policy: Visibility policy of the child catalog
            catalog: Child catalog, empty until fetched
            parent_selection: Initial parent selection
            child_selection: Initial child selection
        """
        self.state = CascadeState(
            policy=policy,
            child_catalog=catalog if catalog is not None else ReferenceCatalog(name=policy.name),
            parent_selection=None if is_empty_key(parent_selection) else parent_selection,
            child_selection=None if is_empty_key(child_selection) else child_selection,
        )
        self._finished_hydration = False

    @property
    def name(self) -> str:
        return self.state.policy.name

    @property
    def parent_selection(self) -> Optional[str]:
        return self.state.parent_selection

    @property
    def child_selection(self) -> Optional[str]:
        return self.state.child_selection

    @property
    def is_hydrating(self) -> bool:
        return self.state.is_hydrating

    def compute_visible(self) -> Tuple[ReferenceRow, ...]:
        return self.state.visible_children

    def hydrate(self, parent: Optional[str], child: Optional[str]) -> None:
        """
        Load the values of an existing record (edit mode).

        The child value is remembered as the externally supplied value, so
        it survives until the record's catalogs have been loaded.

        Raises:
            RuntimeError: If hydration already completed for this selector, or
                the user already edited it as a new record
        """
        if self._finished_hydration:
            raise RuntimeError(f"Selector '{self.name}' can no longer be hydrated")
        self.state.parent_selection = None if is_empty_key(parent) else parent
        self.state.child_selection = None if is_empty_key(child) else child
        self.state.initial_child = self.state.child_selection
        self.state.is_hydrating = True
        logger.debug(
            f"Hydrating '{self.name}'",
            extra_fields={"parent": self.state.parent_selection, "child": self.state.child_selection},
        )

    def complete_hydration(self) -> SelectionDecision:
        """
        End hydration (one way) and re-check the child selection without the
        hydration exception.
        """
        if self.state.is_hydrating:
            self.state.is_hydrating = False
            self._finished_hydration = True
            logger.debug(f"Hydration complete for '{self.name}'")
        return self.reconcile()

    def reconcile(self) -> SelectionDecision:
        """Apply `reconcile_selection` to the current state."""
        decision = reconcile_selection(
            self.state.visible_children,
            self.state.child_selection,
            self.state.is_hydrating,
            self.state.initial_child,
        )
        if decision.action == SelectionAction.CLEAR:
            logger.debug(
                f"Cleared '{self.name}' selection {decision.previous_selection}: not visible "
                f"under parent {self.state.parent_selection}"
            )
        elif decision.action == SelectionAction.RETAIN:
            logger.debug(f"Kept hydrating '{self.name}' selection {decision.child_selection}")
        self.state.child_selection = decision.child_selection
        return decision

    def load_catalog(self, catalog: ReferenceCatalog) -> SelectionDecision:
        """Replace the child catalog with a newer fetch and reconcile."""
        self.state.child_catalog = catalog
        return self.reconcile()

    def _user_transition(self) -> None:
        # A record edited live is never hydrated afterwards
        if not self.state.is_hydrating:
            self._finished_hydration = True

    def select_child(self, child: Optional[str]) -> SelectionDecision:
        """User picks a child; an invisible pick is cleared right away."""
        self._user_transition()
        self.state.child_selection = None if is_empty_key(child) else child
        return self.reconcile()

    def on_parent_changed(self, new_parent: Optional[str]) -> SelectionDecision:
        """
        User changed the parent: the child is always cleared.

        No hydration exception applies here; a parent change is a live user
        action, never a side effect of loading.
        """
        self._user_transition()
        previous = self.state.child_selection
        self.state.parent_selection = None if is_empty_key(new_parent) else new_parent
        self.state.child_selection = None
        logger.debug(
            f"Parent of '{self.name}' changed to {self.state.parent_selection}",
            extra_fields={"cleared_child": previous},
        )
        return SelectionDecision(
            SelectionAction.CLEAR,
            None,
            previous_selection=previous,
            reprompt=previous is not None,
        )
