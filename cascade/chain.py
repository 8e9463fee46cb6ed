"""
Multi-level cascades.

A chain links selectors so that the child selection of level k is the parent
selection of level k+1, e.g. entity → category → sub-category on an invoice
line. Any change of a level's selection is a parent change for the level
below, which propagates down to the last level.
"""

from typing import Dict, List, Optional, Sequence

from cascade.selector import CascadingSelector, SelectionAction, SelectionDecision
from core.observability.logging import get_logger
from models.reference import ReferenceCatalog


logger = get_logger(__name__)


class CascadeChain:
    """
    Ordered selectors where each level filters the next.

    Usage:
        chain = CascadeChain([
            CascadingSelector(FLOW_CATEGORY_POLICY),      # parent: entity
            CascadingSelector(FLOW_SUB_CATEGORY_POLICY),  # parent: category
        ])
        chain.select_root("ENT-1")
        chain.select("flow_category", "CAT-3")
    """

    def __init__(self, selectors: Sequence[CascadingSelector]):
        if not selectors:
            raise ValueError("A cascade chain needs at least one selector")
        names = [s.name for s in selectors]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate catalog names in cascade chain: {names}")
        self.selectors: List[CascadingSelector] = list(selectors)

    @property
    def names(self) -> List[str]:
        return [s.name for s in self.selectors]

    @property
    def root_selection(self) -> Optional[str]:
        return self.selectors[0].parent_selection

    @property
    def is_hydrating(self) -> bool:
        return any(s.is_hydrating for s in self.selectors)

    def level(self, name_or_index) -> int:
        """Resolve a catalog name or an index to a level index."""
        if isinstance(name_or_index, int):
            if not 0 <= name_or_index < len(self.selectors):
                raise IndexError(f"No level {name_or_index} in cascade chain")
            return name_or_index
        try:
            return self.names.index(name_or_index)
        except ValueError:
            raise KeyError(f"No level '{name_or_index}' in cascade chain {self.names}")

    def selector(self, name_or_index) -> CascadingSelector:
        return self.selectors[self.level(name_or_index)]

    def selections(self) -> Dict[str, Optional[str]]:
        """Current selection per level."""
        return {s.name: s.child_selection for s in self.selectors}

    def hydrate(self, root: Optional[str], selections: Dict[str, Optional[str]]) -> None:
        """
        Load an existing record: root parent plus one value per level.

        Args:
            root: Parent selection of the first level (e.g. the entity)
            selections: Catalog name → value the record was saved with
        """
        parent = root
        for selector in self.selectors:
            value = selections.get(selector.name)
            selector.hydrate(parent=parent, child=value)
            parent = selector.child_selection

    def complete_hydration(self) -> Dict[str, SelectionDecision]:
        """End hydration on every level, top-down, propagating any clear."""
        decisions: Dict[str, SelectionDecision] = {}
        for index, selector in enumerate(self.selectors):
            decision = selector.complete_hydration()
            # A reset propagated from a level above wins over the KEEP of an emptied level
            decisions.setdefault(selector.name, decision)
            if decision.cleared:
                decisions.update(self._propagate(index))
        return decisions

    def select_root(self, value: Optional[str]) -> Dict[str, SelectionDecision]:
        """User changed the root parent (e.g. the entity)."""
        decisions = {self.selectors[0].name: self.selectors[0].on_parent_changed(value)}
        decisions.update(self._propagate(0))
        return decisions

    def select(self, name_or_index, value: Optional[str]) -> Dict[str, SelectionDecision]:
        """User picked a value at one level; every level below is reset."""
        index = self.level(name_or_index)
        selector = self.selectors[index]
        decisions = {selector.name: selector.select_child(value)}
        below = self.selectors[index + 1] if index + 1 < len(self.selectors) else None
        if below is not None and below.parent_selection != selector.child_selection:
            decisions.update(self._propagate(index))
        return decisions

    def load_catalog(self, name_or_index, catalog: ReferenceCatalog) -> Dict[str, SelectionDecision]:
        """Apply a fetched catalog to one level; a cleared level resets the levels below."""
        index = self.level(name_or_index)
        selector = self.selectors[index]
        decision = selector.load_catalog(catalog)
        decisions = {selector.name: decision}
        if decision.action == SelectionAction.CLEAR and decision.previous_selection is not None:
            decisions.update(self._propagate(index))
        return decisions

    def _propagate(self, index: int) -> Dict[str, SelectionDecision]:
        decisions: Dict[str, SelectionDecision] = {}
        parent = self.selectors[index].child_selection
        for selector in self.selectors[index + 1:]:
            decisions[selector.name] = selector.on_parent_changed(parent)
            parent = selector.child_selection
        if decisions:
            logger.debug(
                f"Reset levels below '{self.selectors[index].name}'",
                extra_fields={"levels": list(decisions)},
            )
        return decisions
