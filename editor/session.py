"""
Cascade Session

Integration of a cascade with asynchronous catalog fetches:
1. Every fetch gets a ticket; only the latest ticket of a level may be applied,
   so a slow, superseded fetch never overwrites a newer decision
2. After close() nothing is applied any more (the form is gone)
3. Hydration of an existing record ends exactly once: when every level has
   received a catalog, or when finish_hydration() is called
4. Parent changes are user actions: they are refused while hydrating
"""

import itertools
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple, Union

from cascade.chain import CascadeChain
from cascade.selector import CascadingSelector, SelectionDecision
from core.observability.logging import get_logger, with_correlation
from models.reference import ReferenceCatalog, ReferenceRow
from store.base import CatalogScope, ReferenceStore


logger = get_logger(__name__)


@dataclass(frozen=True)
class FetchTicket:
    """Handle of one outstanding catalog fetch."""
    level: str
    sequence: int


class CascadeSession:
    """
    One form's cascade plus its fetch bookkeeping.

    Usage:
        session = CascadeSession(chain)
        session.hydrate("ENT-1", {"flow_category": "CAT-3", "flow_sub_category": "SUB-9"})
        ticket = session.begin_fetch("flow_sub_category")
        ...
        session.apply_fetch(ticket, rows)   # None if stale or closed
    """

    def __init__(self, cascade: Union[CascadeChain, CascadingSelector], form: Optional[str] = None):
        if isinstance(cascade, CascadingSelector):
            cascade = CascadeChain([cascade])
        self.chain = cascade
        self.form = form
        self._sequence = itertools.count(1)
        self._latest: Dict[str, int] = {}
        self._loaded: set = set()
        self._hydrating = False
        self._hydrated = False
        self._closed = False

    @property
    def is_hydrating(self) -> bool:
        return self._hydrating

    @property
    def is_closed(self) -> bool:
        return self._closed

    def selections(self) -> Dict[str, Optional[str]]:
        return self.chain.selections()

    def visible(self, level) -> Tuple[ReferenceRow, ...]:
        return self.chain.selector(level).compute_visible()

    # =========================================================================
    # Hydration
    # =========================================================================

    def hydrate(self, root: Optional[str], selections: Dict[str, Optional[str]]) -> None:
        """
        Load the values of an existing record.

        Raises:
            RuntimeError: If the session was already hydrated or is closed
        """
        self._ensure_open()
        if self._hydrated or self._hydrating:
            raise RuntimeError("A cascade session hydrates only once")
        self.chain.hydrate(root, selections)
        self._hydrating = True
        self._loaded = set()

    def finish_hydration(self) -> Dict[str, SelectionDecision]:
        """End hydration now; later calls are no-ops."""
        if not self._hydrating:
            return {}
        self._hydrating = False
        self._hydrated = True
        decisions = self.chain.complete_hydration()
        cleared = [name for name, d in decisions.items() if d.cleared and d.previous_selection]
        with with_correlation(form=self.form):
            logger.debug("Hydration finished", extra_fields={"cleared": cleared})
        return decisions

    # =========================================================================
    # Fetches
    # =========================================================================

    def begin_fetch(self, level) -> FetchTicket:
        """Register a new fetch for a level; earlier tickets of that level become stale."""
        name = self.chain.selector(level).name
        ticket = FetchTicket(level=name, sequence=next(self._sequence))
        self._latest[name] = ticket.sequence
        return ticket

    def apply_fetch(
        self,
        ticket: FetchTicket,
        rows: Iterable[ReferenceRow],
    ) -> Optional[Dict[str, SelectionDecision]]:
        """
        Apply the result of a fetch.

        Returns:
            Selection decisions per level, or None when the result was
            discarded (stale ticket or closed session)
        """
        with with_correlation(form=self.form, catalog=ticket.level):
            if self._closed:
                logger.warning("Discarded fetch result: session closed", extra_fields={"ticket": ticket.sequence})
                return None
            if self._latest.get(ticket.level) != ticket.sequence:
                logger.warning(
                    "Discarded stale fetch result",
                    extra_fields={"ticket": ticket.sequence, "latest": self._latest.get(ticket.level)},
                )
                return None

            catalog = ReferenceCatalog.of(ticket.level, rows)
            decisions = self.chain.load_catalog(ticket.level, catalog)
            self._loaded.add(ticket.level)

        if self._hydrating and self._loaded.issuperset(self.chain.names):
            decisions.update(self.finish_hydration())
        return decisions

    def load(self, level, store: ReferenceStore, scope: CatalogScope) -> Optional[Dict[str, SelectionDecision]]:
        """Fetch a level's catalog from the store and apply it."""
        ticket = self.begin_fetch(level)
        rows = store.fetch_catalog(ticket.level, scope)
        return self.apply_fetch(ticket, rows)

    # =========================================================================
    # User input
    # =========================================================================

    def select_root(self, value: Optional[str]) -> Dict[str, SelectionDecision]:
        self._ensure_user_input()
        return self.chain.select_root(value)

    def select(self, level, value: Optional[str]) -> Dict[str, SelectionDecision]:
        self._ensure_user_input()
        return self.chain.select(level, value)

    def close(self) -> None:
        """Form discarded: late fetch results are dropped from now on."""
        self._closed = True

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("Cascade session is closed")

    def _ensure_user_input(self) -> None:
        self._ensure_open()
        if self._hydrating:
            raise RuntimeError("Selections cannot change while the record is hydrating")
