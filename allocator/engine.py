"""
Sequential Code Allocator

Generates codes made of a prefix and a zero-padded counter, e.g. "EMP0042"
for employee numbers:

    counter' = counter + 1
    code     = prefix + zero_pad(counter', width)

Allocation is read-increment-write over state held by the store. Nothing
here serializes concurrent allocators: two callers reading the same state
get the same code unless the store makes the round trip atomic.
"""

from datetime import date
from typing import Iterable, Optional

from core.observability.logging import get_logger, with_correlation
from models.allocator import AllocationResult, AllocatorParameters, AllocatorState
from store.base import AllocatorNotConfigured, ReferenceStore


logger = get_logger(__name__)


# =============================================================================
# Pure operations
# =============================================================================

def format_code(prefix: str, counter: int, width: int) -> str:
    """Prefix + counter left-padded with zeros to width (never truncated)."""
    return f"{prefix}{str(counter).zfill(width)}"


def preview_code(state: AllocatorState) -> str:
    """Code displayed for the current state, as the parameter screen shows it."""
    return format_code(state.prefix, state.counter, state.width)


def select_active_parameters(
    rows: Iterable[AllocatorParameters],
    scope_key: str,
    on_date: Optional[date] = None,
) -> AllocatorParameters:
    """
    Pick the parameter row in force for a scope.

    The row must be active, started on or before on_date and not ended; the
    most recently started row wins.

    Args:
        rows: Parameter rows (any scope)
        scope_key: Scope to allocate for
        on_date: Reference date (defaults to today)

    Returns:
        The applicable AllocatorParameters

    Raises:
        AllocatorNotConfigured: If no row applies or its prefix is empty
    """
    on_date = on_date or date.today()
    candidates = [
        row for row in rows
        if row.scope_key == scope_key and row.applies_on(on_date)
    ]
    if not candidates:
        raise AllocatorNotConfigured(scope_key, f"no active parameters on {on_date.isoformat()}")

    selected = max(candidates, key=lambda row: row.start_date)
    if not selected.state.prefix:
        raise AllocatorNotConfigured(scope_key, "prefix is empty")
    return selected


class SequentialCodeAllocator:
    """
    Prefix + counter code generator.

    Usage:
        allocator = SequentialCodeAllocator()
        result = allocator.next(AllocatorState(prefix="EMP", counter=41, width=4))
        result.code               # "EMP0042"
        result.new_state.counter  # 42

        code = allocator.allocate(store, "CONTRACT-1")
    """

    def next(self, state: AllocatorState) -> AllocationResult:
        """Advance the counter by one and build the code. Deterministic, no I/O."""
        counter = state.counter + 1
        code = format_code(state.prefix, counter, state.width)
        if len(str(counter)) > state.width:
            logger.warning(
                f"Counter {counter} overflows pad width {state.width} for prefix '{state.prefix}'",
                extra_fields={"code": code},
            )
        return AllocationResult(
            code=code,
            new_state=state.model_copy(update={"counter": counter}),
        )

    def allocate(self, store: ReferenceStore, scope_key: str) -> str:
        """
        Fetch the scope's state, compute the next code and persist the new state.

        Failures of the store are propagated unchanged: no code is returned
        unless the advanced counter was written.

        Args:
            store: Store holding the allocator state
            scope_key: Sequence scope (e.g. client contract)

        Returns:
            Generated code

        Raises:
            AllocatorNotConfigured: If the scope has no usable parameters
            StoreError: If reading or writing the state fails
        """
        with with_correlation(scope_key=scope_key):
            state = store.fetch_allocator_state(scope_key)
            if not state.prefix:
                raise AllocatorNotConfigured(scope_key, "prefix is empty")

            result = self.next(state)
            store.persist_allocator_state(scope_key, result.new_state)

            logger.info(
                f"Allocated code {result.code}",
                extra_fields={"counter": result.new_state.counter},
            )
            return result.code
