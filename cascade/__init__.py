"""
Cascade Package

Dependent ("cascading") dropdown resolution for reference catalogs.

Features:
- Visible child rows per selected parent, with per-catalog global-row policy
- Hydration-aware invalidation of a child selection (no flicker when editing
  an existing record whose catalogs load asynchronously)
- Hard reset of the child on parent change
- Multi-level chains (entity → category → sub-category)

Usage:
    from cascade import CascadingSelector, FLOW_SUB_CATEGORY_POLICY

    selector = CascadingSelector(FLOW_SUB_CATEGORY_POLICY, catalog=sub_categories)
    selector.on_parent_changed("CAT-1")
    visible = selector.compute_visible()
"""

from .selector import (
    InvalidCatalogPolicy,
    SelectionAction,
    SelectionDecision,
    CascadeState,
    CascadingSelector,
    compute_visible,
    reconcile_selection,
)

from .policies import (
    FLOW_NATURE_POLICY,
    FLOW_CATEGORY_POLICY,
    FLOW_SUB_CATEGORY_POLICY,
    HR_CONTRACT_POLICY,
    HR_SUB_CATEGORY_POLICY,
    POLICIES,
    get_policy,
)

from .chain import CascadeChain

__all__ = [
    # Errors
    "InvalidCatalogPolicy",

    # Selector
    "SelectionAction",
    "SelectionDecision",
    "CascadeState",
    "CascadingSelector",
    "compute_visible",
    "reconcile_selection",

    # Chains
    "CascadeChain",

    # Policies
    "FLOW_NATURE_POLICY",
    "FLOW_CATEGORY_POLICY",
    "FLOW_SUB_CATEGORY_POLICY",
    "HR_CONTRACT_POLICY",
    "HR_SUB_CATEGORY_POLICY",
    "POLICIES",
    "get_policy",
]
