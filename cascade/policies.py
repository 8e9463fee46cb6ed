"""Catalog visibility policies for the finance and HR reference hierarchies.

Flow natures can be defined for one entity or for all entities (no entity):
the nature dropdown of a category shows the entity's own natures plus the
shared ones, and only the shared ones while no entity is chosen. Categories,
sub-categories and HR reference lists are strictly scoped to their parent.
"""

from typing import Dict

from models.reference import CatalogPolicy, NoParentPolicy


# Nature of a flow category, scoped by entity, with shared natures
FLOW_NATURE_POLICY = CatalogPolicy(
    name="flow_nature",
    global_rows_visible=True,
    when_no_parent=NoParentPolicy.GLOBAL_ONLY,
)

# Flow categories, scoped by entity
FLOW_CATEGORY_POLICY = CatalogPolicy(
    name="flow_category",
    global_rows_visible=False,
    when_no_parent=NoParentPolicy.EMPTY,
)

# Flow sub-categories, scoped by category
FLOW_SUB_CATEGORY_POLICY = CatalogPolicy(
    name="flow_sub_category",
    global_rows_visible=False,
    when_no_parent=NoParentPolicy.EMPTY,
)

# Employee contracts, scoped by employee
HR_CONTRACT_POLICY = CatalogPolicy(
    name="hr_contract",
    global_rows_visible=False,
    when_no_parent=NoParentPolicy.EMPTY,
)

# HR sub-categories, scoped by HR category
HR_SUB_CATEGORY_POLICY = CatalogPolicy(
    name="hr_sub_category",
    global_rows_visible=False,
    when_no_parent=NoParentPolicy.EMPTY,
)


POLICIES: Dict[str, CatalogPolicy] = {
    policy.name: policy
    for policy in (
        FLOW_NATURE_POLICY,
        FLOW_CATEGORY_POLICY,
        FLOW_SUB_CATEGORY_POLICY,
        HR_CONTRACT_POLICY,
        HR_SUB_CATEGORY_POLICY,
    )
}


def get_policy(catalog_name: str) -> CatalogPolicy:
    """
    Look up the declared policy of a catalog.

    Raises:
        KeyError: If no policy is declared for the catalog
    """
    try:
        return POLICIES[catalog_name]
    except KeyError:
        raise KeyError(f"No visibility policy declared for catalog '{catalog_name}'")
