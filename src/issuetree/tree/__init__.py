"""
issuetree - Work-Item Tree

Pure structural operations, derived-state computation, and conversion of
tracker issues into the work-item forest.
"""

from issuetree.tree.hierarchy import build_hierarchy, issue_labels, work_item_from_record
from issuetree.tree.operations import (
    Forest,
    append_root,
    count_descendants,
    find_item,
    insert_child,
    iter_items,
    remove_item,
    replace_item,
    subtree_ids,
)
from issuetree.tree.state import (
    apply_manual_state,
    can_change_state,
    derive_state,
    is_leaf,
    recompute_states,
)

__all__ = [
    # Structure
    "Forest",
    "find_item",
    "iter_items",
    "subtree_ids",
    "count_descendants",
    "replace_item",
    "insert_child",
    "append_root",
    "remove_item",
    # State
    "derive_state",
    "recompute_states",
    "apply_manual_state",
    "can_change_state",
    "is_leaf",
    # Hierarchy
    "build_hierarchy",
    "work_item_from_record",
    "issue_labels",
]
