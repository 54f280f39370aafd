"""
State Computation Engine.

Derives the state of every internal item from its children. Leaves keep
whatever state they were last given (manually or by the tracker).
"""

from collections.abc import Iterable

from issuetree.errors import NotFoundError, ValidationError
from issuetree.models.base import WorkItemState
from issuetree.models.work_item import WorkItem
from issuetree.tree.operations import Forest, find_item, replace_item


def is_leaf(item: WorkItem) -> bool:
    """Check if an item has no children."""
    return item.is_leaf


def can_change_state(item: WorkItem) -> bool:
    """Only leaves accept manual state changes."""
    return is_leaf(item)


def derive_state(child_states: Iterable[WorkItemState]) -> WorkItemState:
    """Compute an internal item's state from its children's states.

    Any child in progress makes the parent in progress. Otherwise the
    parent is done only when every child is done; a mix of done and to-do
    children stays to-do.

    Args:
        child_states: Already computed states of the children

    Returns:
        The derived state
    """
    states = list(child_states)
    if any(state == WorkItemState.IN_PROGRESS for state in states):
        return WorkItemState.IN_PROGRESS
    if states and all(state == WorkItemState.DONE for state in states):
        return WorkItemState.DONE
    return WorkItemState.TODO


def recompute_states(items: Forest) -> Forest:
    """Apply the derivation rule to every internal item, bottom-up.

    Produces a fresh forest; nodes whose state and children did not change
    are reused. Running it twice gives the same forest.

    Args:
        items: Forest to recompute

    Returns:
        Forest with derived states
    """
    return tuple(_recompute(item) for item in items)


def _recompute(item: WorkItem) -> WorkItem:
    if item.is_leaf:
        return item

    children = tuple(_recompute(child) for child in item.children)
    state = derive_state(child.state for child in children)

    unchanged = state == item.state and all(
        new is old for new, old in zip(children, item.children)
    )
    if unchanged:
        return item
    return item.model_copy(update={"children": children, "state": state})


def apply_manual_state(items: Forest, item_id: str, state: WorkItemState) -> Forest:
    """Set a leaf's state and recompute its ancestors.

    Args:
        items: Forest to edit
        item_id: Leaf to change
        state: New state

    Returns:
        New forest with derived states

    Raises:
        NotFoundError: If the item does not exist
        ValidationError: If the item has children
    """
    item = find_item(items, item_id)
    if item is None:
        raise NotFoundError(f"Work item not found: {item_id}")
    if not can_change_state(item):
        raise ValidationError(
            f"Cannot manually change state of #{item_id}: it has "
            f"{len(item.children)} sub-item(s) and its state is derived"
        )
    updated = replace_item(items, item_id, item.model_copy(update={"state": state}))
    return recompute_states(updated)
