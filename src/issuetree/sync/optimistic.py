"""
Optimistic Update Manager.

Projects pending changes onto a snapshot before the tracker confirms them,
so the user sees the result immediately. Every projection returns a new
snapshot with recomputed states; the snapshot it started from is left
untouched and serves as the rollback point.
"""

import logging
import uuid

from issuetree.models.work_item import PLACEHOLDER_PREFIX, ProjectSnapshot, WorkItem
from issuetree.tree.operations import (
    Forest,
    append_root,
    find_item,
    insert_child,
    remove_item,
    replace_item,
)
from issuetree.tree.state import recompute_states

logger = logging.getLogger(__name__)


class OptimisticUpdateManager:
    """Builds projected snapshots for in-flight workflows."""

    def __init__(self, placeholder_prefix: str = PLACEHOLDER_PREFIX) -> None:
        self._placeholder_prefix = placeholder_prefix

    @property
    def placeholder_prefix(self) -> str:
        return self._placeholder_prefix

    def make_placeholder_id(self) -> str:
        """Mint a temporary id for an unconfirmed item."""
        return f"{self._placeholder_prefix}{uuid.uuid4().hex[:12]}"

    def is_placeholder(self, item_id: str) -> bool:
        return item_id.startswith(self._placeholder_prefix)

    def project_update(self, snapshot: ProjectSnapshot, item: WorkItem) -> ProjectSnapshot:
        """Replace an item by its edited version.

        The edited item keeps the position and children of the node it
        replaces.
        """
        current = find_item(snapshot.items, item.id)
        if current is None:
            logger.debug(f"Projected update of missing item #{item.id} ignored")
            return snapshot
        updated = item.model_copy(
            update={
                "children": current.children,
                "depth": current.depth,
                "parent_id": current.parent_id,
            }
        )
        return self._commit(snapshot, replace_item(snapshot.items, item.id, updated))

    def project_creation(
        self,
        snapshot: ProjectSnapshot,
        item: WorkItem,
        parent_id: str | None = None,
    ) -> ProjectSnapshot:
        """Add a new item at the root level or under ``parent_id``."""
        if parent_id is None:
            items = append_root(snapshot.items, item)
        else:
            items = insert_child(snapshot.items, parent_id, item)
        return self._commit(snapshot, items)

    def replace_placeholder(
        self,
        snapshot: ProjectSnapshot,
        placeholder_id: str,
        confirmed: WorkItem,
    ) -> ProjectSnapshot:
        """Swap a placeholder for the item the tracker confirmed.

        The confirmed item lands exactly where the placeholder was.
        """
        placeholder = find_item(snapshot.items, placeholder_id)
        if placeholder is None:
            logger.warning(f"Placeholder {placeholder_id} vanished before confirmation")
            return snapshot
        placed = confirmed.model_copy(
            update={
                "depth": placeholder.depth,
                "parent_id": placeholder.parent_id,
                "children": placeholder.children,
            }
        )
        return self._commit(snapshot, replace_item(snapshot.items, placeholder_id, placed))

    def project_removal(self, snapshot: ProjectSnapshot, item_id: str) -> ProjectSnapshot:
        """Drop an item and its whole subtree."""
        return self._commit(snapshot, remove_item(snapshot.items, item_id))

    def rebase(self, snapshot: ProjectSnapshot, items: Forest) -> ProjectSnapshot:
        """Replace the whole forest, e.g. after a refresh or a rollback."""
        return self._commit(snapshot, items)

    def _commit(self, snapshot: ProjectSnapshot, items: Forest) -> ProjectSnapshot:
        return snapshot.with_items(recompute_states(items))
