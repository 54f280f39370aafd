"""
Tree Model.

Pure structural operations over a forest of work items (a tuple of root
items with unique ids). Every mutating operation rebuilds only the nodes on
the path from a root to the target and shares all other subtrees. When the
target is absent the input forest is returned as is; not-found is a value
here, never an error.
"""

from collections.abc import Iterator

from issuetree.models.work_item import WorkItem

Forest = tuple[WorkItem, ...]


def find_item(items: Forest, item_id: str) -> WorkItem | None:
    """Find an item by id.

    Pre-order depth-first search; the first match wins.

    Args:
        items: Forest to search
        item_id: Id to look for

    Returns:
        The matching item, or None
    """
    for item in items:
        if item.id == item_id:
            return item
        found = find_item(item.children, item_id)
        if found is not None:
            return found
    return None


def iter_items(items: Forest) -> Iterator[WorkItem]:
    """Yield every item of the forest in pre-order."""
    for item in items:
        yield item
        yield from iter_items(item.children)


def subtree_ids(item: WorkItem) -> list[str]:
    """Ids of an item and all its descendants, children before parents."""
    ids: list[str] = []
    for child in item.children:
        ids.extend(subtree_ids(child))
    ids.append(item.id)
    return ids


def count_descendants(item: WorkItem) -> int:
    """Count every item below ``item``."""
    return sum(1 + count_descendants(child) for child in item.children)


def replace_item(items: Forest, item_id: str, new_item: WorkItem) -> Forest:
    """Replace the item with ``item_id`` (and its subtree) by ``new_item``.

    Args:
        items: Forest to edit
        item_id: Id of the item to replace
        new_item: Replacement node

    Returns:
        New forest, or ``items`` itself if the id is absent
    """
    result, changed = _replace(items, item_id, new_item)
    return result if changed else items


def insert_child(items: Forest, parent_id: str, child: WorkItem) -> Forest:
    """Append ``child`` under the item with ``parent_id``.

    The child is re-parented: its ``parent_id`` and ``depth`` are set from
    the parent it lands under.

    Returns:
        New forest, or ``items`` itself if the parent is absent
    """
    parent = find_item(items, parent_id)
    if parent is None:
        return items
    placed = child.model_copy(update={"parent_id": parent.id, "depth": parent.depth + 1})
    new_parent = parent.model_copy(update={"children": parent.children + (placed,)})
    return replace_item(items, parent_id, new_parent)


def append_root(items: Forest, item: WorkItem) -> Forest:
    """Append ``item`` as a new root."""
    root = item.model_copy(update={"parent_id": None, "depth": 0})
    return tuple(items) + (root,)


def remove_item(items: Forest, item_id: str) -> Forest:
    """Remove the item with ``item_id`` together with its whole subtree.

    Returns:
        New forest, or ``items`` itself if the id is absent
    """
    result, changed = _remove(items, item_id)
    return result if changed else items


def _replace(items: Forest, item_id: str, new_item: WorkItem) -> tuple[Forest, bool]:
    for index, item in enumerate(items):
        if item.id == item_id:
            return items[:index] + (new_item,) + items[index + 1 :], True
        children, changed = _replace(item.children, item_id, new_item)
        if changed:
            updated = item.model_copy(update={"children": children})
            return items[:index] + (updated,) + items[index + 1 :], True
    return items, False


def _remove(items: Forest, item_id: str) -> tuple[Forest, bool]:
    for index, item in enumerate(items):
        if item.id == item_id:
            return items[:index] + items[index + 1 :], True
        children, changed = _remove(item.children, item_id)
        if changed:
            updated = item.model_copy(update={"children": children})
            return items[:index] + (updated,) + items[index + 1 :], True
    return items, False
