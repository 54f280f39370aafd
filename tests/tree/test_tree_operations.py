"""
Unit tests for the pure tree operations.

Tests structural edits over work-item forests:
- Lookup and traversal order
- Path copying with structural sharing
- Identity-preserving no-ops for missing targets
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from issuetree.models import WorkItem, WorkItemState
from issuetree.tree import (
    append_root,
    count_descendants,
    find_item,
    insert_child,
    iter_items,
    remove_item,
    replace_item,
    subtree_ids,
)


@pytest.fixture
def forest(make_item):
    """Two roots; the first has a child with two grandchildren."""
    return (
        make_item(
            "1",
            children=(
                make_item("2", children=(make_item("3"), make_item("4"))),
                make_item("5"),
            ),
        ),
        make_item("6"),
    )


class TestFind:
    """Tests for find_item and traversal helpers."""

    def test_find_root_and_nested(self, forest):
        """Test finding items at any depth."""
        assert find_item(forest, "1").id == "1"
        assert find_item(forest, "4").depth == 2
        assert find_item(forest, "4").parent_id == "2"

    def test_find_missing_returns_none(self, forest):
        """Test that a missing id is a value, not an error."""
        assert find_item(forest, "99") is None
        assert find_item((), "1") is None

    def test_iter_items_is_pre_order(self, forest):
        """Test pre-order traversal."""
        assert [item.id for item in iter_items(forest)] == ["1", "2", "3", "4", "5", "6"]

    def test_subtree_ids_children_first(self, forest):
        """Test post-order ids, children before parents."""
        assert subtree_ids(forest[0]) == ["3", "4", "2", "5", "1"]

    def test_count_descendants(self, forest):
        """Test counting every item below a node."""
        assert count_descendants(forest[0]) == 4
        assert count_descendants(find_item(forest, "2")) == 2
        assert count_descendants(forest[1]) == 0


class TestReplace:
    """Tests for replace_item."""

    def test_replace_nested(self, forest):
        """Test replacing a grandchild rebuilds only its path."""
        new = find_item(forest, "3").model_copy(update={"title": "Renamed"})
        result = replace_item(forest, "3", new)

        assert find_item(result, "3").title == "Renamed"
        # Path rebuilt
        assert result[0] is not forest[0]
        assert find_item(result, "2") is not find_item(forest, "2")
        # Untouched subtrees shared
        assert result[1] is forest[1]
        assert find_item(result, "5") is find_item(forest, "5")
        assert find_item(result, "4") is find_item(forest, "4")

    def test_original_is_untouched(self, forest):
        """Test that the input forest keeps its old values."""
        new = find_item(forest, "3").model_copy(update={"title": "Renamed"})
        replace_item(forest, "3", new)
        assert find_item(forest, "3").title == "Item 3"

    def test_replace_missing_returns_input(self, forest, make_item):
        """Test that replacing a missing id returns the same forest."""
        assert replace_item(forest, "99", make_item("99")) is forest


class TestInsert:
    """Tests for insert_child and append_root."""

    def test_insert_child_reparents(self, forest, make_item):
        """Test that an inserted child gets parent and depth from its parent."""
        result = insert_child(forest, "3", make_item("7"))
        child = find_item(result, "7")

        assert child.parent_id == "3"
        assert child.depth == 3
        assert [c.id for c in find_item(result, "3").children] == ["7"]

    def test_insert_appends_in_order(self, forest, make_item):
        """Test that new children go last."""
        result = insert_child(forest, "1", make_item("7"))
        assert [c.id for c in result[0].children] == ["2", "5", "7"]

    def test_insert_under_missing_parent(self, forest, make_item):
        """Test that a missing parent leaves the forest as is."""
        assert insert_child(forest, "99", make_item("7")) is forest

    def test_append_root(self, forest, make_item):
        """Test appending a top-level item."""
        orphan = make_item("7", depth=3, parent_id="2")
        result = append_root(forest, orphan)

        assert result[-1].id == "7"
        assert result[-1].depth == 0
        assert result[-1].parent_id is None
        assert result[0] is forest[0]


class TestRemove:
    """Tests for remove_item."""

    def test_remove_drops_subtree(self, forest):
        """Test that removal takes every descendant with it."""
        result = remove_item(forest, "2")

        assert find_item(result, "2") is None
        assert find_item(result, "3") is None
        assert find_item(result, "4") is None
        assert [c.id for c in result[0].children] == ["5"]
        assert result[1] is forest[1]

    def test_remove_root(self, forest):
        """Test removing a whole root."""
        result = remove_item(forest, "1")
        assert [item.id for item in result] == ["6"]

    def test_remove_missing_returns_input(self, forest):
        """Test that removing a missing id returns the same forest."""
        assert remove_item(forest, "99") is forest


class TestWorkItemModel:
    """Tests for WorkItem itself."""

    def test_frozen(self, make_item):
        """Test that items cannot be mutated in place."""
        item = make_item("1")
        with pytest.raises(PydanticValidationError):
            item.title = "changed"

    def test_placeholder_and_branch_name(self):
        """Test placeholder detection and branch naming."""
        item = WorkItem(id="temp-abc", title="New")
        assert item.is_placeholder
        assert WorkItem(id="42", title="x").branch_name() == "item-42"
        assert WorkItem(id="42", title="x").branch_name("wi/") == "wi/42"

    def test_defaults(self):
        """Test default state and category."""
        item = WorkItem(id="1", title="x")
        assert item.state == WorkItemState.TODO
        assert item.category == "Task"
        assert item.is_leaf
