"""
Unit tests for OptimisticUpdateManager.
"""

import pytest

from issuetree.models import ProjectSnapshot, WorkItem, WorkItemState
from issuetree.sync import OptimisticUpdateManager


@pytest.fixture
def manager():
    return OptimisticUpdateManager()


@pytest.fixture
def snapshot(make_item, repo):
    """Snapshot with #1 (children #2, #3) and #4."""
    items = (
        make_item("1", children=(make_item("2"), make_item("3", WorkItemState.DONE))),
        make_item("4"),
    )
    return ProjectSnapshot(repository=repo, items=items, version=5)


class TestProjections:
    """Tests for snapshot projections."""

    def test_update_recomputes_and_bumps_version(self, manager, snapshot):
        """Test that a leaf update flows into its parent."""
        edited = snapshot.find("2").model_copy(update={"state": WorkItemState.DONE})
        result = manager.project_update(snapshot, edited)

        assert result.version == 6
        assert result.find("1").state == WorkItemState.DONE
        assert snapshot.find("2").state == WorkItemState.TODO

    def test_update_keeps_position(self, manager, snapshot):
        """Test that an edited copy cannot move or drop children."""
        detached = WorkItem(id="1", title="Renamed")
        result = manager.project_update(snapshot, detached)

        assert result.find("1").title == "Renamed"
        assert [c.id for c in result.find("1").children] == ["2", "3"]

    def test_update_missing_item(self, manager, snapshot):
        """Test that updating a missing item returns the same snapshot."""
        assert manager.project_update(snapshot, WorkItem(id="99", title="x")) is snapshot

    def test_creation_and_confirmation(self, manager, snapshot):
        """Test the placeholder lifecycle under a parent."""
        temp_id = manager.make_placeholder_id()
        assert manager.is_placeholder(temp_id)

        placeholder = WorkItem(id=temp_id, title="New")
        projected = manager.project_creation(snapshot, placeholder, parent_id="2")
        assert projected.find(temp_id).depth == 2
        assert projected.find("2").children[0].id == temp_id

        confirmed = manager.replace_placeholder(projected, temp_id, WorkItem(id="10", title="New"))
        item = confirmed.find("10")
        assert item.parent_id == "2"
        assert item.depth == 2
        assert confirmed.find(temp_id) is None
        assert confirmed.version == snapshot.version + 2

    def test_placeholder_ids_are_unique(self, manager):
        """Test that minted ids do not repeat."""
        assert len({manager.make_placeholder_id() for _ in range(50)}) == 50

    def test_root_creation(self, manager, snapshot):
        """Test creating at the root level."""
        result = manager.project_creation(snapshot, WorkItem(id="temp-x", title="New"))
        assert result.items[-1].id == "temp-x"
        assert result.items[-1].depth == 0

    def test_removal(self, manager, snapshot):
        """Test that removal recomputes the former parent."""
        result = manager.project_removal(snapshot, "2")

        assert result.find("2") is None
        assert result.find("1").state == WorkItemState.DONE

    def test_replace_vanished_placeholder(self, manager, snapshot):
        """Test confirming a placeholder that is no longer present."""
        result = manager.replace_placeholder(snapshot, "temp-gone", WorkItem(id="10", title="x"))
        assert result is snapshot

    def test_custom_prefix(self):
        """Test a configured placeholder prefix."""
        manager = OptimisticUpdateManager("pending-")
        assert manager.make_placeholder_id().startswith("pending-")
        assert not manager.is_placeholder("temp-1")
