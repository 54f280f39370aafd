"""
Work item and project snapshot models.

Both models are frozen. Tree edits never mutate a node; they build new
nodes along the path to the target and share every untouched subtree, so
any snapshot handed to a caller stays valid forever.
"""

from pydantic import BaseModel, ConfigDict, Field

from issuetree.models.base import WorkItemState

PLACEHOLDER_PREFIX = "temp-"
DEFAULT_CATEGORY = "Task"


class WorkItem(BaseModel):
    """A node of the work-item hierarchy, mirrored onto one tracker issue.

    Attributes:
        id: Issue number as a string, or a temporary placeholder id
        title: Issue title
        description: Issue body
        state: Progress state (manual for leaves, derived otherwise)
        category: Category label (Feature, Bug, Task, ...)
        repository: Repository locator in ``owner/name`` form
        depth: Distance from the root level (roots are 0)
        parent_id: Id of the parent item, None for roots
        children: Ordered child items
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Issue id or placeholder")
    title: str = Field(..., description="Issue title")
    description: str = Field(default="", description="Issue body")
    state: WorkItemState = Field(default=WorkItemState.TODO)
    category: str = Field(default=DEFAULT_CATEGORY)
    repository: str = Field(default="", description="owner/name")
    depth: int = Field(default=0, ge=0)
    parent_id: str | None = Field(default=None)
    children: tuple["WorkItem", ...] = Field(default_factory=tuple)

    @property
    def is_leaf(self) -> bool:
        """Check if the item has no children."""
        return len(self.children) == 0

    @property
    def is_placeholder(self) -> bool:
        """Check if the item has not been confirmed by the tracker yet."""
        return self.id.startswith(PLACEHOLDER_PREFIX)

    def branch_name(self, prefix: str = "item-") -> str:
        """Name of the branch tied to this item."""
        return f"{prefix}{self.id}"


class ProjectSnapshot(BaseModel):
    """Immutable view of one repository's work-item forest.

    Attributes:
        repository: Repository locator in ``owner/name`` form
        items: Root items in display order
        version: Increases by one with every derived snapshot
    """

    model_config = ConfigDict(frozen=True)

    repository: str
    items: tuple[WorkItem, ...] = Field(default_factory=tuple)
    version: int = Field(default=0, ge=0)

    def with_items(self, items: tuple[WorkItem, ...]) -> "ProjectSnapshot":
        """Derive a new snapshot holding ``items``."""
        return ProjectSnapshot(
            repository=self.repository,
            items=tuple(items),
            version=self.version + 1,
        )

    def find(self, item_id: str) -> WorkItem | None:
        """Find an item anywhere in the snapshot."""
        # Local import: tree.operations depends on this module
        from issuetree.tree.operations import find_item

        return find_item(self.items, item_id)
