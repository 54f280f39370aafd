"""
Base enumerations used throughout the data models.

These enums provide type-safe values for categorical fields and keep the
wire values in one place.
"""

from enum import Enum


class WorkItemState(str, Enum):
    """Progress state of a work item."""

    TODO = "To Do"
    IN_PROGRESS = "In Progress"
    DONE = "Done"


class BranchState(str, Enum):
    """Lifecycle state of the branch attached to a leaf item."""

    NO_BRANCH = "no_branch"
    BRANCH_ACTIVE = "branch_active"
    RESOLVED = "resolved"  # Merged and/or deleted


class MergeOutcome(str, Enum):
    """Classified result of a merge request."""

    OK = "ok"
    NO_COMMITS = "no_commits"  # Head has nothing the base lacks
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"  # Base or head missing


class NotificationLevel(str, Enum):
    """Severity of a user-facing notification."""

    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
