"""
issuetree - Core Data Models

Frozen pydantic models for the work-item tree, dataclass records for the
tracker collaborators, and tagged workflow results.
"""

from issuetree.models.base import (
    BranchState,
    MergeOutcome,
    NotificationLevel,
    WorkItemState,
)
from issuetree.models.records import (
    CreateIssueRequest,
    IssueRecord,
    IssueUpdate,
)
from issuetree.models.results import (
    BranchTransitionResult,
    Notification,
    SagaOperation,
    SagaResult,
    SagaStatus,
    TransitionOutcome,
)
from issuetree.models.work_item import (
    DEFAULT_CATEGORY,
    PLACEHOLDER_PREFIX,
    ProjectSnapshot,
    WorkItem,
)

__all__ = [
    # Base enums
    "WorkItemState",
    "BranchState",
    "MergeOutcome",
    "NotificationLevel",
    # Tree models
    "WorkItem",
    "ProjectSnapshot",
    "DEFAULT_CATEGORY",
    "PLACEHOLDER_PREFIX",
    # Tracker records
    "IssueRecord",
    "CreateIssueRequest",
    "IssueUpdate",
    # Results
    "Notification",
    "TransitionOutcome",
    "BranchTransitionResult",
    "SagaOperation",
    "SagaStatus",
    "SagaResult",
]
