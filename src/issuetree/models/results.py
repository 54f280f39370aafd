"""
Tagged workflow results.

Callers branch on these outcomes, so they are returned as values rather
than raised. Exceptions stay reserved for conditions nobody planned for.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from issuetree.models.base import BranchState, NotificationLevel
from issuetree.models.work_item import ProjectSnapshot


@dataclass
class Notification:
    """A leveled, user-facing message.

    Attributes:
        level: Severity
        message: Human-readable text
        created_at: When the notification was raised
    """

    level: NotificationLevel
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "level": self.level.value,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
        }


class TransitionOutcome(str, Enum):
    """Outcome of a branch lifecycle transition."""

    SUCCESS = "success"
    NEEDS_COMPENSATION = "needs_compensation"
    NON_FATAL_FAILURE = "non_fatal_failure"


@dataclass
class BranchTransitionResult:
    """Result of one branch lifecycle transition.

    Attributes:
        outcome: Success, failure requiring compensation, or non-fatal failure
        branch: Branch name involved, if any
        branch_state: Branch state after the transition
        message: Human-readable detail
        error: Underlying error for failures
        notifications: Notifications raised during the transition
    """

    outcome: TransitionOutcome
    branch: Optional[str] = None
    branch_state: BranchState = BranchState.NO_BRANCH
    message: str = ""
    error: Optional[BaseException] = None
    notifications: list[Notification] = field(default_factory=list)

    @property
    def needs_compensation(self) -> bool:
        """Check if the caller must roll back the issue record."""
        return self.outcome == TransitionOutcome.NEEDS_COMPENSATION

    @property
    def transition_completed(self) -> bool:
        """Check if the state transition itself went through."""
        return self.outcome != TransitionOutcome.NEEDS_COMPENSATION


class SagaOperation(str, Enum):
    """Workflow that produced a saga result."""

    UPDATE = "update"
    CREATE = "create"
    DELETE = "delete"


class SagaStatus(str, Enum):
    """Final status of a saga."""

    SUCCEEDED = "succeeded"
    REJECTED = "rejected"  # Refused before any external call
    FAILED = "failed"  # External failure, state restored
    COMPENSATION_FAILED = "compensation_failed"  # Irrecoverable


@dataclass
class SagaResult:
    """Result of a user-initiated workflow.

    Attributes:
        operation: Workflow that ran
        status: Final status
        item_id: Item the workflow acted on (confirmed id for creations)
        snapshot: Snapshot current after the workflow
        message: Human-readable summary
        error: Underlying error for non-successful results
        compensated: Whether a compensating action ran successfully
        notifications: Notifications raised during the workflow
        background: Background continuation spawned by the workflow
    """

    operation: SagaOperation
    status: SagaStatus
    item_id: Optional[str] = None
    snapshot: Optional[ProjectSnapshot] = None
    message: str = ""
    error: Optional[BaseException] = None
    compensated: bool = False
    notifications: list[Notification] = field(default_factory=list)
    background: Optional["asyncio.Task[None]"] = None

    @property
    def succeeded(self) -> bool:
        """Check if the workflow succeeded."""
        return self.status == SagaStatus.SUCCEEDED

    @property
    def irrecoverable(self) -> bool:
        """Check if the workflow left external state inconsistent."""
        return self.status == SagaStatus.COMPENSATION_FAILED
