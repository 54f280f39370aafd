"""
Branch Lifecycle Orchestrator.

Every leaf item owns at most one branch, ``<prefix><id>``. Entering
In Progress creates it; entering Done merges it into the integration
branch and deletes it. Each transition returns exactly one
BranchTransitionResult telling the caller whether the issue record has to
be rolled back.
"""

import logging

from issuetree.config.models import BranchConfig
from issuetree.errors import AlreadyExistsError, IssueTreeError, NotFoundError
from issuetree.github.protocols import BranchClient
from issuetree.models.base import BranchState, MergeOutcome, NotificationLevel, WorkItemState
from issuetree.models.results import BranchTransitionResult, Notification, TransitionOutcome
from issuetree.models.work_item import WorkItem

logger = logging.getLogger(__name__)


class BranchLifecycleOrchestrator:
    """Per-leaf branch state machine: NoBranch -> BranchActive -> Resolved.

    Usage:
        branches = BranchLifecycleOrchestrator(client, BranchConfig())
        result = await branches.transition(
            "octo/widgets", item, WorkItemState.TODO, WorkItemState.IN_PROGRESS
        )
        if result.needs_compensation:
            ...  # roll the issue record back
    """

    def __init__(self, client: BranchClient, config: BranchConfig | None = None) -> None:
        """Initialize the orchestrator.

        Args:
            client: Branch collaborator
            config: Branch naming and merge targets
        """
        self._client = client
        self._config = config or BranchConfig()
        self._states: dict[tuple[str, str], BranchState] = {}

    @property
    def config(self) -> BranchConfig:
        """Get branch configuration."""
        return self._config

    def branch_state(self, repository: str, item_id: str) -> BranchState:
        """Last known branch state of an item."""
        return self._states.get((repository, item_id), BranchState.NO_BRANCH)

    def branch_name(self, item: WorkItem) -> str:
        return item.branch_name(self._config.prefix)

    async def transition(
        self,
        repository: str,
        item: WorkItem,
        previous_state: WorkItemState,
        target_state: WorkItemState,
    ) -> BranchTransitionResult:
        """Run the branch side of a leaf's state change.

        Args:
            repository: Repository locator
            item: Leaf being changed
            previous_state: State before the change
            target_state: State after the change

        Returns:
            The transition result
        """
        branch = self.branch_name(item)
        current = self.branch_state(repository, item.id)

        if not item.is_leaf or previous_state == target_state:
            return BranchTransitionResult(
                outcome=TransitionOutcome.SUCCESS, branch=None, branch_state=current
            )

        if target_state == WorkItemState.IN_PROGRESS:
            result = await self._start(repository, branch)
        elif target_state == WorkItemState.DONE and previous_state == WorkItemState.IN_PROGRESS:
            result = await self._complete(repository, branch)
        else:
            # Nothing to do: no branch exists outside In Progress
            result = BranchTransitionResult(
                outcome=TransitionOutcome.SUCCESS, branch=None, branch_state=current
            )

        self._states[(repository, item.id)] = result.branch_state
        logger.debug(
            f"Branch transition for #{item.id} ({previous_state.value} -> "
            f"{target_state.value}): {result.outcome.value}"
        )
        return result

    async def _start(self, repository: str, branch: str) -> BranchTransitionResult:
        """Create the item branch from the base branch."""
        try:
            await self._client.create_ref(repository, branch, self._config.base_branch)
        except AlreadyExistsError:
            return _result(
                TransitionOutcome.SUCCESS,
                branch,
                BranchState.BRANCH_ACTIVE,
                f"Branch '{branch}' already exists; reusing it",
                level=NotificationLevel.INFO,
            )
        except NotFoundError as e:
            return _result(
                TransitionOutcome.NEEDS_COMPENSATION,
                branch,
                BranchState.NO_BRANCH,
                f"Cannot create branch '{branch}': base branch "
                f"'{self._config.base_branch}' not found",
                error=e,
            )
        except IssueTreeError as e:
            return _result(
                TransitionOutcome.NEEDS_COMPENSATION,
                branch,
                BranchState.NO_BRANCH,
                f"Failed to create branch '{branch}': {e}",
                error=e,
            )

        return _result(
            TransitionOutcome.SUCCESS,
            branch,
            BranchState.BRANCH_ACTIVE,
            f"Created branch '{branch}'",
            level=NotificationLevel.SUCCESS,
        )

    async def _complete(self, repository: str, branch: str) -> BranchTransitionResult:
        """Merge the item branch into the integration branch, then delete it."""
        target = self._config.integration_branch
        try:
            ahead = await self._client.compare(repository, target, branch)
            if ahead == 0:
                return await self._delete_empty(repository, branch)

            outcome = await self._client.create_merge(repository, target, branch)
        except IssueTreeError as e:
            return _result(
                TransitionOutcome.NEEDS_COMPENSATION,
                branch,
                BranchState.BRANCH_ACTIVE,
                f"Merge of '{branch}' failed: {e}",
                error=e,
            )

        if outcome == MergeOutcome.NO_COMMITS:
            return await self._delete_empty(repository, branch)
        if outcome == MergeOutcome.CONFLICT:
            return _result(
                TransitionOutcome.NEEDS_COMPENSATION,
                branch,
                BranchState.BRANCH_ACTIVE,
                f"Merge conflict in branch '{branch}'. Manual resolution required",
            )
        if outcome == MergeOutcome.NOT_FOUND:
            return _result(
                TransitionOutcome.NEEDS_COMPENSATION,
                branch,
                BranchState.NO_BRANCH,
                f"Branch '{branch}' or '{target}' not found",
            )

        notifications = [
            Notification(NotificationLevel.SUCCESS, f"Merged branch '{branch}' into '{target}'")
        ]
        try:
            await self._client.delete_ref(repository, branch)
        except IssueTreeError as e:
            # Merge went through; an orphaned branch is acceptable
            logger.warning(f"Branch '{branch}' merged but not deleted: {e}")
            notifications.append(
                Notification(
                    NotificationLevel.WARNING, f"Branch '{branch}' merged but failed to delete: {e}"
                )
            )
            return BranchTransitionResult(
                outcome=TransitionOutcome.NON_FATAL_FAILURE,
                branch=branch,
                branch_state=BranchState.RESOLVED,
                message=f"Branch '{branch}' merged but not deleted",
                error=e,
                notifications=notifications,
            )

        notifications.append(
            Notification(NotificationLevel.SUCCESS, f"Deleted branch '{branch}'")
        )
        return BranchTransitionResult(
            outcome=TransitionOutcome.SUCCESS,
            branch=branch,
            branch_state=BranchState.RESOLVED,
            message=f"Merged and deleted branch '{branch}'",
            notifications=notifications,
        )

    async def _delete_empty(self, repository: str, branch: str) -> BranchTransitionResult:
        """Delete a branch that has nothing to merge."""
        try:
            await self._client.delete_ref(repository, branch)
        except IssueTreeError as e:
            return _result(
                TransitionOutcome.NEEDS_COMPENSATION,
                branch,
                BranchState.BRANCH_ACTIVE,
                f"Failed to delete empty branch '{branch}': {e}",
                error=e,
            )
        return _result(
            TransitionOutcome.SUCCESS,
            branch,
            BranchState.RESOLVED,
            f"Deleted empty branch '{branch}' (no commits to merge)",
            level=NotificationLevel.INFO,
        )


def _result(
    outcome: TransitionOutcome,
    branch: str,
    state: BranchState,
    message: str,
    error: IssueTreeError | None = None,
    level: NotificationLevel | None = None,
) -> BranchTransitionResult:
    """Build a result carrying a single notification.

    Failures needing compensation carry none: the saga reports them once,
    together with the outcome of the rollback.
    """
    notifications = [Notification(level, message)] if level is not None else []
    return BranchTransitionResult(
        outcome=outcome,
        branch=branch,
        branch_state=state,
        message=message,
        error=error,
        notifications=notifications,
    )
