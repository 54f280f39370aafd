"""
Saga Orchestrator.

Runs the three user-initiated workflows (update, create, delete) against
the tracker and keeps the in-memory snapshot aligned with it.

Update and create are sagas: each forward step has a compensating step,
and a failed rollback is reported as irrecoverable instead of being
hidden. Delete is deliberately asymmetric: tombstones and local pruning
happen first and the workflow reports success right away, while the
external deletes continue in a background task whose failures only reach
the log.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine, Iterable
from typing import Any, Optional

from issuetree.config.models import IssueTreeConfig
from issuetree.errors import (
    CompensationFailure,
    IssueTreeError,
    NotFoundError,
    ValidationError,
)
from issuetree.github.protocols import BranchClient, IssueClient
from issuetree.models.base import WorkItemState
from issuetree.models.records import CreateIssueRequest, IssueUpdate
from issuetree.models.results import SagaOperation, SagaResult, SagaStatus
from issuetree.models.work_item import ProjectSnapshot, WorkItem
from issuetree.sync.branches import BranchLifecycleOrchestrator
from issuetree.sync.notifications import NotificationRecorder, NotificationSink
from issuetree.sync.optimistic import OptimisticUpdateManager
from issuetree.sync.tombstones import ConsistencyReport, TombstoneCache, TombstoneReconciler
from issuetree.tree.hierarchy import build_hierarchy, issue_labels, work_item_from_record
from issuetree.tree.operations import Forest, count_descendants, subtree_ids
from issuetree.tree.state import can_change_state

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[ProjectSnapshot], None]


class SagaOrchestrator:
    """Coordinates issue records, branches and the local snapshot.

    One orchestrator serves one repository within one session. Callers are
    expected to submit structural mutations one at a time.

    Usage:
        async with GitHubClient() as client:
            saga = SagaOrchestrator(client, client, "octo/widgets")
            await saga.refresh()
            result = await saga.submit_update(item, WorkItemState.IN_PROGRESS)
            if result.irrecoverable:
                ...
            await saga.wait_for_background()
    """

    def __init__(
        self,
        issues: IssueClient,
        branches: BranchClient,
        repository: str,
        config: Optional[IssueTreeConfig] = None,
        sink: Optional[NotificationSink] = None,
        tombstones: Optional[TombstoneCache] = None,
        snapshot: Optional[ProjectSnapshot] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            issues: Issue collaborator
            branches: Branch collaborator
            repository: Repository locator in ``owner/name`` form
            config: System configuration
            sink: Receives every notification as it is raised
            tombstones: Shared tombstone cache (one is created if omitted)
            snapshot: Initial snapshot (empty if omitted)
        """
        self._config = config or IssueTreeConfig()
        self._issues = issues
        self._repository = repository
        self._sink = sink
        self._tombstones = tombstones or TombstoneCache(self._config.labels.tombstone)
        self._reconciler = TombstoneReconciler(issues, self._tombstones)
        self._branches = BranchLifecycleOrchestrator(branches, self._config.branches)
        self._optimistic = OptimisticUpdateManager(self._config.sync.placeholder_prefix)
        self._snapshot = snapshot or ProjectSnapshot(repository=repository)
        self._listeners: list[SnapshotListener] = []
        self._in_flight: set[asyncio.Task[Any]] = set()
        self._background: set[asyncio.Task[None]] = set()

    @property
    def repository(self) -> str:
        return self._repository

    @property
    def snapshot(self) -> ProjectSnapshot:
        """Get the current immutable snapshot."""
        return self._snapshot

    @property
    def tombstones(self) -> TombstoneCache:
        """Get the tombstone cache."""
        return self._tombstones

    @property
    def branches(self) -> BranchLifecycleOrchestrator:
        """Get the branch lifecycle orchestrator."""
        return self._branches

    @property
    def pending_background(self) -> int:
        """Count background tasks that have not finished yet."""
        return len(self._background)

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a listener called with every new snapshot.

        Returns:
            Callable removing the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def refresh(self) -> ProjectSnapshot:
        """Reload the tree from the tracker, masking tombstoned issues."""
        items = await self._load_tree()
        self._set_snapshot(self._optimistic.rebase(self._snapshot, items))
        logger.info(f"Refreshed {self._repository}: snapshot v{self._snapshot.version}")
        return self._snapshot

    async def reconcile(self, keep: Iterable[str] = ()) -> ConsistencyReport:
        """Run one tombstone reconciliation pass.

        Args:
            keep: Ids known to be deleted whose markers must survive
        """
        return await self._reconciler.reconcile(self._repository, keep)

    async def _load_tree(self) -> Forest:
        records = await self._reconciler.list_active(self._repository)
        logger.debug(f"Listed {len(records)} active issue(s) in {self._repository}")
        return await build_hierarchy(
            self._issues, self._repository, records, self._config.labels
        )

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def submit_update(
        self, item: WorkItem, new_state: Optional[WorkItemState] = None
    ) -> SagaResult:
        """Change a leaf's state (and optionally its title/description).

        Args:
            item: Edited item; its id selects the target
            new_state: Target state (defaults to ``item.state``)

        Returns:
            SagaResult; FAILED results leave the snapshot as it was before
            the call
        """
        recorder = NotificationRecorder(self._sink)
        before = self._snapshot
        current = before.find(item.id)

        if current is None:
            return self._reject(
                SagaOperation.UPDATE, item.id, NotFoundError(f"Work item not found: {item.id}"), recorder
            )
        if not can_change_state(current):
            return self._reject(
                SagaOperation.UPDATE,
                item.id,
                ValidationError(
                    f"Cannot change state of #{item.id}: state is derived from its sub-issues"
                ),
                recorder,
            )
        if current.is_placeholder:
            return self._reject(
                SagaOperation.UPDATE,
                item.id,
                ValidationError(f"Item {item.id} is still being created"),
                recorder,
            )

        target = current.model_copy(
            update={
                "title": item.title,
                "description": item.description,
                "category": item.category,
                "state": new_state or item.state,
            }
        )
        self._set_snapshot(self._optimistic.project_update(before, target))
        return await self._shielded(self._run_update(before, current, target, recorder))

    async def _run_update(
        self,
        before: ProjectSnapshot,
        current: WorkItem,
        target: WorkItem,
        recorder: NotificationRecorder,
    ) -> SagaResult:
        issue_id = current.id

        try:
            await self._issues.update_issue(self._repository, issue_id, self._to_update(target))
        except IssueTreeError as e:
            logger.warning(f"Update of issue #{issue_id} failed: {e}")
            self._set_snapshot(before)
            recorder.error(f"Failed to update issue #{issue_id}: {e}")
            return self._result(
                SagaOperation.UPDATE, SagaStatus.FAILED, issue_id, recorder,
                message=f"Failed to update issue #{issue_id}", error=e,
            )

        transition = await self._branches.transition(
            self._repository, current, current.state, target.state
        )
        recorder.extend(transition.notifications)

        if not transition.needs_compensation:
            recorder.success(f"Issue #{issue_id} moved to {target.state.value}")
            return self._result(
                SagaOperation.UPDATE, SagaStatus.SUCCEEDED, issue_id, recorder,
                message=f"Issue #{issue_id} updated",
            )

        # Branch step failed for good: restore the issue record last
        forward_error = transition.error
        try:
            await self._issues.update_issue(self._repository, issue_id, self._to_update(current))
        except IssueTreeError as e:
            failure = CompensationFailure(
                f"Issue #{issue_id} is in '{target.state.value}' but its branch is not, "
                f"and restoring the issue failed: {e}",
                forward_error=forward_error,
                compensation_error=e,
            )
            logger.error(str(failure))
            self._set_snapshot(before)
            recorder.error(str(failure))
            return self._result(
                SagaOperation.UPDATE, SagaStatus.COMPENSATION_FAILED, issue_id, recorder,
                message=str(failure), error=failure,
            )

        logger.info(f"Rolled back issue #{issue_id} after failed branch step")
        self._set_snapshot(before)
        recorder.error(f"{transition.message}. Issue #{issue_id} was restored")
        return self._result(
            SagaOperation.UPDATE, SagaStatus.FAILED, issue_id, recorder,
            message=transition.message, error=forward_error, compensated=True,
        )

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def submit_create(
        self,
        title: str,
        description: str = "",
        category: Optional[str] = None,
        repository: Optional[str] = None,
        parent_id: Optional[str] = None,
    ) -> SagaResult:
        """Create an issue at the root level or under ``parent_id``.

        A placeholder is shown immediately and swapped for the confirmed
        item once the tracker answers.
        """
        recorder = NotificationRecorder(self._sink)
        repository = repository or self._repository
        category = category or self._config.labels.default_category
        before = self._snapshot

        if not title.strip():
            return self._reject(
                SagaOperation.CREATE, None, ValidationError("Issue title cannot be empty"), recorder
            )
        if repository != self._repository:
            return self._reject(
                SagaOperation.CREATE,
                None,
                ValidationError(f"Repository {repository} is not managed here ({self._repository})"),
                recorder,
            )
        if parent_id is not None:
            parent = before.find(parent_id)
            if parent is None:
                return self._reject(
                    SagaOperation.CREATE,
                    None,
                    NotFoundError(f"Parent item not found: {parent_id}"),
                    recorder,
                )
            if parent.is_placeholder:
                return self._reject(
                    SagaOperation.CREATE,
                    None,
                    ValidationError(f"Parent {parent_id} is still being created"),
                    recorder,
                )

        placeholder = WorkItem(
            id=self._optimistic.make_placeholder_id(),
            title=title,
            description=description,
            category=category,
            repository=repository,
        )
        self._set_snapshot(self._optimistic.project_creation(before, placeholder, parent_id))
        return await self._shielded(
            self._run_create(before, placeholder, parent_id, recorder)
        )

    async def _run_create(
        self,
        before: ProjectSnapshot,
        placeholder: WorkItem,
        parent_id: Optional[str],
        recorder: NotificationRecorder,
    ) -> SagaResult:
        request = CreateIssueRequest(
            title=placeholder.title,
            body=placeholder.description,
            labels=issue_labels(placeholder, self._config.labels),
        )
        try:
            record = await self._issues.create_issue(self._repository, request)
        except IssueTreeError as e:
            logger.warning(f"Create of '{placeholder.title}' failed: {e}")
            self._set_snapshot(before)
            recorder.error(f"Failed to create issue '{placeholder.title}': {e}")
            return self._result(
                SagaOperation.CREATE, SagaStatus.FAILED, None, recorder,
                message="Failed to create issue", error=e,
            )

        if parent_id is not None:
            try:
                await self._issues.link_sub_issue(self._repository, parent_id, record)
            except IssueTreeError as e:
                return await self._discard_orphan(before, record.id, parent_id, e, recorder)

        confirmed = work_item_from_record(record, self._repository, self._config.labels)
        self._set_snapshot(
            self._optimistic.replace_placeholder(self._snapshot, placeholder.id, confirmed)
        )
        if parent_id is None:
            recorder.success(f"Issue #{record.id} created")
        else:
            recorder.success(f"Sub-issue #{record.id} created under #{parent_id}")
        return self._result(
            SagaOperation.CREATE, SagaStatus.SUCCEEDED, record.id, recorder,
            message=f"Issue #{record.id} created",
        )

    async def _discard_orphan(
        self,
        before: ProjectSnapshot,
        issue_id: str,
        parent_id: str,
        link_error: IssueTreeError,
        recorder: NotificationRecorder,
    ) -> SagaResult:
        """Soft-delete an issue that could not be linked to its parent."""
        logger.warning(f"Linking #{issue_id} under #{parent_id} failed: {link_error}")
        self._set_snapshot(before)
        try:
            await self._issues.delete_issue(self._repository, issue_id)
        except IssueTreeError as e:
            failure = CompensationFailure(
                f"Issue #{issue_id} was created but could not be linked under "
                f"#{parent_id}, and removing it failed: {e}",
                forward_error=link_error,
                compensation_error=e,
            )
            logger.error(str(failure))
            recorder.error(str(failure))
            return self._result(
                SagaOperation.CREATE, SagaStatus.COMPENSATION_FAILED, issue_id, recorder,
                message=str(failure), error=failure,
            )

        self._tombstones.mark(self._repository, [issue_id])
        recorder.error(f"Failed to add sub-issue under #{parent_id}: {link_error}")
        return self._result(
            SagaOperation.CREATE, SagaStatus.FAILED, None, recorder,
            message=f"Failed to add sub-issue under #{parent_id}",
            error=link_error, compensated=True,
        )

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def submit_delete(self, item: WorkItem) -> SagaResult:
        """Delete an item and its whole subtree.

        Tombstones are set and the subtree is pruned before this returns;
        the external deletes run in the background (see ``result.background``).
        """
        recorder = NotificationRecorder(self._sink)
        current = self._snapshot.find(item.id)

        if current is None:
            return self._reject(
                SagaOperation.DELETE, item.id, NotFoundError(f"Work item not found: {item.id}"), recorder
            )
        if current.is_placeholder:
            return self._reject(
                SagaOperation.DELETE,
                item.id,
                ValidationError(f"Item {item.id} is still being created"),
                recorder,
            )

        ids = [
            issue_id for issue_id in subtree_ids(current)
            if not self._optimistic.is_placeholder(issue_id)
        ]
        descendants = count_descendants(current)

        self._tombstones.mark(self._repository, ids)
        self._set_snapshot(self._optimistic.project_removal(self._snapshot, current.id))
        task = self._spawn(self._finish_delete(ids))

        if descendants:
            message = f"Issue #{current.id} and {descendants} sub-issues deleted"
        else:
            message = f"Issue #{current.id} deleted"
        recorder.success(message)
        result = self._result(
            SagaOperation.DELETE, SagaStatus.SUCCEEDED, current.id, recorder, message=message
        )
        result.background = task
        return result

    async def _finish_delete(self, ids: list[str]) -> None:
        """Delete issues externally, children before parents.

        Stops at the first failure so no parent is deleted while one of its
        children is still live. Deletions the tracker confirmed keep their
        tombstones through the follow-up reconciliation, and the follow-up
        refresh is dropped if the snapshot moved on while it was loading.
        """
        confirmed: list[str] = []
        for issue_id in ids:
            try:
                record = await self._issues.delete_issue(self._repository, issue_id)
            except IssueTreeError as e:
                logger.error(
                    f"Background delete stopped at #{issue_id} "
                    f"({len(ids) - ids.index(issue_id)} issue(s) left): {e}"
                )
                break
            if record.has_label(self._tombstones.label):
                confirmed.append(issue_id)
            logger.debug(f"Deleted issue #{issue_id}")

        if self._config.sync.reconcile_after_delete:
            try:
                await self.reconcile(keep=confirmed)
            except IssueTreeError as e:
                logger.warning(f"Tombstone reconciliation after delete failed: {e}")

        if self._config.sync.refresh_after_delete:
            base = self._snapshot
            try:
                items = await self._load_tree()
            except IssueTreeError as e:
                logger.warning(f"Refresh after delete failed: {e}")
                return
            if self._snapshot is not base or self._in_flight:
                logger.info(
                    f"Skipped refresh after delete of {self._repository}: "
                    f"snapshot changed while loading"
                )
                return
            self._set_snapshot(self._optimistic.rebase(self._snapshot, items))
            logger.info(f"Refreshed {self._repository} after delete: v{self._snapshot.version}")

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def wait_for_background(self) -> None:
        """Wait until every in-flight saga and background task finished."""
        while self._in_flight or self._background:
            await asyncio.gather(
                *self._in_flight, *self._background, return_exceptions=True
            )

    async def _shielded(self, coro: Coroutine[Any, Any, SagaResult]) -> SagaResult:
        """Run a saga body that caller cancellation cannot interrupt."""
        task = asyncio.ensure_future(coro)
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return await asyncio.shield(task)

    def _spawn(self, coro: Awaitable[None]) -> "asyncio.Task[None]":
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: "asyncio.Task[None]") -> None:
        self._background.discard(task)
        if task.cancelled():
            logger.warning("Background task was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background task failed: {error}", exc_info=error)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _set_snapshot(self, snapshot: ProjectSnapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            listener(snapshot)

    def _to_update(self, item: WorkItem) -> IssueUpdate:
        return IssueUpdate(
            title=item.title,
            body=item.description,
            is_open=item.state != WorkItemState.DONE,
            labels=issue_labels(item, self._config.labels),
        )

    def _reject(
        self,
        operation: SagaOperation,
        item_id: Optional[str],
        error: IssueTreeError,
        recorder: NotificationRecorder,
    ) -> SagaResult:
        logger.info(f"Rejected {operation.value}: {error}")
        recorder.error(str(error))
        return self._result(
            operation, SagaStatus.REJECTED, item_id, recorder, message=str(error), error=error
        )

    def _result(
        self,
        operation: SagaOperation,
        status: SagaStatus,
        item_id: Optional[str],
        recorder: NotificationRecorder,
        message: str = "",
        error: Optional[BaseException] = None,
        compensated: bool = False,
    ) -> SagaResult:
        return SagaResult(
            operation=operation,
            status=status,
            item_id=item_id,
            snapshot=self._snapshot,
            message=message,
            error=error,
            compensated=compensated,
            notifications=list(recorder.notifications),
        )
