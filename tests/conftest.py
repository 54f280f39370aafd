"""
issuetree Test Configuration and Fixtures

This module provides pytest fixtures for testing the sync core without
touching GitHub. All fixtures are in-memory and deterministic.

Fixture Categories:
- Fake collaborators: scripted issue and branch clients recording every call
- Tree builders: compact construction of work-item forests
- Notifications: a collecting sink
"""

from dataclasses import replace
from typing import Any, Optional

import pytest

from issuetree.errors import AlreadyExistsError, NotFoundError
from issuetree.models import (
    CreateIssueRequest,
    IssueRecord,
    IssueUpdate,
    MergeOutcome,
    WorkItem,
    WorkItemState,
)
from issuetree.sync import NotificationCollector

REPO = "octo/widgets"


# =============================================================================
# Fake Collaborators
# =============================================================================


class ScriptedFake:
    """Base for fakes whose calls can be scripted to fail.

    ``script(method, [None, error])`` makes the first call succeed and the
    second raise; ``fail(method, error)`` makes every call raise. Keys may
    be narrowed to one target with ``"method:target"``.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, Optional[str]]] = []
        self._scripted: dict[str, list[Optional[Exception]]] = {}
        self._always: dict[str, Exception] = {}

    def script(self, key: str, outcomes: list[Optional[Exception]]) -> None:
        self._scripted.setdefault(key, []).extend(outcomes)

    def fail(self, key: str, error: Exception) -> None:
        self._always[key] = error

    def calls_to(self, method: str) -> list[Optional[str]]:
        return [target for name, target in self.calls if name == method]

    def _check(self, method: str, target: Optional[str] = None) -> None:
        self.calls.append((method, target))
        for key in (f"{method}:{target}", method):
            queue = self._scripted.get(key)
            if queue:
                error = queue.pop(0)
                if error is not None:
                    raise error
                return
            if key in self._always:
                raise self._always[key]


class FakeIssueClient(ScriptedFake):
    """In-memory issue tracker with GitHub-like soft delete."""

    def __init__(self, tombstone_label: str = "deleted") -> None:
        super().__init__()
        self.tombstone_label = tombstone_label
        self.issues: dict[str, IssueRecord] = {}
        self.sub_issues: dict[str, list[str]] = {}
        self.stale_listing: dict[str, IssueRecord] = {}
        self._next_id = 100

    def add_issue(
        self,
        issue_id: str,
        title: Optional[str] = None,
        body: str = "",
        is_open: bool = True,
        labels: Optional[list[str]] = None,
        parent: Optional[str] = None,
    ) -> IssueRecord:
        record = IssueRecord(
            id=issue_id,
            title=title or f"Issue {issue_id}",
            body=body,
            is_open=is_open,
            labels=list(labels or ["Task"]),
            external_id=int(issue_id) + 10_000,
        )
        self.issues[issue_id] = record
        if parent is not None:
            self.sub_issues.setdefault(parent, []).append(issue_id)
        return record

    async def list_issues(self, repository: str) -> list[IssueRecord]:
        self._check("list_issues")
        return [
            _copy(self.stale_listing.get(issue_id, record))
            for issue_id, record in self.issues.items()
        ]

    async def get_issue(self, repository: str, issue_id: str) -> IssueRecord:
        self._check("get_issue", issue_id)
        return _copy(self._get(issue_id))

    async def create_issue(self, repository: str, request: CreateIssueRequest) -> IssueRecord:
        self._check("create_issue", request.title)
        self._next_id += 1
        record = self.add_issue(
            str(self._next_id), title=request.title, body=request.body, labels=request.labels
        )
        return _copy(record)

    async def update_issue(
        self, repository: str, issue_id: str, update: IssueUpdate
    ) -> IssueRecord:
        self._check("update_issue", issue_id)
        record = self._get(issue_id)
        if update.title is not None:
            record.title = update.title
        if update.body is not None:
            record.body = update.body
        if update.is_open is not None:
            record.is_open = update.is_open
        if update.labels is not None:
            record.labels = list(update.labels)
        return _copy(record)

    async def delete_issue(self, repository: str, issue_id: str) -> IssueRecord:
        self._check("delete_issue", issue_id)
        record = self._get(issue_id)
        record.is_open = False
        if self.tombstone_label not in record.labels:
            record.labels.append(self.tombstone_label)
        return _copy(record)

    async def list_sub_issues(self, repository: str, issue_id: str) -> list[str]:
        self._check("list_sub_issues", issue_id)
        return list(self.sub_issues.get(issue_id, []))

    async def link_sub_issue(self, repository: str, parent_id: str, child: IssueRecord) -> None:
        self._check("link_sub_issue", child.id)
        self._get(parent_id)
        self.sub_issues.setdefault(parent_id, []).append(child.id)

    def _get(self, issue_id: str) -> IssueRecord:
        if issue_id not in self.issues:
            raise NotFoundError(f"Issue #{issue_id} not found", status_code=404)
        return self.issues[issue_id]


class FakeBranchClient(ScriptedFake):
    """In-memory branch store.

    Branches are ahead of the base by one commit unless ``ahead`` says
    otherwise; merges succeed unless ``merge_outcomes`` says otherwise.
    """

    def __init__(self) -> None:
        super().__init__()
        self.branches: set[str] = {"main"}
        self.ahead: dict[str, int] = {}
        self.merge_outcomes: dict[str, MergeOutcome] = {}
        self.merged: list[str] = []

    async def create_ref(self, repository: str, name: str, base: str) -> None:
        self._check("create_ref", name)
        if base not in self.branches:
            raise NotFoundError(f"Base branch '{base}' not found", status_code=404)
        if name in self.branches:
            raise AlreadyExistsError(f"Branch '{name}' already exists", status_code=422)
        self.branches.add(name)

    async def delete_ref(self, repository: str, name: str) -> None:
        self._check("delete_ref", name)
        if name not in self.branches:
            raise NotFoundError(f"Branch '{name}' not found", status_code=404)
        self.branches.discard(name)

    async def compare(self, repository: str, base: str, head: str) -> int:
        self._check("compare", head)
        if head not in self.branches:
            raise NotFoundError(f"Branch '{head}' not found", status_code=404)
        return self.ahead.get(head, 1)

    async def create_merge(self, repository: str, base: str, head: str) -> MergeOutcome:
        self._check("create_merge", head)
        outcome = self.merge_outcomes.get(head, MergeOutcome.OK)
        if outcome == MergeOutcome.OK:
            self.merged.append(head)
        return outcome


class FakeGitHub(FakeIssueClient, FakeBranchClient):
    """Both fakes behind one object, usable as an async context manager."""

    def __init__(self) -> None:
        super().__init__()
        self.closed = False

    async def __aenter__(self) -> "FakeGitHub":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.closed = True


def _copy(record: IssueRecord) -> IssueRecord:
    return replace(record, labels=list(record.labels))


def _place(item: WorkItem, depth: int, parent_id: str) -> WorkItem:
    children = tuple(_place(child, depth + 1, item.id) for child in item.children)
    return item.model_copy(
        update={"depth": depth, "parent_id": parent_id, "children": children}
    )


# =============================================================================
# Tree Builders
# =============================================================================


def build_item(
    item_id: str,
    state: WorkItemState = WorkItemState.TODO,
    children: tuple[WorkItem, ...] = (),
    depth: int = 0,
    parent_id: Optional[str] = None,
) -> WorkItem:
    """Build an item, placing its whole subtree below it."""
    placed = tuple(_place(child, depth + 1, item_id) for child in children)
    return WorkItem(
        id=item_id,
        title=f"Item {item_id}",
        state=state,
        repository=REPO,
        depth=depth,
        parent_id=parent_id,
        children=placed,
    )


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def repo() -> str:
    """Return the repository locator used across tests."""
    return REPO


@pytest.fixture
def issue_client() -> FakeIssueClient:
    """Create an empty fake issue client."""
    return FakeIssueClient()


@pytest.fixture
def branch_client() -> FakeBranchClient:
    """Create a fake branch client holding only ``main``."""
    return FakeBranchClient()


@pytest.fixture
def fake_github() -> FakeGitHub:
    """Create a fake implementing both collaborators."""
    return FakeGitHub()


@pytest.fixture
def collector() -> NotificationCollector:
    """Create a collecting notification sink."""
    return NotificationCollector()


@pytest.fixture
def make_item():
    """Return the tree builder."""
    return build_item
