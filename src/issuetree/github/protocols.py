"""
Collaborator interfaces consumed by the sync core.

Any tracker can back the core as long as it satisfies these protocols;
``GitHubClient`` implements both against the GitHub REST API and the test
suite uses in-memory fakes.
"""

from typing import Protocol

from issuetree.models.base import MergeOutcome
from issuetree.models.records import CreateIssueRequest, IssueRecord, IssueUpdate


class IssueClient(Protocol):
    """Issue-side operations of the tracker."""

    async def list_issues(self, repository: str) -> list[IssueRecord]:
        """List every issue, open and closed, without tombstone filtering."""
        ...

    async def get_issue(self, repository: str, issue_id: str) -> IssueRecord: ...

    async def create_issue(
        self, repository: str, request: CreateIssueRequest
    ) -> IssueRecord: ...

    async def update_issue(
        self, repository: str, issue_id: str, update: IssueUpdate
    ) -> IssueRecord: ...

    async def delete_issue(self, repository: str, issue_id: str) -> IssueRecord:
        """Soft-delete: close the issue and apply the tombstone label."""
        ...

    async def list_sub_issues(self, repository: str, issue_id: str) -> list[str]: ...

    async def link_sub_issue(
        self, repository: str, parent_id: str, child: IssueRecord
    ) -> None: ...


class BranchClient(Protocol):
    """Branch-side operations of the tracker."""

    async def create_ref(self, repository: str, name: str, base: str) -> None: ...

    async def delete_ref(self, repository: str, name: str) -> None: ...

    async def compare(self, repository: str, base: str, head: str) -> int:
        """Number of commits ``head`` has that ``base`` lacks."""
        ...

    async def create_merge(self, repository: str, base: str, head: str) -> MergeOutcome: ...
