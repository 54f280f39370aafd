"""
issuetree: Work-Item Trees Mirrored onto GitHub Issues and Branches.

Keeps a hierarchical work-item tree consistent with GitHub issues and
sub-issues, and with one branch per leaf item, under partial failure and
eventual consistency.

Key Features:
- Derived states for items with sub-issues
- Branch lifecycle per leaf (create on start, merge and delete on finish)
- Saga workflows with compensating rollback
- Tombstone masking of soft-deleted issues

Example:
    from issuetree.github import GitHubClient
    from issuetree.sync import SagaOrchestrator

    async with GitHubClient() as client:
        saga = SagaOrchestrator(client, client, "octo/widgets")
        snapshot = await saga.refresh()
"""

from issuetree.version import __version__

__all__ = [
    "__version__",
]
