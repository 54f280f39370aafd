"""
issuetree - GitHub Integration

External collaborators of the sync core:
- IssueClient / BranchClient: protocols the core depends on
- GitHubClient: REST implementation of both, built on httpx and tenacity
"""

from issuetree.github.client import GitHubClient
from issuetree.github.protocols import BranchClient, IssueClient

__all__ = [
    "GitHubClient",
    "IssueClient",
    "BranchClient",
]
