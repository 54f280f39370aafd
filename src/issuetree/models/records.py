"""
Tracker wire records.

Plain dataclasses exchanged with the issue and branch collaborators,
independent of any particular tracker's JSON shape.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class IssueRecord:
    """Representation of a tracker issue as returned by list/get.

    Attributes:
        id: Issue number as a string
        title: Issue title
        body: Issue body
        is_open: Whether the issue is open
        labels: Label names
        external_id: Tracker-internal numeric id (needed for sub-issue links)
    """

    id: str
    title: str
    body: str = ""
    is_open: bool = True
    labels: list[str] = field(default_factory=list)
    external_id: Optional[int] = None

    def has_label(self, name: str) -> bool:
        """Check if the issue carries a label."""
        return name in self.labels


@dataclass
class CreateIssueRequest:
    """Request to create a new issue.

    Attributes:
        title: Issue title
        body: Issue body
        labels: Labels to add
    """

    title: str
    body: str = ""
    labels: list[str] = field(default_factory=list)


@dataclass
class IssueUpdate:
    """Partial update of an issue; None fields are left untouched."""

    title: Optional[str] = None
    body: Optional[str] = None
    is_open: Optional[bool] = None
    labels: Optional[list[str]] = None

    def to_payload(self) -> dict[str, Any]:
        """Convert to a GitHub-style PATCH payload."""
        payload: dict[str, Any] = {}
        if self.title is not None:
            payload["title"] = self.title
        if self.body is not None:
            payload["body"] = self.body
        if self.is_open is not None:
            payload["state"] = "open" if self.is_open else "closed"
        if self.labels is not None:
            payload["labels"] = list(self.labels)
        return payload
