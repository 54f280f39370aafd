"""
Error Taxonomy.

Exceptions raised by the tree model and by the external collaborators.
The sagas translate these into tagged results; they only propagate past a
saga when something genuinely unexpected happened.
"""

from typing import Optional


class IssueTreeError(Exception):
    """Base exception for all issuetree errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code


class ValidationError(IssueTreeError):
    """Raised when a request violates a tree invariant.

    The canonical case is a manual state change on an item that has
    children, whose state is always derived.
    """

    pass


class NotFoundError(IssueTreeError):
    """Raised when an issue, parent, branch or base branch does not exist."""

    pass


class PermissionDeniedError(IssueTreeError):
    """Raised when the tracker refuses the operation (HTTP 403)."""

    pass


class AuthenticationError(PermissionDeniedError):
    """Raised when the access token is missing or rejected (HTTP 401)."""

    pass


class ConflictError(IssueTreeError):
    """Raised on merge conflicts (HTTP 409)."""

    pass


class AlreadyExistsError(IssueTreeError):
    """Raised when creating a ref that already exists."""

    pass


class TransientAPIError(IssueTreeError):
    """Raised for rate limits, 5xx responses and transport failures.

    Retrying is the collaborator's concern, never the core's.
    """

    pass


class APIError(IssueTreeError):
    """Raised for any other unexpected tracker response."""

    pass


class CompensationFailure(IssueTreeError):
    """A forward action failed and so did its rollback.

    Always fatal: the external record may be left in the forward state
    and must be fixed by hand.

    Attributes:
        forward_error: Error that triggered the compensation
        compensation_error: Error raised by the compensating call
    """

    def __init__(
        self,
        message: str,
        forward_error: Optional[BaseException] = None,
        compensation_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.forward_error = forward_error
        self.compensation_error = compensation_error
