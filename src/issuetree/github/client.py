"""
GitHub REST Client.

Async client implementing both collaborator protocols (issues and
branches) against the GitHub REST API.

Features:
- One place mapping HTTP status codes to the issuetree error taxonomy
- Automatic retry of transient failures with exponential backoff (tenacity)
- Soft delete via a tombstone label, created on demand
- Native sub-issue listing and linking
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from issuetree.config.environment import get_token
from issuetree.config.models import GitHubConfig, LabelConfig
from issuetree.errors import (
    AlreadyExistsError,
    APIError,
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    TransientAPIError,
    ValidationError,
)
from issuetree.models.base import MergeOutcome
from issuetree.models.records import CreateIssueRequest, IssueRecord, IssueUpdate

logger = logging.getLogger(__name__)


class GitHubClient:
    """Async client for the GitHub REST API.

    Example:
        async with GitHubClient(token="...") as client:
            issues = await client.list_issues("octo/widgets")
            await client.create_ref("octo/widgets", "item-42", "main")
    """

    def __init__(
        self,
        token: str | None = None,
        config: GitHubConfig | None = None,
        labels: LabelConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_wait: wait_base | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            token: Access token (defaults to the env var named in config)
            config: GitHub settings
            labels: Label settings (tombstone label name and color)
            transport: Optional httpx transport, mainly for tests
            retry_wait: Wait strategy between retries of transient failures
        """
        self._config = config or GitHubConfig()
        self._labels = labels or LabelConfig()
        self._token = token
        self._transport = transport
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=30)
        self._client: httpx.AsyncClient | None = None
        self._tombstone_label_ready: set[str] = set()

    @property
    def config(self) -> GitHubConfig:
        """Get client configuration."""
        return self._config

    async def __aenter__(self) -> GitHubClient:
        """Enter async context."""
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context."""
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure HTTP client is initialized."""
        if self._client is None:
            token = self._token
            if token is None:
                secret = get_token(self._config.token_env)
                token = secret.get_secret_value() if secret else None
            if not token:
                raise AuthenticationError(
                    f"GitHub token not found. Set {self._config.token_env} "
                    "or pass token to constructor."
                )

            self._client = httpx.AsyncClient(
                base_url=self._config.api_url,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": self._config.api_version,
                },
                timeout=self._config.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    async def list_issues(self, repository: str) -> list[IssueRecord]:
        """List all issues (open and closed), excluding pull requests.

        No tombstone filtering happens here; that is the cache's job.
        """
        path = f"{_repo_path(repository)}/issues"
        records: list[IssueRecord] = []
        page = 1
        while True:
            response = await self._request(
                "GET",
                path,
                params={"state": "all", "per_page": self._config.per_page, "page": page},
                context=f"List issues of {repository}",
            )
            batch = response.json()
            records.extend(_to_record(item) for item in batch if "pull_request" not in item)
            if len(batch) < self._config.per_page:
                break
            page += 1
        logger.debug(f"Listed {len(records)} issues in {repository}")
        return records

    async def get_issue(self, repository: str, issue_id: str) -> IssueRecord:
        """Get a single issue."""
        response = await self._request(
            "GET",
            f"{_repo_path(repository)}/issues/{issue_id}",
            context=f"Get issue #{issue_id}",
        )
        return _to_record(response.json())

    async def create_issue(self, repository: str, request: CreateIssueRequest) -> IssueRecord:
        """Create an issue."""
        response = await self._request(
            "POST",
            f"{_repo_path(repository)}/issues",
            json={"title": request.title, "body": request.body, "labels": request.labels},
            context=f"Create issue '{request.title}'",
        )
        record = _to_record(response.json())
        logger.info(f"Created issue #{record.id} in {repository}")
        return record

    async def update_issue(
        self, repository: str, issue_id: str, update: IssueUpdate
    ) -> IssueRecord:
        """Update an issue.

        Raises:
            ValidationError: If the issue carries the tombstone label
        """
        current = await self.get_issue(repository, issue_id)
        if current.has_label(self._labels.tombstone):
            raise ValidationError(f"Cannot update issue #{issue_id}: issue is deleted")

        response = await self._request(
            "PATCH",
            f"{_repo_path(repository)}/issues/{issue_id}",
            json=update.to_payload(),
            context=f"Update issue #{issue_id}",
        )
        return _to_record(response.json())

    async def delete_issue(self, repository: str, issue_id: str) -> IssueRecord:
        """Soft-delete an issue.

        GitHub does not allow deleting issues through the REST API, so the
        issue is closed and tagged with the tombstone label. Existing labels
        are preserved.

        Raises:
            APIError: If GitHub did not apply the tombstone label
        """
        await self._ensure_tombstone_label(repository)

        current = await self.get_issue(repository, issue_id)
        labels = list(current.labels)
        if self._labels.tombstone not in labels:
            labels.append(self._labels.tombstone)

        response = await self._request(
            "PATCH",
            f"{_repo_path(repository)}/issues/{issue_id}",
            json={"state": "closed", "labels": labels},
            context=f"Delete issue #{issue_id}",
        )
        record = _to_record(response.json())
        if not record.has_label(self._labels.tombstone):
            raise APIError(
                f"GitHub did not apply the '{self._labels.tombstone}' label to issue #{issue_id}"
            )
        logger.info(f"Soft-deleted issue #{issue_id} in {repository}")
        return record

    async def list_sub_issues(self, repository: str, issue_id: str) -> list[str]:
        """List the ids of an issue's sub-issues."""
        response = await self._request(
            "GET",
            f"{_repo_path(repository)}/issues/{issue_id}/sub_issues",
            params={"per_page": self._config.per_page},
            context=f"List sub-issues of #{issue_id}",
        )
        return [str(item["number"]) for item in response.json()]

    async def link_sub_issue(self, repository: str, parent_id: str, child: IssueRecord) -> None:
        """Link ``child`` as a sub-issue of ``parent_id``."""
        external_id = child.external_id
        if external_id is None:
            external_id = (await self.get_issue(repository, child.id)).external_id

        await self._request(
            "POST",
            f"{_repo_path(repository)}/issues/{parent_id}/sub_issues",
            json={"sub_issue_id": external_id},
            context=f"Link #{child.id} under #{parent_id}",
        )
        logger.info(f"Linked issue #{child.id} as sub-issue of #{parent_id}")

    async def _ensure_tombstone_label(self, repository: str) -> None:
        """Create the tombstone label in the repository if it is missing."""
        if repository in self._tombstone_label_ready:
            return

        name = self._labels.tombstone
        try:
            await self._request(
                "GET",
                f"{_repo_path(repository)}/labels/{name}",
                context=f"Get label '{name}'",
            )
        except NotFoundError:
            await self._request(
                "POST",
                f"{_repo_path(repository)}/labels",
                json={
                    "name": name,
                    "color": self._labels.tombstone_color,
                    "description": "Issues marked for deletion",
                },
                context=f"Create label '{name}'",
            )
            logger.info(f"Created '{name}' label in {repository}")
        self._tombstone_label_ready.add(repository)

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    async def create_ref(self, repository: str, name: str, base: str) -> None:
        """Create branch ``name`` at the head of ``base``.

        Raises:
            NotFoundError: If the base branch does not exist
            AlreadyExistsError: If the branch already exists
        """
        try:
            response = await self._request(
                "GET",
                f"{_repo_path(repository)}/git/ref/heads/{base}",
                context=f"Resolve base branch '{base}'",
            )
        except NotFoundError as e:
            raise NotFoundError(
                f"Base branch '{base}' not found or repository not accessible", status_code=404
            ) from e
        sha = response.json()["object"]["sha"]

        response = await self._request(
            "POST",
            f"{_repo_path(repository)}/git/refs",
            json={"ref": f"refs/heads/{name}", "sha": sha},
            context=f"Create branch '{name}'",
            allow=(422,),
        )
        if response.status_code == 422:
            raise AlreadyExistsError(f"Branch '{name}' already exists", status_code=422)
        logger.info(f"Created branch '{name}' from '{base}' in {repository}")

    async def delete_ref(self, repository: str, name: str) -> None:
        """Delete branch ``name``."""
        await self._request(
            "DELETE",
            f"{_repo_path(repository)}/git/refs/heads/{name}",
            context=f"Delete branch '{name}'",
        )
        logger.info(f"Deleted branch '{name}' in {repository}")

    async def compare(self, repository: str, base: str, head: str) -> int:
        """Return how many commits ``head`` is ahead of ``base``."""
        response = await self._request(
            "GET",
            f"{_repo_path(repository)}/compare/{base}...{head}",
            context=f"Compare '{head}' with '{base}'",
        )
        return int(response.json().get("ahead_by", 0))

    async def create_merge(self, repository: str, base: str, head: str) -> MergeOutcome:
        """Merge ``head`` into ``base`` and classify the outcome."""
        response = await self._request(
            "POST",
            f"{_repo_path(repository)}/merges",
            json={"base": base, "head": head, "commit_message": f"Merge {head} into {base}"},
            context=f"Merge '{head}' into '{base}'",
            allow=(204, 404, 409),
        )
        outcome = {
            204: MergeOutcome.NO_COMMITS,
            404: MergeOutcome.NOT_FOUND,
            409: MergeOutcome.CONFLICT,
        }.get(response.status_code, MergeOutcome.OK)
        logger.info(f"Merge of '{head}' into '{base}' in {repository}: {outcome.value}")
        return outcome

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        context: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        allow: tuple[int, ...] = (),
    ) -> httpx.Response:
        """Send a request, retrying transient failures.

        Args:
            method: HTTP method
            path: Path relative to the API base URL
            context: Description used in error messages
            json: JSON body
            params: Query parameters
            allow: Non-2xx status codes returned to the caller instead of raised

        Returns:
            The HTTP response

        Raises:
            IssueTreeError: Subclass matching the failure
        """
        client = await self._ensure_client()

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._config.max_retries),
            wait=self._retry_wait,
            retry=retry_if_exception_type(TransientAPIError),
            reraise=True,
        ):
            with attempt:
                attempt_num = attempt.retry_state.attempt_number
                if attempt_num > 1:
                    logger.info(
                        f"{context}: retrying (attempt {attempt_num}/{self._config.max_retries})"
                    )
                try:
                    response = await client.request(method, path, json=json, params=params)
                except httpx.TransportError as e:
                    raise TransientAPIError(f"{context}: {e}") from e
                if response.status_code not in allow:
                    _raise_for_status(response, context)
                return response

        raise AssertionError("unreachable")  # pragma: no cover


def _raise_for_status(response: httpx.Response, context: str) -> None:
    """Map a failed response onto the error taxonomy."""
    status = response.status_code
    if status < 400:
        return

    message = f"{context}: HTTP {status} {_error_message(response)}".rstrip()
    if status == 401:
        raise AuthenticationError(message, status_code=status)
    if status == 403:
        if response.headers.get("x-ratelimit-remaining") == "0":
            raise TransientAPIError(message, status_code=status)
        raise PermissionDeniedError(message, status_code=status)
    if status == 404:
        raise NotFoundError(message, status_code=status)
    if status == 409:
        raise ConflictError(message, status_code=status)
    if status == 429 or status >= 500:
        raise TransientAPIError(message, status_code=status)
    raise APIError(message, status_code=status)


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict):
        return str(data.get("message", ""))
    return ""


def _repo_path(repository: str) -> str:
    """Turn ``owner/name`` into the ``/repos/owner/name`` path prefix."""
    owner, sep, name = repository.partition("/")
    if not sep or not owner or not name or "/" in name:
        raise ValidationError(f"Repository must be 'owner/name', got '{repository}'")
    return f"/repos/{owner}/{name}"


def _to_record(data: dict[str, Any]) -> IssueRecord:
    """Convert a GitHub issue payload to an IssueRecord."""
    labels = [
        label if isinstance(label, str) else label.get("name", "")
        for label in data.get("labels") or []
    ]
    return IssueRecord(
        id=str(data["number"]),
        title=data.get("title", ""),
        body=data.get("body") or "",
        is_open=data.get("state", "open") == "open",
        labels=[label for label in labels if label],
        external_id=data.get("id"),
    )
