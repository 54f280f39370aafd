"""
Configuration Data Models.

Defines all configuration schemas using Pydantic for validation
and type safety.
"""

from enum import Enum

from pydantic import BaseModel, Field, field_validator


class LogLevel(str, Enum):
    """Logging levels accepted in configuration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class GitHubConfig(BaseModel):
    """Configuration for the GitHub collaborator.

    Attributes:
        api_url: REST API base URL
        token_env: Environment variable holding the access token
        api_version: Value of the X-GitHub-Api-Version header
        timeout_seconds: Request timeout
        max_retries: Attempts for transient failures (rate limits, 5xx)
        per_page: Page size for list endpoints
    """

    api_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL",
    )
    token_env: str = Field(
        default="GITHUB_TOKEN",
        description="Env var for the access token",
    )
    api_version: str = Field(
        default="2022-11-28",
        description="GitHub REST API version header",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Request timeout",
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        description="Attempts for transient failures",
    )
    per_page: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Page size for list endpoints",
    )


class BranchConfig(BaseModel):
    """Configuration for leaf branches.

    Attributes:
        prefix: Branch name prefix; branches are named ``<prefix><id>``
        base_branch: Branch new item branches are cut from
        integration_branch: Branch finished items are merged into
    """

    prefix: str = Field(
        default="item-",
        description="Branch name prefix",
    )
    base_branch: str = Field(
        default="main",
        description="Base for new branches",
    )
    integration_branch: str = Field(
        default="main",
        description="Merge target for finished items",
    )

    @field_validator("prefix", "base_branch", "integration_branch")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """Validate that branch settings are not blank."""
        if not v.strip():
            raise ValueError("Branch settings cannot be empty")
        return v


class LabelConfig(BaseModel):
    """Configuration for tracker labels.

    Attributes:
        in_progress: Label marking an open issue as in progress
        tombstone: Label marking an issue as deleted
        tombstone_color: Color used when the tombstone label is created
        categories: Labels recognized as the item category
        default_category: Category used when no category label is present
    """

    in_progress: str = Field(default="in-progress")
    tombstone: str = Field(default="deleted")
    tombstone_color: str = Field(default="808080")
    categories: list[str] = Field(
        default_factory=lambda: ["Feature", "Bug", "Task", "Enhancement"],
    )
    default_category: str = Field(default="Task")


class SyncConfig(BaseModel):
    """Configuration for the saga workflows.

    Attributes:
        reconcile_after_delete: Run a tombstone reconciliation pass after
            background deletes
        refresh_after_delete: Reload the tree from the tracker after
            background deletes
        placeholder_prefix: Prefix of temporary ids minted on create
    """

    reconcile_after_delete: bool = Field(default=True)
    refresh_after_delete: bool = Field(default=True)
    placeholder_prefix: str = Field(default="temp-")


class LoggingConfig(BaseModel):
    """Configuration for logging.

    Attributes:
        level: Root level for issuetree loggers
        format: Log record format
        file: Optional log file path
    """

    level: LogLevel = Field(default=LogLevel.WARNING)
    format: str = Field(default="%(asctime)s %(levelname)s %(name)s: %(message)s")
    file: str | None = Field(default=None)


class IssueTreeConfig(BaseModel):
    """Root configuration for the entire system.

    Attributes:
        github: GitHub collaborator configuration
        branches: Branch naming and merge targets
        labels: Tracker labels
        sync: Saga workflow switches
        logging: Logging configuration
        debug: Enable debug mode
    """

    github: GitHubConfig = Field(
        default_factory=GitHubConfig,
        description="GitHub configuration",
    )
    branches: BranchConfig = Field(
        default_factory=BranchConfig,
        description="Branch configuration",
    )
    labels: LabelConfig = Field(
        default_factory=LabelConfig,
        description="Label configuration",
    )
    sync: SyncConfig = Field(
        default_factory=SyncConfig,
        description="Workflow configuration",
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )
    debug: bool = Field(default=False)
