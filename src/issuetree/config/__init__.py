"""
issuetree - Configuration Management

This module provides configuration management including:
- YAML configuration loading and validation
- Environment variable handling
- Configuration defaults and overrides
"""

from issuetree.config.environment import (
    ensure_dotenv_loaded,
    get_token,
    load_environment,
    reset_environment,
)
from issuetree.config.loader import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_PATH,
    ENV_VAR_OVERRIDES,
    ConfigLoader,
    ConfigurationError,
    get_config,
    load_config,
    reset_config,
)
from issuetree.config.models import (
    BranchConfig,
    GitHubConfig,
    IssueTreeConfig,
    LabelConfig,
    LoggingConfig,
    LogLevel,
    SyncConfig,
)

__all__ = [
    # Config models
    "GitHubConfig",
    "BranchConfig",
    "LabelConfig",
    "SyncConfig",
    "LogLevel",
    "LoggingConfig",
    "IssueTreeConfig",
    # Loader
    "ConfigLoader",
    "ConfigurationError",
    "load_config",
    "get_config",
    "reset_config",
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_PATH",
    "ENV_VAR_OVERRIDES",
    # Environment
    "ensure_dotenv_loaded",
    "load_environment",
    "get_token",
    "reset_environment",
]
