"""
Configuration Loader.

Reads ``issuetree.yaml`` (or the file named by ISSUETREE_CONFIG), expands
``${VAR}`` references, applies ISSUETREE_* overrides and validates the
result.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from issuetree.config.environment import load_environment
from issuetree.config.models import IssueTreeConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "issuetree.yaml"

CONFIG_ENV_VAR = "ISSUETREE_CONFIG"

# Env var -> dotted config key; pydantic coerces the raw strings
ENV_VAR_OVERRIDES = {
    "ISSUETREE_API_URL": "github.api_url",
    "ISSUETREE_TOKEN_ENV": "github.token_env",
    "ISSUETREE_MAX_RETRIES": "github.max_retries",
    "ISSUETREE_BASE_BRANCH": "branches.base_branch",
    "ISSUETREE_INTEGRATION_BRANCH": "branches.integration_branch",
    "ISSUETREE_BRANCH_PREFIX": "branches.prefix",
    "ISSUETREE_TOMBSTONE_LABEL": "labels.tombstone",
    "ISSUETREE_LOG_LEVEL": "logging.level",
    "ISSUETREE_LOG_FILE": "logging.file",
    "ISSUETREE_DEBUG": "debug",
}

# ${NAME} or ${NAME:-fallback}
_ENV_REF = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")


class ConfigurationError(Exception):
    """Raised when a configuration file cannot be read or validated."""

    def __init__(
        self,
        message: str,
        errors: list[dict] | None = None,
        path: Path | None = None,
    ) -> None:
        super().__init__(message)
        self.errors = errors or []
        self.path = path

    def __str__(self) -> str:
        lines = [super().__str__() + (f" (file: {self.path})" if self.path else "")]
        for err in self.errors:
            field = ".".join(str(part) for part in err.get("loc", ()))
            lines.append(f"  - {field}: {err.get('msg', 'invalid value')}")
        return "\n".join(lines)


class ConfigLoader:
    """Builds an IssueTreeConfig from a YAML file and the environment.

    Usage:
        config = ConfigLoader("issuetree.yaml").load()

        # Or find the file through ISSUETREE_CONFIG / ./issuetree.yaml
        config = ConfigLoader().load_from_env()
    """

    def __init__(self, config_path: str | Path | None = None, env_file: str = ".env") -> None:
        """Initialize the loader.

        Args:
            config_path: YAML file to read; defaults and overrides only if omitted
            env_file: .env file loaded before any variable is read
        """
        self._config_path = Path(config_path) if config_path else None
        self._env_file = env_file
        self._loaded_from_path: Path | None = None

    @property
    def loaded_from_path(self) -> Path | None:
        """Get the file the last load read, if any."""
        return self._loaded_from_path

    def load(self) -> IssueTreeConfig:
        """Load and validate the configuration.

        Raises:
            ConfigurationError: If the file or the resulting values are invalid
            FileNotFoundError: If the config file does not exist
        """
        load_environment(self._env_file)

        raw = self._read_yaml(self._config_path) if self._config_path else {}
        self._loaded_from_path = self._config_path

        data = _expand(raw)
        for env_var, key in ENV_VAR_OVERRIDES.items():
            value = os.environ.get(env_var)
            if value:
                _set_dotted(data, key, value)

        try:
            config = IssueTreeConfig(**data)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid configuration: {e.error_count()} error(s)",
                errors=e.errors(),
                path=self._config_path,
            ) from e

        logger.debug(f"Configuration loaded from {self._config_path or 'defaults'}")
        return config

    def load_from_env(self) -> IssueTreeConfig:
        """Load the file named by ISSUETREE_CONFIG, else ./issuetree.yaml, else defaults.

        Raises:
            FileNotFoundError: If ISSUETREE_CONFIG names a missing file
        """
        load_environment(self._env_file)

        named = os.environ.get(CONFIG_ENV_VAR)
        if named:
            self._config_path = Path(named)
        elif Path(DEFAULT_CONFIG_PATH).exists():
            self._config_path = Path(DEFAULT_CONFIG_PATH)
        return self.load()

    def _read_yaml(self, path: Path) -> dict[str, Any]:
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        try:
            data = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}", path=path) from e
        if not isinstance(data, dict):
            raise ConfigurationError("Top-level YAML must be a mapping", path=path)
        return data


def _expand(data: Any) -> Any:
    """Substitute ${VAR} references and drop empty keys so defaults apply."""
    if isinstance(data, dict):
        return {key: _expand(value) for key, value in data.items() if value is not None}
    if isinstance(data, list):
        return [_expand(value) for value in data]
    if isinstance(data, str):
        return _ENV_REF.sub(_lookup, data)
    return data


def _lookup(match: re.Match[str]) -> str:
    value = os.environ.get(match.group(1))
    if value is not None:
        return value
    # Unresolved references are left for validation to report
    return match.group(2) if match.group(2) is not None else match.group(0)


def _set_dotted(data: dict[str, Any], key: str, value: str) -> None:
    *parents, leaf = key.split(".")
    for part in parents:
        if not isinstance(data.get(part), dict):
            data[part] = {}
        data = data[part]
    data[leaf] = value


_global_config: IssueTreeConfig | None = None


def load_config(config_path: str | Path | None = None, env_file: str = ".env") -> IssueTreeConfig:
    """Load the configuration and cache it for get_config()."""
    global _global_config

    loader = ConfigLoader(config_path, env_file)
    _global_config = loader.load() if config_path else loader.load_from_env()
    return _global_config


def get_config() -> IssueTreeConfig:
    """Get the configuration cached by load_config().

    Raises:
        RuntimeError: If load_config() has not run
    """
    if _global_config is None:
        raise RuntimeError("Configuration not loaded. Call load_config() first.")
    return _global_config


def reset_config() -> None:
    """Forget the cached configuration."""
    global _global_config
    _global_config = None
