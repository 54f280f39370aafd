"""Tests for configuration loading."""

import pytest
import yaml

from issuetree.config import (
    CONFIG_ENV_VAR,
    ENV_VAR_OVERRIDES,
    BranchConfig,
    ConfigLoader,
    ConfigurationError,
    IssueTreeConfig,
    LogLevel,
    get_config,
    load_config,
    reset_config,
    reset_environment,
)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Reset global config and run from an empty directory.

    Keeps tests independent of any issuetree.yaml, .env file or
    ISSUETREE_* variable present where the suite is started.
    """
    reset_config()
    reset_environment()
    for env_var in [CONFIG_ENV_VAR, *ENV_VAR_OVERRIDES]:
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    reset_config()
    reset_environment()


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data))
    return path


class TestConfigModels:
    """Tests for the configuration models."""

    def test_defaults(self):
        """Test default values."""
        config = IssueTreeConfig()
        assert config.github.api_url == "https://api.github.com"
        assert config.github.token_env == "GITHUB_TOKEN"
        assert config.branches.prefix == "item-"
        assert config.branches.integration_branch == "main"
        assert config.labels.tombstone == "deleted"
        assert config.sync.reconcile_after_delete
        assert config.logging.level == LogLevel.WARNING

    def test_blank_branch_rejected(self):
        """Test that blank branch settings fail validation."""
        with pytest.raises(ValueError):
            BranchConfig(base_branch="  ")

    def test_default_categories(self):
        """Test the recognized category labels."""
        config = IssueTreeConfig()
        assert config.labels.categories == ["Feature", "Bug", "Task", "Enhancement"]


class TestConfigLoader:
    """Tests for ConfigLoader."""

    def test_load_file(self, tmp_path):
        """Test loading values from YAML."""
        path = write_yaml(
            tmp_path / "custom.yaml",
            {"branches": {"base_branch": "develop"}, "labels": {"in_progress": "doing"}},
        )
        config = ConfigLoader(path).load()

        assert config.branches.base_branch == "develop"
        assert config.labels.in_progress == "doing"
        assert config.branches.prefix == "item-"

    def test_env_substitution(self, tmp_path, monkeypatch):
        """Test ${VAR} and ${VAR:-default} substitution."""
        monkeypatch.setenv("MY_BASE", "release")
        monkeypatch.delenv("MY_RETRIES", raising=False)
        path = write_yaml(
            tmp_path / "custom.yaml",
            {
                "branches": {"base_branch": "${MY_BASE}"},
                "github": {"max_retries": "${MY_RETRIES:-5}"},
            },
        )
        config = ConfigLoader(path).load()

        assert config.branches.base_branch == "release"
        assert config.github.max_retries == 5

    def test_env_overrides(self, tmp_path, monkeypatch):
        """Test ISSUETREE_* overrides on top of the file."""
        path = write_yaml(tmp_path / "custom.yaml", {"github": {"max_retries": 2}})
        monkeypatch.setenv("ISSUETREE_MAX_RETRIES", "7")
        monkeypatch.setenv("ISSUETREE_BRANCH_PREFIX", "123")
        monkeypatch.setenv("ISSUETREE_DEBUG", "true")

        config = ConfigLoader(path).load()

        assert config.github.max_retries == 7
        assert config.branches.prefix == "123"
        assert config.debug is True

    def test_validation_error(self, tmp_path):
        """Test that invalid values raise ConfigurationError."""
        path = write_yaml(tmp_path / "bad.yaml", {"github": {"max_retries": 0}})

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigLoader(path).load()

        assert exc_info.value.path == path
        assert "github.max_retries" in str(exc_info.value)

    def test_non_mapping_yaml(self, tmp_path):
        """Test that a YAML list is rejected."""
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError):
            ConfigLoader(path).load()

    def test_missing_file(self, tmp_path):
        """Test that a missing explicit file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            ConfigLoader(tmp_path / "nope.yaml").load()

    def test_load_from_env_defaults(self):
        """Test that no file at all gives defaults."""
        loader = ConfigLoader()
        config = loader.load_from_env()

        assert config == IssueTreeConfig()
        assert loader.loaded_from_path is None

    def test_load_from_env_var(self, tmp_path, monkeypatch):
        """Test discovery through ISSUETREE_CONFIG."""
        path = write_yaml(tmp_path / "elsewhere.yaml", {"debug": True})
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        assert ConfigLoader().load_from_env().debug is True

    def test_load_from_default_location(self, tmp_path):
        """Test discovery of issuetree.yaml in the working directory."""
        write_yaml(tmp_path / "issuetree.yaml", {"branches": {"prefix": "wi/"}})
        assert ConfigLoader().load_from_env().branches.prefix == "wi/"

    def test_empty_section_uses_defaults(self, tmp_path):
        """Test that a section left empty in YAML falls back to defaults."""
        path = tmp_path / "sparse.yaml"
        path.write_text("github:\nlabels:\n  tombstone: trash\n")

        config = ConfigLoader(path).load()

        assert config.github.token_env == "GITHUB_TOKEN"
        assert config.labels.tombstone == "trash"

    def test_unresolved_reference_fails_validation(self, tmp_path, monkeypatch):
        """Test that a ${VAR} without value or fallback is reported."""
        monkeypatch.delenv("NOT_SET_ANYWHERE", raising=False)
        path = write_yaml(tmp_path / "ref.yaml", {"github": {"max_retries": "${NOT_SET_ANYWHERE}"}})

        with pytest.raises(ConfigurationError):
            ConfigLoader(path).load()


class TestGlobalConfig:
    """Tests for the module-level helpers."""

    def test_get_before_load(self):
        """Test that get_config requires a prior load."""
        with pytest.raises(RuntimeError):
            get_config()

    def test_load_and_get(self):
        """Test caching of the loaded configuration."""
        config = load_config()
        assert get_config() is config

        reset_config()
        with pytest.raises(RuntimeError):
            get_config()
