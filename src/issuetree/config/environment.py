"""
Environment Variable Handling.

Manages environment variables and secrets using python-dotenv.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import SecretStr

# Track whether dotenv has been loaded
_dotenv_loaded: bool = False


def ensure_dotenv_loaded(env_file: str = ".env") -> bool:
    """Ensure .env file is loaded into os.environ.

    Args:
        env_file: Path to .env file (relative or absolute)

    Returns:
        True if a .env file was loaded, False otherwise
    """
    global _dotenv_loaded

    if _dotenv_loaded:
        return True

    env_paths = [
        Path(env_file),
        Path.cwd() / env_file,
    ]

    for env_path in env_paths:
        if env_path.exists():
            load_dotenv(env_path, override=False)
            _dotenv_loaded = True
            return True

    # No .env file found, that's okay - use the process environment
    _dotenv_loaded = True
    return False


def load_environment(env_file: str = ".env") -> None:
    """Load environment variables from a .env file if present."""
    ensure_dotenv_loaded(env_file)


def get_token(env_var: str = "GITHUB_TOKEN") -> SecretStr | None:
    """Get the tracker access token.

    Args:
        env_var: Environment variable holding the token

    Returns:
        Token wrapped in SecretStr, or None if unset
    """
    ensure_dotenv_loaded()
    value = os.environ.get(env_var)
    if not value:
        return None
    return SecretStr(value)


def reset_environment() -> None:
    """Forget that .env was loaded. Useful for testing."""
    global _dotenv_loaded
    _dotenv_loaded = False
