"""
Configuration: centralized settings and credential defaults.

Loads configuration from:
1. Environment variables
2. .env file (if present, via python-dotenv)

Usage:
    from qdbnode.config import load_config, credential_from_env

    # At CLI startup
    load_config()

    # When no host-supplied credential is available
    cred = credential_from_env()
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from qdbnode.errors import ConfigurationError

if TYPE_CHECKING:
    from qdbnode.questdb.client import Credential

log = structlog.get_logger()

# Flag to track if config has been loaded
_config_loaded = False


def find_dotenv() -> Path | None:
    """Find the .env file, searching up from current directory."""
    current = Path.cwd()
    for _ in range(10):  # Max 10 levels up
        env_file = current / ".env"
        if env_file.exists():
            return env_file
        if current.parent == current:
            break
        current = current.parent
    return None


def load_config() -> None:
    """
    Load configuration from .env file if present.

    Should be called once at CLI startup.
    """
    global _config_loaded
    if _config_loaded:
        return

    # Tests control the environment explicitly; a developer's local .env would make them flaky.
    if os.environ.get("PYTEST_CURRENT_TEST") or str(os.environ.get("QDBNODE_DISABLE_DOTENV", "")).lower() in {"1", "true", "yes"}:
        log.debug("config.skip_dotenv", reason="pytest_or_disabled")
        _config_loaded = True
        return

    from dotenv import load_dotenv

    env_file = find_dotenv()
    if env_file:
        load_dotenv(env_file, override=False)
        log.debug("config.loaded_dotenv", path=str(env_file))
    else:
        log.debug("config.no_dotenv_found")

    _config_loaded = True


def get_env(key: str, default: str | None = None, required: bool = False) -> str | None:
    """Get an environment variable with optional default and required check."""
    value = os.environ.get(key, default)
    if required and not value:
        raise ConfigurationError(
            f"Required environment variable {key} is not set. "
            f"Please set it in your .env file or environment."
        )
    return value


def env_int(key: str, default: int) -> int:
    """Read an integer environment variable; a malformed value is a configuration error."""
    load_config()
    raw = str(get_env(key, "") or "").strip()
    if not raw:
        return int(default)
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"Invalid {key}: {raw}") from e


def get_questdb_host() -> str:
    load_config()
    return str(get_env("QDBNODE_QUESTDB_HOST", "127.0.0.1") or "127.0.0.1")


def get_questdb_pg_port() -> int:
    return env_int("QDBNODE_QUESTDB_PG_PORT", 8812)


def get_questdb_pg_user() -> str:
    load_config()
    return str(get_env("QDBNODE_QUESTDB_PG_USER", "admin") or "admin")


def get_questdb_pg_password() -> str:
    load_config()
    return str(get_env("QDBNODE_QUESTDB_PG_PASSWORD", "quest") or "quest")


def get_questdb_pg_dbname() -> str:
    load_config()
    return str(get_env("QDBNODE_QUESTDB_PG_DBNAME", "qdb") or "qdb")


def get_questdb_ssl_mode() -> str | None:
    load_config()
    raw = str(get_env("QDBNODE_QUESTDB_SSL_MODE", "") or "").strip()
    return raw or None


def get_connect_timeout_s() -> int:
    return max(1, env_int("QDBNODE_CONNECT_TIMEOUT_S", 10))


def credential_from_env() -> Credential:
    """
    Build a Credential from QDBNODE_QUESTDB_* variables (QuestDB PGWire defaults otherwise).
    """
    from qdbnode.questdb.client import Credential

    return Credential(
        host=get_questdb_host(),
        port=get_questdb_pg_port(),
        database=get_questdb_pg_dbname(),
        user=get_questdb_pg_user(),
        password=get_questdb_pg_password(),
        ssl_mode=get_questdb_ssl_mode(),
    )
