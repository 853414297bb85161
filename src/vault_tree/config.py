"""Configuration loading and logging setup for vault-tree.

Settings come from a YAML file (explicit path, or the one named by
``$VAULT_TREE_CONFIG``) with environment overrides applied on top:

``VAULT_TREE_DB``
    database path
``VAULT_TREE_LOG_LEVEL``
    log level name (``DEBUG``, ``INFO``, ...)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import yaml

from vault_tree.exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV = "VAULT_TREE_CONFIG"
DB_ENV = "VAULT_TREE_DB"
LOG_LEVEL_ENV = "VAULT_TREE_LOG_LEVEL"

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(frozen=True, slots=True)
class VaultConfig:
    """Runtime settings of a vault."""

    db_path: str = ":memory:"
    busy_timeout: float = 5.0
    log_level: str = "WARNING"
    log_file: str | None = None
    log_max_bytes: int = 5 * 1024 * 1024
    log_backup_count: int = 5


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with path.open(encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {str(path)!r}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {str(path)!r}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {str(path)!r} must contain a mapping")
    return data


def _from_mapping(data: dict[str, Any]) -> VaultConfig:
    known = {f.name for f in fields(VaultConfig)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")
    config = VaultConfig(**data)
    try:
        busy_timeout = float(config.busy_timeout)
    except (TypeError, ValueError):
        raise ConfigError(
            f"busy_timeout must be a number, got {config.busy_timeout!r}"
        ) from None
    return replace(config, db_path=str(config.db_path), busy_timeout=busy_timeout)


def load_config(source: str | Path | None = None) -> VaultConfig:
    """Build a :class:`VaultConfig` from YAML and the environment.

    Without ``source`` the file named by ``$VAULT_TREE_CONFIG`` is read;
    when that is unset too, the defaults are used.
    """
    if source is None:
        source = os.environ.get(CONFIG_ENV)
    data = _read_yaml(Path(source)) if source else {}
    config = _from_mapping(data)

    if DB_ENV in os.environ:
        config = replace(config, db_path=os.environ[DB_ENV])
    if LOG_LEVEL_ENV in os.environ:
        config = replace(config, log_level=os.environ[LOG_LEVEL_ENV])

    _level(config.log_level)
    logger.debug("Loaded config from %s", source or "defaults")
    return config


def _level(name: str) -> int:
    level = logging.getLevelName(str(name).upper())
    if not isinstance(level, int):
        raise ConfigError(f"Unknown log level: {name!r}")
    return level


def configure_logging(config: VaultConfig) -> logging.Logger:
    """Attach console (and optional rotating file) handlers to the package logger."""
    package_logger = logging.getLogger("vault_tree")
    package_logger.setLevel(_level(config.log_level))
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(_LOG_FORMAT)
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    package_logger.addHandler(console)

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    return package_logger
