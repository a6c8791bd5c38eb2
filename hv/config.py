"""Config management for hv.

Reads `config.ini` from DATA_DIR (beside main.py unless the DATA_DIR env var
points elsewhere).
"""

from __future__ import annotations

import configparser
import dataclasses
import os
import pathlib
import sys
from typing import Optional

from .logging_config import get_logger

logger = get_logger(__name__)


def _get_project_root() -> pathlib.Path:
    if getattr(sys, "frozen", False):
        return pathlib.Path(sys.executable).resolve().parent
    return pathlib.Path(__file__).resolve().parents[1]


PROJECT_ROOT = _get_project_root()

# DATA_DIR holds all persistent state (config.ini, hv.db, hv.log).
DATA_DIR = pathlib.Path(os.environ.get("DATA_DIR", str(PROJECT_ROOT)))
DEFAULT_CONFIG_PATH = DATA_DIR / "config.ini"
DEFAULT_DATABASE_NAME = "hv.db"
DEFAULT_MAX_TOKENS_PER_USER = 20


@dataclasses.dataclass
class DatabaseConfig:
    path: pathlib.Path = DATA_DIR / DEFAULT_DATABASE_NAME


@dataclasses.dataclass
class AuthConfig:
    """Session limits. Logging in past the cap evicts the oldest session.

    disable_registering only closes self-service sign-up; `hv register-user`
    still works.
    """

    max_tokens_per_user: int = DEFAULT_MAX_TOKENS_PER_USER
    disable_registering: bool = False


@dataclasses.dataclass
class LoggingConfig:
    level: str = "INFO"
    # None means hv.log in DATA_DIR
    file: Optional[pathlib.Path] = None


@dataclasses.dataclass
class HVConfig:
    database: DatabaseConfig
    auth: AuthConfig
    logging: LoggingConfig

    @property
    def database_path(self) -> pathlib.Path:
        return self.database.path

    @property
    def max_tokens_per_user(self) -> int:
        return self.auth.max_tokens_per_user

    @property
    def disable_registering(self) -> bool:
        return self.auth.disable_registering


def _resolve_data_path(value: str, base: pathlib.Path) -> pathlib.Path:
    path = pathlib.Path(value).expanduser()
    if not path.is_absolute():
        path = base / path
    return path


def load_config(config_path: Optional[pathlib.Path] = None) -> HVConfig:
    """Load configuration from config.ini.

    Defaults to `config.ini` in DATA_DIR. Relative database and log file
    paths are resolved against the directory holding the config file.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    parser = configparser.ConfigParser()
    parser.read(path)

    database = DatabaseConfig(
        path=_resolve_data_path(
            parser.get("database", "path", fallback=DEFAULT_DATABASE_NAME),
            path.parent,
        )
    )

    max_tokens = parser.getint(
        "auth", "max_tokens_per_user", fallback=DEFAULT_MAX_TOKENS_PER_USER
    )
    if max_tokens < 1:
        logger.warning(
            f"max_tokens_per_user must be at least 1 (got {max_tokens}), "
            f"using {DEFAULT_MAX_TOKENS_PER_USER}"
        )
        max_tokens = DEFAULT_MAX_TOKENS_PER_USER

    log_file = parser.get("logging", "file", fallback="").strip()
    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO").strip().upper(),
        file=_resolve_data_path(log_file, path.parent) if log_file else None,
    )

    return HVConfig(
        database=database,
        auth=AuthConfig(
            max_tokens_per_user=max_tokens,
            disable_registering=parser.getboolean("auth", "disable_registering", fallback=False),
        ),
        logging=logging_config,
    )


def write_default_config(
    database_path: pathlib.Path,
    config_path: Optional[pathlib.Path] = None,
    max_tokens_per_user: int = DEFAULT_MAX_TOKENS_PER_USER,
) -> pathlib.Path:
    """Write a config.ini pointing at database_path. Overwrites an existing file."""
    path = config_path or DEFAULT_CONFIG_PATH

    parser = configparser.ConfigParser()
    parser["database"] = {"path": str(database_path.expanduser())}
    parser["auth"] = {
        "max_tokens_per_user": str(max_tokens_per_user),
        "disable_registering": "false",
    }
    parser["logging"] = {"level": "INFO"}

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        parser.write(handle)

    return path
