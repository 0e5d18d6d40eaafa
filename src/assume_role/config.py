"""Configuration management for assume-role.

Settings come from, in increasing precedence: built-in defaults, the
``assume-role.yaml`` file, and environment variables (a ``.env`` file in the
working directory is loaded first).
"""

from __future__ import annotations

import logging
import os
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from assume_role.utils.time import parse_duration

_config_logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "assume-role.yaml"
USER_CONFIG_DIR = Path(".aws")
SYSTEM_CONFIG_DIR = Path("/etc")
DEFAULT_REFRESH_BEFORE_EXPIRY = timedelta(minutes=15)


class AssumeRoleSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    refresh_before_expiry: timedelta = Field(
        default=DEFAULT_REFRESH_BEFORE_EXPIRY,
        description="Refresh credentials this long before they expire",
    )
    role_prefix: str = Field(
        default="",
        description="Prepended to role names that are not already ARNs",
    )
    profile_name_prefix: str = Field(
        default="",
        description="Replaces the account id at the front of profile names",
    )

    @field_validator("refresh_before_expiry", mode="before")
    @classmethod
    def _parse_refresh_before_expiry(cls, value: Any) -> timedelta:
        if value is None:
            return DEFAULT_REFRESH_BEFORE_EXPIRY
        duration = parse_duration(value)
        if duration < timedelta(0):
            raise ValueError("refresh_before_expiry must not be negative")
        # Zero means unset.
        return duration or DEFAULT_REFRESH_BEFORE_EXPIRY


class LoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: str = Field(default="WARNING", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")


class AWSSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    region: str | None = Field(default=None)
    profile: str | None = Field(default=None)
    config_file: str | None = Field(default=None)
    credentials_file: str | None = Field(default=None)
    duration_seconds: int = Field(default=3600, ge=900, le=43200)


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    assume_role: AssumeRoleSettings = Field(default_factory=AssumeRoleSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    aws: AWSSettings = Field(default_factory=AWSSettings)
    config_path: str | None = Field(default=None, description="YAML file the settings came from")


ENV_KEYS = {
    "config_file": "ASSUME_ROLE_CONFIG",
    "refresh_before_expiry": "ASSUME_ROLE_REFRESH_BEFORE_EXPIRY",
    "role_prefix": "ASSUME_ROLE_ROLE_PREFIX",
    "profile_name_prefix": "ASSUME_ROLE_PROFILE_NAME_PREFIX",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "aws_region": "AWS_DEFAULT_REGION",
    "aws_profile": "AWS_PROFILE",
    "aws_config_file": "AWS_CONFIG_FILE",
    "aws_credentials_file": "AWS_SHARED_CREDENTIALS_FILE",
    "duration_seconds": "ASSUME_ROLE_DURATION_SECONDS",
}


def _env_str(key: str) -> str | None:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return None
    return value.strip()


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def search_paths(base_path: Path) -> list[Path]:
    """Return ``base_path`` and each of its parents up to the filesystem root."""
    return [base_path, *base_path.parents]


def find_config_file(
    cwd: Path | None = None,
    home: Path | None = None,
    system_dir: Path = SYSTEM_CONFIG_DIR,
) -> Path | None:
    """Locate ``assume-role.yaml``.

    Precedence: the working directory or nearest parent holding the file,
    then ``~/.aws``, then ``/etc``.
    """
    start = (cwd or Path.cwd()).resolve()
    for directory in search_paths(start):
        candidate = directory / CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate

    user_candidate = (home or Path.home()) / USER_CONFIG_DIR / CONFIG_FILE_NAME
    if user_candidate.is_file():
        return user_candidate

    system_candidate = system_dir / CONFIG_FILE_NAME
    if system_candidate.is_file():
        return system_candidate

    return None


def load_config_file(path: str | Path) -> dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise RuntimeError(f"Invalid configuration: {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise RuntimeError(f"Invalid configuration: {config_path} must contain a mapping")
    return data


def build_settings(file_data: dict[str, Any] | None = None, config_path: str | None = None) -> Settings:
    """Merge YAML file values with environment overrides and validate."""
    file_data = file_data or {}

    assume_role_data: dict[str, Any] = {
        key: file_data[key]
        for key in ("refresh_before_expiry", "role_prefix", "profile_name_prefix")
        if key in file_data
    }
    for key in ("refresh_before_expiry", "role_prefix", "profile_name_prefix"):
        env_value = _env_str(ENV_KEYS[key])
        if env_value is not None:
            assume_role_data[key] = env_value

    settings_data: dict[str, object] = {
        "assume_role": assume_role_data,
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": _env_str(ENV_KEYS["log_file"]),
        },
        "aws": {
            "region": _env_str("AWS_REGION") or _env_str(ENV_KEYS["aws_region"]),
            "profile": _env_str(ENV_KEYS["aws_profile"]),
            "config_file": _env_str(ENV_KEYS["aws_config_file"]),
            "credentials_file": _env_str(ENV_KEYS["aws_credentials_file"]),
            "duration_seconds": _env_int(
                ENV_KEYS["duration_seconds"], AWSSettings().duration_seconds
            ),
        },
        "config_path": config_path,
    }

    try:
        return Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=Path.cwd() / ".env")

    explicit = _env_str(ENV_KEYS["config_file"])
    config_path = Path(explicit).expanduser() if explicit else find_config_file()

    file_data: dict[str, Any] = {}
    if config_path is not None:
        file_data = load_config_file(config_path)
        _config_logger.debug("Loaded configuration from %s", config_path)

    return build_settings(file_data, str(config_path) if config_path else None)
