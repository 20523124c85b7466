"""
Stageline Config - Loader.

Priority:
1. Environment variables (STAGELINE_*, AWS_REGION)
2. Config file (~/.stageline/config.yaml or $STAGELINE_CONFIG)
3. Defaults
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from stageline.config.constants import DEFAULT_CONFIG_FILE
from stageline.config.models import AWSConfig, GeneralConfig, LoggingConfig, SecretsConfig
from stageline.core.exceptions import InvalidConfigError


class Config(BaseModel):
    """Root configuration."""

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    secrets: SecretsConfig = Field(default_factory=SecretsConfig)
    aws: AWSConfig = Field(default_factory=AWSConfig)


# env var -> (section, key)
ENV_MAPPINGS: dict[str, tuple[str, str]] = {
    "STAGELINE_WORKSPACE": ("general", "workspace"),
    "STAGELINE_SHELL": ("general", "shell"),
    "STAGELINE_ARCHIVE_DIR": ("general", "archive_dir"),
    "STAGELINE_LOG_DIR": ("logging", "log_dir"),
    "STAGELINE_LOG_LEVEL": ("logging", "console_level"),
    "STAGELINE_LOG_JSON": ("logging", "json_logs"),
    "STAGELINE_SECRET_SERVICE": ("secrets", "service_name"),
    "AWS_DEFAULT_REGION": ("aws", "region"),
    "AWS_REGION": ("aws", "region"),  # Wins over AWS_DEFAULT_REGION
    "AWS_PROFILE": ("aws", "profile"),
}


def config_path() -> Path:
    """Resolve the config file location."""
    override = os.environ.get("STAGELINE_CONFIG")
    return Path(override).expanduser() if override else DEFAULT_CONFIG_FILE


def _read_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text())
    except (yaml.YAMLError, OSError) as e:
        raise InvalidConfigError(f"Cannot read config file {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidConfigError(f"Config file {path} must contain a mapping")
    return data


def _apply_env(data: dict[str, Any]) -> dict[str, Any]:
    for env_var, (section, key) in ENV_MAPPINGS.items():
        value = os.environ.get(env_var)
        if value is None or value == "":
            continue
        target = data.setdefault(section, {})
        if not isinstance(target, dict):
            raise InvalidConfigError(f"Config section '{section}' must be a mapping")
        if key == "json_logs":
            target[key] = value.lower() in ("1", "true", "yes", "on")
        elif key == "console_level":
            target[key] = value.lower()
        else:
            target[key] = value
    return data


def load_config(path: Path | None = None) -> Config:
    """
    Load configuration from file and environment.

    Args:
        path: Optional explicit config file path.

    Returns:
        Validated Config.

    Raises:
        InvalidConfigError: If the file is unreadable or values are invalid.
    """
    path = path or config_path()
    data = _apply_env(_read_file(path))
    try:
        config = Config.model_validate(data)
    except PydanticValidationError as e:
        raise InvalidConfigError(f"Invalid configuration in {path}: {e}") from e
    logger.debug(f"⚙️ Configuration loaded (file: {path}, exists: {path.exists()})")
    return config


def save_config(config: Config, path: Path | None = None) -> Path:
    """Write configuration as YAML."""
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(config.model_dump(mode="json"), sort_keys=False))
    return path


_cached_config: Config | None = None


def get_config() -> Config:
    """Get the current configuration (cached)."""
    global _cached_config
    if _cached_config is None:
        _cached_config = load_config()
    return _cached_config


def set_config(config: Config) -> None:
    """Replace the cached configuration (CLI --config, tests)."""
    global _cached_config
    _cached_config = config


def reset_config() -> None:
    """Reset the cached configuration."""
    global _cached_config
    _cached_config = None
