"""
Stageline Config - Configuration models.

Pydantic models for type-safe configuration.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from stageline.config.constants import (
    DEFAULT_ARCHIVE_DIR,
    DEFAULT_LOG_DIR,
    DEFAULT_SHELL,
    SECRET_SERVICE_NAME,
)

LogLevelName = Literal["trace", "debug", "info", "success", "warning", "error", "critical"]


class GeneralConfig(BaseModel):
    """General execution settings."""

    workspace: Path = Field(default_factory=Path.cwd, description="Directory steps run in")
    shell: str = Field(default=DEFAULT_SHELL, description="Shell used to run `sh` steps")
    archive_dir: Path = Field(default=DEFAULT_ARCHIVE_DIR, description="Local archive directory")
    build_id: str | None = Field(default=None, description="Fixed build identifier")


class LoggingConfig(BaseModel):
    """Logging settings."""

    log_dir: Path = Field(default=DEFAULT_LOG_DIR, description="Directory for log files")
    file_level: LogLevelName = Field(default="debug", description="File log level")
    console_level: LogLevelName = Field(default="info", description="Console log level (verbose)")
    max_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    retention_days: int = Field(default=7, ge=1, le=90, description="Log retention in days")
    json_logs: bool = Field(default=False, description="Write JSON lines to the log file")


class SecretsConfig(BaseModel):
    """Credential store settings."""

    service_name: str = Field(default=SECRET_SERVICE_NAME, description="Keyring service name")
    env_fallback: bool = Field(
        default=True, description="Resolve STAGELINE_CRED_<ID>_USR/_PSW variables"
    )


class AWSConfig(BaseModel):
    """AWS settings for artifact archival."""

    region: str = Field(default="us-east-1", description="S3 region")
    profile: str | None = Field(default=None, description="Named AWS profile")
