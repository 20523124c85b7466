"""
Stageline Config - Configuration management.
"""

from stageline.config.loader import (
    Config,
    get_config,
    load_config,
    reset_config,
    save_config,
    set_config,
)
from stageline.config.models import AWSConfig, GeneralConfig, LoggingConfig, SecretsConfig

__all__ = [
    "AWSConfig",
    "Config",
    "GeneralConfig",
    "LoggingConfig",
    "SecretsConfig",
    "get_config",
    "load_config",
    "reset_config",
    "save_config",
    "set_config",
]
