"""
Centralized logging for Stageline.

Provides:
- Configurable log levels and rotation
- Run-specific logging (build id prefix)
- Sensitive data redaction
- Multiple output targets (file, console)

Configuration comes from the `logging` section of the Stageline config.
"""
import json
import os
import sys
from typing import Any, Optional

from loguru import logger

from stageline.config.constants import LOG_FILE_NAME
from stageline.utils.security import redact_sensitive_info


def use_emoji_logs() -> bool:
    """
    Check if emoji prefixes should be used in log messages.

    Returns True unless USE_EMOJI_LOGS environment variable is set to "0" or "false".
    """
    value = os.environ.get("USE_EMOJI_LOGS", "1").lower()
    return value not in ("0", "false", "no", "off")


# Mapping of emoji prefixes to ASCII alternatives
_EMOJI_TO_ASCII = {
    "▶️": "[STAGE]",
    "⚡": "[STEP]",
    "⚠️": "[WARN]",
    "⏱️": "[TIMEOUT]",
    "✅": "[OK]",
    "❌": "[ERROR]",
    "🔐": "[SECRET]",
    "🔒": "[SECRET]",
    "🧹": "[POST]",
    "📦": "[ARCHIVE]",
    "⚙️": "[CONFIG]",
}


def log_prefix(emoji: str) -> str:
    """
    Return the appropriate log prefix based on USE_EMOJI_LOGS setting.

    Args:
        emoji: The emoji to use when emoji logs are enabled.

    Returns:
        The emoji if USE_EMOJI_LOGS is enabled, otherwise the ASCII equivalent
        (or empty string if no mapping exists).
    """
    if use_emoji_logs():
        return emoji
    return _EMOJI_TO_ASCII.get(emoji, "")


def _get_logging_config():
    """Get logging configuration (lazy import to avoid circular deps)."""
    from stageline.config import get_config
    return get_config().logging


def setup_logger(
    verbose: bool = False,
    run_id: Optional[str] = None,
    config: Optional[Any] = None,
) -> None:
    """
    Configure the logger.

    Rules:
    1. FILE: Always log to <log_dir>/stageline.log (rotated).
    2. CONSOLE:
       - If verbose: Log to stderr at the configured console level.
       - If NOT verbose: DO NOT log to stderr (DisplayManager handles UI).

    Args:
        verbose: Enable console logging
        run_id: Optional run/build ID added to every file record
        config: Optional LoggingConfig override (for testing)
    """
    logger.remove()

    if config is None:
        config = _get_logging_config()

    config.log_dir.mkdir(parents=True, exist_ok=True)
    log_path = config.log_dir / LOG_FILE_NAME

    def format_record(record):
        """Format log record with optional run_id."""
        rid = record["extra"].get("run_id", run_id or "")

        if config.json_logs:
            log_entry = {
                "timestamp": record["time"].isoformat(),
                "level": record["level"].name,
                "message": record["message"],
                "module": record["name"],
                "function": record["function"],
                "line": record["line"],
            }
            if rid:
                log_entry["run_id"] = rid
            # Braces would be read as format fields by loguru
            return json.dumps(log_entry).replace("{", "{{").replace("}", "}}") + "\n"

        if rid:
            return (
                "{time:YYYY-MM-DD HH:mm:ss} | " + rid +
                " | {level: <8} | {name}:{function}:{line} - {message}\n"
            )
        return "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}\n"

    logger.add(
        log_path,
        rotation=f"{config.max_size_mb} MB",
        retention=f"{config.retention_days} days",
        level=config.file_level.upper(),
        format=format_record,
        compression="gz",
        enqueue=True,
    )

    if verbose:
        console_format = (
            "<green>{time:HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        )
        logger.add(
            sys.stderr,
            format=console_format,
            level=config.console_level.upper(),
            colorize=True,
        )

    def redaction_filter(record):
        """Redact sensitive info from all logs."""
        try:
            record["message"] = redact_sensitive_info(record["message"])
        except Exception:
            record["message"] = "[REDACTED]"

    logger.configure(patcher=redaction_filter)


def get_run_logger(run_id: str):
    """
    Get a logger bound to a specific run ID.

    Example:
        >>> run_logger = get_run_logger("42")
        >>> run_logger.info("Stage started")
    """
    return logger.bind(run_id=run_id)


__all__ = ["get_run_logger", "log_prefix", "logger", "setup_logger", "use_emoji_logs"]
