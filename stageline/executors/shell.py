"""
Shell step execution.

Each step is a blocking child process: ``<shell> -c <command>`` in the
workspace, with the run environment. stderr is merged into stdout so the
captured output keeps the order the user would see in a terminal.
"""

from __future__ import annotations

import subprocess
import time
from collections.abc import Mapping
from pathlib import Path

from loguru import logger

from stageline.config.constants import DEFAULT_SHELL
from stageline.core.exceptions import CommandTimeoutError, ExecutionError
from stageline.core.types import CommandResult


class ShellExecutor:
    """Run shell commands and capture their output."""

    def __init__(self, shell: str = DEFAULT_SHELL, cwd: Path | str | None = None):
        """
        Initialize ShellExecutor.

        Args:
            shell: Shell binary invoked as ``shell -c command``
            cwd: Working directory for every command (default: current directory)
        """
        self.shell = shell
        self.cwd = Path(cwd) if cwd else None

    def run(
        self,
        command: str,
        env: Mapping[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        """
        Execute a command and wait for it to exit.

        Args:
            command: Command line interpreted by the shell
            env: Complete environment for the child process
            timeout: Optional timeout in seconds (None waits forever)

        Returns:
            CommandResult; a non-zero exit is not an exception here

        Raises:
            CommandTimeoutError: If the timeout expired
            ExecutionError: If the shell could not be started
        """
        start_time = time.perf_counter()
        try:
            proc = subprocess.run(
                [self.shell, "-c", command],
                shell=False,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                text=True,
                errors="replace",
                env=dict(env) if env is not None else None,
                cwd=self.cwd,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            logger.error(f"⏱️ Command timed out after {timeout}s")
            raise CommandTimeoutError(command, timeout or 0) from e
        except OSError as e:
            raise ExecutionError(
                f"Cannot start shell '{self.shell}': {e}",
                {"shell": self.shell, "cwd": str(self.cwd) if self.cwd else None},
            ) from e

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(f"Command exited with {proc.returncode} in {duration_ms:.0f}ms")
        return CommandResult(
            success=proc.returncode == 0,
            output=(proc.stdout or "").rstrip(),
            exit_code=proc.returncode,
            duration_ms=duration_ms,
            command=command,
        )
