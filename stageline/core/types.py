"""
Stageline Core - Shared types and enums.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class StepStatus(StrEnum):
    """Outcome of a single step."""

    SUCCESS = "success"
    FAILURE = "failure"


class StageStatus(StrEnum):
    """Outcome of a stage."""

    SUCCESS = "success"
    FAILURE = "failure"


class RunStatus(StrEnum):
    """Overall outcome of a pipeline run."""

    SUCCESS = "success"
    FAILURE = "failure"


class RunPhase(StrEnum):
    """Executor state machine phases."""

    PENDING = "pending"
    RUNNING = "running"
    ABORTED = "aborted"
    POST_RUNNING = "post_running"
    SUCCESS = "success"
    FAILURE = "failure"


class StepErrorKind(StrEnum):
    """Error taxonomy member a failing step maps to."""

    SHELL = "shell"
    REGISTRY_AUTH = "registry_auth"
    REGISTRY_PUSH = "registry_push"
    DEPLOY_TARGET = "deploy_target"


@dataclass
class CommandResult:
    """Result of a command execution."""

    success: bool
    output: str
    exit_code: int
    duration_ms: float
    command: str | None = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class StepResult:
    """Recorded outcome of one step."""

    name: str
    status: StepStatus
    command: str = ""
    exit_code: int | None = None
    output: str = ""
    duration_ms: float = 0.0
    best_effort: bool = False
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.status == StepStatus.SUCCESS


@dataclass
class ExecutionResult:
    """Recorded outcome of one stage."""

    stage_name: str
    status: StageStatus
    steps: list[StepResult] = field(default_factory=list)
    duration_ms: float = 0.0
    error: str | None = None
    error_type: str | None = None

    @property
    def output(self) -> str:
        """Captured output of every step, in execution order."""
        return "\n".join(s.output for s in self.steps if s.output)

    @property
    def success(self) -> bool:
        return self.status == StageStatus.SUCCESS


@dataclass
class RunResult:
    """Result of a whole pipeline run."""

    pipeline: str
    build_id: str
    status: RunStatus
    phase: RunPhase
    stages: list[ExecutionResult] = field(default_factory=list)
    post: list[StepResult] = field(default_factory=list)
    failed_stage: str | None = None
    error: str | None = None
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == RunStatus.SUCCESS

    def stage(self, name: str) -> ExecutionResult | None:
        """Find a stage result by name."""
        for result in self.stages:
            if result.stage_name == name:
                return result
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        data = asdict(self)
        for stage, raw in zip(self.stages, data["stages"], strict=True):
            raw["output"] = stage.output
        return data
