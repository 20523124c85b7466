"""
Stageline Core - Exceptions and shared types.
"""

from stageline.core.exceptions import (
    ArchiveUploadFailure,
    CommandTimeoutError,
    ConfigurationError,
    CredentialResolutionFailure,
    DeployTargetUnavailable,
    ExecutionError,
    InvalidConfigError,
    PipelineDefinitionError,
    RegistryAuthFailure,
    RegistryPushFailure,
    ShellStepFailure,
    StagelineError,
    ValidationError,
)
from stageline.core.types import (
    CommandResult,
    ExecutionResult,
    RunPhase,
    RunResult,
    RunStatus,
    StageStatus,
    StepErrorKind,
    StepResult,
    StepStatus,
)

__all__ = [
    "ArchiveUploadFailure",
    "CommandResult",
    "CommandTimeoutError",
    "ConfigurationError",
    "CredentialResolutionFailure",
    "DeployTargetUnavailable",
    "ExecutionError",
    "ExecutionResult",
    "InvalidConfigError",
    "PipelineDefinitionError",
    "RegistryAuthFailure",
    "RegistryPushFailure",
    "RunPhase",
    "RunResult",
    "RunStatus",
    "ShellStepFailure",
    "StageStatus",
    "StagelineError",
    "StepErrorKind",
    "StepResult",
    "StepStatus",
    "ValidationError",
]
