"""
Core Exceptions - Unified error hierarchy for Stageline.

Follows SRP: each exception type handles one category of errors.
"""


class StagelineError(Exception):
    """Base exception for all Stageline errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | {self.details}"
        return self.message


# =============================================================================
# Validation Errors
# =============================================================================

class ValidationError(StagelineError):
    """Input validation failed."""
    pass


class PipelineDefinitionError(ValidationError):
    """Pipeline file could not be parsed or does not match the schema."""

    def __init__(self, source: str, reason: str):
        super().__init__(
            f"Invalid pipeline definition '{source}': {reason}",
            {"source": source}
        )
        self.source = source
        self.reason = reason


# =============================================================================
# Execution Errors
# =============================================================================

class ExecutionError(StagelineError):
    """Step or stage execution failed."""
    pass


class ShellStepFailure(ExecutionError):
    """Shell step returned non-zero exit code."""

    def __init__(self, command: str, exit_code: int, output: str = ""):
        super().__init__(
            f"Command failed with exit code {exit_code}",
            {"command": command, "exit_code": exit_code}
        )
        self.command = command
        self.exit_code = exit_code
        self.output = output


class CommandTimeoutError(ExecutionError):
    """Command execution timed out."""

    def __init__(self, command: str, timeout_seconds: int):
        super().__init__(
            f"Command timed out after {timeout_seconds}s",
            {"command": command, "timeout": timeout_seconds}
        )
        self.command = command
        self.timeout_seconds = timeout_seconds


class RegistryAuthFailure(ShellStepFailure):
    """Container registry rejected the login."""

    def __init__(self, command: str, exit_code: int, output: str = ""):
        super().__init__(command, exit_code, output)
        self.message = f"Registry authentication failed (exit code {exit_code})"


class RegistryPushFailure(ShellStepFailure):
    """Image push to the registry failed."""

    def __init__(self, command: str, exit_code: int, output: str = ""):
        super().__init__(command, exit_code, output)
        self.message = f"Registry push failed (exit code {exit_code})"


class DeployTargetUnavailable(ShellStepFailure):
    """Deploy target runtime could not be reached or refused the container."""

    def __init__(self, command: str, exit_code: int, output: str = ""):
        super().__init__(command, exit_code, output)
        self.message = f"Deploy target unavailable (exit code {exit_code})"


class ArchiveUploadFailure(ExecutionError):
    """Workspace archive could not be created or uploaded."""

    def __init__(self, destination: str, reason: str):
        super().__init__(
            f"Archive upload to '{destination}' failed: {reason}",
            {"destination": destination, "reason": reason}
        )
        self.destination = destination
        self.reason = reason


# =============================================================================
# Security Errors
# =============================================================================

class SecurityError(StagelineError):
    """Security validation failed."""
    pass


class CredentialResolutionFailure(SecurityError):
    """Credential identifier could not be resolved from the secret store."""

    def __init__(self, credential_id: str, missing: str = "username/password"):
        super().__init__(
            f"Credential '{credential_id}' not found ({missing} missing)",
            {"credential_id": credential_id}
        )
        self.credential_id = credential_id


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(StagelineError):
    """Configuration error."""
    pass


class InvalidConfigError(ConfigurationError):
    """Invalid configuration value."""
    pass
