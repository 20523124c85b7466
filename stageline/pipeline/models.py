"""
Stageline Pipeline - Definition models.

Pydantic models for pipeline definitions. A step is one of:

- ``{sh: "..."}`` - shell command run as a child process
- ``{archive: {...}}`` - package the workspace and optionally upload it to S3
- ``{with_credentials: [...], steps: [...]}`` - nested steps with bound credentials
"""

from __future__ import annotations

import re
from typing import Annotated, Any, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, field_validator, model_validator

from stageline.config.constants import DEFAULT_ARCHIVE_PREFIX
from stageline.core.types import StepErrorKind

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _check_env_name(value: str) -> str:
    if not _ENV_NAME_RE.match(value):
        raise ValueError(f"'{value}' is not a valid environment variable name")
    return value


class ShellStep(BaseModel):
    """Shell command step."""

    model_config = ConfigDict(extra="forbid")

    sh: str = Field(min_length=1, description="Command line run with the configured shell")
    name: str | None = Field(default=None, description="Display name (defaults to the command)")
    best_effort: bool = Field(default=False, description="Failure is recorded but ignored")
    error_kind: StepErrorKind = Field(
        default=StepErrorKind.SHELL, description="Error raised when the step fails"
    )
    timeout: int | None = Field(default=None, gt=0, description="Timeout in seconds")

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        first_line = self.sh.strip().splitlines()[0]
        return first_line if len(first_line) <= 80 else first_line[:77] + "..."


class ArchiveSpec(BaseModel):
    """What to archive and where to upload it."""

    model_config = ConfigDict(extra="forbid")

    include: list[str] = Field(default_factory=lambda: ["**/*"], description="Glob patterns")
    exclude: list[str] = Field(default_factory=lambda: [".git/**"], description="Glob patterns")
    bucket: str | None = Field(default=None, description="S3 bucket; local only when unset")
    prefix: str = Field(default=DEFAULT_ARCHIVE_PREFIX, description="S3 key prefix")


class ArchiveStep(BaseModel):
    """Workspace archival step."""

    model_config = ConfigDict(extra="forbid")

    archive: ArchiveSpec
    name: str | None = None
    best_effort: bool = False

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        if self.archive.bucket:
            return f"archive to s3://{self.archive.bucket}/{self.archive.prefix}"
        return "archive workspace"


class CredentialBinding(BaseModel):
    """Scoped injection of a username/password credential."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    id: str = Field(min_length=1, description="Credential identifier in the secret store")
    username_var: str = Field(alias="usernameVariable", description="Variable receiving the username")
    password_var: str = Field(alias="passwordVariable", description="Variable receiving the password")

    @field_validator("username_var", "password_var")
    @classmethod
    def _check_variable_names(cls, value: str) -> str:
        return _check_env_name(value)

    @model_validator(mode="after")
    def _distinct_variables(self) -> CredentialBinding:
        if self.username_var == self.password_var:
            raise ValueError("username and password variables must differ")
        return self


class CredentialsBlock(BaseModel):
    """Steps that run with credentials bound into their environment."""

    model_config = ConfigDict(extra="forbid")

    with_credentials: list[CredentialBinding] = Field(min_length=1)
    steps: list[Step] = Field(min_length=1)

    @property
    def display_name(self) -> str:
        return "with credentials " + ", ".join(b.id for b in self.with_credentials)


def _step_kind(value: Any) -> str | None:
    """Discriminate steps by their key (raw dicts) or type (models)."""
    if isinstance(value, dict):
        for key in ("sh", "archive", "with_credentials"):
            if key in value:
                return key
        return None
    return {
        ShellStep: "sh",
        ArchiveStep: "archive",
        CredentialsBlock: "with_credentials",
    }.get(type(value))


Step = Annotated[
    Union[
        Annotated[ShellStep, Tag("sh")],
        Annotated[ArchiveStep, Tag("archive")],
        Annotated[CredentialsBlock, Tag("with_credentials")],
    ],
    Discriminator(
        _step_kind,
        custom_error_type="invalid_step",
        custom_error_message="Step must define one of 'sh', 'archive' or 'with_credentials'",
    ),
]

CredentialsBlock.model_rebuild()


class Stage(BaseModel):
    """Named, ordered group of steps."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    steps: list[Step] = Field(min_length=1)


class PostActions(BaseModel):
    """Steps run after the stages, whatever their outcome."""

    model_config = ConfigDict(extra="forbid")

    always: list[Step] = Field(default_factory=list)
    success: list[Step] = Field(default_factory=list)
    failure: list[Step] = Field(default_factory=list)


class Pipeline(BaseModel):
    """Complete pipeline definition."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(default="pipeline", min_length=1)
    environment: dict[str, str] = Field(default_factory=dict)
    stages: list[Stage] = Field(min_length=1)
    post: PostActions = Field(default_factory=PostActions)

    @field_validator("environment", mode="before")
    @classmethod
    def _stringify_environment(cls, value: Any) -> Any:
        # YAML turns `PORT: 80` into an int
        if isinstance(value, dict):
            return {str(k): "" if v is None else str(v) for k, v in value.items()}
        return value

    @field_validator("environment")
    @classmethod
    def _check_environment_names(cls, value: dict[str, str]) -> dict[str, str]:
        for key in value:
            _check_env_name(key)
        return value

    @model_validator(mode="after")
    def _unique_stage_names(self) -> Pipeline:
        seen: set[str] = set()
        for stage in self.stages:
            if stage.name in seen:
                raise ValueError(f"Duplicate stage name '{stage.name}'")
            seen.add(stage.name)
        return self

    def stage_names(self) -> list[str]:
        return [stage.name for stage in self.stages]
