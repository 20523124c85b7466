"""
Stageline Pipeline Module.

Definition models, YAML loading, the executor and the standard
build/push/deploy template.
"""

from stageline.pipeline.executor import PipelineExecutor, expand_references, resolve_build_id
from stageline.pipeline.loader import dump_pipeline, load_pipeline, parse_pipeline
from stageline.pipeline.models import (
    ArchiveSpec,
    ArchiveStep,
    CredentialBinding,
    CredentialsBlock,
    Pipeline,
    PostActions,
    ShellStep,
    Stage,
    Step,
)
from stageline.pipeline.templates import build_docker_pipeline

__all__ = [
    "ArchiveSpec",
    "ArchiveStep",
    "CredentialBinding",
    "CredentialsBlock",
    "Pipeline",
    "PipelineExecutor",
    "PostActions",
    "ShellStep",
    "Stage",
    "Step",
    "build_docker_pipeline",
    "dump_pipeline",
    "expand_references",
    "load_pipeline",
    "parse_pipeline",
    "resolve_build_id",
]
