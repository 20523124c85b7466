"""
Pipeline file loading.

YAML format:
    name: myapp
    environment:
      DOCKER_IMAGE: acme/app
    stages:
      - name: Build
        steps:
          - sh: docker build -t ${DOCKER_IMAGE}:latest .
    post:
      always:
        - sh: docker image prune -f
          best_effort: true
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from stageline.core.exceptions import PipelineDefinitionError
from stageline.pipeline.models import Pipeline


def _format_errors(error: PydanticValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "<root>"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def parse_pipeline(data: Any, source: str = "<memory>") -> Pipeline:
    """
    Validate raw pipeline data.

    Args:
        data: Mapping loaded from YAML/JSON.
        source: Name used in error messages.

    Raises:
        PipelineDefinitionError: If the data does not describe a pipeline.
    """
    if not isinstance(data, dict):
        raise PipelineDefinitionError(source, "top level must be a mapping")
    try:
        return Pipeline.model_validate(data)
    except PydanticValidationError as e:
        raise PipelineDefinitionError(source, _format_errors(e)) from e


def load_pipeline(file_path: str | Path) -> Pipeline:
    """
    Load a pipeline definition from a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        PipelineDefinitionError: If the YAML or schema is invalid.
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Pipeline file not found: {file_path}")

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise PipelineDefinitionError(str(path), f"invalid YAML: {e}") from e

    if data is None:
        raise PipelineDefinitionError(str(path), "file is empty")

    pipeline = parse_pipeline(data, source=str(path))
    logger.debug(f"Loaded pipeline '{pipeline.name}' from {path} ({len(pipeline.stages)} stages)")
    return pipeline


def dump_pipeline(pipeline: Pipeline) -> str:
    """Serialize a pipeline back to YAML."""
    data = pipeline.model_dump(mode="json", exclude_defaults=True)
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False)
