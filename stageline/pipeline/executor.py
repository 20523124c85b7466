"""
Pipeline Executor.

Runs a Pipeline definition as a small state machine:

    Pending -> Running(stage i) -> {Running(stage i+1) | Aborted(stage i)}
            -> PostRunning -> {Success | Failure}

Stages and their steps run strictly in order. The first failing stage
aborts the rest, ``post.always`` runs exactly once whatever happened, then
``post.success`` or ``post.failure``. Step failures never escape ``run()``:
they are caught at the stage boundary and reported in the RunResult.
"""

from __future__ import annotations

import os
import re
import time
from collections.abc import Mapping, MutableMapping, Sequence
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

from stageline.config.constants import (
    CREDENTIAL_ENV_PREFIX,
    DEFAULT_ARCHIVE_DIR,
    DEFAULT_SHELL,
    OUTPUT_TAIL_LINES,
)
from stageline.core.exceptions import (
    ArchiveUploadFailure,
    CommandTimeoutError,
    CredentialResolutionFailure,
    DeployTargetUnavailable,
    RegistryAuthFailure,
    RegistryPushFailure,
    ShellStepFailure,
    StagelineError,
)
from stageline.core.types import (
    ExecutionResult,
    RunPhase,
    RunResult,
    RunStatus,
    StageStatus,
    StepErrorKind,
    StepResult,
    StepStatus,
)
from stageline.executors.aws import S3Archiver
from stageline.executors.shell import ShellExecutor
from stageline.pipeline.models import ArchiveStep, CredentialsBlock, Pipeline, ShellStep, Stage, Step
from stageline.secrets.binding import bind_credentials
from stageline.secrets.store import SecretStore
from stageline.triage.classifier import FailureClassifier, get_failure_classifier
from stageline.utils.display import DisplayManager
from stageline.utils.logger import log_prefix
from stageline.utils.security import mask_secrets

_FAILURE_TYPES: dict[StepErrorKind, type[ShellStepFailure]] = {
    StepErrorKind.SHELL: ShellStepFailure,
    StepErrorKind.REGISTRY_AUTH: RegistryAuthFailure,
    StepErrorKind.REGISTRY_PUSH: RegistryPushFailure,
    StepErrorKind.DEPLOY_TARGET: DeployTargetUnavailable,
}

_VAR_REF_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

POST_STAGE_NAME = "post"


def resolve_build_id(explicit: str | None = None, env: Mapping[str, str] | None = None) -> str:
    """
    Pick the build identifier.

    Order: explicit value, BUILD_NUMBER from the environment, UTC timestamp.
    """
    if explicit:
        return explicit
    env = os.environ if env is None else env
    if env.get("BUILD_NUMBER"):
        return env["BUILD_NUMBER"]
    return datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")


def expand_references(value: str, env: Mapping[str, str]) -> str:
    """Expand ``${VAR}`` references; unknown names are left untouched."""
    return _VAR_REF_RE.sub(lambda m: env.get(m.group(1), m.group(0)), value)


def _tail(text: str, lines: int = OUTPUT_TAIL_LINES) -> str:
    return "\n".join(text.splitlines()[-lines:])


class PipelineExecutor:
    """Execute pipelines sequentially with fail-fast stages and post actions."""

    def __init__(
        self,
        workspace: Path | str | None = None,
        shell: str = DEFAULT_SHELL,
        secret_store: SecretStore | None = None,
        archiver: S3Archiver | None = None,
        archive_dir: Path | str = DEFAULT_ARCHIVE_DIR,
        display: DisplayManager | None = None,
        classifier: FailureClassifier | None = None,
    ):
        """
        Initialize PipelineExecutor.

        Args:
            workspace: Directory every step runs in (default: current directory)
            shell: Shell binary for `sh` steps
            secret_store: Credential store (default: in-memory store with env fallback)
            archiver: Archiver for `archive` steps (default: S3Archiver)
            archive_dir: Where local archives are written
            display: Console display; None runs silently
            classifier: Failure classifier for generic shell failures
        """
        self.workspace = Path(workspace) if workspace else Path.cwd()
        self.shell = ShellExecutor(shell=shell, cwd=self.workspace)
        self.secret_store = secret_store or SecretStore(use_keyring=False)
        self.archiver = archiver or S3Archiver()
        self.archive_dir = Path(archive_dir)
        self.display = display
        self.classifier = classifier or get_failure_classifier()
        self.phase = RunPhase.PENDING
        self._build_id = ""

    @classmethod
    def from_config(cls, config, display: DisplayManager | None = None,
                    secret_store: SecretStore | None = None) -> PipelineExecutor:
        """Build an executor from a Stageline Config."""
        return cls(
            workspace=config.general.workspace,
            shell=config.general.shell,
            secret_store=secret_store,
            archiver=S3Archiver(region=config.aws.region, profile=config.aws.profile),
            archive_dir=config.general.archive_dir,
            display=display,
        )

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _transition(self, phase: RunPhase, detail: str = "") -> None:
        logger.debug(f"Run phase {self.phase} -> {phase}{f' ({detail})' if detail else ''}")
        self.phase = phase

    def build_environment(
        self,
        pipeline: Pipeline,
        build_id: str,
        base_env: Mapping[str, str] | None = None,
    ) -> dict[str, str]:
        """
        Environment shared by every step of a run.

        Parent environment, then BUILD_ID/BUILD_NUMBER/WORKSPACE/PIPELINE_NAME,
        then the pipeline's own variables (``${VAR}`` expanded in order).
        Credential fallback variables (``STAGELINE_CRED_*``) are dropped: their
        values reach steps only through a ``with_credentials`` binding.
        """
        parent = os.environ if base_env is None else base_env
        env = {key: value for key, value in parent.items() if not key.startswith(CREDENTIAL_ENV_PREFIX)}
        env.update({
            "BUILD_ID": build_id,
            "BUILD_NUMBER": build_id,
            "WORKSPACE": str(self.workspace),
            "PIPELINE_NAME": pipeline.name,
        })
        for key, value in pipeline.environment.items():
            env[key] = expand_references(value, env)
        return env

    def run(
        self,
        pipeline: Pipeline,
        build_id: str | None = None,
        base_env: Mapping[str, str] | None = None,
    ) -> RunResult:
        """
        Run a pipeline to completion.

        Args:
            pipeline: Validated pipeline definition
            build_id: Build identifier (see resolve_build_id)
            base_env: Parent environment (default: os.environ)

        Returns:
            RunResult with one ExecutionResult per executed stage
        """
        self.phase = RunPhase.PENDING
        self._build_id = resolve_build_id(build_id, base_env)
        run_log = logger.bind(run_id=self._build_id)
        start_time = time.perf_counter()

        env = self.build_environment(pipeline, self._build_id, base_env)
        results: list[ExecutionResult] = []
        failed_stage: str | None = None
        error: str | None = None

        run_log.info(f"▶️ Pipeline '{pipeline.name}' build {self._build_id} started "
                     f"({len(pipeline.stages)} stages)")
        if self.display:
            self.display.show_run_start(pipeline.name, self._build_id, len(pipeline.stages))

        total = len(pipeline.stages)
        for index, stage in enumerate(pipeline.stages, start=1):
            self._transition(RunPhase.RUNNING, stage.name)
            if self.display:
                self.display.show_stage(index, total, stage.name)

            result = self._run_stage(stage, env)
            results.append(result)
            if self.display:
                self.display.show_stage_result(result)

            if not result.success:
                failed_stage = stage.name
                error = result.error
                skipped = [s.name for s in pipeline.stages[index:]]
                self._transition(RunPhase.ABORTED, stage.name)
                run_log.error(
                    f"{log_prefix('❌')} Stage '{stage.name}' failed: {result.error}"
                    + (f" - skipping {', '.join(skipped)}" if skipped else "")
                )
                break

        stages_ok = failed_stage is None

        self._transition(RunPhase.POST_RUNNING)
        post_results, post_error = self._run_post(pipeline, env, stages_ok)

        if stages_ok and post_error:
            failed_stage = POST_STAGE_NAME
            error = post_error

        status = RunStatus.SUCCESS if failed_stage is None else RunStatus.FAILURE
        self._transition(RunPhase.SUCCESS if status == RunStatus.SUCCESS else RunPhase.FAILURE)

        run_result = RunResult(
            pipeline=pipeline.name,
            build_id=self._build_id,
            status=status,
            phase=self.phase,
            stages=results,
            post=post_results,
            failed_stage=failed_stage,
            error=error,
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )

        if run_result.success:
            run_log.success(f"{log_prefix('✅')} Pipeline '{pipeline.name}' build {self._build_id} succeeded")
        else:
            run_log.error(
                f"{log_prefix('❌')} Pipeline '{pipeline.name}' build {self._build_id} "
                f"failed at '{failed_stage}'"
            )
        if self.display:
            self.display.show_summary(run_result)
        return run_result

    # ------------------------------------------------------------------
    # Stages and post
    # ------------------------------------------------------------------

    def _run_stage(self, stage: Stage, env: MutableMapping[str, str]) -> ExecutionResult:
        logger.info(f"▶️ Stage '{stage.name}' started")
        start_time = time.perf_counter()
        steps: list[StepResult] = []
        try:
            self._run_steps(stage.steps, env, steps, secrets=[])
        except StagelineError as e:
            return ExecutionResult(
                stage_name=stage.name,
                status=StageStatus.FAILURE,
                steps=steps,
                duration_ms=(time.perf_counter() - start_time) * 1000,
                error=str(e),
                error_type=type(e).__name__,
            )

        logger.info(f"{log_prefix('✅')} Stage '{stage.name}' succeeded")
        return ExecutionResult(
            stage_name=stage.name,
            status=StageStatus.SUCCESS,
            steps=steps,
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )

    def _run_post(
        self,
        pipeline: Pipeline,
        env: MutableMapping[str, str],
        stages_ok: bool,
    ) -> tuple[list[StepResult], str | None]:
        """
        Run post.always, then post.success or post.failure.

        A required step failing stops its own block only; the next block
        still runs. Returns the step results and the first post error.
        """
        blocks: list[tuple[str, Sequence[Step]]] = [("always", pipeline.post.always)]
        blocks.append(("success", pipeline.post.success) if stages_ok else ("failure", pipeline.post.failure))

        results: list[StepResult] = []
        first_error: str | None = None
        for condition, steps in blocks:
            if not steps:
                continue
            logger.info(f"🧹 Post ({condition}) started")
            if self.display:
                self.display.show_post(condition)
            try:
                self._run_steps(steps, env, results, secrets=[])
            except StagelineError as e:
                logger.error(f"{log_prefix('❌')} Post ({condition}) failed: {e}")
                if first_error is None:
                    first_error = f"post ({condition}): {e}"
        return results, first_error

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _run_steps(
        self,
        steps: Sequence[Step],
        env: MutableMapping[str, str],
        results: list[StepResult],
        secrets: list[str],
    ) -> None:
        """Run steps in order; the first required failure raises."""
        for step in steps:
            if isinstance(step, ShellStep):
                self._run_shell(step, env, results, secrets)
            elif isinstance(step, ArchiveStep):
                self._run_archive(step, results)
            elif isinstance(step, CredentialsBlock):
                self._run_with_credentials(step, env, results, secrets)
            else:
                raise TypeError(f"Unsupported step type: {type(step).__name__}")

    def _record(self, results: list[StepResult], result: StepResult) -> None:
        results.append(result)
        if self.display:
            self.display.show_step(result)

    def _run_shell(
        self,
        step: ShellStep,
        env: MutableMapping[str, str],
        results: list[StepResult],
        secrets: list[str],
    ) -> None:
        name = step.display_name
        logger.info(f"⚡ Step '{mask_secrets(name, secrets)}'")

        try:
            command_result = self.shell.run(step.sh, env=env, timeout=step.timeout)
        except CommandTimeoutError as e:
            self._record(results, StepResult(
                name=name, status=StepStatus.FAILURE, command=step.sh,
                best_effort=step.best_effort, error=str(e),
            ))
            if step.best_effort:
                logger.warning(f"⚠️ Best-effort step '{name}' timed out, continuing")
                return
            raise

        output = mask_secrets(command_result.output, secrets)
        if command_result.success:
            self._record(results, StepResult(
                name=name, status=StepStatus.SUCCESS, command=step.sh,
                exit_code=command_result.exit_code, output=output,
                duration_ms=command_result.duration_ms, best_effort=step.best_effort,
            ))
            return

        failure = self._classify_failure(step, command_result.exit_code, output)
        self._record(results, StepResult(
            name=name, status=StepStatus.FAILURE, command=step.sh,
            exit_code=command_result.exit_code, output=output,
            duration_ms=command_result.duration_ms, best_effort=step.best_effort,
            error=str(failure),
        ))

        if step.best_effort:
            logger.warning(
                f"⚠️ Best-effort step '{name}' exited with {command_result.exit_code}, continuing"
            )
            return
        logger.debug(f"Output tail of '{name}':\n{_tail(output)}")
        raise failure

    def _classify_failure(self, step: ShellStep, exit_code: int, output: str) -> ShellStepFailure:
        """Pick the exception for a failed shell step."""
        kind = step.error_kind
        if kind == StepErrorKind.SHELL:
            analysis = self.classifier.analyze(output)
            if analysis.kind != StepErrorKind.SHELL:
                logger.debug(
                    f"🔍 Failure classified as {analysis.kind} "
                    f"(confidence: {analysis.confidence:.2f}, pattern: {analysis.matched_pattern!r})"
                )
            kind = analysis.kind
        exc_type = _FAILURE_TYPES.get(kind, ShellStepFailure)
        return exc_type(step.sh, exit_code, _tail(output))

    def _run_archive(self, step: ArchiveStep, results: list[StepResult]) -> None:
        name = step.display_name
        spec = step.archive
        logger.info(f"📦 Step '{name}'")
        start_time = time.perf_counter()
        try:
            archive_path = self.archiver.create_archive(
                self.workspace, self.archive_dir, self._build_id, spec.include, spec.exclude
            )
            output = f"Archived workspace to {archive_path}"
            if spec.bucket:
                uri = self.archiver.upload(archive_path, spec.bucket, spec.prefix)
                output += f"\nUploaded to {uri}"
        except ArchiveUploadFailure as e:
            self._record(results, StepResult(
                name=name, status=StepStatus.FAILURE, best_effort=step.best_effort,
                duration_ms=(time.perf_counter() - start_time) * 1000, error=str(e),
            ))
            if step.best_effort:
                logger.warning(f"⚠️ Best-effort archive step failed, continuing: {e}")
                return
            raise

        self._record(results, StepResult(
            name=name, status=StepStatus.SUCCESS, output=output, best_effort=step.best_effort,
            duration_ms=(time.perf_counter() - start_time) * 1000,
        ))

    def _run_with_credentials(
        self,
        block: CredentialsBlock,
        env: MutableMapping[str, str],
        results: list[StepResult],
        secrets: list[str],
    ) -> None:
        recorded_before = len(results)
        try:
            with bind_credentials(env, block.with_credentials, self.secret_store) as bound:
                self._run_steps(block.steps, env, results, secrets + bound)
        except CredentialResolutionFailure as e:
            # Nothing recorded yet means this block's own bindings failed
            if len(results) == recorded_before:
                self._record(results, StepResult(
                    name=block.display_name, status=StepStatus.FAILURE, error=str(e),
                ))
            raise
