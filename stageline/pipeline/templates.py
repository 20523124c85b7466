"""
Standard container pipeline.

Checkout -> Build -> Push -> Deploy (-> Archive), with post.always pruning
dangling images and archiving the workspace whatever the outcome.
"""

from __future__ import annotations

from stageline.config.constants import (
    DEFAULT_ARCHIVE_PREFIX,
    DEFAULT_BRANCH,
    DEFAULT_CONTAINER_NAME,
    DEFAULT_CONTAINER_PORT,
    DEFAULT_CREDENTIALS_ID,
    DEFAULT_HOST_PORT,
    DEFAULT_IMAGE,
    DEFAULT_TAG,
)
from stageline.core.types import StepErrorKind
from stageline.pipeline.models import (
    ArchiveSpec,
    ArchiveStep,
    CredentialBinding,
    CredentialsBlock,
    Pipeline,
    PostActions,
    ShellStep,
    Stage,
)

IMAGE_REF = "${DOCKER_IMAGE}:${DOCKER_TAG}"


def checkout_stage(repo_url: str | None = None, branch: str = DEFAULT_BRANCH) -> Stage:
    """
    Checkout stage.

    Without a repository URL the workspace is expected to be checked out
    already by whatever triggered the run; the stage only verifies it.
    """
    if not repo_url:
        return Stage(name="Checkout", steps=[
            ShellStep(name="verify checkout", sh="git rev-parse --short HEAD"),
        ])
    return Stage(name="Checkout", steps=[
        ShellStep(
            name=f"checkout {branch}",
            sh=(
                "if [ -d .git ]; then "
                f"git fetch origin {branch} && git checkout -B {branch} origin/{branch}; "
                f"else git clone --branch {branch} {repo_url} .; fi"
            ),
        ),
    ])


def build_stage() -> Stage:
    return Stage(name="Build", steps=[
        ShellStep(name="docker build", sh=f"docker build -t {IMAGE_REF} ."),
    ])


def push_stage(credentials_id: str = DEFAULT_CREDENTIALS_ID) -> Stage:
    """Push stage; registry login and push run with the credential bound."""
    return Stage(name="Push", steps=[
        CredentialsBlock(
            with_credentials=[CredentialBinding(
                id=credentials_id, username_var="DOCKER_USER", password_var="DOCKER_PASS",
            )],
            steps=[
                ShellStep(
                    name="docker login",
                    sh='echo "$DOCKER_PASS" | docker login -u "$DOCKER_USER" --password-stdin',
                    error_kind=StepErrorKind.REGISTRY_AUTH,
                ),
                ShellStep(
                    name="docker push",
                    sh=f"docker push {IMAGE_REF}",
                    error_kind=StepErrorKind.REGISTRY_PUSH,
                ),
            ],
        ),
    ])


def deploy_stage() -> Stage:
    """Deploy stage; removing the previous container is best-effort."""
    return Stage(name="Deploy", steps=[
        ShellStep(
            name="remove previous container",
            sh="docker rm -f ${CONTAINER_NAME}",
            best_effort=True,
        ),
        ShellStep(
            name="run container",
            sh=(
                "docker run -d --name ${CONTAINER_NAME} "
                "-p ${HOST_PORT}:${CONTAINER_PORT} " + IMAGE_REF
            ),
            error_kind=StepErrorKind.DEPLOY_TARGET,
        ),
    ])


def archive_stage(bucket: str, prefix: str = DEFAULT_ARCHIVE_PREFIX) -> Stage:
    return Stage(name="Archive", steps=[
        ArchiveStep(archive=ArchiveSpec(bucket=bucket, prefix=prefix)),
    ])


def build_docker_pipeline(
    name: str = DEFAULT_CONTAINER_NAME,
    image: str = DEFAULT_IMAGE,
    tag: str = DEFAULT_TAG,
    container_name: str = DEFAULT_CONTAINER_NAME,
    host_port: int = DEFAULT_HOST_PORT,
    container_port: int = DEFAULT_CONTAINER_PORT,
    repo_url: str | None = None,
    branch: str = DEFAULT_BRANCH,
    credentials_id: str = DEFAULT_CREDENTIALS_ID,
    bucket: str | None = None,
    prefix: str = DEFAULT_ARCHIVE_PREFIX,
) -> Pipeline:
    """
    Build the standard build/push/deploy pipeline.

    Args:
        name: Pipeline name
        image: Image repository, also the registry address (e.g. acme/app)
        tag: Image tag
        container_name: Fixed name of the deployed container
        host_port: Host port published by the container
        container_port: Port the application listens on inside the container
        repo_url: Git repository to clone; None when the workspace is pre-checked-out
        branch: Branch to check out
        credentials_id: Registry credential id in the secret store
        bucket: S3 bucket for the optional Archive stage
        prefix: S3 key prefix for the Archive stage

    Returns:
        Pipeline ready to run or dump as YAML
    """
    stages = [checkout_stage(repo_url, branch), build_stage(), push_stage(credentials_id), deploy_stage()]
    if bucket:
        stages.append(archive_stage(bucket, prefix))

    return Pipeline(
        name=name,
        environment={
            "DOCKER_IMAGE": image,
            "DOCKER_TAG": tag,
            "CONTAINER_NAME": container_name,
            "HOST_PORT": str(host_port),
            "CONTAINER_PORT": str(container_port),
        },
        stages=stages,
        post=PostActions(always=[
            ShellStep(name="prune dangling images", sh="docker image prune -f", best_effort=True),
            ArchiveStep(name="archive workspace", archive=ArchiveSpec()),
        ]),
    )
