"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from stageline.config import reset_config
from stageline.pipeline import PipelineExecutor
from stageline.secrets import SecretStore, reset_secret_store
from stageline.utils.display import reset_display_manager

FAKE_DOCKER = r'''#!/usr/bin/env bash
# Minimal docker stand-in; state lives in $FAKE_DOCKER_STATE
state="${FAKE_DOCKER_STATE:?}"
mkdir -p "$state/images" "$state/registry" "$state/containers"
cmd="$1"; shift
echo "$cmd $*" >> "$state/calls.log"
key() { echo "$1" | tr '/:' '__'; }
case "$cmd" in
  build)
    tag=""
    while [ $# -gt 0 ]; do
      case "$1" in -t) tag="$2"; shift 2;; *) shift;; esac
    done
    if [ -n "$FAKE_DOCKER_FAIL_BUILD" ]; then echo "failed to solve: Dockerfile not found" >&2; exit 1; fi
    touch "$state/images/$(key "$tag")"
    echo "Successfully tagged $tag"
    ;;
  login)
    user=""
    while [ $# -gt 0 ]; do
      case "$1" in -u) user="$2"; shift 2;; *) shift;; esac
    done
    pass="$(cat)"
    if [ "$user" = "$FAKE_DOCKER_USER" ] && [ "$pass" = "$FAKE_DOCKER_PASS" ]; then
      touch "$state/logged_in"
      echo "Login Succeeded for $user with $pass"
    else
      echo "Error response from daemon: unauthorized: incorrect username or password" >&2
      exit 1
    fi
    ;;
  push)
    ref="$1"
    if [ ! -f "$state/logged_in" ]; then echo "denied: requested access to the resource is denied" >&2; exit 1; fi
    if [ ! -f "$state/images/$(key "$ref")" ]; then echo "An image does not exist locally with the tag: $ref" >&2; exit 1; fi
    touch "$state/registry/$(key "$ref")"
    echo "$ref: digest: sha256:0123 size: 1234"
    ;;
  rm)
    if [ "$1" = "-f" ]; then shift; fi
    name="$1"
    if [ -f "$state/containers/$name" ]; then
      rm "$state/containers/$name"
      echo "$name"
    else
      echo "Error: No such container: $name" >&2
      exit 1
    fi
    ;;
  run)
    name=""; port=""; image=""
    while [ $# -gt 0 ]; do
      case "$1" in
        -d) shift;;
        --name) name="$2"; shift 2;;
        -p) port="$2"; shift 2;;
        *) image="$1"; shift;;
      esac
    done
    if [ -f "$state/containers/$name" ]; then
      echo "docker: Error response from daemon: Conflict. The container name \"/$name\" is already in use." >&2
      exit 125
    fi
    n=$(( $(cat "$state/counter" 2>/dev/null || echo 0) + 1 ))
    echo "$n" > "$state/counter"
    printf '%s\n%s\n%s\n' "$image" "$port" "$n" > "$state/containers/$name"
    echo "container-$n"
    ;;
  image)
    echo "Total reclaimed space: 0B"
    ;;
  *)
    echo "unknown command: $cmd" >&2
    exit 1
    ;;
esac
'''


class FakeDocker:
    """Inspect the state written by the fake docker executable."""

    def __init__(self, state: Path):
        self.state = state

    @staticmethod
    def _key(ref: str) -> str:
        return ref.replace("/", "_").replace(":", "_")

    def has_image(self, ref: str) -> bool:
        return (self.state / "images" / self._key(ref)).exists()

    def in_registry(self, ref: str) -> bool:
        return (self.state / "registry" / self._key(ref)).exists()

    def containers(self) -> dict[str, dict[str, str]]:
        result = {}
        directory = self.state / "containers"
        if not directory.exists():
            return result
        for path in directory.iterdir():
            image, port, serial = path.read_text().splitlines()
            result[path.name] = {"image": image, "port": port, "serial": serial}
        return result

    def calls(self) -> list[str]:
        log = self.state / "calls.log"
        return log.read_text().splitlines() if log.exists() else []


@pytest.fixture(autouse=True)
def isolated_stageline(tmp_path, monkeypatch):
    """Keep config, logs and singletons away from the real home directory."""
    monkeypatch.setenv("STAGELINE_CONFIG", str(tmp_path / "config.yaml"))
    monkeypatch.setenv("STAGELINE_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("STAGELINE_ARCHIVE_DIR", str(tmp_path / "archives"))
    monkeypatch.delenv("BUILD_NUMBER", raising=False)
    reset_config()
    reset_secret_store()
    reset_display_manager()
    yield
    reset_config()
    reset_secret_store()
    reset_display_manager()


@pytest.fixture
def workspace(tmp_path) -> Path:
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def archive_dir(tmp_path) -> Path:
    return tmp_path / "archives"


@pytest.fixture
def secret_store() -> SecretStore:
    """In-memory store without environment fallback."""
    return SecretStore(use_keyring=False, env_fallback=False)


@pytest.fixture
def executor(workspace, archive_dir, secret_store) -> PipelineExecutor:
    return PipelineExecutor(
        workspace=workspace,
        secret_store=secret_store,
        archive_dir=archive_dir,
    )


@pytest.fixture
def fake_docker(tmp_path, monkeypatch) -> FakeDocker:
    """Put a fake `docker` first on PATH."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "docker"
    script.write_text(FAKE_DOCKER)
    script.chmod(0o755)

    state = tmp_path / "docker-state"
    state.mkdir()
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    monkeypatch.setenv("FAKE_DOCKER_STATE", str(state))
    monkeypatch.setenv("FAKE_DOCKER_USER", "acme")
    monkeypatch.setenv("FAKE_DOCKER_PASS", "s3cr3t-token")
    monkeypatch.delenv("FAKE_DOCKER_FAIL_BUILD", raising=False)
    return FakeDocker(state)
