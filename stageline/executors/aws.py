"""
Workspace archival.

Packages the workspace into ``<build_id>.tar.gz`` and uploads it to S3.
"""

from __future__ import annotations

import fnmatch
import tarfile
from pathlib import Path
from typing import Iterable

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from stageline.core.exceptions import ArchiveUploadFailure


def _matches(path: str, patterns: Iterable[str]) -> bool:
    for pattern in patterns:
        if fnmatch.fnmatch(path, pattern):
            return True
        # "**/*" style patterns should also match top-level files
        if pattern.startswith("**/") and fnmatch.fnmatch(path, pattern[3:]):
            return True
    return False


def collect_files(workspace: Path, include: list[str], exclude: list[str]) -> list[Path]:
    """List workspace files matching include and not exclude, sorted."""
    files = []
    for path in sorted(workspace.rglob("*")):
        if not path.is_file():
            continue
        rel = path.relative_to(workspace).as_posix()
        if _matches(rel, include) and not _matches(rel, exclude):
            files.append(path)
    return files


class S3Archiver:
    """Create workspace tarballs and upload them to S3."""

    def __init__(self, region: str = "us-east-1", profile: str | None = None):
        self.region = region
        self.profile = profile
        self._s3 = None

    @property
    def s3(self):
        """Lazy S3 client (no AWS lookups for local-only archives)."""
        if self._s3 is None:
            session = boto3.Session(profile_name=self.profile, region_name=self.region)
            self._s3 = session.client("s3")
        return self._s3

    def create_archive(
        self,
        workspace: Path,
        archive_dir: Path,
        build_id: str,
        include: list[str],
        exclude: list[str],
    ) -> Path:
        """
        Package matching workspace files into ``archive_dir/<build_id>.tar.gz``.

        Raises:
            ArchiveUploadFailure: If the archive cannot be written.
        """
        archive_path = archive_dir / f"{build_id}.tar.gz"
        try:
            archive_dir.mkdir(parents=True, exist_ok=True)
            files = collect_files(workspace, include, exclude)
            with tarfile.open(archive_path, "w:gz") as tar:
                for path in files:
                    # The archive may live inside the workspace
                    if path.resolve() == archive_path.resolve():
                        continue
                    tar.add(path, arcname=path.relative_to(workspace).as_posix())
        except OSError as e:
            raise ArchiveUploadFailure(str(archive_path), str(e)) from e

        logger.info(f"📦 Archived {len(files)} file(s) to {archive_path}")
        return archive_path

    def upload(self, archive_path: Path, bucket: str, prefix: str) -> str:
        """
        Upload an archive to ``s3://bucket/prefix/<archive name>``.

        Returns:
            The S3 URI of the uploaded object.

        Raises:
            ArchiveUploadFailure: On any S3 or network error.
        """
        key = f"{prefix.strip('/')}/{archive_path.name}" if prefix.strip("/") else archive_path.name
        uri = f"s3://{bucket}/{key}"
        logger.info(f"📦 Uploading {archive_path.name} to {uri}")
        try:
            self.s3.upload_file(str(archive_path), bucket, key)
        except (BotoCoreError, ClientError, S3UploadFailedError) as e:
            logger.error(f"Failed to upload {archive_path.name} to {uri}: {e}")
            raise ArchiveUploadFailure(uri, str(e)) from e
        return uri
