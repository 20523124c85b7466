"""
Stageline Executors - Shell steps and workspace archival.
"""

from stageline.executors.aws import S3Archiver, collect_files
from stageline.executors.shell import ShellExecutor

__all__ = ["S3Archiver", "ShellExecutor", "collect_files"]
