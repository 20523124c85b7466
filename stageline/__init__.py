"""
Stageline - declarative build/push/deploy pipeline runner.

Runs an ordered list of named stages made of shell steps, stops at the
first failing stage, and always runs the post actions.
"""
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("stageline")
except PackageNotFoundError:
    # Package not installed, fallback to pyproject.toml
    __version__ = "0.1.0"

__author__ = "Stageline Contributors"
