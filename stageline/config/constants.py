"""
Stageline Configuration Constants.

Centralized defaults for paths, names and other magic values.
"""

from pathlib import Path

# Paths
STAGELINE_HOME = Path.home() / ".stageline"
DEFAULT_CONFIG_FILE = STAGELINE_HOME / "config.yaml"
DEFAULT_LOG_DIR = STAGELINE_HOME / "logs"
DEFAULT_ARCHIVE_DIR = STAGELINE_HOME / "archives"
LOG_FILE_NAME = "stageline.log"

# Execution
DEFAULT_SHELL = "/bin/bash"
OUTPUT_TAIL_LINES = 20  # Lines of output kept in failure messages

# Secrets
SECRET_SERVICE_NAME = "stageline"
CREDENTIAL_ENV_PREFIX = "STAGELINE_CRED_"
MASK = "****"

# Template defaults (build/push/deploy pipeline)
DEFAULT_IMAGE = "acme/app"
DEFAULT_TAG = "latest"
DEFAULT_CONTAINER_NAME = "myapp"
DEFAULT_HOST_PORT = 80
DEFAULT_CONTAINER_PORT = 3000
DEFAULT_BRANCH = "main"
DEFAULT_CREDENTIALS_ID = "dockerhub-credentials"
DEFAULT_ARCHIVE_PREFIX = "builds"
