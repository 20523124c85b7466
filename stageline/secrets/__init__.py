"""
Stageline Secrets - Credential storage and scoped binding.

Uses keyring for secure storage with in-memory fallback.
"""

from stageline.secrets.binding import bind_credentials
from stageline.secrets.store import (
    SecretStore,
    UsernamePassword,
    credential_env_names,
    get_secret_store,
    reset_secret_store,
)

__all__ = [
    "SecretStore",
    "UsernamePassword",
    "bind_credentials",
    "credential_env_names",
    "get_secret_store",
    "reset_secret_store",
]
