"""
Stageline Secrets - Credential store implementation.

Uses keyring for secure storage (macOS Keychain, Windows Credential Manager,
Linux Secret Service) with in-memory fallback. A credential id maps to two
entries, ``<id>:username`` and ``<id>:password``.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import NamedTuple

from loguru import logger

from stageline.config.constants import CREDENTIAL_ENV_PREFIX, SECRET_SERVICE_NAME
from stageline.core.exceptions import CredentialResolutionFailure


class UsernamePassword(NamedTuple):
    """Resolved credential pair."""

    username: str
    password: str


def credential_env_names(credential_id: str) -> tuple[str, str]:
    """
    Environment variable names used as fallback for a credential id.

    Example:
        >>> credential_env_names("dockerhub-credentials")
        ('STAGELINE_CRED_DOCKERHUB_CREDENTIALS_USR', 'STAGELINE_CRED_DOCKERHUB_CREDENTIALS_PSW')
    """
    slug = re.sub(r"[^A-Za-z0-9]", "_", credential_id).upper()
    return f"{CREDENTIAL_ENV_PREFIX}{slug}_USR", f"{CREDENTIAL_ENV_PREFIX}{slug}_PSW"


@dataclass
class SecretStore:
    """
    Secure credential storage.

    Uses system keyring if available, otherwise falls back to in-memory storage.
    """

    service_name: str = SECRET_SERVICE_NAME
    env_fallback: bool = True
    use_keyring: bool = True

    _keyring_available: bool = field(default=False, init=False)
    _memory_store: dict[str, str] = field(default_factory=dict, init=False)
    _credential_ids: set[str] = field(default_factory=set, init=False)

    def __post_init__(self) -> None:
        """Check keyring availability."""
        self._keyring_available = self.use_keyring and self._check_keyring()
        if self.use_keyring and not self._keyring_available:
            logger.warning("⚠️ Keyring unavailable - using in-memory storage (secrets lost on exit)")

    def _check_keyring(self) -> bool:
        """Check if keyring is available and working."""
        try:
            import keyring

            test_key = "__stageline_test__"
            test_value = "test_value"

            keyring.set_password(self.service_name, test_key, test_value)
            result = keyring.get_password(self.service_name, test_key)
            keyring.delete_password(self.service_name, test_key)

            return result == test_value

        except ImportError:
            logger.debug("keyring module not installed")
            return False
        except Exception as e:
            logger.debug(f"Keyring test failed: {e}")
            return False

    @property
    def is_secure(self) -> bool:
        """Check if using secure storage (keyring)."""
        return self._keyring_available

    def _set(self, key: str, value: str) -> None:
        if self._keyring_available:
            import keyring

            keyring.set_password(self.service_name, key, value)
        else:
            self._memory_store[key] = value

    def _get(self, key: str) -> str | None:
        if self._keyring_available:
            import keyring

            return keyring.get_password(self.service_name, key)
        return self._memory_store.get(key)

    def _delete(self, key: str) -> bool:
        if self._keyring_available:
            import keyring
            from keyring.errors import PasswordDeleteError

            try:
                keyring.delete_password(self.service_name, key)
            except PasswordDeleteError:
                return False
            return True
        return self._memory_store.pop(key, None) is not None

    def set_credential(self, credential_id: str, username: str, password: str) -> None:
        """
        Store a username/password credential.

        Args:
            credential_id: Opaque identifier referenced by pipelines.
            username: Username value.
            password: Password or token value.
        """
        if not credential_id:
            raise ValueError("Credential id must not be empty")
        self._set(f"{credential_id}:username", username)
        self._set(f"{credential_id}:password", password)
        self._credential_ids.add(credential_id)
        logger.debug(f"🔒 Credential '{credential_id}' stored")

    def get_credential(self, credential_id: str) -> UsernamePassword | None:
        """
        Retrieve a credential, falling back to environment variables.

        Returns:
            UsernamePassword or None if not found.
        """
        username = self._get(f"{credential_id}:username")
        password = self._get(f"{credential_id}:password")
        if username is not None and password is not None:
            return UsernamePassword(username, password)

        if self.env_fallback:
            user_var, pass_var = credential_env_names(credential_id)
            env_user = os.environ.get(user_var)
            env_pass = os.environ.get(pass_var)
            if env_user is not None and env_pass is not None:
                return UsernamePassword(env_user, env_pass)

        return None

    def resolve(self, credential_id: str) -> UsernamePassword:
        """
        Resolve a credential or fail.

        Raises:
            CredentialResolutionFailure: If the id is unknown.
        """
        credential = self.get_credential(credential_id)
        if credential is None:
            raise CredentialResolutionFailure(credential_id)
        return credential

    def remove_credential(self, credential_id: str) -> bool:
        """
        Remove a credential.

        Returns:
            True if anything was removed, False if not found.
        """
        removed_user = self._delete(f"{credential_id}:username")
        removed_pass = self._delete(f"{credential_id}:password")
        self._credential_ids.discard(credential_id)
        if removed_user or removed_pass:
            logger.debug(f"🔒 Credential '{credential_id}' removed")
            return True
        return False

    def has_credential(self, credential_id: str) -> bool:
        """Check if a credential can be resolved."""
        return self.get_credential(credential_id) is not None

    def list_ids(self) -> list[str]:
        """
        List credential ids stored in this session.

        Note: keyring does not provide enumeration, so ids stored by an
        earlier process are not listed.
        """
        return sorted(self._credential_ids)


_instance: SecretStore | None = None


def get_secret_store() -> SecretStore:
    """Get secret store singleton, configured from the Stageline config."""
    global _instance
    if _instance is None:
        from stageline.config import get_config

        secrets_config = get_config().secrets
        _instance = SecretStore(
            service_name=secrets_config.service_name,
            env_fallback=secrets_config.env_fallback,
        )
    return _instance


def reset_secret_store() -> None:
    """Reset singleton (for tests)."""
    global _instance
    _instance = None
