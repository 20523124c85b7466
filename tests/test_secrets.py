"""
Tests for credential storage and scoped binding.
"""
from unittest.mock import patch

import pytest
from keyring.errors import PasswordDeleteError

from stageline.core.exceptions import CredentialResolutionFailure
from stageline.pipeline import CredentialBinding
from stageline.secrets import (
    SecretStore,
    bind_credentials,
    credential_env_names,
    get_secret_store,
    reset_secret_store,
)


@pytest.fixture
def fake_keyring():
    """Back the keyring API with a dict."""
    vault = {}

    def set_password(service, key, value):
        vault[(service, key)] = value

    def get_password(service, key):
        return vault.get((service, key))

    def delete_password(service, key):
        if (service, key) not in vault:
            raise PasswordDeleteError("not found")
        del vault[(service, key)]

    with patch("keyring.set_password", side_effect=set_password), \
            patch("keyring.get_password", side_effect=get_password), \
            patch("keyring.delete_password", side_effect=delete_password):
        yield vault


class TestCredentialEnvNames:
    """Environment fallback variable names."""

    def test_slugified(self):
        assert credential_env_names("dockerhub-credentials") == (
            "STAGELINE_CRED_DOCKERHUB_CREDENTIALS_USR",
            "STAGELINE_CRED_DOCKERHUB_CREDENTIALS_PSW",
        )

    def test_dots_and_case(self):
        assert credential_env_names("ghcr.io/Acme")[0] == "STAGELINE_CRED_GHCR_IO_ACME_USR"


class TestSecretStoreMemory:
    """In-memory storage (keyring disabled)."""

    def test_set_and_get(self, secret_store):
        secret_store.set_credential("reg", "alice", "hunter22")

        credential = secret_store.get_credential("reg")

        assert credential.username == "alice"
        assert credential.password == "hunter22"
        assert not secret_store.is_secure

    def test_unknown_id(self, secret_store):
        assert secret_store.get_credential("nope") is None
        assert not secret_store.has_credential("nope")

    def test_resolve_raises(self, secret_store):
        with pytest.raises(CredentialResolutionFailure) as exc_info:
            secret_store.resolve("nope")
        assert exc_info.value.credential_id == "nope"

    def test_empty_id_rejected(self, secret_store):
        with pytest.raises(ValueError):
            secret_store.set_credential("", "alice", "hunter22")

    def test_remove(self, secret_store):
        secret_store.set_credential("reg", "alice", "hunter22")

        assert secret_store.remove_credential("reg")
        assert not secret_store.has_credential("reg")
        assert not secret_store.remove_credential("reg")

    def test_list_ids(self, secret_store):
        secret_store.set_credential("b", "u", "pw1")
        secret_store.set_credential("a", "u", "pw2")

        assert secret_store.list_ids() == ["a", "b"]


class TestEnvironmentFallback:
    """STAGELINE_CRED_<ID>_USR/_PSW variables."""

    def test_fallback_used(self, monkeypatch):
        monkeypatch.setenv("STAGELINE_CRED_REG_USR", "ci")
        monkeypatch.setenv("STAGELINE_CRED_REG_PSW", "from-env")
        store = SecretStore(use_keyring=False)

        assert store.resolve("reg") == ("ci", "from-env")

    def test_stored_value_wins(self, monkeypatch):
        monkeypatch.setenv("STAGELINE_CRED_REG_USR", "ci")
        monkeypatch.setenv("STAGELINE_CRED_REG_PSW", "from-env")
        store = SecretStore(use_keyring=False)
        store.set_credential("reg", "alice", "stored")

        assert store.resolve("reg").password == "stored"

    def test_partial_environment_ignored(self, monkeypatch):
        monkeypatch.setenv("STAGELINE_CRED_REG_USR", "ci")
        monkeypatch.delenv("STAGELINE_CRED_REG_PSW", raising=False)
        store = SecretStore(use_keyring=False)

        assert store.get_credential("reg") is None

    def test_fallback_disabled(self, monkeypatch):
        monkeypatch.setenv("STAGELINE_CRED_REG_USR", "ci")
        monkeypatch.setenv("STAGELINE_CRED_REG_PSW", "from-env")
        store = SecretStore(use_keyring=False, env_fallback=False)

        assert store.get_credential("reg") is None


class TestSecretStoreKeyring:
    """Keyring-backed storage."""

    def test_keyring_entries(self, fake_keyring):
        store = SecretStore(service_name="stageline-test")
        store.set_credential("reg", "alice", "hunter22")

        assert store.is_secure
        assert fake_keyring[("stageline-test", "reg:username")] == "alice"
        assert fake_keyring[("stageline-test", "reg:password")] == "hunter22"
        assert store.resolve("reg") == ("alice", "hunter22")

    def test_remove_from_keyring(self, fake_keyring):
        store = SecretStore(service_name="stageline-test")
        store.set_credential("reg", "alice", "hunter22")

        assert store.remove_credential("reg")
        assert ("stageline-test", "reg:password") not in fake_keyring
        assert not store.remove_credential("reg")

    def test_broken_keyring_falls_back_to_memory(self):
        with patch("keyring.set_password", side_effect=RuntimeError("no backend")):
            store = SecretStore()

        assert not store.is_secure
        store.set_credential("reg", "alice", "hunter22")
        assert store.resolve("reg").username == "alice"


class TestSecretStoreSingleton:
    """get_secret_store() reads the secrets config."""

    def test_singleton(self, monkeypatch):
        monkeypatch.setenv("STAGELINE_SECRET_SERVICE", "custom-service")
        with patch("stageline.secrets.store.SecretStore._check_keyring", return_value=False):
            store = get_secret_store()
            assert store is get_secret_store()
        assert store.service_name == "custom-service"

        reset_secret_store()
        with patch("stageline.secrets.store.SecretStore._check_keyring", return_value=False):
            assert get_secret_store() is not store


class TestBindCredentials:
    """Scoped injection into a run environment."""

    @pytest.fixture
    def store(self, secret_store):
        secret_store.set_credential("reg", "alice", "hunter22")
        secret_store.set_credential("other", "bob", "swordfish")
        return secret_store

    def test_bound_inside_removed_after(self, store):
        env = {"PATH": "/bin"}
        binding = CredentialBinding(id="reg", username_var="U", password_var="P")

        with bind_credentials(env, [binding], store) as secrets:
            assert env["U"] == "alice"
            assert env["P"] == "hunter22"
            assert secrets == ["hunter22"]

        assert env == {"PATH": "/bin"}

    def test_removed_after_exception(self, store):
        env = {}
        binding = CredentialBinding(id="reg", username_var="U", password_var="P")

        with pytest.raises(RuntimeError):
            with bind_credentials(env, [binding], store):
                raise RuntimeError("step exploded")

        assert env == {}

    def test_shadowed_values_restored(self, store):
        env = {"U": "outer-user"}
        binding = CredentialBinding(id="reg", username_var="U", password_var="P")

        with bind_credentials(env, [binding], store):
            assert env["U"] == "alice"

        assert env == {"U": "outer-user"}

    def test_multiple_bindings(self, store):
        env = {}
        bindings = [
            CredentialBinding(id="reg", username_var="U1", password_var="P1"),
            CredentialBinding(id="other", username_var="U2", password_var="P2"),
        ]

        with bind_credentials(env, bindings, store) as secrets:
            assert env["U2"] == "bob"
            assert secrets == ["hunter22", "swordfish"]

        assert env == {}

    def test_unresolvable_binding_leaves_env_untouched(self, store):
        env = {"KEEP": "1"}
        bindings = [
            CredentialBinding(id="reg", username_var="U", password_var="P"),
            CredentialBinding(id="missing", username_var="U2", password_var="P2"),
        ]

        with pytest.raises(CredentialResolutionFailure):
            with bind_credentials(env, bindings, store):
                pytest.fail("block must not run")

        assert env == {"KEEP": "1"}
