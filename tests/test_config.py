"""
Tests for configuration loading.
"""
from pathlib import Path

import pytest
import yaml

from stageline.config import Config, get_config, load_config, reset_config, save_config, set_config
from stageline.config.loader import config_path
from stageline.core.exceptions import InvalidConfigError


@pytest.fixture
def clean_env(monkeypatch):
    """Drop the overrides set by the shared isolation fixture."""
    for name in ("STAGELINE_LOG_DIR", "STAGELINE_ARCHIVE_DIR", "STAGELINE_WORKSPACE", "STAGELINE_SHELL",
                 "STAGELINE_LOG_LEVEL", "STAGELINE_LOG_JSON", "STAGELINE_SECRET_SERVICE",
                 "AWS_REGION", "AWS_DEFAULT_REGION", "AWS_PROFILE"):
        monkeypatch.delenv(name, raising=False)


class TestLoadConfig:
    """File, environment and default layering."""

    def test_defaults_without_file(self, tmp_path, clean_env):
        config = load_config(tmp_path / "missing.yaml")

        assert config.general.shell == "/bin/bash"
        assert config.logging.file_level == "debug"
        assert config.secrets.service_name == "stageline"
        assert config.secrets.env_fallback is True
        assert config.aws.region == "us-east-1"

    def test_file_values(self, tmp_path, clean_env):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({
            "general": {"shell": "/bin/sh", "build_id": "fixed"},
            "logging": {"retention_days": 30},
            "aws": {"region": "eu-west-3", "profile": "ci"},
        }))

        config = load_config(path)

        assert config.general.shell == "/bin/sh"
        assert config.general.build_id == "fixed"
        assert config.logging.retention_days == 30
        assert config.aws.profile == "ci"

    def test_environment_overrides_file(self, tmp_path, clean_env, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"general": {"shell": "/bin/sh"}, "aws": {"region": "eu-west-3"}}))
        monkeypatch.setenv("STAGELINE_SHELL", "/bin/zsh")
        monkeypatch.setenv("STAGELINE_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("STAGELINE_LOG_JSON", "true")
        monkeypatch.setenv("AWS_DEFAULT_REGION", "us-west-1")
        monkeypatch.setenv("AWS_REGION", "ap-south-1")

        config = load_config(path)

        assert config.general.shell == "/bin/zsh"
        assert config.logging.console_level == "warning"
        assert config.logging.json_logs is True
        assert config.aws.region == "ap-south-1"

    def test_path_values_coerced(self, tmp_path, clean_env, monkeypatch):
        monkeypatch.setenv("STAGELINE_WORKSPACE", str(tmp_path / "ws"))

        config = load_config(tmp_path / "missing.yaml")

        assert config.general.workspace == tmp_path / "ws"
        assert isinstance(config.general.workspace, Path)

    @pytest.mark.parametrize("content", ["- just\n- a list\n", "general: [unclosed\n"])
    def test_unreadable_file(self, tmp_path, clean_env, content):
        path = tmp_path / "config.yaml"
        path.write_text(content)

        with pytest.raises(InvalidConfigError):
            load_config(path)

    def test_invalid_value(self, tmp_path, clean_env):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"logging": {"max_size_mb": 0}}))

        with pytest.raises(InvalidConfigError, match="max_size_mb"):
            load_config(path)

    def test_empty_file(self, tmp_path, clean_env):
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert load_config(path).aws.region == "us-east-1"


class TestConfigPath:
    """STAGELINE_CONFIG selects the file."""

    def test_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("STAGELINE_CONFIG", str(tmp_path / "custom.yaml"))
        assert config_path() == tmp_path / "custom.yaml"

    def test_default(self, monkeypatch):
        monkeypatch.delenv("STAGELINE_CONFIG", raising=False)
        assert config_path() == Path.home() / ".stageline" / "config.yaml"


class TestConfigCache:
    """get_config/set_config/reset_config."""

    def test_cached(self):
        assert get_config() is get_config()

    def test_set_and_reset(self):
        custom = Config()
        set_config(custom)
        assert get_config() is custom

        reset_config()
        assert get_config() is not custom

    def test_save_and_reload(self, tmp_path, clean_env):
        config = Config()
        config.aws.region = "eu-north-1"
        path = save_config(config, tmp_path / "nested" / "config.yaml")

        assert load_config(path).aws.region == "eu-north-1"
