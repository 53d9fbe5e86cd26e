"""Tests for keyshift/config/settings.py.

Tests cover:
- Defaults and derived paths
- Loading from environment variables
- Loading from YAML with environment variable interpolation
- Error handling
"""

import os
from pathlib import Path

import pytest
from pydantic import SecretStr

from keyshift.config.settings import KeyshiftSettings
from keyshift.exceptions import ConfigurationError
from keyshift.migration import DEFAULT_BACKUP_KEYS
from keyshift.providers import DEFAULT_ZAI_BASE_URL


@pytest.fixture(autouse=True)
def clean_keyshift_env(monkeypatch):
    """Keep KEYSHIFT_* variables from the host out of these tests."""
    for name in list(os.environ):
        if name.startswith("KEYSHIFT_"):
            monkeypatch.delenv(name)


class TestDefaults:
    """Test default values and derived paths."""

    def test_defaults(self):
        settings = KeyshiftSettings()

        assert settings.config_dir == Path.home() / ".keyshift"
        assert settings.workspace_dir is None
        assert settings.cache_ttl_seconds == 300
        assert settings.zai_base_url == DEFAULT_ZAI_BASE_URL
        assert settings.connectivity_check is False
        assert settings.connectivity_timeout == 10.0
        assert settings.backup_keys == list(DEFAULT_BACKUP_KEYS)
        assert settings.log_level == "INFO"

    def test_derived_paths(self, tmp_path):
        settings = KeyshiftSettings(config_dir=tmp_path, workspace_dir=tmp_path / "project")

        assert settings.settings_file == tmp_path / "settings.json"
        assert settings.workspace_settings_file == tmp_path / "project" / ".keyshift" / "settings.json"
        assert settings.key_path == tmp_path / "credentials.key"
        assert settings.salt_path == tmp_path / "credentials.salt"
        assert settings.backup_dir == tmp_path / "backups"

    def test_explicit_key_file(self, tmp_path):
        settings = KeyshiftSettings(config_dir=tmp_path, key_file=tmp_path / "other.key")

        assert settings.key_path == tmp_path / "other.key"

    def test_home_is_expanded(self):
        settings = KeyshiftSettings(config_dir="~/keyshift-test")

        assert settings.config_dir == Path.home() / "keyshift-test"

    def test_log_level_normalized(self):
        assert KeyshiftSettings(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            KeyshiftSettings(log_level="LOUD")


class TestEnvironmentVariables:
    """Test KEYSHIFT_* environment variables."""

    def test_values_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("KEYSHIFT_CONFIG_DIR", str(tmp_path))
        monkeypatch.setenv("KEYSHIFT_CONNECTIVITY_CHECK", "true")
        monkeypatch.setenv("KEYSHIFT_MASTER_PASSWORD", "hunter2")

        settings = KeyshiftSettings()

        assert settings.config_dir == tmp_path
        assert settings.connectivity_check is True
        assert isinstance(settings.master_password, SecretStr)
        assert settings.master_password.get_secret_value() == "hunter2"
        assert "hunter2" not in repr(settings)


class TestFromYaml:
    """Test loading settings from YAML."""

    def test_load(self, tmp_path):
        config = tmp_path / "keyshift.yaml"
        config.write_text(
            f"config_dir: {tmp_path}\nzai_base_url: https://api.z.ai/v1\ncache_ttl_seconds: 60\n"
        )

        settings = KeyshiftSettings.from_yaml(config)

        assert settings.config_dir == tmp_path
        assert settings.zai_base_url == "https://api.z.ai/v1"
        assert settings.cache_ttl_seconds == 60

    def test_empty_file_uses_defaults(self, tmp_path):
        config = tmp_path / "keyshift.yaml"
        config.write_text("")

        assert KeyshiftSettings.from_yaml(config).cache_ttl_seconds == 300

    def test_interpolation(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ZAI_ENDPOINT", "https://proxy.example.com")
        config = tmp_path / "keyshift.yaml"
        config.write_text(
            "# ${NOT_INTERPOLATED} in comments\n"
            "zai_base_url: ${ZAI_ENDPOINT}\n"
            "log_level: ${KEYSHIFT_TEST_LEVEL:-WARNING}\n"
        )

        settings = KeyshiftSettings.from_yaml(config)

        assert settings.zai_base_url == "https://proxy.example.com"
        assert settings.log_level == "WARNING"

    def test_missing_variable(self, tmp_path, monkeypatch):
        monkeypatch.delenv("KEYSHIFT_UNSET_VARIABLE", raising=False)
        config = tmp_path / "keyshift.yaml"
        config.write_text("zai_base_url: ${KEYSHIFT_UNSET_VARIABLE}\n")

        with pytest.raises(ConfigurationError, match="KEYSHIFT_UNSET_VARIABLE is not set"):
            KeyshiftSettings.from_yaml(config)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            KeyshiftSettings.from_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        config = tmp_path / "keyshift.yaml"
        config.write_text("zai_base_url: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            KeyshiftSettings.from_yaml(config)

    def test_non_mapping(self, tmp_path):
        config = tmp_path / "keyshift.yaml"
        config.write_text("- a\n- b\n")

        with pytest.raises(ConfigurationError, match="YAML object"):
            KeyshiftSettings.from_yaml(config)

    def test_invalid_values(self, tmp_path):
        config = tmp_path / "keyshift.yaml"
        config.write_text("connectivity_timeout: -1\n")

        with pytest.raises(ConfigurationError, match="Failed to validate"):
            KeyshiftSettings.from_yaml(config)
