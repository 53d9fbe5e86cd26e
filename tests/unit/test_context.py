"""Tests for keyshift/context.py - component wiring."""

import stat

from keyshift.config.settings import KeyshiftSettings
from keyshift.context import CredentialContext
from keyshift.credentials import MappingEnvironment
from keyshift.migration import FileBackupSink, HttpConnectivityCheck
from keyshift.providers import AUTH_TOKEN_VAR, StorageMethod


def test_components_share_one_document_and_validator(tmp_path):
    settings = KeyshiftSettings(config_dir=tmp_path, workspace_dir=tmp_path / "project")

    context = CredentialContext.from_settings(settings, environment=MappingEnvironment())

    assert context.settings_store.document is context.document
    assert context.router.store_by_method(StorageMethod.SETTINGS) is context.settings_store
    assert context.router.store_by_method(StorageMethod.ENVIRONMENT) is context.environment_store
    assert isinstance(context.engine.backup_sink, FileBackupSink)
    assert context.engine.connectivity_check is None


def test_key_file_generated_with_owner_only_permissions(tmp_path):
    settings = KeyshiftSettings(config_dir=tmp_path)

    CredentialContext.from_settings(settings, environment=MappingEnvironment())

    assert settings.key_path.exists()
    assert stat.S_IMODE(settings.key_path.stat().st_mode) == 0o600


def test_key_file_reused_across_contexts(tmp_path):
    settings = KeyshiftSettings(config_dir=tmp_path)
    first = CredentialContext.from_settings(settings, environment=MappingEnvironment())
    first.router.set_credential("anthropic", "sk-ant-" + "a" * 30)

    second = CredentialContext.from_settings(settings, environment=MappingEnvironment())

    assert second.router.get_credential("anthropic") == "sk-ant-" + "a" * 30


def test_master_password_derives_key(tmp_path):
    settings = KeyshiftSettings(config_dir=tmp_path, master_password="correct horse")

    context = CredentialContext.from_settings(settings, environment=MappingEnvironment())
    context.router.set_credential("anthropic", "sk-ant-" + "b" * 30)

    assert settings.salt_path.exists()
    assert not settings.key_path.exists()
    again = CredentialContext.from_settings(settings, environment=MappingEnvironment())
    assert again.router.get_credential("anthropic") == "sk-ant-" + "b" * 30


def test_connectivity_check_enabled(tmp_path):
    settings = KeyshiftSettings(config_dir=tmp_path, connectivity_check=True, connectivity_timeout=3.0)

    context = CredentialContext.from_settings(settings, environment=MappingEnvironment())

    assert isinstance(context.engine.connectivity_check, HttpConnectivityCheck)
    assert context.engine.connectivity_check.timeout == 3.0


def test_zai_base_url_setting_reaches_environment_store(tmp_path):
    environment = MappingEnvironment()
    settings = KeyshiftSettings(config_dir=tmp_path, zai_base_url="https://api.z.ai/v2")
    context = CredentialContext.from_settings(settings, environment=environment)

    context.router.set_credential("zai", "zai-token-12345")

    assert environment.get(AUTH_TOKEN_VAR) == "zai-token-12345"
    assert environment.get("ANTHROPIC_BASE_URL") == "https://api.z.ai/v2"
