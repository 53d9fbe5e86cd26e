"""Unit tests for keyshift/cli/migrate.py - Migration CLI."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from keyshift.cli.migrate import ClickPrompts
from keyshift.config.settings import KeyshiftSettings
from keyshift.context import CredentialContext
from keyshift.credentials import MappingEnvironment
from keyshift.main import cli
from keyshift.providers import AUTH_TOKEN_VAR, BASE_URL_VAR, DEFAULT_ZAI_BASE_URL, StorageMethod

LEGACY_TOKEN = "zai-legacy-1234567"


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def environment():
    return MappingEnvironment()


@pytest.fixture
def context(tmp_path, environment):
    settings = KeyshiftSettings(config_dir=tmp_path / "config")
    return CredentialContext.from_settings(settings, environment=environment)


@pytest.fixture
def legacy(context):
    context.router.set_in(StorageMethod.SETTINGS, "zai", LEGACY_TOKEN)


@pytest.fixture
def invoke(cli_runner, context):
    def _invoke(*args, input=None):
        return cli_runner.invoke(cli, list(args), obj={"context": context}, input=input)

    return _invoke


class TestStatusCommand:
    """Test `keyshift migrate status`."""

    def test_migration_needed(self, invoke, legacy):
        result = invoke("migrate", "status")

        assert result.exit_code == 0
        assert "Migration needed" in result.output

    def test_nothing_configured(self, invoke):
        result = invoke("migrate", "status", "zai")

        assert "No credential configured" in result.output

    def test_migration_completed(self, invoke, legacy):
        invoke("migrate", "run", "--yes", "--non-interactive")

        result = invoke("migrate", "status")

        assert "Migration completed" in result.output


class TestRunCommand:
    """Test `keyshift migrate run`."""

    def test_non_interactive_run(self, invoke, legacy, environment, context):
        result = invoke("migrate", "run", "zai", "--yes", "--non-interactive")

        assert result.exit_code == 0
        assert "legacy credential removed" in result.output
        assert f'export {BASE_URL_VAR}="{DEFAULT_ZAI_BASE_URL}"' in result.output
        assert LEGACY_TOKEN not in result.output
        assert environment.get(AUTH_TOKEN_VAR) == LEGACY_TOKEN
        assert context.settings_store.get_credential("zai") is None

    def test_keep_legacy(self, invoke, legacy, context):
        result = invoke("migrate", "run", "--keep-legacy", "--non-interactive")

        assert result.exit_code == 0
        assert "legacy credential kept" in result.output
        assert context.settings_store.get_credential("zai") == LEGACY_TOKEN

    def test_yes_after_keep_legacy_removes_leftover(self, invoke, legacy, context):
        invoke("migrate", "run", "--keep-legacy", "--non-interactive")
        status = invoke("migrate", "status")

        result = invoke("migrate", "run", "--yes", "--non-interactive")

        assert "Legacy credential still present" in status.output
        assert result.exit_code == 0
        assert "legacy credential removed" in result.output
        assert context.settings_store.get_credential("zai") is None

    def test_interactive_run(self, invoke, environment):
        """Test prompts for base URL, secret and cleanup."""
        result = invoke("migrate", "run", input="\nzai-abc1234567\ny\n")

        assert result.exit_code == 0
        assert environment.get(BASE_URL_VAR) == DEFAULT_ZAI_BASE_URL
        assert environment.get(AUTH_TOKEN_VAR) == "zai-abc1234567"

    def test_cancelled_run(self, invoke, environment):
        result = invoke("migrate", "run", "--base-url", DEFAULT_ZAI_BASE_URL, input="\n")

        assert result.exit_code == 1
        assert "cancelled" in result.output
        assert environment.as_dict() == {}

    def test_failed_run(self, invoke):
        result = invoke("migrate", "run", "--non-interactive")

        assert result.exit_code == 1
        assert "failed" in result.output

    def test_not_needed(self, invoke, environment):
        environment.set(BASE_URL_VAR, DEFAULT_ZAI_BASE_URL)
        environment.set(AUTH_TOKEN_VAR, "zai-abc1234567")

        result = invoke("migrate", "run", "--non-interactive")

        assert result.exit_code == 0
        assert "nothing to do" in result.output

    def test_conflicting_cleanup_flags(self, invoke):
        result = invoke("migrate", "run", "--yes", "--keep-legacy")

        assert result.exit_code == 2
        assert "mutually exclusive" in result.output


class TestBackupCommands:
    """Test `keyshift migrate backups` and `restore`."""

    def test_no_backups(self, invoke):
        result = invoke("migrate", "backups")

        assert "No migration backups found" in result.output

    def test_backups_and_restore(self, invoke, legacy, context, environment):
        invoke("migrate", "run", "--yes", "--non-interactive")
        listed = invoke("migrate", "backups")

        assert listed.exit_code == 0
        assert "zai" in listed.output
        assert "with credential" in listed.output

        timestamp = listed.output.split()[0]
        result = invoke("migrate", "restore", timestamp, "--remove-target", "--yes")

        assert result.exit_code == 0
        assert "restored" in result.output
        assert context.settings_store.get_credential("zai") == LEGACY_TOKEN
        assert environment.get(AUTH_TOKEN_VAR) is None

    def test_restore_missing_backup(self, invoke):
        result = invoke("migrate", "restore", "2030-01-01T00:00:00+00:00", "--yes")

        assert result.exit_code == 1
        assert "No backup found" in result.output


class TestClickPrompts:
    """Test the terminal prompt adapter."""

    def test_blank_secret_cancels(self):
        with patch("keyshift.cli.migrate.click.prompt", return_value="  "):
            assert ClickPrompts().ask_secret("zai") is None

    def test_base_url_uses_answer(self):
        with patch("keyshift.cli.migrate.click.prompt", return_value="https://api.z.ai/v1 "):
            assert ClickPrompts().ask_base_url("zai", DEFAULT_ZAI_BASE_URL) == "https://api.z.ai/v1"

    def test_confirm_cleanup_defaults_to_no(self):
        with patch("keyshift.cli.migrate.click.confirm", return_value=False) as confirm:
            assert ClickPrompts().confirm_cleanup("zai") is False

        assert confirm.call_args.kwargs["default"] is False
