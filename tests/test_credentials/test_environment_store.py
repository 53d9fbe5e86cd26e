"""Tests for the environment-variable store."""

import os

import pytest

from keyshift.credentials import ConfigScope, EnvironmentBackedStore, MappingEnvironment, ProcessEnvironment
from keyshift.credentials.environment_store import ENVIRONMENT_SETUP_SETTING
from keyshift.exceptions import StorageError, ValidationError
from keyshift.providers import AUTH_TOKEN_VAR, BASE_URL_VAR, DEFAULT_ZAI_BASE_URL

ZAI_TOKEN = "zai-abc1234567"


class FailingEnvironment(MappingEnvironment):
    """Environment that refuses to assign one variable."""

    def __init__(self, failing: str) -> None:
        super().__init__()
        self.failing = failing

    def set(self, name: str, value: str) -> None:
        if name == self.failing:
            raise OSError("environment is read-only")
        super().set(name, value)


class TestEnvironmentBackedStore:
    """Test EnvironmentBackedStore reads and writes."""

    def test_store_identity(self, environment_store):
        assert environment_store.name == "environment"
        assert environment_store.supports_provider("zai")
        assert not environment_store.supports_provider("anthropic")

    def test_set_paired_provider_writes_both_variables(self, environment_store, environment):
        environment_store.set_credential("zai", ZAI_TOKEN)

        assert environment.get(BASE_URL_VAR) == DEFAULT_ZAI_BASE_URL
        assert environment.get(AUTH_TOKEN_VAR) == ZAI_TOKEN
        assert environment_store.get_credential("zai") == ZAI_TOKEN

    def test_explicit_base_url(self, environment_store, environment):
        environment_store.set_credential("zai", ZAI_TOKEN, base_url="https://api.z.ai/v1")

        assert environment.get(BASE_URL_VAR) == "https://api.z.ai/v1"

    def test_unpaired_provider_uses_api_key_variable(self, environment_store, environment):
        environment_store.set_credential("openai", "sk-openai-123")

        assert environment.get("OPENAI_API_KEY") == "sk-openai-123"
        assert BASE_URL_VAR not in environment

    def test_invalid_secret_sets_nothing(self, environment_store, environment):
        with pytest.raises(ValidationError):
            environment_store.set_credential("zai", "short")

        assert environment.as_dict() == {}

    def test_invalid_base_url_sets_nothing(self, environment_store, environment):
        with pytest.raises(ValidationError, match="not a valid absolute HTTP"):
            environment_store.set_credential("zai", ZAI_TOKEN, base_url="api.z.ai")

        assert environment.as_dict() == {}

    def test_partial_failure_is_not_rolled_back(self, validator):
        """Test a failing token assignment leaves the base URL in place."""
        environment = FailingEnvironment(AUTH_TOKEN_VAR)
        store = EnvironmentBackedStore(environment, validator, default_base_url=DEFAULT_ZAI_BASE_URL)

        with pytest.raises(StorageError, match=AUTH_TOKEN_VAR):
            store.set_credential("zai", ZAI_TOKEN)

        assert environment.get(BASE_URL_VAR) == DEFAULT_ZAI_BASE_URL
        assert environment.get(AUTH_TOKEN_VAR) is None

    def test_setup_metadata_is_persisted(self, environment_store, document):
        environment_store.set_credential("zai", ZAI_TOKEN)

        setup = document.get(ENVIRONMENT_SETUP_SETTING, ConfigScope.GLOBAL)
        assert setup["provider"] == "zai"
        assert setup["variables"] == [BASE_URL_VAR, AUTH_TOKEN_VAR]
        assert ZAI_TOKEN not in str(setup)

    def test_reads_are_cached_for_five_minutes(self, environment_store, environment, clock):
        """Test external changes become visible once the TTL elapses."""
        environment.set(AUTH_TOKEN_VAR, ZAI_TOKEN)
        assert environment_store.get_credential("zai") == ZAI_TOKEN

        environment.set(AUTH_TOKEN_VAR, "zai-changed-externally")
        clock.advance(299)
        assert environment_store.get_credential("zai") == ZAI_TOKEN

        clock.advance(2)
        assert environment_store.get_credential("zai") == "zai-changed-externally"

    def test_writes_invalidate_the_cache(self, environment_store, environment):
        environment.set(AUTH_TOKEN_VAR, ZAI_TOKEN)
        environment_store.get_credential("zai")

        environment_store.set_credential("zai", "zai-new-token-123")

        assert environment_store.get_credential("zai") == "zai-new-token-123"

    def test_empty_value_reads_as_unset(self, environment_store, environment):
        environment.set(AUTH_TOKEN_VAR, "")

        assert environment_store.get_credential("zai") is None

    def test_remove_credential(self, environment_store, environment):
        environment_store.set_credential("zai", ZAI_TOKEN)

        assert environment_store.remove_credential("zai") is True
        assert environment.as_dict() == {}
        assert environment_store.get_credential("zai") is None
        assert environment_store.remove_credential("zai") is False

    def test_list_credentials(self, environment_store, environment):
        environment.set(AUTH_TOKEN_VAR, ZAI_TOKEN)
        environment.set("ANTHROPIC_API_KEY", "sk-ant-REDACTED")

        assert environment_store.list_credentials() == {
            "anthropic": "sk-ant-REDACTED",
            "zai": ZAI_TOKEN,
        }

    def test_list_includes_unregistered_providers_written_here(self, environment_store, environment):
        environment_store.set_credential("openai", "sk-openai-1234567")

        assert environment.get("OPENAI_API_KEY") == "sk-openai-1234567"
        assert environment_store.list_credentials() == {"openai": "sk-openai-1234567"}

        environment_store.remove_credential("openai")
        assert environment_store.list_credentials() == {}

    def test_process_environment(self, validator, monkeypatch):
        """Test the store works against os.environ."""
        # Registers both variables for restore after the test
        monkeypatch.setenv(AUTH_TOKEN_VAR, "")
        monkeypatch.setenv(BASE_URL_VAR, "")
        store = EnvironmentBackedStore(ProcessEnvironment(), validator)

        store.set_credential("zai", ZAI_TOKEN)

        assert os.environ[AUTH_TOKEN_VAR] == ZAI_TOKEN
        assert os.environ[BASE_URL_VAR] == DEFAULT_ZAI_BASE_URL


class TestCheckProvider:
    """Test live environment checks."""

    def test_missing_variables(self, environment_store):
        result = environment_store.check_provider("zai")

        assert result.issues == [
            f"{BASE_URL_VAR} environment variable is not set",
            f"{AUTH_TOKEN_VAR} environment variable is not set",
        ]

    def test_configured_provider(self, environment_store):
        environment_store.set_credential("zai", ZAI_TOKEN)

        assert environment_store.check_provider("zai", expected_base_url=DEFAULT_ZAI_BASE_URL).is_valid

    def test_base_url_must_match_expected_exactly(self, environment_store):
        environment_store.set_credential("zai", ZAI_TOKEN, base_url="https://api.z.ai/v1")

        result = environment_store.check_provider("zai", expected_base_url=DEFAULT_ZAI_BASE_URL)

        assert result.issues == [f"{BASE_URL_VAR} is 'https://api.z.ai/v1', expected '{DEFAULT_ZAI_BASE_URL}'"]

    def test_malformed_token(self, environment_store, environment):
        environment.set(BASE_URL_VAR, DEFAULT_ZAI_BASE_URL)
        environment.set(AUTH_TOKEN_VAR, "short")

        result = environment_store.check_provider("zai")

        assert result.issues == [f"{AUTH_TOKEN_VAR}: Z.ai API key appears too short"]

    def test_bypasses_cache(self, environment_store, environment):
        environment_store.set_credential("zai", ZAI_TOKEN)
        environment_store.get_credential("zai")
        environment.delete(AUTH_TOKEN_VAR)

        assert not environment_store.check_provider("zai").is_valid


class TestExportCommands:
    """Test shell command rendering."""

    @pytest.fixture
    def store(self, validator):
        return EnvironmentBackedStore(MappingEnvironment(), validator, default_base_url=DEFAULT_ZAI_BASE_URL)

    @pytest.mark.parametrize(
        ("shell", "expected"),
        [
            ("bash", f'export {AUTH_TOKEN_VAR}="your-zai-api-key"'),
            ("zsh", f'export {AUTH_TOKEN_VAR}="your-zai-api-key"'),
            ("fish", f'set -gx {AUTH_TOKEN_VAR} "your-zai-api-key"'),
            ("powershell", f'$env:{AUTH_TOKEN_VAR} = "your-zai-api-key"'),
            ("cmd", f"set {AUTH_TOKEN_VAR}=your-zai-api-key"),
        ],
    )
    def test_shells(self, store, shell, expected):
        lines = store.export_commands("zai", shell=shell)

        assert len(lines) == 2
        assert BASE_URL_VAR in lines[0]
        assert DEFAULT_ZAI_BASE_URL in lines[0]
        assert lines[1] == expected

    def test_unpaired_provider(self, store):
        assert store.export_commands("anthropic", secret="sk-ant-x") == ['export ANTHROPIC_API_KEY="sk-ant-x"']

    def test_unsupported_shell(self, store):
        with pytest.raises(ValueError, match="Unsupported shell"):
            store.export_commands("zai", shell="tcsh")
