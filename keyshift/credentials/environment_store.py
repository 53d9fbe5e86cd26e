"""Credential store backed by process environment variables.

This backend is what Anthropic-compatible tooling reads at startup:
- Z.ai needs ``ANTHROPIC_BASE_URL`` and ``ANTHROPIC_AUTH_TOKEN``
- Other providers use a single ``<PROVIDER>_API_KEY`` variable

Security Considerations:
- Environment variables are visible to child processes
- Changes are not persisted across restarts; :meth:`export_commands`
  renders the shell lines a user can add to their profile
- Reads are cached for five minutes, so an external change to the
  environment may take that long to become visible
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from keyshift.credentials.environment import EnvironmentTable
from keyshift.credentials.models import CredentialRecord, ValidationResult
from keyshift.credentials.settings_document import ConfigScope, SettingsDocument
from keyshift.credentials.validator import CredentialValidator
from keyshift.exceptions import StorageError
from keyshift.providers import (
    BASE_URL_VAR,
    PROVIDERS,
    StorageMethod,
    env_var_for,
    get_provider,
    is_paired,
    normalize_provider_id,
    storage_method_for,
)
from keyshift.utils.caching import TTLCache

log = structlog.get_logger(__name__)

ENVIRONMENT_SETUP_SETTING = "environmentSetup"
SUPPORTED_SHELLS = ("bash", "zsh", "fish", "powershell", "cmd")


class EnvironmentBackedStore:
    """Environment variable credential storage.

    Setting a credential for a paired provider writes every required
    variable. If one assignment fails the store raises StorageError but
    does not roll back variables that were already set.

    Example:
        >>> store = EnvironmentBackedStore(MappingEnvironment(), CredentialValidator())
        >>> store.set_credential("zai", "zai-abc1234567", base_url="https://api.z.ai/v1")
        >>> store.get_credential("zai")
        'zai-abc1234567'
    """

    storage_method = StorageMethod.ENVIRONMENT

    def __init__(
        self,
        environment: EnvironmentTable,
        validator: CredentialValidator,
        default_base_url: str | None = None,
        cache_ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
        metadata_document: SettingsDocument | None = None,
    ) -> None:
        """Initialize environment store.

        Args:
            environment: Name -> value table to read and write
            validator: Validator applied before every write
            default_base_url: Base URL used for paired providers when the
                caller supplies none; falls back to the provider's own
            cache_ttl_seconds: Lifetime of cached reads
            clock: Time source for the read cache
            metadata_document: Where to record which variables were set up
        """
        self.environment = environment
        self.validator = validator
        self.default_base_url = default_base_url
        self.metadata_document = metadata_document
        self._cache: TTLCache[str] = TTLCache(ttl_seconds=cache_ttl_seconds, clock=clock)
        self._records: dict[str, CredentialRecord] = {}

    @property
    def name(self) -> str:
        return self.storage_method.value

    def supports_provider(self, provider: str) -> bool:
        return storage_method_for(provider) in (StorageMethod.ENVIRONMENT, StorageMethod.HYBRID)

    def variables_for(self, provider: str) -> tuple[str, ...]:
        """Environment variables holding a provider's credential, token last."""
        metadata = get_provider(provider)
        if metadata and metadata.required_env_vars:
            return metadata.required_env_vars
        return (env_var_for(provider),)

    def base_url_for(self, provider: str, base_url: str | None = None) -> str | None:
        """Effective base URL of a paired provider."""
        if not is_paired(provider):
            return None
        if base_url:
            return base_url
        if self.default_base_url:
            return self.default_base_url
        metadata = get_provider(provider)
        return metadata.base_url if metadata else None

    def set_credential(
        self,
        provider: str,
        secret: str,
        scope: ConfigScope | None = None,
        base_url: str | None = None,
    ) -> None:
        """Set every variable a provider needs.

        Args:
            provider: Provider identifier
            secret: Credential value (auth token)
            scope: Accepted for interface symmetry; the environment has no tiers
            base_url: Paired base URL; defaults to the configured endpoint

        Raises:
            ValidationError: If the secret or base URL fails format rules
            StorageError: If a variable cannot be assigned
        """
        provider = normalize_provider_id(provider)
        effective_url = self.base_url_for(provider, base_url)
        result = self.validator.validate(provider, secret, base_url=effective_url)
        result.raise_for_issues(provider)

        assignments: list[tuple[str, str]] = []
        if effective_url is not None:
            assignments.append((BASE_URL_VAR, effective_url))
        assignments.append((env_var_for(provider), secret))

        self._cache.invalidate(provider)
        for var_name, value in assignments:
            try:
                self.environment.set(var_name, value)
            except Exception as e:
                raise StorageError(
                    f"Failed to set environment variable {var_name}: {e}",
                    provider=provider,
                    operation="set API key in environment",
                    suggestion="Variables set before this one were left in place",
                ) from e
            log.debug("environment_variable_set", variable=var_name)

        record = self._records.setdefault(provider, CredentialRecord(provider, self.storage_method))
        record.mark_written(result)
        self._persist_setup(provider, [name for name, _ in assignments])
        log.info("credential_stored", provider=provider, method=self.name)

    def get_credential(self, provider: str) -> str | None:
        """Read a provider's token, served from cache for up to the TTL."""
        provider = normalize_provider_id(provider)
        cached = self._cache.get(provider)
        if cached is not None:
            return cached

        value = self._read(env_var_for(provider))
        if value is not None:
            self._cache.set(provider, value)
        return value

    def remove_credential(self, provider: str, scope: ConfigScope | None = None) -> bool:
        """Delete every variable of a provider.

        Returns:
            True if at least one variable was deleted
        """
        provider = normalize_provider_id(provider)
        self._cache.invalidate(provider)

        deleted = False
        for var_name in self.variables_for(provider):
            try:
                deleted = self.environment.delete(var_name) or deleted
            except Exception as e:
                raise StorageError(
                    f"Failed to delete environment variable {var_name}: {e}",
                    provider=provider,
                    operation="remove API key from environment",
                ) from e

        if deleted:
            if provider in self._records:
                self._records[provider].mark_removed()
            log.info("credential_removed", provider=provider, method=self.name)
        return deleted

    def scoped_credentials(self, provider: str) -> dict[ConfigScope, str]:
        """The provider's token, reported under the global tier."""
        value = self.get_credential(provider)
        return {ConfigScope.GLOBAL: value} if value is not None else {}

    def list_credentials(self) -> dict[str, str]:
        """Credentials of every registry provider and every provider written here."""
        credentials: dict[str, str] = {}
        for provider in dict.fromkeys([*PROVIDERS, *self._records]):
            value = self.get_credential(provider)
            if value is not None:
                credentials[provider] = value
        return credentials

    def validate_all(self) -> ValidationResult:
        result = ValidationResult()
        for provider in self.list_credentials():
            result.merge(self.check_provider(provider), prefix=provider)
        return result

    def check_provider(self, provider: str, expected_base_url: str | None = None) -> ValidationResult:
        """Check the live environment for a provider, bypassing the cache.

        Every required variable must be set and well formed. When
        ``expected_base_url`` is given the base URL variable must equal it
        exactly; a differently valued variable is an issue.
        """
        provider = normalize_provider_id(provider)
        result = ValidationResult()

        for var_name in self.variables_for(provider):
            if self._read(var_name) is None:
                result.add_issue(f"{var_name} environment variable is not set")

        token = self._read(env_var_for(provider))
        if token is not None:
            result.merge(self.validator.validate(provider, token), prefix=env_var_for(provider))

        if is_paired(provider):
            base_url = self._read(BASE_URL_VAR)
            if base_url is not None:
                metadata = get_provider(provider)
                expected_host = metadata.expected_host if metadata else None
                result.merge(
                    self.validator.validate_base_url(base_url, expected_host=expected_host),
                    prefix=BASE_URL_VAR,
                )
                if expected_base_url is not None and base_url != expected_base_url:
                    result.add_issue(f"{BASE_URL_VAR} is {base_url!r}, expected {expected_base_url!r}")

        return result

    def record(self, provider: str) -> CredentialRecord | None:
        return self._records.get(normalize_provider_id(provider))

    def clear_cache(self) -> None:
        self._cache.clear()

    def export_commands(
        self,
        provider: str,
        shell: str = "bash",
        base_url: str | None = None,
        secret: str | None = None,
    ) -> list[str]:
        """Shell lines that set a provider's variables outside this process.

        Args:
            provider: Provider identifier
            shell: One of bash, zsh, fish, powershell, cmd
            base_url: Paired base URL; defaults to the configured endpoint
            secret: Token to render; a placeholder is used when omitted

        Returns:
            One command per variable

        Raises:
            ValueError: If the shell is not supported
        """
        if shell not in SUPPORTED_SHELLS:
            raise ValueError(f"Unsupported shell: {shell}")

        provider = normalize_provider_id(provider)
        values: list[tuple[str, str]] = []
        effective_url = self.base_url_for(provider, base_url)
        if effective_url is not None:
            values.append((BASE_URL_VAR, effective_url))
        values.append((env_var_for(provider), secret or f"your-{provider}-api-key"))

        if shell in ("bash", "zsh"):
            return [f'export {name}="{value}"' for name, value in values]
        if shell == "fish":
            return [f'set -gx {name} "{value}"' for name, value in values]
        if shell == "powershell":
            return [f'$env:{name} = "{value}"' for name, value in values]
        return [f"set {name}={value}" for name, value in values]

    def _read(self, var_name: str) -> str | None:
        try:
            value = self.environment.get(var_name)
        except Exception as e:
            raise StorageError(
                f"Failed to read environment variable {var_name}: {e}",
                operation="read environment",
            ) from e
        # Removal by older tooling leaves variables set to ""
        return value or None

    def _persist_setup(self, provider: str, variables: list[str]) -> None:
        if self.metadata_document is None:
            return

        setup = {
            "provider": provider,
            "timestamp": datetime.now(UTC).isoformat(),
            "variables": variables,
        }
        try:
            self.metadata_document.update(ENVIRONMENT_SETUP_SETTING, setup, ConfigScope.GLOBAL)
        except Exception as e:
            log.warning("environment_setup_not_persisted", provider=provider, error=str(e))
