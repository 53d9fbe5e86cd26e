"""Per-provider selection of the store that owns a credential."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TypeVar

import structlog

from keyshift.credentials.backend import Store
from keyshift.credentials.environment_store import EnvironmentBackedStore
from keyshift.credentials.models import Corrupted, Present, ProviderStatus, ValidationResult
from keyshift.credentials.settings_document import ConfigScope
from keyshift.credentials.settings_store import SettingsBackedStore
from keyshift.credentials.validator import CredentialValidator
from keyshift.exceptions import ConfigurationError, StorageError, ValidationError
from keyshift.providers import PROVIDERS, StorageMethod, display_name, get_provider, normalize_provider_id

log = structlog.get_logger(__name__)

T = TypeVar("T")

# Later entries win when two stores hold the same provider.
MERGE_PRECEDENCE = (StorageMethod.SETTINGS, StorageMethod.ENVIRONMENT)


class StrategyRouter:
    """Route credential operations to the settings or environment store.

    Selection order for :meth:`store_for`:
    1. An explicit method whose store supports the provider
    2. The provider's canonical storage method from the registry
       (hybrid providers resolve to the settings store)
    3. The settings store

    Example:
        >>> router = StrategyRouter([settings_store, environment_store], CredentialValidator())
        >>> router.store_for("zai").name
        'environment'
        >>> router.store_for("unknown-provider").name
        'settings'
    """

    def __init__(self, stores: Sequence[Store], validator: CredentialValidator) -> None:
        """Initialize router.

        Args:
            stores: The registered stores, at most one per storage method
            validator: Validator used for settings-backed provider checks

        Raises:
            ConfigurationError: If no store or two stores for one method are given
        """
        if not stores:
            raise ConfigurationError("At least one credential store must be registered")

        self._stores: dict[StorageMethod, Store] = {}
        for store in stores:
            if store.storage_method in self._stores:
                raise ConfigurationError(f"Duplicate store registered for {store.storage_method.value}")
            self._stores[store.storage_method] = store

        self.validator = validator

    @property
    def stores(self) -> tuple[Store, ...]:
        """Registered stores in registration order."""
        return tuple(self._stores.values())

    def store_by_method(self, method: StorageMethod | str) -> Store | None:
        try:
            return self._stores.get(StorageMethod(method))
        except ValueError:
            return None

    def store_for(self, provider: str, explicit_method: StorageMethod | str | None = None) -> Store:
        """Choose the store that owns a provider's credential. Never raises."""
        if explicit_method is not None:
            store = self.store_by_method(explicit_method)
            if store is not None and store.supports_provider(provider):
                return store

        metadata = get_provider(provider)
        if metadata is not None:
            method = metadata.storage_method
            if method is StorageMethod.HYBRID:
                method = StorageMethod.SETTINGS
            store = self._stores.get(method)
            if store is not None:
                return store

        return self._stores.get(StorageMethod.SETTINGS) or next(iter(self._stores.values()))

    def get_credential(self, provider: str, method: StorageMethod | str | None = None) -> str | None:
        store = self.store_for(provider, method)
        return self._delegate("get API key", provider, lambda: store.get_credential(provider))

    def set_credential(
        self,
        provider: str,
        secret: str,
        scope: ConfigScope = ConfigScope.GLOBAL,
        method: StorageMethod | str | None = None,
        base_url: str | None = None,
    ) -> None:
        """Store a credential in the store selected for the provider.

        Raises:
            ValidationError: If the secret fails format rules
            StorageError: If the selected store cannot be written
        """
        store = self.store_for(provider, method)
        self._write(store, provider, secret, scope, base_url)

    def remove_credential(
        self,
        provider: str,
        scope: ConfigScope = ConfigScope.GLOBAL,
        method: StorageMethod | str | None = None,
    ) -> bool:
        store = self.store_for(provider, method)
        return self._delegate("remove API key", provider, lambda: store.remove_credential(provider, scope))

    def get_from(self, method: StorageMethod | str, provider: str) -> str | None:
        """Read from one specific store, bypassing provider-based selection."""
        store = self._require(method, provider)
        return self._delegate("get API key", provider, lambda: store.get_credential(provider))

    def get_scoped_from(self, method: StorageMethod | str, provider: str) -> dict[ConfigScope, str]:
        """Read every tier's copy from one specific store."""
        store = self._require(method, provider)
        return self._delegate("get API key", provider, lambda: store.scoped_credentials(provider))

    def set_in(
        self,
        method: StorageMethod | str,
        provider: str,
        secret: str,
        scope: ConfigScope = ConfigScope.GLOBAL,
        base_url: str | None = None,
    ) -> None:
        """Write to one specific store, bypassing provider-based selection."""
        self._write(self._require(method, provider), provider, secret, scope, base_url)

    def remove_from(
        self,
        method: StorageMethod | str,
        provider: str,
        scope: ConfigScope = ConfigScope.GLOBAL,
    ) -> bool:
        """Remove from one specific store, bypassing provider-based selection."""
        store = self._require(method, provider)
        return self._delegate("remove API key", provider, lambda: store.remove_credential(provider, scope))

    def all_credentials(self) -> dict[str, str]:
        """Merge every store's credentials into one map.

        Stores are merged in ``MERGE_PRECEDENCE`` order regardless of the
        order they were registered in, so a provider configured in both
        stores reports the environment value.
        """
        merged: dict[str, str] = {}
        for method in MERGE_PRECEDENCE:
            store = self._stores.get(method)
            if store is not None:
                merged.update(self._delegate("list API keys", "all providers", store.list_credentials))
        return merged

    def validate_provider(
        self,
        provider: str,
        method: StorageMethod | str | None = None,
        expected_base_url: str | None = None,
    ) -> ValidationResult:
        """Validate the credential the selected store holds for a provider.

        Never raises: storage failures are reported as issues.

        Args:
            provider: Provider identifier
            method: Explicit storage method, as for :meth:`store_for`
            expected_base_url: Exact base URL the environment must carry
        """
        return self._validate_with(self.store_for(provider, method), provider, expected_base_url)

    def validate_in(
        self,
        method: StorageMethod | str,
        provider: str,
        expected_base_url: str | None = None,
    ) -> ValidationResult:
        """Validate one specific store's credential for a provider. Never raises."""
        store = self.store_by_method(method)
        if store is None:
            label = method.value if isinstance(method, StorageMethod) else method
            result = ValidationResult()
            result.add_issue(f"No {label} store is registered")
            return result
        return self._validate_with(store, provider, expected_base_url)

    def _validate_with(self, store: Store, provider: str, expected_base_url: str | None) -> ValidationResult:
        try:
            if isinstance(store, EnvironmentBackedStore):
                return store.check_provider(provider, expected_base_url=expected_base_url)
            return self._validate_settings(store, provider)
        except StorageError as e:
            result = ValidationResult()
            result.add_issue(f"Cannot read {store.name} storage: {e.message}")
            return result

    def configuration_status(self) -> dict[str, ProviderStatus]:
        """Status of every registry provider in its selected store."""
        statuses: dict[str, ProviderStatus] = {}
        for provider in PROVIDERS:
            store = self.store_for(provider)
            result = self.validate_provider(provider)
            message = "Configured" if result.is_valid else "; ".join(result.issues)
            statuses[provider] = ProviderStatus(
                provider=provider,
                method=store.storage_method,
                configured=result.is_valid,
                message=message,
            )
        return statuses

    def _validate_settings(self, store: SettingsBackedStore, provider: str) -> ValidationResult:
        found = store.lookup(provider)
        if isinstance(found, Present):
            return self.validator.validate(provider, found.value)

        result = ValidationResult()
        if isinstance(found, Corrupted):
            result.add_issue(f"Stored {display_name(provider)} credential could not be decrypted")
        else:
            result.add_issue(f"No credential configured for {display_name(provider)}")
        return result

    def _write(
        self,
        store: Store,
        provider: str,
        secret: str,
        scope: ConfigScope,
        base_url: str | None,
    ) -> None:
        if isinstance(store, EnvironmentBackedStore):
            self._delegate(
                "set API key",
                provider,
                lambda: store.set_credential(provider, secret, scope, base_url=base_url),
            )
        else:
            self._delegate("set API key", provider, lambda: store.set_credential(provider, secret, scope))

    def _require(self, method: StorageMethod | str, provider: str) -> Store:
        store = self.store_by_method(method)
        if store is None:
            label = method.value if isinstance(method, StorageMethod) else method
            raise StorageError(
                f"No {label} store is registered",
                provider=normalize_provider_id(provider),
                operation="select store",
            )
        return store

    @staticmethod
    def _delegate(operation: str, provider: str, call: Callable[[], T]) -> T:
        try:
            return call()
        except (ValidationError, StorageError):
            raise
        except Exception as e:
            log.error("credential_operation_failed", operation=operation, provider=provider, error=str(e))
            raise StorageError(
                f"Failed to {operation} for {provider}: {e}",
                provider=provider,
                operation=operation,
            ) from e
