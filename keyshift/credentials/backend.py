"""Common contract of the credential stores.

keyshift has exactly two storage backends, so the store abstraction is a
closed union rather than an open plugin hierarchy. ``CredentialStore``
documents the shared contract; ``Store`` is the union the router accepts.
"""

from __future__ import annotations

from typing import Protocol, TypeAlias

from keyshift.credentials.environment_store import EnvironmentBackedStore
from keyshift.credentials.models import CredentialRecord, ValidationResult
from keyshift.credentials.settings_document import ConfigScope
from keyshift.credentials.settings_store import SettingsBackedStore
from keyshift.providers import StorageMethod


class CredentialStore(Protocol):
    """Protocol shared by the settings-backed and environment-backed stores."""

    @property
    def storage_method(self) -> StorageMethod:
        """Storage method this store implements."""
        ...

    @property
    def name(self) -> str:
        """Store identifier ("settings" or "environment")."""
        ...

    def supports_provider(self, provider: str) -> bool:
        """Whether the provider's canonical storage method matches this store."""
        ...

    def set_credential(self, provider: str, secret: str, scope: ConfigScope) -> None:
        """Validate and store a credential.

        Raises:
            ValidationError: If the secret fails format rules
            StorageError: If the backend cannot be written
        """
        ...

    def get_credential(self, provider: str) -> str | None:
        """Retrieve a credential or None if not found."""
        ...

    def remove_credential(self, provider: str, scope: ConfigScope) -> bool:
        """Delete a credential.

        Returns:
            True if a credential was deleted, False if not found
        """
        ...

    def scoped_credentials(self, provider: str) -> dict[ConfigScope, str]:
        """Every copy of a provider's credential, keyed by the tier holding it."""
        ...

    def list_credentials(self) -> dict[str, str]:
        """Every credential the store currently holds, keyed by provider."""
        ...

    def validate_all(self) -> ValidationResult:
        """Validate every stored credential."""
        ...

    def record(self, provider: str) -> CredentialRecord | None:
        """Bookkeeping for credentials written in this process."""
        ...


Store: TypeAlias = SettingsBackedStore | EnvironmentBackedStore
