"""Credential store backed by the encrypted settings document.

Security Model:
- Each secret is encrypted with the installation's CredentialCipher
- Ciphertexts live under the ``apiKeys`` key of the settings document
- Decryption failures are reported as ``Corrupted`` by :meth:`lookup`
  instead of being mistaken for an absent credential
"""

from __future__ import annotations

from typing import Any

import structlog

from keyshift.credentials.crypto import CredentialCipher
from keyshift.credentials.models import (
    Absent,
    Corrupted,
    CredentialLookup,
    CredentialRecord,
    Present,
    ValidationResult,
)
from keyshift.credentials.settings_document import ConfigScope, SettingsDocument
from keyshift.credentials.validator import CredentialValidator
from keyshift.exceptions import EncryptionError, StorageError
from keyshift.providers import StorageMethod, normalize_provider_id, storage_method_for

log = structlog.get_logger(__name__)

API_KEYS_SETTING = "apiKeys"


class SettingsBackedStore:
    """Encrypted settings-document credential storage.

    The scope argument selects the tier written to. Reads merge the
    global and workspace ``apiKeys`` maps per provider, the workspace
    entry winning.

    Example:
        >>> store = SettingsBackedStore(document, cipher, CredentialValidator())
        >>> store.set_credential("anthropic", "sk-ant-REDACTED")
        >>> store.get_credential("anthropic")
        'sk-ant-REDACTED'
    """

    storage_method = StorageMethod.SETTINGS

    def __init__(
        self,
        document: SettingsDocument,
        cipher: CredentialCipher,
        validator: CredentialValidator,
    ) -> None:
        self.document = document
        self.cipher = cipher
        self.validator = validator
        self._records: dict[str, CredentialRecord] = {}

    @property
    def name(self) -> str:
        return self.storage_method.value

    def supports_provider(self, provider: str) -> bool:
        return storage_method_for(provider) in (StorageMethod.SETTINGS, StorageMethod.HYBRID)

    def set_credential(
        self,
        provider: str,
        secret: str,
        scope: ConfigScope = ConfigScope.GLOBAL,
    ) -> None:
        """Validate, encrypt and store a credential.

        Args:
            provider: Provider identifier
            secret: Credential value
            scope: Settings tier to write

        Raises:
            ValidationError: If the secret fails format rules
            EncryptionError: If encryption fails
            StorageError: If the settings document cannot be written
        """
        provider = normalize_provider_id(provider)
        result = self.validator.validate(provider, secret)
        result.raise_for_issues(provider)

        encrypted = self.cipher.encrypt(secret)
        keys = self._raw_keys(scope)
        keys[provider] = encrypted
        self._write_keys(keys, scope, provider, operation="set API key")

        record = self._records.setdefault(provider, CredentialRecord(provider, self.storage_method))
        record.mark_written(result)
        log.info("credential_stored", provider=provider, method=self.name, scope=scope.value)

    def lookup(self, provider: str, scope: ConfigScope | None = None) -> CredentialLookup:
        """Read a credential, distinguishing absence from corruption.

        Args:
            provider: Provider identifier
            scope: Tier to read; None reads the effective value
        """
        provider = normalize_provider_id(provider)
        token = self._raw_keys(scope).get(provider)
        if not token:
            return Absent()

        try:
            return Present(self.cipher.decrypt(token))
        except EncryptionError as e:
            return Corrupted(e)

    def get_credential(self, provider: str) -> str | None:
        """Retrieve a credential, or None when it is absent or unreadable."""
        found = self.lookup(provider)
        if isinstance(found, Corrupted):
            log.warning("credential_unreadable", provider=provider, method=self.name, error=str(found.error))
            return None
        if isinstance(found, Present):
            return found.value
        return None

    def remove_credential(self, provider: str, scope: ConfigScope = ConfigScope.GLOBAL) -> bool:
        """Remove a credential from one tier.

        Returns:
            True if a credential was removed, False if the tier held none
        """
        provider = normalize_provider_id(provider)
        keys = self._raw_keys(scope)
        if provider not in keys:
            return False

        del keys[provider]
        self._write_keys(keys, scope, provider, operation="remove API key")

        if provider in self._records:
            self._records[provider].mark_removed()
        log.info("credential_removed", provider=provider, method=self.name, scope=scope.value)
        return True

    def scoped_credentials(self, provider: str) -> dict[ConfigScope, str]:
        """Every tier's copy of a provider's credential, keyed by tier.

        Raises:
            EncryptionError: If a tier holds an entry that cannot be decrypted
        """
        provider = normalize_provider_id(provider)
        found: dict[ConfigScope, str] = {}
        for scope in ConfigScope:
            entry = self.lookup(provider, scope)
            if isinstance(entry, Corrupted):
                raise EncryptionError(
                    f"Stored {scope.value} credential for {provider} could not be decrypted",
                    provider=provider,
                    suggestion=(
                        f"Remove it with `keyshift credentials delete {provider} "
                        f"--method settings --scope {scope.value}`"
                    ),
                ) from entry.error
            if isinstance(entry, Present):
                found[scope] = entry.value
        return found

    def list_credentials(self) -> dict[str, str]:
        """Decrypt every stored credential; unreadable entries are skipped."""
        credentials: dict[str, str] = {}
        for provider in self._raw_keys(None):
            value = self.get_credential(provider)
            if value is not None:
                credentials[provider] = value
        return credentials

    def validate_all(self) -> ValidationResult:
        """Validate every stored credential, including ones that cannot be decrypted."""
        result = ValidationResult()
        for provider in self._raw_keys(None):
            found = self.lookup(provider)
            if isinstance(found, Corrupted):
                result.add_issue(f"{provider}: stored credential could not be decrypted")
            elif isinstance(found, Present):
                result.merge(self.validator.validate(provider, found.value), prefix=provider)
        return result

    def record(self, provider: str) -> CredentialRecord | None:
        return self._records.get(normalize_provider_id(provider))

    def _raw_keys(self, scope: ConfigScope | None) -> dict[str, str]:
        if scope is None:
            # Per-provider merge; workspace entries win
            merged = self._raw_keys(ConfigScope.GLOBAL)
            merged.update(self._raw_keys(ConfigScope.WORKSPACE))
            return merged

        try:
            value: Any = self.document.get(API_KEYS_SETTING, scope)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Cannot read API keys from settings: {e}", operation="read API keys") from e

        if not isinstance(value, dict):
            return {}
        return {str(k): v for k, v in value.items() if isinstance(v, str)}

    def _write_keys(self, keys: dict[str, str], scope: ConfigScope, provider: str, operation: str) -> None:
        try:
            self.document.update(API_KEYS_SETTING, keys or None, scope)
        except StorageError as e:
            raise StorageError(e.message, provider=provider, operation=operation, suggestion=e.suggestion) from e
        except Exception as e:
            raise StorageError(
                f"Failed to {operation}: {e}",
                provider=provider,
                operation=operation,
            ) from e
