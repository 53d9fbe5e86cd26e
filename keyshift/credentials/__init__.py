"""Credential storage: validation, encryption, the two stores and the router.

Stores:
    SettingsBackedStore: encrypted entries in the settings document
    EnvironmentBackedStore: process environment variables

The StrategyRouter decides which store owns a provider's credential.
"""

from keyshift.credentials.backend import CredentialStore, Store
from keyshift.credentials.crypto import CredentialCipher
from keyshift.credentials.environment import EnvironmentTable, MappingEnvironment, ProcessEnvironment
from keyshift.credentials.environment_store import EnvironmentBackedStore
from keyshift.credentials.exceptions import (
    CredentialError,
    EncryptionError,
    MigrationStepError,
    StorageError,
    ValidationError,
)
from keyshift.credentials.models import (
    Absent,
    Corrupted,
    CredentialLookup,
    CredentialRecord,
    Present,
    ProviderStatus,
    ValidationResult,
    ValidationStatus,
    mask_secret,
)
from keyshift.credentials.router import StrategyRouter
from keyshift.credentials.settings_document import ConfigScope, JsonSettingsDocument, SettingsDocument
from keyshift.credentials.settings_store import SettingsBackedStore
from keyshift.credentials.validator import CredentialValidator

__all__ = [
    "Absent",
    "ConfigScope",
    "Corrupted",
    "CredentialCipher",
    "CredentialError",
    "CredentialLookup",
    "CredentialRecord",
    "CredentialStore",
    "CredentialValidator",
    "EncryptionError",
    "EnvironmentBackedStore",
    "EnvironmentTable",
    "JsonSettingsDocument",
    "MappingEnvironment",
    "MigrationStepError",
    "Present",
    "ProcessEnvironment",
    "ProviderStatus",
    "SettingsBackedStore",
    "SettingsDocument",
    "StorageError",
    "Store",
    "StrategyRouter",
    "ValidationError",
    "ValidationResult",
    "ValidationStatus",
    "mask_secret",
]
