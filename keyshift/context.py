"""Explicit wiring of the credential components.

Nothing in keyshift is a process-wide singleton: the CLI (or any other
caller) builds one CredentialContext from settings and hands it to the code
that needs a store, the router or the migration engine.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from keyshift.config.settings import KeyshiftSettings
from keyshift.credentials.crypto import CredentialCipher
from keyshift.credentials.environment import EnvironmentTable, ProcessEnvironment
from keyshift.credentials.environment_store import EnvironmentBackedStore
from keyshift.credentials.router import StrategyRouter
from keyshift.credentials.settings_document import JsonSettingsDocument, SettingsDocument
from keyshift.credentials.settings_store import SettingsBackedStore
from keyshift.credentials.validator import CredentialValidator
from keyshift.migration.backup import BackupSink, FileBackupSink
from keyshift.migration.connectivity import HttpConnectivityCheck
from keyshift.migration.engine import MigrationEngine

log = structlog.get_logger(__name__)


@dataclass
class CredentialContext:
    """Every component built once, sharing one validator and one document."""

    settings: KeyshiftSettings
    validator: CredentialValidator
    cipher: CredentialCipher
    document: SettingsDocument
    settings_store: SettingsBackedStore
    environment_store: EnvironmentBackedStore
    router: StrategyRouter
    engine: MigrationEngine

    @classmethod
    def from_settings(
        cls,
        settings: KeyshiftSettings,
        environment: EnvironmentTable | None = None,
        document: SettingsDocument | None = None,
        backup_sink: BackupSink | None = None,
    ) -> CredentialContext:
        """Build the components described by the settings.

        Args:
            settings: Loaded keyshift settings
            environment: Environment table; defaults to the process environment
            document: Settings document; defaults to the JSON files in
                ``config_dir`` and ``workspace_dir``
            backup_sink: Backup storage; defaults to ``<config_dir>/backups``

        Raises:
            EncryptionError: If the key file or salt cannot be accessed
        """
        validator = CredentialValidator()

        if settings.master_password is not None:
            salt = CredentialCipher.load_or_generate_salt(settings.salt_path)
            cipher = CredentialCipher.from_password(settings.master_password.get_secret_value(), salt)
        else:
            cipher = CredentialCipher.from_key_file(settings.key_path)

        if document is None:
            document = JsonSettingsDocument(settings.settings_file, settings.workspace_settings_file)

        settings_store = SettingsBackedStore(document, cipher, validator)
        environment_store = EnvironmentBackedStore(
            environment if environment is not None else ProcessEnvironment(),
            validator,
            default_base_url=settings.zai_base_url,
            cache_ttl_seconds=settings.cache_ttl_seconds,
            metadata_document=document,
        )
        router = StrategyRouter([settings_store, environment_store], validator)

        engine = MigrationEngine(
            router,
            document,
            backup_sink if backup_sink is not None else FileBackupSink(settings.backup_dir, cipher=cipher),
            default_base_url=settings.zai_base_url,
            connectivity_check=(
                HttpConnectivityCheck(timeout=settings.connectivity_timeout) if settings.connectivity_check else None
            ),
            backup_keys=settings.backup_keys,
        )

        log.debug("credential_context_built", config_dir=str(settings.config_dir))
        return cls(
            settings=settings,
            validator=validator,
            cipher=cipher,
            document=document,
            settings_store=settings_store,
            environment_store=environment_store,
            router=router,
            engine=engine,
        )
