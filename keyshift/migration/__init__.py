"""Migration of credentials from the settings document to the environment."""

from keyshift.migration.backup import BackupSink, FileBackupSink
from keyshift.migration.connectivity import ConnectivityCheck, ConnectivityResult, HttpConnectivityCheck
from keyshift.migration.engine import DEFAULT_BACKUP_KEYS, MigrationEngine, MigrationPrompts
from keyshift.migration.models import (
    MigrationBackup,
    MigrationDetection,
    MigrationResult,
    MigrationState,
    MigrationStatus,
    MigrationStep,
)

__all__ = [
    "DEFAULT_BACKUP_KEYS",
    "BackupSink",
    "ConnectivityCheck",
    "ConnectivityResult",
    "FileBackupSink",
    "HttpConnectivityCheck",
    "MigrationBackup",
    "MigrationDetection",
    "MigrationEngine",
    "MigrationPrompts",
    "MigrationResult",
    "MigrationState",
    "MigrationStatus",
    "MigrationStep",
]
