"""
Durable storage of migration backups.

The migration engine only builds and reads MigrationBackup records; where
they are kept is up to the BackupSink it is given. FileBackupSink keeps one
JSON file per backup, named after the backup's timestamp.

Backup File Structure::

    {
        "timestamp": "2025-01-15T10:30:00.123456+00:00",
        "provider": "zai",
        "captured_secret": "gAAAAA...",
        "captured_secrets": {"global": "gAAAAA..."},
        "secret_encrypted": true,
        "settings_snapshot": {"defaultModel": "claude-sonnet-4-20250514", ...}
    }

Captured secrets are encrypted with the installation cipher when one is
configured, so a backup never holds a plaintext credential on disk.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Protocol

import aiofiles
import structlog
from pydantic import ValidationError as PydanticValidationError

from keyshift.credentials.crypto import CredentialCipher
from keyshift.exceptions import EncryptionError, StorageError
from keyshift.migration.models import MigrationBackup

log = structlog.get_logger(__name__)


class BackupSink(Protocol):
    """Durable key/value store for MigrationBackup records, keyed by timestamp."""

    async def save(self, backup: MigrationBackup) -> None: ...

    async def load(self, timestamp: str) -> MigrationBackup | None: ...

    async def list_all(self) -> list[MigrationBackup]: ...


class FileBackupSink:
    """Store migration backups as JSON files in a directory.

    Writes are atomic (temporary file plus rename) and files are restricted
    to the owner.

    Example:
        >>> sink = FileBackupSink(Path(".keyshift/backups"), cipher=cipher)
        >>> await sink.save(backup)
        >>> restored = await sink.load(backup.timestamp)
    """

    def __init__(self, directory: str | Path, cipher: CredentialCipher | None = None) -> None:
        """Initialize the sink.

        Args:
            directory: Directory holding backup files; created on first save
            cipher: Cipher for the captured secret; stored as plaintext if None
        """
        self.directory = Path(directory)
        self.cipher = cipher

    def _get_backup_path(self, timestamp: str) -> Path:
        """Filesystem path of a backup.

        Example:
            >>> sink._get_backup_path("2025-01-15T10:30:00+00:00")
            Path(".keyshift/backups/backup-2025-01-15T10-30-00-00-00.json")
        """
        safe = re.sub(r"[^0-9A-Za-z.T]", "-", timestamp)
        return self.directory / f"backup-{safe}.json"

    async def save(self, backup: MigrationBackup) -> None:
        """Persist a backup.

        Raises:
            StorageError: If the backup cannot be serialized or written
            EncryptionError: If the captured secret cannot be encrypted
        """
        data: dict[str, Any] = backup.model_dump(mode="json")
        data["secret_encrypted"] = False
        if self.cipher is not None:
            if backup.captured_secret is not None:
                data["captured_secret"] = self.cipher.encrypt(backup.captured_secret)
            data["captured_secrets"] = {
                scope: self.cipher.encrypt(secret) for scope, secret in data["captured_secrets"].items()
            }
            data["secret_encrypted"] = True

        path = self._get_backup_path(backup.timestamp)
        temp_path = path.with_suffix(".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(temp_path, "w") as f:
                await f.write(json.dumps(data, indent=2))
            try:
                temp_path.chmod(0o600)
            except OSError as e:
                log.warning("file_permissions_not_set", path=str(temp_path), error=str(e))
            temp_path.replace(path)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to write backup {path}: {e}", operation="save backup") from e

        log.info("migration_backup_saved", provider=backup.provider, timestamp=backup.timestamp)

    async def load(self, timestamp: str) -> MigrationBackup | None:
        """Load a backup by timestamp, or None if no such backup exists.

        Raises:
            StorageError: If the backup file is unreadable or malformed
            EncryptionError: If the captured secret cannot be decrypted
        """
        path = self._get_backup_path(timestamp)
        if not path.exists():
            return None
        return await self._read(path)

    async def list_all(self) -> list[MigrationBackup]:
        """Every readable backup, oldest first. Unreadable files are skipped."""
        if not self.directory.exists():
            return []

        backups: list[MigrationBackup] = []
        for path in sorted(self.directory.glob("backup-*.json")):
            try:
                backups.append(await self._read(path))
            except (StorageError, EncryptionError) as e:
                log.warning("migration_backup_unreadable", path=str(path), error=e.message)
        return sorted(backups, key=lambda backup: backup.timestamp)

    async def _read(self, path: Path) -> MigrationBackup:
        try:
            async with aiofiles.open(path) as f:
                content = await f.read()
            data = json.loads(content)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read backup {path}: {e}", operation="load backup") from e

        if not isinstance(data, dict):
            raise StorageError(f"Backup file must contain a JSON object: {path}", operation="load backup")

        if data.pop("secret_encrypted", False):
            data = self._decrypt_secrets(data, path)

        try:
            return MigrationBackup.model_validate(data)
        except PydanticValidationError as e:
            raise StorageError(f"Backup file is malformed: {path}", operation="load backup") from e

    def _decrypt_secrets(self, data: dict[str, Any], path: Path) -> dict[str, Any]:
        secret = data.get("captured_secret")
        scoped = data.get("captured_secrets") or {}
        if secret is None and not scoped:
            return data
        if self.cipher is None:
            raise EncryptionError(f"Backup {path.name} holds an encrypted secret but no cipher is configured")
        if not isinstance(scoped, dict):
            raise StorageError(f"Backup file is malformed: {path}", operation="load backup")

        if secret is not None:
            data["captured_secret"] = self.cipher.decrypt(secret)
        data["captured_secrets"] = {scope: self.cipher.decrypt(value) for scope, value in scoped.items()}
        return data
