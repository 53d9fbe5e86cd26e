"""Persisted key/value settings document with global and workspace tiers.

The settings-backed store treats this document as its only persistence
substrate. Values are JSON-serializable; each tier is one JSON object file.

File Structure::

    {
        "apiKeys": {"anthropic": "gAAAAA..."},
        "defaultModel": "claude-sonnet-4-20250514",
        "environmentSetup": {"provider": "zai", "timestamp": "...", "variables": [...]}
    }
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

import structlog

from keyshift.exceptions import StorageError

log = structlog.get_logger(__name__)


class ConfigScope(str, Enum):
    """Persistence tier of a settings value."""

    GLOBAL = "global"
    WORKSPACE = "workspace"


class SettingsDocument(Protocol):
    """Interface of the externally supplied settings document."""

    def get(self, key: str, scope: ConfigScope | None = None) -> Any:
        """Read a value.

        Args:
            key: Top-level settings key
            scope: Tier to read; None returns the effective value, where a
                workspace value overrides the global one

        Returns:
            The stored value, or None when the key is not set
        """
        ...

    def update(self, key: str, value: Any, scope: ConfigScope) -> None:
        """Write a value to one tier; a value of None removes the key.

        Raises:
            StorageError: If the tier cannot be written
        """
        ...


class JsonSettingsDocument:
    """Settings document backed by one JSON file per tier.

    Writes are atomic (temporary file plus rename) and files are restricted
    to the owner (0600 on Unix).

    Example:
        >>> document = JsonSettingsDocument(Path("~/.keyshift/settings.json").expanduser())
        >>> document.update("defaultModel", "claude-sonnet-4", ConfigScope.GLOBAL)
        >>> document.get("defaultModel")
        'claude-sonnet-4'
    """

    def __init__(self, global_path: Path, workspace_path: Path | None = None) -> None:
        self._paths: dict[ConfigScope, Path | None] = {
            ConfigScope.GLOBAL: global_path,
            ConfigScope.WORKSPACE: workspace_path,
        }
        self._cache: dict[ConfigScope, dict[str, Any]] = {}

    def path_for(self, scope: ConfigScope) -> Path | None:
        return self._paths[scope]

    def get(self, key: str, scope: ConfigScope | None = None) -> Any:
        if scope is not None:
            return self._load(scope).get(key)

        workspace = self._load(ConfigScope.WORKSPACE)
        if key in workspace:
            return workspace[key]
        return self._load(ConfigScope.GLOBAL).get(key)

    def update(self, key: str, value: Any, scope: ConfigScope) -> None:
        path = self._paths[scope]
        if path is None:
            raise StorageError(
                f"No {scope.value} settings file configured",
                operation="update settings",
                suggestion="Configure a workspace directory or use the global scope",
            )

        data = dict(self._load(scope))
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value

        self._write(path, data)
        self._cache[scope] = data
        log.debug("settings_updated", key=key, scope=scope.value)

    def _load(self, scope: ConfigScope) -> dict[str, Any]:
        if scope in self._cache:
            return self._cache[scope]

        path = self._paths[scope]
        if path is None or not path.exists():
            self._cache[scope] = {}
            return self._cache[scope]

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StorageError(
                f"Settings file is corrupted: {path}",
                operation="read settings",
                suggestion="Restore the file from a backup or delete it",
            ) from e
        except OSError as e:
            raise StorageError(f"Cannot read settings file {path}: {e}", operation="read settings") from e

        if not isinstance(data, dict):
            raise StorageError(f"Settings file must contain a JSON object: {path}", operation="read settings")

        self._cache[scope] = data
        return data

    @staticmethod
    def _write(path: Path, data: dict[str, Any]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp_file = path.with_suffix(".tmp")
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)

            try:
                temp_file.chmod(0o600)
            except OSError as e:
                log.warning("file_permissions_not_set", path=str(temp_file), error=str(e))

            temp_file.replace(path)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Cannot write settings file {path}: {e}", operation="write settings") from e
