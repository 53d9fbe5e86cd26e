"""Tests for the JSON settings document."""

import json
import stat
import sys

import pytest

from keyshift.credentials import ConfigScope, JsonSettingsDocument
from keyshift.exceptions import StorageError


class TestJsonSettingsDocument:
    """Test JsonSettingsDocument tiers and persistence."""

    def test_missing_files_read_as_empty(self, document):
        assert document.get("defaultModel") is None
        assert document.get("defaultModel", ConfigScope.WORKSPACE) is None

    def test_update_and_get(self, document):
        document.update("defaultModel", "claude-sonnet-4", ConfigScope.GLOBAL)

        assert document.get("defaultModel") == "claude-sonnet-4"
        assert document.get("defaultModel", ConfigScope.GLOBAL) == "claude-sonnet-4"

    def test_workspace_overrides_global(self, document):
        """Test the effective value prefers the workspace tier."""
        document.update("debugMode", False, ConfigScope.GLOBAL)
        document.update("debugMode", True, ConfigScope.WORKSPACE)

        assert document.get("debugMode") is True
        assert document.get("debugMode", ConfigScope.GLOBAL) is False

    def test_update_none_removes_key(self, document):
        document.update("showStatusBar", True, ConfigScope.GLOBAL)
        document.update("showStatusBar", None, ConfigScope.GLOBAL)

        assert document.get("showStatusBar") is None
        data = json.loads(document.path_for(ConfigScope.GLOBAL).read_text())
        assert "showStatusBar" not in data

    def test_changes_persist_to_disk(self, document):
        """Test a fresh document sees earlier writes."""
        document.update("reloadBehavior", "prompt", ConfigScope.GLOBAL)

        reopened = JsonSettingsDocument(
            document.path_for(ConfigScope.GLOBAL),
            document.path_for(ConfigScope.WORKSPACE),
        )

        assert reopened.get("reloadBehavior") == "prompt"

    @pytest.mark.skipif(sys.platform == "win32", reason="Unix permissions")
    def test_file_permissions(self, document):
        document.update("debugMode", True, ConfigScope.GLOBAL)

        mode = stat.S_IMODE(document.path_for(ConfigScope.GLOBAL).stat().st_mode)
        assert mode == 0o600

    def test_corrupted_file_raises(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{not json")

        with pytest.raises(StorageError, match="corrupted"):
            JsonSettingsDocument(path).get("defaultModel")

    def test_non_object_file_raises(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("[1, 2, 3]")

        with pytest.raises(StorageError, match="JSON object"):
            JsonSettingsDocument(path).get("defaultModel")

    def test_workspace_update_without_workspace_path(self, tmp_path):
        """Test writing the workspace tier needs a workspace file."""
        document = JsonSettingsDocument(tmp_path / "settings.json")

        assert document.get("debugMode", ConfigScope.WORKSPACE) is None
        with pytest.raises(StorageError, match="No workspace settings file configured"):
            document.update("debugMode", True, ConfigScope.WORKSPACE)
