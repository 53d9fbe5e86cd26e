"""
Configuration system using Pydantic for type-safe settings management.

Settings come from three places, highest precedence first:
- Keyword arguments (including values loaded by :meth:`KeyshiftSettings.from_yaml`)
- ``KEYSHIFT_*`` environment variables
- Field defaults

Example configuration file::

    config_dir: ~/.keyshift
    workspace_dir: ${PROJECT_ROOT:-.}
    zai_base_url: https://api.z.ai/api/anthropic
    connectivity_check: true
    log_level: DEBUG
"""

from __future__ import annotations

import os
import re
from pathlib import Path

import yaml
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from keyshift.exceptions import ConfigurationError
from keyshift.migration.engine import DEFAULT_BACKUP_KEYS
from keyshift.providers import DEFAULT_ZAI_BASE_URL

SETTINGS_FILE_NAME = "settings.json"
WORKSPACE_DIR_NAME = ".keyshift"


class KeyshiftSettings(BaseSettings):
    """Main keyshift settings.

    Derived paths (settings files, key file, backup directory) are exposed
    as properties so every consumer resolves them the same way.
    """

    model_config = SettingsConfigDict(
        env_prefix="KEYSHIFT_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    config_dir: Path = Field(
        default_factory=lambda: Path.home() / ".keyshift",
        description="Directory holding the global settings file, key material and backups",
    )
    workspace_dir: Path | None = Field(
        default=None,
        description="Project directory whose .keyshift/settings.json overrides the global tier",
    )
    key_file: Path | None = Field(
        default=None,
        description="Fernet key file; defaults to <config_dir>/credentials.key",
    )
    master_password: SecretStr | None = Field(
        default=None,
        description="Derive the encryption key from this password instead of a key file",
    )
    cache_ttl_seconds: float = Field(default=300, ge=0, description="Environment read cache lifetime")
    zai_base_url: str = Field(default=DEFAULT_ZAI_BASE_URL, description="Endpoint configured for Z.ai")
    connectivity_check: bool = Field(default=False, description="Check the endpoint while verifying a migration")
    connectivity_timeout: float = Field(default=10.0, gt=0, description="Connectivity check timeout in seconds")
    backup_keys: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BACKUP_KEYS),
        description="Settings keys captured in every migration backup",
    )
    log_level: str = Field(default="INFO", description="Minimum log level")

    @field_validator("config_dir", "workspace_dir", "key_file", mode="after")
    @classmethod
    def _expand_user(cls, value: Path | None) -> Path | None:
        return value.expanduser() if value is not None else None

    @field_validator("log_level", mode="after")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @property
    def settings_file(self) -> Path:
        return self.config_dir / SETTINGS_FILE_NAME

    @property
    def workspace_settings_file(self) -> Path | None:
        if self.workspace_dir is None:
            return None
        return self.workspace_dir / WORKSPACE_DIR_NAME / SETTINGS_FILE_NAME

    @property
    def key_path(self) -> Path:
        return self.key_file or self.config_dir / "credentials.key"

    @property
    def salt_path(self) -> Path:
        return self.config_dir / "credentials.salt"

    @property
    def backup_dir(self) -> Path:
        return self.config_dir / "backups"

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> KeyshiftSettings:
        """Load settings from YAML file with environment variable interpolation.

        Supports ${VAR_NAME} and ${VAR_NAME:-default} substitution.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            KeyshiftSettings instance

        Raises:
            ConfigurationError: If config file is missing, unreadable or invalid
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file) as f:
                yaml_content = f.read()
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file: {config_path}") from e

        try:
            yaml_content = cls._interpolate_env_vars(yaml_content)
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment variable reference in config: {e}") from e

        try:
            config_dict = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}") from e

        if config_dict is None:
            config_dict = {}
        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration must be a YAML object, not a list or scalar")

        try:
            return cls(**config_dict)
        except Exception as e:
            raise ConfigurationError(f"Failed to validate configuration: {e}") from e

    @staticmethod
    def _interpolate_env_vars(content: str) -> str:
        """Interpolate ${VAR_NAME} placeholders with environment variables.

        YAML comment lines are left unchanged.

        Raises:
            ValueError: If a required environment variable is not set
        """
        pattern = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default_value = match.group(2)
            value = os.getenv(var_name)

            if value is not None:
                return value
            if default_value is not None:
                return default_value
            raise ValueError(f"Environment variable {var_name} is not set")

        def process_line(line: str) -> str:
            if line.lstrip().startswith("#"):
                return line
            return pattern.sub(replace_var, line)

        return "\n".join(process_line(line) for line in content.split("\n"))
