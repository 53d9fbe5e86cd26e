"""Static registry of the model providers whose credentials keyshift manages.

Each provider declares where its credential canonically lives. Anthropic keys
are kept in the encrypted settings document; Z.ai is consumed through the
Anthropic-compatible environment variables ``ANTHROPIC_BASE_URL`` and
``ANTHROPIC_AUTH_TOKEN``; custom providers may use either.

Example:
    >>> provider = get_provider("zai")
    >>> provider.storage_method
    <StorageMethod.ENVIRONMENT: 'environment'>
    >>> required_env_vars("zai")
    ('ANTHROPIC_BASE_URL', 'ANTHROPIC_AUTH_TOKEN')
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Literal

BASE_URL_VAR = "ANTHROPIC_BASE_URL"
AUTH_TOKEN_VAR = "ANTHROPIC_AUTH_TOKEN"
DEFAULT_ZAI_BASE_URL = "https://api.z.ai/api/anthropic"


class StorageMethod(str, Enum):
    """Where a provider's credential is persisted."""

    SETTINGS = "settings"
    """Encrypted local settings document."""

    ENVIRONMENT = "environment"
    """Process environment variables."""

    HYBRID = "hybrid"
    """Either backend; the settings document is preferred."""


@dataclass(frozen=True)
class Provider:
    """Immutable description of a provider.

    Attributes:
        id: Registry identifier (lowercase)
        display_name: Human-readable name used in messages
        storage_method: Canonical storage backend
        required_env_vars: Variables that must all be set for environment storage
        base_url: Canonical API endpoint, if any
        key_prefix: Prefix every valid secret must start with, if any
        min_length: Minimum secret length
        expected_host: Host suffix a paired base URL is expected to point at
        category: Provenance of the provider
    """

    id: str
    display_name: str
    storage_method: StorageMethod
    required_env_vars: tuple[str, ...] = ()
    base_url: str | None = None
    key_prefix: str | None = None
    min_length: int = 5
    expected_host: str | None = None
    category: Literal["official", "third-party", "custom"] = "custom"

    @property
    def is_paired(self) -> bool:
        """True when the credential is stored together with a base URL."""
        return BASE_URL_VAR in self.required_env_vars


PROVIDERS: MappingProxyType[str, Provider] = MappingProxyType(
    {
        "anthropic": Provider(
            id="anthropic",
            display_name="Anthropic",
            storage_method=StorageMethod.SETTINGS,
            base_url="https://api.anthropic.com",
            key_prefix="sk-ant-",
            min_length=20,
            category="official",
        ),
        "zai": Provider(
            id="zai",
            display_name="Z.ai",
            storage_method=StorageMethod.ENVIRONMENT,
            required_env_vars=(BASE_URL_VAR, AUTH_TOKEN_VAR),
            base_url=DEFAULT_ZAI_BASE_URL,
            min_length=10,
            expected_host="z.ai",
            category="third-party",
        ),
        "custom": Provider(
            id="custom",
            display_name="Custom Provider",
            storage_method=StorageMethod.HYBRID,
            min_length=5,
            category="custom",
        ),
    }
)

_ALIASES = {"z-ai": "zai"}


def normalize_provider_id(provider: str) -> str:
    """Lowercase a provider id and resolve known aliases."""
    key = provider.strip().lower()
    return _ALIASES.get(key, key)


def get_provider(provider: str) -> Provider | None:
    """Look up a provider in the registry, or None if it is unknown."""
    return PROVIDERS.get(normalize_provider_id(provider))


def storage_method_for(provider: str) -> StorageMethod:
    """Canonical storage method, defaulting to the settings document."""
    metadata = get_provider(provider)
    return metadata.storage_method if metadata else StorageMethod.SETTINGS


def required_env_vars(provider: str) -> tuple[str, ...]:
    metadata = get_provider(provider)
    return metadata.required_env_vars if metadata else ()


def is_paired(provider: str) -> bool:
    metadata = get_provider(provider)
    return bool(metadata and metadata.is_paired)


def env_var_for(provider: str) -> str:
    """Name of the token variable holding a provider's credential.

    Paired providers use the Anthropic-compatible auth token variable;
    everything else follows the ``<ID>_API_KEY`` convention.

    Example:
        >>> env_var_for("zai")
        'ANTHROPIC_AUTH_TOKEN'
        >>> env_var_for("openai")
        'OPENAI_API_KEY'
    """
    if is_paired(provider):
        return AUTH_TOKEN_VAR
    key = normalize_provider_id(provider).upper().replace("-", "_")
    return f"{key}_API_KEY"


def display_name(provider: str) -> str:
    metadata = get_provider(provider)
    return metadata.display_name if metadata else provider
