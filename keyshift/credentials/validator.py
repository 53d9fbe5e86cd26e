"""Format rules that gate every credential write.

The validator is a pure function of its inputs: it holds no state, performs
no I/O and never raises. Rules are looked up from the provider registry so
adding a provider with a prefix or a minimum length needs no code change.
"""

from __future__ import annotations

from typing import Any

from pydantic import HttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from keyshift.credentials.models import ValidationResult
from keyshift.providers import get_provider, normalize_provider_id

MAX_SECRET_LENGTH = 500
UNKNOWN_PROVIDER_MIN_LENGTH = 5

_HTTP_URL = TypeAdapter(HttpUrl)


class CredentialValidator:
    """Validate secrets and paired base URLs per provider.

    Example:
        >>> validator = CredentialValidator()
        >>> validator.validate("zai", "short").issues
        ['Z.ai API key appears too short']
        >>> validator.validate("anthropic", "sk-ant-" + "x" * 20).is_valid
        True
    """

    def validate(self, provider: str, secret: Any, base_url: str | None = None) -> ValidationResult:
        """Validate a secret (and optional paired base URL) for a provider.

        Args:
            provider: Provider identifier
            secret: Candidate secret; anything but a non-blank string is invalid
            base_url: Paired base URL, checked for providers that store one

        Returns:
            ValidationResult with fatal issues and advisory warnings
        """
        result = ValidationResult()

        if not isinstance(secret, str) or not secret.strip():
            result.add_issue("API key cannot be empty")
            return result

        if len(secret) > MAX_SECRET_LENGTH:
            result.add_issue("API key is too long")

        if secret != secret.strip():
            result.add_warning("API key has leading or trailing whitespace")

        metadata = get_provider(provider)
        if metadata is None:
            if len(secret) < UNKNOWN_PROVIDER_MIN_LENGTH:
                result.add_issue("API key appears too short")
            return result

        if metadata.key_prefix and not secret.startswith(metadata.key_prefix):
            result.add_issue(f'{metadata.display_name} API keys must start with "{metadata.key_prefix}"')

        if len(secret) < metadata.min_length:
            result.add_issue(f"{metadata.display_name} API key appears too short")

        if normalize_provider_id(provider) == "zai" and not secret.startswith("zai"):
            result.add_warning("Z.ai API keys usually start with 'zai'")

        if metadata.is_paired and base_url is not None:
            result.merge(self.validate_base_url(base_url, expected_host=metadata.expected_host))

        return result

    def validate_base_url(self, base_url: Any, expected_host: str | None = None) -> ValidationResult:
        """Check that a base URL is a well-formed absolute HTTP(S) URL.

        Args:
            base_url: Candidate URL
            expected_host: Host suffix the URL should point at; a mismatch
                is reported as a warning, not an issue

        Returns:
            ValidationResult for the URL alone
        """
        result = ValidationResult()

        if not isinstance(base_url, str) or not base_url.strip():
            result.add_issue("Base URL cannot be empty")
            return result

        try:
            url = _HTTP_URL.validate_python(base_url)
        except PydanticValidationError:
            result.add_issue(f"Base URL {base_url!r} is not a valid absolute HTTP(S) URL")
            return result

        if url.scheme == "http":
            result.add_warning("Base URL uses HTTP instead of HTTPS")

        host = (url.host or "").lower()
        if expected_host and host != expected_host and not host.endswith(f".{expected_host}"):
            result.add_warning(f"Base URL host {host!r} does not point at {expected_host}")

        return result
