"""Custom exception hierarchy for keyshift.

This module defines a structured exception hierarchy that lets callers tell
a rejected secret apart from a broken storage backend, and both apart from a
failed migration step.

Exception Hierarchy:
    KeyshiftError (base)
    ├── ConfigurationError
    └── CredentialError
        ├── ValidationError
        ├── StorageError
        ├── EncryptionError
        └── MigrationStepError

Example Usage:
    >>> from keyshift.exceptions import StorageError
    >>> try:
    ...     document.update("apiKeys", keys, ConfigScope.GLOBAL)
    ... except OSError as e:
    ...     raise StorageError("Cannot write settings", operation="set API key") from e
"""

from __future__ import annotations

from collections.abc import Sequence


class KeyshiftError(Exception):
    """Base exception for all keyshift errors.

    All custom exceptions inherit from this base class, allowing callers to
    catch every keyshift-specific error with a single except clause.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        """Initialize exception.

        Args:
            message: Error message
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(KeyshiftError):
    """Configuration-related errors.

    Raised when the settings file is invalid or missing, or when the
    credential context cannot be assembled from it.
    """

    pass


class CredentialError(KeyshiftError):
    """Credential-related errors.

    This is the base class for credential-specific errors. Subclasses:
    - ValidationError: Secret or paired value fails format rules
    - StorageError: Settings document or environment read/write failed
    - EncryptionError: Encryption/decryption failed
    - MigrationStepError: A migration step failed

    Attributes:
        message: Human-readable error description
        provider: Provider the failing operation was acting on
        suggestion: Optional suggestion for resolution
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        suggestion: str | None = None,
    ) -> None:
        """Initialize exception.

        Args:
            message: Error message
            provider: Provider identifier (e.g. "zai")
            suggestion: Optional suggestion for resolution
        """
        self.provider = provider
        self.suggestion = suggestion

        full_message = message
        if provider:
            full_message = f"{message} (provider: {provider})"
        if suggestion:
            full_message = f"{full_message}\nSuggestion: {suggestion}"

        super().__init__(full_message)
        # Preserve original message (super sets self.message to full_message)
        self.message = message


class ValidationError(CredentialError):
    """Secret or paired value failed format rules.

    Never destructive: nothing has been written when this is raised, so the
    caller should simply re-prompt.

    Attributes:
        issues: The individual fatal issues reported by the validator
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        issues: Sequence[str] = (),
        suggestion: str | None = None,
    ) -> None:
        self.issues = list(issues)
        super().__init__(message, provider=provider, suggestion=suggestion)


class StorageError(CredentialError):
    """Underlying read/write to the settings document or environment failed.

    Attributes:
        operation: Operation that failed (e.g. "set API key")
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        operation: str | None = None,
        suggestion: str | None = None,
    ) -> None:
        self.operation = operation
        super().__init__(message, provider=provider, suggestion=suggestion)


class EncryptionError(CredentialError):
    """Encryption or decryption operation failed."""

    pass


class MigrationStepError(CredentialError):
    """A migration step failed.

    The system is left in the last successfully completed state; the step
    itself is never partially applied.

    Attributes:
        step: The failing step ("backup", "transfer", "verify", "cleanup")
    """

    def __init__(
        self,
        message: str,
        step: str,
        provider: str | None = None,
        suggestion: str | None = None,
    ) -> None:
        self.step = step
        super().__init__(message, provider=provider, suggestion=suggestion)
