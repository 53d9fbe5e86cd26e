"""Credential-related exceptions.

This module re-exports credential exceptions from keyshift.exceptions so
store code can import everything it raises from one place.
"""

from keyshift.exceptions import (
    CredentialError,
    EncryptionError,
    MigrationStepError,
    StorageError,
    ValidationError,
)

__all__ = [
    "CredentialError",
    "ValidationError",
    "StorageError",
    "EncryptionError",
    "MigrationStepError",
]
