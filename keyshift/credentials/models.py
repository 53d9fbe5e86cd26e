"""Value types shared by the credential stores, validator and router."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from keyshift.exceptions import ValidationError
from keyshift.providers import StorageMethod


class ValidationStatus(str, Enum):
    """Outcome of the most recent validation of a stored credential."""

    VALID = "valid"
    INVALID = "invalid"
    UNKNOWN = "unknown"


@dataclass
class ValidationResult:
    """Result of validating a secret or a store.

    Issues are fatal and block a write; warnings are advisory.

    Example:
        >>> result = ValidationResult()
        >>> result.add_issue("API key cannot be empty")
        >>> result.is_valid
        False
    """

    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls()

    def add_issue(self, message: str) -> None:
        self.issues.append(message)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def merge(self, other: ValidationResult, prefix: str | None = None) -> ValidationResult:
        """Fold another result into this one, optionally prefixing its messages."""
        label = f"{prefix}: " if prefix else ""
        self.issues.extend(f"{label}{issue}" for issue in other.issues)
        self.warnings.extend(f"{label}{warning}" for warning in other.warnings)
        return self

    def raise_for_issues(self, provider: str | None = None) -> None:
        """Raise ValidationError when the result carries any issue."""
        if self.issues:
            raise ValidationError(
                "; ".join(self.issues),
                provider=provider,
                issues=self.issues,
                suggestion="Re-enter the credential and try again",
            )


@dataclass
class CredentialRecord:
    """Bookkeeping for a credential written through a store in this process.

    Created on the first successful write and updated on every later write
    or removal. The secret itself is not kept here.
    """

    provider: str
    storage_method: StorageMethod
    last_validated: datetime | None = None
    validation_status: ValidationStatus = ValidationStatus.UNKNOWN
    removed: bool = False

    def mark_written(self, result: ValidationResult) -> None:
        self.last_validated = datetime.now(UTC)
        self.validation_status = ValidationStatus.VALID if result.is_valid else ValidationStatus.INVALID
        self.removed = False

    def mark_removed(self) -> None:
        self.removed = True
        self.validation_status = ValidationStatus.UNKNOWN


@dataclass(frozen=True)
class Absent:
    """No credential is stored for the provider."""


@dataclass(frozen=True)
class Present:
    """A credential is stored and readable."""

    value: str


@dataclass(frozen=True)
class Corrupted:
    """A credential is stored but could not be read back."""

    error: Exception


CredentialLookup = Absent | Present | Corrupted


@dataclass(frozen=True)
class ProviderStatus:
    """Configuration status of one provider, as reported to callers."""

    provider: str
    method: StorageMethod
    configured: bool
    message: str


def mask_secret(value: str) -> str:
    """Mask a secret for display, keeping the first and last four characters."""
    if len(value) > 8:
        return value[:4] + "*" * (len(value) - 8) + value[-4:]
    return "*" * len(value)
