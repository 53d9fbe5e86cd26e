"""Data models of a credential migration run.

A run moves through these states::

    DETECTED -> BACKED_UP -> TRANSFERRED -> VERIFIED -> CLEANED_UP

or stops at NOT_NEEDED when the target store already satisfies the
provider's requirements. Any failing step ends the run in FAILED with the
step recorded on the result. Only the MigrationBackup outlives the run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from keyshift.credentials.models import ValidationResult
from keyshift.credentials.settings_document import ConfigScope


class MigrationState(str, Enum):
    """Lifecycle state of a migration run."""

    NOT_NEEDED = "not_needed"
    """Target store satisfies the provider and no legacy copy remains; nothing was done."""

    DETECTED = "detected"
    """Target store does not satisfy the provider; migration can proceed."""

    BACKED_UP = "backed_up"
    """A MigrationBackup was captured and saved."""

    TRANSFERRED = "transferred"
    """The credential was written to the target store."""

    VERIFIED = "verified"
    """The target store passed validation and connectivity checks."""

    CLEANED_UP = "cleaned_up"
    """The legacy credential was removed from the source store."""

    FAILED = "failed"
    """A step failed; see MigrationResult.step."""


class MigrationStep(str, Enum):
    """Step of a migration run that can fail."""

    BACKUP = "backup"
    TRANSFER = "transfer"
    VERIFY = "verify"
    CLEANUP = "cleanup"


class MigrationBackup(BaseModel):
    """Immutable point-in-time capture taken before any destructive step.

    Attributes:
        timestamp: ISO-8601 capture time; doubles as the backup's key
        provider: Provider being migrated
        captured_secret: Effective legacy credential, if the source held one
        captured_secrets: Every tier's legacy copy, keyed by the tier it was
            read from; restore writes each copy back to its own tier
        settings_snapshot: Related settings values at capture time
    """

    model_config = ConfigDict(frozen=True)

    timestamp: str
    provider: str
    captured_secret: str | None = Field(default=None, repr=False)
    captured_secrets: dict[ConfigScope, str] = Field(default_factory=dict, repr=False)
    settings_snapshot: dict[str, Any] = Field(default_factory=dict)


@dataclass
class MigrationDetection:
    """Outcome of checking whether a provider needs migrating."""

    provider: str
    state: MigrationState
    legacy_found: bool
    target_result: ValidationResult
    expected_base_url: str | None = None
    legacy_secret: str | None = field(default=None, repr=False)

    @property
    def needed(self) -> bool:
        return self.state is MigrationState.DETECTED


@dataclass
class MigrationResult:
    """Structured report of a migration run.

    Failures are reported here instead of raised so the caller keeps the
    backup reference and can offer a retry or a restore.
    """

    success: bool
    provider: str
    state: MigrationState
    step: MigrationStep | None = None
    error: str | None = None
    backup: MigrationBackup | None = None
    cleanup_performed: bool = False
    cancelled: bool = False


@dataclass
class MigrationStatus:
    """Where a provider's credential currently lives."""

    provider: str
    has_legacy_credential: bool
    has_target_configuration: bool
    migration_needed: bool
    migration_completed: bool
    issues: list[str] = field(default_factory=list)
