"""
Credential migration from the settings document to the environment.

Older installations kept every provider's credential encrypted in the
settings document. Providers such as Z.ai are now read from environment
variables (a base URL paired with an auth token), so their legacy copy has
to be moved. The engine runs that move as a sequence of steps, each of
which either completes or leaves the system in the previous state:

1. Detect: is the target store already satisfied? If it is and a legacy
   copy remains, only the backup and cleanup steps run
2. Backup: snapshot the legacy secret and related settings
3. Transfer: write the credential to the target store
4. Verify: re-validate the target store, optionally check the endpoint
5. Cleanup: remove the legacy copy, only after explicit confirmation

Failures never raise out of :meth:`MigrationEngine.migrate`; they are
reported on the MigrationResult together with the backup, if one was taken.

Example:
    >>> engine = MigrationEngine(router, document, FileBackupSink(backup_dir))
    >>> result = await engine.migrate("zai", confirm_cleanup=True)
    >>> result.state
    <MigrationState.CLEANED_UP: 'cleaned_up'>
"""

from __future__ import annotations

import copy
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Protocol

import structlog

from keyshift.credentials.router import StrategyRouter
from keyshift.credentials.settings_document import ConfigScope, SettingsDocument
from keyshift.exceptions import KeyshiftError, MigrationStepError
from keyshift.migration.backup import BackupSink
from keyshift.migration.connectivity import ConnectivityCheck
from keyshift.migration.models import (
    MigrationBackup,
    MigrationDetection,
    MigrationResult,
    MigrationState,
    MigrationStatus,
    MigrationStep,
)
from keyshift.providers import StorageMethod, get_provider, is_paired, normalize_provider_id

log = structlog.get_logger(__name__)

# Settings captured alongside the legacy secret.
DEFAULT_BACKUP_KEYS = (
    "defaultModel",
    "showStatusBar",
    "reloadBehavior",
    "debugMode",
    "availableModels",
)


class MigrationPrompts(Protocol):
    """Interactive input for a migration run.

    Any method may return None to cancel the run.
    """

    def ask_secret(self, provider: str) -> str | None:
        """Ask for the credential when the legacy store holds none."""
        ...

    def ask_base_url(self, provider: str, default: str | None) -> str | None:
        """Ask for the endpoint of a paired provider."""
        ...

    def confirm_cleanup(self, provider: str) -> bool:
        """Ask whether the legacy credential may be removed."""
        ...


class MigrationEngine:
    """Move a provider's credential from one store to another.

    Only one run per provider may be in flight at a time; a second
    concurrent run is refused with a failed result.
    """

    def __init__(
        self,
        router: StrategyRouter,
        document: SettingsDocument,
        backup_sink: BackupSink,
        default_base_url: str | None = None,
        connectivity_check: ConnectivityCheck | None = None,
        backup_keys: Sequence[str] = DEFAULT_BACKUP_KEYS,
        source_method: StorageMethod = StorageMethod.SETTINGS,
        target_method: StorageMethod = StorageMethod.ENVIRONMENT,
    ) -> None:
        """Initialize the engine.

        Args:
            router: Router giving pinned access to both stores
            document: Settings document the backup snapshot is read from
            backup_sink: Where backups are persisted
            default_base_url: Endpoint for paired providers when none is given
            connectivity_check: Optional endpoint check run during verify
            backup_keys: Settings keys captured in every backup
            source_method: Store holding the legacy credential
            target_method: Store the credential is moved to
        """
        self.router = router
        self.document = document
        self.backup_sink = backup_sink
        self.default_base_url = default_base_url
        self.connectivity_check = connectivity_check
        self.backup_keys = tuple(backup_keys)
        self.source_method = source_method
        self.target_method = target_method
        self._in_flight: set[str] = set()

    def expected_base_url(self, provider: str, base_url: str | None = None) -> str | None:
        """Base URL the target store must carry, or None for unpaired providers."""
        if not is_paired(provider):
            return None
        if base_url:
            return base_url
        if self.default_base_url:
            return self.default_base_url
        metadata = get_provider(provider)
        return metadata.base_url if metadata else None

    def detect(self, provider: str, base_url: str | None = None) -> MigrationDetection:
        """Decide whether a provider needs migrating.

        The target store is checked against the exact expected base URL, so
        an environment pointing somewhere else still needs migration.

        Raises:
            StorageError: If the legacy store cannot be read
        """
        provider = normalize_provider_id(provider)
        expected = self.expected_base_url(provider, base_url)
        target_result = self.router.validate_in(self.target_method, provider, expected_base_url=expected)
        legacy = self.router.get_from(self.source_method, provider)

        state = MigrationState.NOT_NEEDED if target_result.is_valid else MigrationState.DETECTED
        log.debug(
            "migration_detected",
            provider=provider,
            state=state.value,
            legacy_found=legacy is not None,
        )
        return MigrationDetection(
            provider=provider,
            state=state,
            legacy_found=legacy is not None,
            target_result=target_result,
            expected_base_url=expected,
            legacy_secret=legacy,
        )

    def status(self, provider: str, base_url: str | None = None) -> MigrationStatus:
        """Report where a provider's credential lives. Never raises."""
        provider = normalize_provider_id(provider)
        expected = self.expected_base_url(provider, base_url)
        target_result = self.router.validate_in(self.target_method, provider, expected_base_url=expected)

        issues = list(target_result.issues)
        try:
            has_legacy = self.router.get_from(self.source_method, provider) is not None
        except KeyshiftError as e:
            has_legacy = False
            issues.append(f"Cannot read {self.source_method.value} storage: {e.message}")

        has_target = target_result.is_valid
        return MigrationStatus(
            provider=provider,
            has_legacy_credential=has_legacy,
            has_target_configuration=has_target,
            migration_needed=has_legacy and not has_target,
            migration_completed=has_target and not has_legacy,
            issues=issues,
        )

    async def migrate(
        self,
        provider: str,
        prompts: MigrationPrompts | None = None,
        *,
        base_url: str | None = None,
        confirm_cleanup: bool | None = None,
    ) -> MigrationResult:
        """Run a migration for one provider.

        Args:
            provider: Provider identifier
            prompts: Interactive input; without it the legacy secret must exist
            base_url: Endpoint to configure; skips the base URL prompt
            confirm_cleanup: Pre-answered cleanup confirmation; asks the
                prompts when None, and skips cleanup if there are none

        Returns:
            Result describing the final state, the failing step and the backup
        """
        provider = normalize_provider_id(provider)
        if provider in self._in_flight:
            log.warning("migration_already_running", provider=provider)
            return MigrationResult(
                success=False,
                provider=provider,
                state=MigrationState.FAILED,
                error=f"A migration for {provider} is already in progress",
            )

        self._in_flight.add(provider)
        try:
            return await self._run(provider, prompts, base_url, confirm_cleanup)
        finally:
            self._in_flight.discard(provider)

    async def restore(self, backup: MigrationBackup, remove_target: bool = False) -> None:
        """Put a backup's secret and settings back in place.

        Each captured copy of the secret goes back to the tier it was read
        from. Backups without per-tier copies restore to the global tier.

        Args:
            backup: Backup to restore
            remove_target: Also remove the credential from the target store

        Raises:
            ValidationError: If the captured secret fails current format rules
            StorageError: If a store or the settings document cannot be written
        """
        provider = normalize_provider_id(backup.provider)
        if backup.captured_secrets:
            for scope, secret in backup.captured_secrets.items():
                self.router.set_in(self.source_method, provider, secret, scope)
        elif backup.captured_secret is not None:
            self.router.set_in(self.source_method, provider, backup.captured_secret, ConfigScope.GLOBAL)

        for key, value in backup.settings_snapshot.items():
            self.document.update(key, copy.deepcopy(value), ConfigScope.GLOBAL)

        if remove_target:
            self.router.remove_from(self.target_method, provider)

        log.info(
            "migration_backup_restored",
            provider=provider,
            timestamp=backup.timestamp,
            removed_target=remove_target,
        )

    async def list_backups(self) -> list[MigrationBackup]:
        return await self.backup_sink.list_all()

    async def load_backup(self, timestamp: str) -> MigrationBackup | None:
        return await self.backup_sink.load(timestamp)

    async def _run(
        self,
        provider: str,
        prompts: MigrationPrompts | None,
        base_url: str | None,
        confirm_cleanup: bool | None,
    ) -> MigrationResult:
        try:
            detection = self.detect(provider, base_url)
        except KeyshiftError as e:
            log.error("migration_detection_failed", provider=provider, error=e.message)
            return MigrationResult(success=False, provider=provider, state=MigrationState.FAILED, error=e.message)

        if not detection.needed:
            if not detection.legacy_found:
                log.info("migration_not_needed", provider=provider)
                return MigrationResult(success=True, provider=provider, state=MigrationState.NOT_NEEDED)

            # Target already satisfied; only the legacy copy is left to remove
            if not self._cleanup_confirmed(provider, prompts, confirm_cleanup):
                log.info("migration_cleanup_declined", provider=provider)
                return MigrationResult(success=True, provider=provider, state=MigrationState.VERIFIED)
            try:
                leftover = await self._backup(provider, detection.legacy_secret)
            except MigrationStepError as e:
                return self._failed(provider, e, None)
            return self._finish(provider, leftover)

        expected = detection.expected_base_url
        if base_url is None and prompts is not None and is_paired(provider):
            answer = prompts.ask_base_url(provider, expected)
            if answer is None:
                return self._cancelled(provider)
            expected = answer.strip() or expected

        secret = detection.legacy_secret
        if secret is None:
            if prompts is None:
                return MigrationResult(
                    success=False,
                    provider=provider,
                    state=MigrationState.DETECTED,
                    error=f"No legacy credential found for {provider} and no way to ask for one",
                )
            secret = prompts.ask_secret(provider)
            if secret is None:
                return self._cancelled(provider)

        log.info("migration_started", provider=provider, legacy_found=detection.legacy_found)
        backup: MigrationBackup | None = None
        try:
            backup = await self._backup(provider, detection.legacy_secret)
            self._transfer(provider, secret, expected)
            await self._verify(provider, secret, expected)
        except MigrationStepError as e:
            return self._failed(provider, e, backup)

        if not self._cleanup_confirmed(provider, prompts, confirm_cleanup):
            log.info("migration_cleanup_declined", provider=provider)
            return MigrationResult(
                success=True,
                provider=provider,
                state=MigrationState.VERIFIED,
                backup=backup,
            )

        return self._finish(provider, backup)

    @staticmethod
    def _cleanup_confirmed(provider: str, prompts: MigrationPrompts | None, confirm_cleanup: bool | None) -> bool:
        if confirm_cleanup is not None:
            return confirm_cleanup
        return prompts.confirm_cleanup(provider) if prompts is not None else False

    def _finish(self, provider: str, backup: MigrationBackup | None) -> MigrationResult:
        try:
            self._cleanup(provider)
        except MigrationStepError as e:
            return self._failed(provider, e, backup)

        log.info("migration_completed", provider=provider)
        return MigrationResult(
            success=True,
            provider=provider,
            state=MigrationState.CLEANED_UP,
            backup=backup,
            cleanup_performed=True,
        )

    async def _backup(self, provider: str, legacy_secret: str | None) -> MigrationBackup:
        try:
            captured = self.router.get_scoped_from(self.source_method, provider)
            snapshot = {key: copy.deepcopy(self.document.get(key)) for key in self.backup_keys}
            backup = MigrationBackup(
                timestamp=datetime.now(UTC).isoformat(),
                provider=provider,
                captured_secret=legacy_secret,
                captured_secrets=captured,
                settings_snapshot=snapshot,
            )
            await self.backup_sink.save(backup)
        except Exception as e:
            raise MigrationStepError(
                f"Backup failed: {e}",
                step=MigrationStep.BACKUP.value,
                provider=provider,
            ) from e
        return backup

    def _transfer(self, provider: str, secret: str, base_url: str | None) -> None:
        try:
            self.router.set_in(self.target_method, provider, secret, base_url=base_url)
        except Exception as e:
            raise MigrationStepError(
                f"Transfer failed: {e}",
                step=MigrationStep.TRANSFER.value,
                provider=provider,
                suggestion="The legacy credential was left in place; retry or restore the backup",
            ) from e
        log.debug("migration_transferred", provider=provider, target=self.target_method.value)

    async def _verify(self, provider: str, secret: str, base_url: str | None) -> None:
        result = self.router.validate_in(self.target_method, provider, expected_base_url=base_url)
        if not result.is_valid:
            raise MigrationStepError(
                "Verification failed: " + "; ".join(result.issues),
                step=MigrationStep.VERIFY.value,
                provider=provider,
            )

        try:
            stored = self.router.get_from(self.target_method, provider)
        except KeyshiftError as e:
            raise MigrationStepError(
                f"Verification failed: {e.message}",
                step=MigrationStep.VERIFY.value,
                provider=provider,
            ) from e
        if stored != secret:
            raise MigrationStepError(
                f"Verification failed: {self.target_method.value} storage does not hold the migrated credential",
                step=MigrationStep.VERIFY.value,
                provider=provider,
            )

        if self.connectivity_check is None:
            return

        metadata = get_provider(provider)
        endpoint = base_url or (metadata.base_url if metadata else None)
        if endpoint is None:
            log.debug("connectivity_check_skipped", provider=provider)
            return

        try:
            outcome = await self.connectivity_check(endpoint, secret)
        except Exception as e:
            raise MigrationStepError(
                f"Connectivity check failed: {e}",
                step=MigrationStep.VERIFY.value,
                provider=provider,
            ) from e
        if not outcome.ok:
            raise MigrationStepError(
                f"Connectivity check failed: {outcome.message}",
                step=MigrationStep.VERIFY.value,
                provider=provider,
            )

    def _cleanup(self, provider: str) -> None:
        try:
            for scope in ConfigScope:
                self.router.remove_from(self.source_method, provider, scope)
            remaining = self.router.get_from(self.source_method, provider)
        except Exception as e:
            raise MigrationStepError(
                f"Cleanup failed: {e}",
                step=MigrationStep.CLEANUP.value,
                provider=provider,
            ) from e
        if remaining is not None:
            raise MigrationStepError(
                f"Cleanup failed: legacy credential still present in {self.source_method.value} storage",
                step=MigrationStep.CLEANUP.value,
                provider=provider,
            )

    @staticmethod
    def _failed(provider: str, error: MigrationStepError, backup: MigrationBackup | None) -> MigrationResult:
        log.error("migration_step_failed", provider=provider, step=error.step, error=error.message)
        return MigrationResult(
            success=False,
            provider=provider,
            state=MigrationState.FAILED,
            step=MigrationStep(error.step),
            error=error.message,
            backup=backup,
        )

    @staticmethod
    def _cancelled(provider: str) -> MigrationResult:
        log.info("migration_cancelled", provider=provider)
        return MigrationResult(
            success=False,
            provider=provider,
            state=MigrationState.DETECTED,
            cancelled=True,
        )
