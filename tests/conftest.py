"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest
import structlog

from keyshift.credentials import (
    CredentialCipher,
    CredentialValidator,
    EnvironmentBackedStore,
    JsonSettingsDocument,
    MappingEnvironment,
    SettingsBackedStore,
    StrategyRouter,
)
from keyshift.providers import DEFAULT_ZAI_BASE_URL


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """Fake clock starting at t=1000s."""
    return FakeClock()


@pytest.fixture
def environment() -> MappingEnvironment:
    """Empty in-memory environment table."""
    return MappingEnvironment()


@pytest.fixture
def validator() -> CredentialValidator:
    return CredentialValidator()


@pytest.fixture
def cipher() -> CredentialCipher:
    """Cipher with a throwaway random key."""
    return CredentialCipher.generate()


@pytest.fixture
def document(tmp_path: Path) -> JsonSettingsDocument:
    """JSON settings document with global and workspace tiers under tmp_path."""
    return JsonSettingsDocument(
        tmp_path / "global" / "settings.json",
        tmp_path / "workspace" / ".keyshift" / "settings.json",
    )


@pytest.fixture
def settings_store(document, cipher, validator) -> SettingsBackedStore:
    return SettingsBackedStore(document, cipher, validator)


@pytest.fixture
def environment_store(environment, validator, clock, document) -> EnvironmentBackedStore:
    return EnvironmentBackedStore(
        environment,
        validator,
        default_base_url=DEFAULT_ZAI_BASE_URL,
        clock=clock,
        metadata_document=document,
    )


@pytest.fixture
def router(settings_store, environment_store, validator) -> StrategyRouter:
    return StrategyRouter([settings_store, environment_store], validator)


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo any structlog configuration a test applied."""
    yield
    structlog.reset_defaults()
