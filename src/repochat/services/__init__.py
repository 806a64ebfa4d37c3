"""Service layer helpers (settings, session wiring)."""

from .sessions import SessionFactory
from .settings import SecretVault, Settings, SettingsStore, redact_secret

__all__ = ["SecretVault", "SessionFactory", "Settings", "SettingsStore", "redact_secret"]
