"""Settings dataclasses and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from cryptography.fernet import Fernet, InvalidToken

from ..ai.ai_types import DEFAULT_ANSWER_MODEL, AgentConfig
from ..ai.client import ClientSettings

__all__ = [
    "Settings",
    "SettingsStore",
    "SecretVault",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".repochat"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "REPOCHAT_API_KEY": "api_key",
    "REPOCHAT_BASE_URL": "base_url",
    "REPOCHAT_MODEL": "model",
    "REPOCHAT_ORGANIZATION": "organization",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "REPOCHAT_DEBUG_LOGGING": "debug_logging",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "REPOCHAT_REQUEST_TIMEOUT": "request_timeout",
    "REPOCHAT_STEP_TIMEOUT": "step_timeout",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "REPOCHAT_MAX_RETRIES": "max_retries",
    "REPOCHAT_HISTORY_WINDOW": "history_window",
    "REPOCHAT_HEADROOM": "headroom",
    "REPOCHAT_MAX_CONTEXT_TOKENS": "max_context_tokens",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_API_KEY_FIELD = "api_key_ciphertext"


@dataclass(slots=True)
class Settings:
    """Process settings for the agent and its model client."""

    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = DEFAULT_ANSWER_MODEL
    organization: str | None = None
    request_timeout: float = 90.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    history_window: int = 3
    headroom: int = 2_048
    max_context_tokens: int | None = None
    channel_capacity: int = 16
    step_timeout: float | None = None
    default_headers: dict[str, str] = field(default_factory=dict)
    debug_logging: bool = False

    def client_settings(self) -> ClientSettings:
        return ClientSettings(
            base_url=self.base_url,
            api_key=self.api_key,
            model=self.model,
            organization=self.organization,
            request_timeout=self.request_timeout,
            max_retries=self.max_retries,
            retry_min_seconds=self.retry_min_seconds,
            retry_max_seconds=self.retry_max_seconds,
            default_headers=dict(self.default_headers) or None,
            debug_logging=self.debug_logging,
        )

    def agent_config(self) -> AgentConfig:
        return AgentConfig(
            answer_model=self.model,
            history_window=self.history_window,
            headroom=self.headroom,
            max_context_tokens=self.max_context_tokens,
            channel_capacity=self.channel_capacity,
        ).clamp()


class SecretVault:
    """Encrypts the API key with a symmetric Fernet key stored next to the settings."""

    name = "fernet"

    def __init__(self, key_path: Path | None = None) -> None:
        self._key_path = key_path or (_SETTINGS_DIR / "settings.key")
        self._fernet: Fernet | None = None

    def encrypt(self, secret: str) -> str:
        if not secret:
            return ""
        token = self._get_fernet().encrypt(secret.encode("utf-8"))
        return f"{self.name}:{token.decode('ascii')}"

    def decrypt(self, token: str | None) -> str:
        if not token:
            return ""
        prefix, _, payload = token.partition(":")
        if prefix != self.name or not payload:
            raise ValueError(f"Unknown secret token prefix {prefix!r}")
        try:
            return self._get_fernet().decrypt(payload.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Invalid Fernet token") from exc

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(self._load_or_create_key())
        return self._fernet

    def _load_or_create_key(self) -> bytes:
        path = self._key_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            return path.read_bytes().strip()
        key = Fernet.generate_key()
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_bytes(key)
        if os.name != "nt":  # pragma: no cover - depends on OS
            os.chmod(tmp_path, 0o600)
        tmp_path.replace(path)
        return key


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH
        self._vault = vault or SecretVault(self._path.with_suffix(".key"))

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying explicit and environment overrides."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            try:
                api_key = self._vault.decrypt(payload.pop(_API_KEY_FIELD, None))
            except ValueError as exc:
                LOGGER.warning("Stored API key could not be decrypted: %s", exc)
                api_key = ""
            data = _filter_fields(payload)
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
            if api_key:
                settings = replace(settings, api_key=api_key)
            LOGGER.debug("Settings loaded from %s (api key %s)", self._path, redact_secret(settings.api_key) or "unset")

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="runtime")

        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        data = asdict(settings)
        api_key = data.pop("api_key", "") or ""
        ciphertext = self._vault.encrypt(api_key)
        if ciphertext:
            data[_API_KEY_FIELD] = ciphertext
        data["version"] = _SETTINGS_VERSION
        body = json.dumps(data, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            return json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str,
    ) -> Settings:
        allowed = {item.name for item in fields(Settings)}
        filtered = {key: value for key, value in overrides.items() if key in allowed and value is not None}
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid integer", env_name, value)
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {item.name for item in fields(Settings)} - {"api_key"}
    return {key: value for key, value in payload.items() if key in allowed}


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"
