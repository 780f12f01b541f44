"""Persistent settings for forgestate.

Settings are stored in ~/.forgestate/settings.json. Each key can also be
overridden for a single run with an environment variable:

    FORGESTATE_LOG_PATH, FORGESTATE_BACKFILL, FORGESTATE_POLL_INTERVAL,
    FORGESTATE_LOG_LEVEL

Lookup order is environment, then the settings file, then DEFAULTS.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

SETTINGS_DIR = Path.home() / ".forgestate"
SETTINGS_FILE = SETTINGS_DIR / "settings.json"

DEFAULTS: dict[str, Any] = {
    "log_path": None,  # None = ./forge-sim.log
    "backfill": True,  # Replay from the last match header when watching starts
    "poll_interval": 1.0,  # Seconds between manual polls in `forgestate watch`
    "log_level": "INFO",  # Console log level for the CLI
}

ENV_PREFIX = "FORGESTATE_"

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}


def env_var(key: str) -> str:
    """Environment variable overriding ``key``, e.g. FORGESTATE_LOG_PATH."""
    return ENV_PREFIX + key.upper()


def _coerce(key: str, raw: str) -> Any:
    """Convert an environment string to the type of the key's default."""
    default = DEFAULTS.get(key)
    if isinstance(default, bool):
        lowered = raw.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        raise ValueError(f"{env_var(key)} must be a boolean, got {raw!r}")
    if isinstance(default, float):
        return float(raw)
    return raw


class Settings:
    """Persistent settings manager.

    Example:
        settings = Settings()
        interval = settings.get("poll_interval")
        settings.set("backfill", False)
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        """Load settings from ``path`` (default ~/.forgestate/settings.json)."""
        self.path = Path(path) if path is not None else SETTINGS_FILE
        self._data: dict[str, Any] = DEFAULTS.copy()
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                loaded = json.load(f)
            if not isinstance(loaded, dict):
                raise ValueError("settings file must contain a JSON object")
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load settings from {self.path}: {e}")
            return

        unknown = sorted(set(loaded) - set(DEFAULTS))
        if unknown:
            logger.warning(f"Ignoring unknown settings: {', '.join(unknown)}")
        # Missing keys keep their defaults
        self._data.update({k: v for k, v in loaded.items() if k in DEFAULTS})
        logger.debug(f"Loaded settings from {self.path}")

    def save(self) -> None:
        """Write the file-backed values (never environment overrides)."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2)
            logger.debug(f"Saved settings to {self.path}")
        except OSError as e:
            logger.warning(f"Failed to save settings: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get a setting value.

        Args:
            key: Setting key
            default: Returned when neither the environment, the file nor
                DEFAULTS has a value for ``key``.

        Returns:
            The effective value. A malformed environment override is logged
            and skipped.
        """
        raw = os.environ.get(env_var(key))
        if raw:
            try:
                return _coerce(key, raw)
            except ValueError as e:
                logger.warning(f"Ignoring {env_var(key)}: {e}")
        value = self._data.get(key)
        return default if value is None else value

    def set(self, key: str, value: Any, save: bool = True) -> None:
        """Set a setting value.

        Raises:
            KeyError: ``key`` is not a known setting.
        """
        if key not in DEFAULTS:
            raise KeyError(f"Unknown setting: {key}")
        self._data[key] = value
        if save:
            self.save()

    def reset(self) -> None:
        """Reset all settings to defaults."""
        self._data = DEFAULTS.copy()
        self.save()


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
