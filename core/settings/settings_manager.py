"""
Settings manager implementation for the prefetch viewer.

Uses QSettings for persistent storage, either the platform store for the
organization/application pair or an explicit INI file. Command line
``--config section.key=value`` overrides are applied on top.
"""
from typing import Any, Callable, Dict, Iterable, List, Optional, Union
import threading
from pathlib import Path
from PySide6.QtCore import QSettings, QObject, Signal
from core.constants import (
    DEFAULT_CACHE_LIMIT,
    DEFAULT_PREFETCH_N,
    DEFAULT_REFILL_INTERVAL_SEC,
    DEFAULT_TIMEOUT_SECONDS,
)
from core.logging.logger import get_logger, is_verbose_logging
from core.logging.tags import TAG_SETTINGS
from engine.errors import ConfigError
from versioning import APP_NAME

logger = get_logger('SettingsManager')

SOURCE_WWW = "www"

DEFAULT_SETTINGS: Dict[str, Any] = {
    'list.source': SOURCE_WWW,
    'list.www_url': '',
    'list.www_cache': '',
    'list.www_cache_limit': DEFAULT_CACHE_LIMIT,
    'list.www_prefetch_n': DEFAULT_PREFETCH_N,
    'list.www_cleanup_cache': True,
    'list.www_timeout': DEFAULT_TIMEOUT_SECONDS,
    'list.www_refill_interval': DEFAULT_REFILL_INTERVAL_SEC,
    'list.no_image_asset': '',
}

_POSITIVE_INT_KEYS = {'list.www_cache_limit', 'list.www_prefetch_n'}
_POSITIVE_FLOAT_KEYS = {'list.www_timeout', 'list.www_refill_interval'}
_BOOL_KEYS = {'list.www_cleanup_cache'}


class SettingsManager(QObject):
    """
    Centralized settings management for the prefetch viewer.

    Thread-safe with change notifications.
    """

    # Signal emitted when settings change
    settings_changed = Signal(str, object)  # key, new_value

    def __init__(self, organization: str = APP_NAME, application: str = APP_NAME,
                 path: Optional[Union[str, Path]] = None):
        """
        Initialize the settings manager.

        Args:
            organization: Organization name for QSettings
            application: Application name for QSettings
            path: Optional INI file used instead of the platform store
        """
        super().__init__()

        if path is not None:
            self._settings = QSettings(str(path), QSettings.Format.IniFormat)
        else:
            self._settings = QSettings(organization, application)
        self._organization = organization
        self._application = application
        self._path = Path(path) if path is not None else None
        self._lock = threading.RLock()
        self._change_handlers: Dict[str, List[Callable]] = {}
        # --config values for this run only; never written to QSettings
        self._overrides: Dict[str, Any] = {}

        self._set_defaults()

        if is_verbose_logging():
            logger.debug("%s Settings snapshot on init: %r", TAG_SETTINGS, self.snapshot())
        logger.info("%s SettingsManager initialized (store=%s)", TAG_SETTINGS, self._path or "native")

    def _set_defaults(self) -> None:
        """Set default values if not already present."""
        with self._lock:
            for key, value in DEFAULT_SETTINGS.items():
                if not self._settings.contains(key):
                    self._settings.setValue(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value.

        Args:
            key: Setting key in dot notation (e.g., 'list.www_url')
            default: Default value if key not found

        Returns:
            Setting value or default
        """
        with self._lock:
            if key in self._overrides:
                return self._overrides[key]
            return self._settings.value(key, default)

    @staticmethod
    def to_bool(value: Any, default: bool = False) -> bool:
        """Normalize a stored setting value to bool.

        Accepts common string forms ("true", "1", "yes", "on") as True and
        ("false", "0", "no", "off") as False. Falls back to the provided
        default when the value cannot be interpreted.
        """
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            v = value.strip().lower()
            if v in ("true", "1", "yes", "on"):
                return True
            if v in ("false", "0", "no", "off"):
                return False
            return default
        if value is None:
            return default
        return bool(value)

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Convenience wrapper around get() that normalizes to bool."""
        return self.to_bool(self.get(key, default), default)

    def get_int(self, key: str, default: int = 0) -> int:
        """Integer setting; INI-backed stores hand back strings."""
        raw = self.get(key, default)
        try:
            return int(raw)
        except (TypeError, ValueError):
            logger.warning("%s Invalid integer for %s: %r, using %r", TAG_SETTINGS, key, raw, default)
            return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        raw = self.get(key, default)
        try:
            return float(raw)
        except (TypeError, ValueError):
            logger.warning("%s Invalid number for %s: %r, using %r", TAG_SETTINGS, key, raw, default)
            return default

    def get_str(self, key: str, default: str = '') -> str:
        raw = self.get(key, default)
        return default if raw is None else str(raw)

    def set(self, key: str, value: Any) -> None:
        """
        Set a setting value.

        Replaces a command line override of the same key.

        Args:
            key: Setting key in dot notation
            value: Value to set
        """
        with self._lock:
            old_value = self.get(key)
            self._overrides.pop(key, None)
            self._settings.setValue(key, value)
            self._notify_locked(key, value, old_value)

        if is_verbose_logging():
            logger.debug("Setting changed: %s: %r -> %r", key, old_value, value)
        else:
            logger.debug("Setting changed: %s", key)

    def apply_overrides(self, overrides: Iterable[str]) -> Dict[str, Any]:
        """
        Apply ``section.key=value`` strings, as passed with ``--config``.

        Values are validated and converted to the type of the key's default.
        Overrides live in memory for this run only: getters see them, but
        they are never written to the settings store, not even by save().

        Returns:
            Mapping of applied keys to their converted values

        Raises:
            ConfigError: Malformed entry, unknown key or invalid value
        """
        parsed: Dict[str, Any] = {}
        for entry in overrides:
            key, sep, raw = str(entry).partition('=')
            key = key.strip()
            if not sep or not key:
                raise ConfigError(f"Invalid config override '{entry}', expected section.key=value")
            parsed[key] = self._convert(key, raw.strip())

        with self._lock:
            for key, value in parsed.items():
                old_value = self.get(key)
                self._overrides[key] = value
                self._notify_locked(key, value, old_value)
        if parsed:
            logger.info("%s Applied %d config overrides: %s", TAG_SETTINGS, len(parsed), sorted(parsed))
        return parsed

    @property
    def overrides(self) -> Dict[str, Any]:
        """Copy of the command line overrides in effect."""
        with self._lock:
            return dict(self._overrides)

    def _notify_locked(self, key: str, value: Any, old_value: Any) -> None:
        self.settings_changed.emit(key, value)
        for handler in self._change_handlers.get(key, []):
            try:
                handler(value, old_value)
            except Exception as e:
                logger.error(f"Error in change handler for {key}: {e}")

    @staticmethod
    def _convert(key: str, raw: str) -> Any:
        if key not in DEFAULT_SETTINGS:
            raise ConfigError(f"Unknown config key '{key}'")
        if key == 'list.source':
            if raw != SOURCE_WWW:
                raise ConfigError(f"Invalid value '{raw}' for {key}: only '{SOURCE_WWW}' is supported")
            return raw
        if key in _POSITIVE_INT_KEYS:
            try:
                num = int(raw)
            except ValueError:
                num = 0
            if num <= 0:
                raise ConfigError(f"Invalid value '{raw}' for {key}: expected a positive integer")
            return num
        if key in _POSITIVE_FLOAT_KEYS:
            try:
                num = float(raw)
            except ValueError:
                num = 0.0
            if num <= 0:
                raise ConfigError(f"Invalid value '{raw}' for {key}: expected a positive number")
            return num
        if key in _BOOL_KEYS:
            lowered = raw.lower()
            if lowered in ("true", "1", "yes", "on"):
                return True
            if lowered in ("false", "0", "no", "off"):
                return False
            raise ConfigError(f"Invalid value '{raw}' for {key}: expected yes/no")
        return raw

    def save(self) -> None:
        """Force save settings to persistent storage."""
        with self._lock:
            self._settings.sync()
        logger.debug("Settings saved")

    def on_changed(self, key: str, handler: Callable[[Any, Any], None]) -> None:
        """
        Register a handler for when a specific setting changes.

        Args:
            key: Setting key to watch
            handler: Callback function(new_value, old_value)
        """
        with self._lock:
            self._change_handlers.setdefault(key, []).append(handler)
        logger.debug(f"Registered change handler for {key}")

    def reset_to_defaults(self) -> None:
        """Reset all settings to default values."""
        with self._lock:
            self._overrides.clear()
            self._settings.clear()
            for key, value in DEFAULT_SETTINGS.items():
                self._settings.setValue(key, value)
            self._settings.sync()
        logger.info("Settings reset to defaults")
        self.settings_changed.emit('*', None)

    def snapshot(self) -> Dict[str, Any]:
        """Current value of every known key."""
        with self._lock:
            return {key: self.get(key, default) for key, default in DEFAULT_SETTINGS.items()}

    def get_all_keys(self) -> List[str]:
        with self._lock:
            return self._settings.allKeys()

    def contains(self, key: str) -> bool:
        with self._lock:
            return self._settings.contains(key)

    def remove(self, key: str) -> None:
        with self._lock:
            self._overrides.pop(key, None)
            self._settings.remove(key)
        logger.debug(f"Removed setting: {key}")

    def clear(self) -> None:
        """Clear all settings (use with caution)."""
        with self._lock:
            self._overrides.clear()
            self._settings.clear()
        logger.warning("All settings cleared")
