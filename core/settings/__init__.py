"""Settings management."""
from .settings_manager import DEFAULT_SETTINGS, SettingsManager

__all__ = ['DEFAULT_SETTINGS', 'SettingsManager']
