"""
Configuration for Bookmark Sift.

Application configuration (file based) and user settings (state-store based).
"""

from .configuration import AppConfig, ConfigurationManager
from .settings import SETTINGS_KEY, SettingsManager, SiftSettings

__all__ = [
    "AppConfig",
    "ConfigurationManager",
    "SETTINGS_KEY",
    "SettingsManager",
    "SiftSettings",
]
