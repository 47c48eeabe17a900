"""
Configuration module for controller settings
"""

from .settings import Settings, settings, KubernetesSettings, ControllerSettings, LoggingSettings, APISettings

__all__ = [
    "Settings",
    "settings",
    "KubernetesSettings",
    "ControllerSettings",
    "LoggingSettings",
    "APISettings"
]
