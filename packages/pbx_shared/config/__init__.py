"""Shared configuration models and loading."""

from .loader import load_settings
from .models import (
    DEFAULT_CONFIG_PATH,
    ENV_PREFIX,
    ComponentsSettings,
    LoggingSettings,
    PbxSettings,
    StartupSettings,
    resolve_component_settings,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "ENV_PREFIX",
    "ComponentsSettings",
    "LoggingSettings",
    "PbxSettings",
    "StartupSettings",
    "load_settings",
    "resolve_component_settings",
]
