"""Configuration models and loading."""

from .loader import ConfigLoader
from .models import ApplicationConfig, LoggingConfig, SSHSettings, VMServiceSettings

__all__ = [
    "ConfigLoader",
    "ApplicationConfig",
    "LoggingConfig",
    "SSHSettings",
    "VMServiceSettings",
]
