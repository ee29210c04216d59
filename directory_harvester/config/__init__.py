"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository, apply_env_overrides
from .models import (
    BrowserSettings,
    FetchSettings,
    HarvesterConfig,
    PacingSettings,
    ProxySettings,
    ScrapeMode,
    ServerSettings,
)

__all__ = [
    "BrowserSettings",
    "ConfigLocator",
    "ConfigRepository",
    "FetchSettings",
    "HarvesterConfig",
    "PacingSettings",
    "ProxySettings",
    "ScrapeMode",
    "ServerSettings",
    "apply_env_overrides",
]
