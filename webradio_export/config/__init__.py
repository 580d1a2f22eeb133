"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository, resolve_secret
from .models import (
    AutoExportConfig,
    Catalogue,
    ExportInterval,
    ExportProfile,
    FtpProtocol,
    Genre,
    GlobalConfig,
    ImaAdType,
    PlayerApp,
    Station,
    sanitize_timeout,
    slugify_name,
)

__all__ = [
    "AutoExportConfig",
    "Catalogue",
    "ConfigLocator",
    "ConfigRepository",
    "ExportInterval",
    "ExportProfile",
    "FtpProtocol",
    "Genre",
    "GlobalConfig",
    "ImaAdType",
    "PlayerApp",
    "Station",
    "resolve_secret",
    "sanitize_timeout",
    "slugify_name",
]
