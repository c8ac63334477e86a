"""Configuration schema and loading."""

from repo_mirror.config.loader import YamlConfigLoader
from repo_mirror.config.models import (
    AppConfig,
    CacheSettings,
    ConfigLoadRequest,
    CrawlSettings,
    FetchSettings,
    HighlightSettings,
    LoggingSettings,
)

__all__ = [
    "AppConfig",
    "CacheSettings",
    "ConfigLoadRequest",
    "CrawlSettings",
    "FetchSettings",
    "HighlightSettings",
    "LoggingSettings",
    "YamlConfigLoader",
]
