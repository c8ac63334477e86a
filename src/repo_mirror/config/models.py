from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FileRotationSettings(BaseModel):
    """
    Date-based rotation settings (daily).

    This maps cleanly to Python's standard library TimedRotatingFileHandler behavior.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    backup_count: int


class FileLoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str
    rotation: FileRotationSettings


class LoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    level: str
    file: FileLoggingSettings


class CacheSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    # Root directory; listings and highlighted code live in separate subdirectories.
    dir: str


class FetchSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    timeout_seconds: float = Field(default=25.0, gt=0)
    max_bytes: int = Field(default=5_000_000, gt=0)
    user_agent: str = "repo-mirror"


class CrawlSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    max_depth: int = Field(default=64, ge=1)


class HighlightSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    style: str = "default"
    line_numbers: bool = False


class AppConfig(BaseModel):
    """Effective runtime configuration after applying all precedence rules."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    logging: LoggingSettings
    cache: CacheSettings
    fetch: FetchSettings = FetchSettings()
    crawl: CrawlSettings = CrawlSettings()
    highlight: HighlightSettings = HighlightSettings()


@dataclass(frozen=True, slots=True)
class ConfigLoadRequest:
    """
    Optional inputs for a configuration loader.

    Implementations may use these to control where configuration is read from.
    """

    yaml_path: str = "data/config/config.yaml"
    env_prefix: str = "REPO_MIRROR__"
    dotenv_path: Optional[str] = "data/.env"
