from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

FetchErrorKind = Literal["timeout", "http_status", "network", "too_large"]
RenderErrorKind = Literal["fetch_failed", "highlighter_failure"]


class MirrorError(Exception):
    """Base class for repository mirroring failures."""


class FetchError(MirrorError):
    def __init__(self, kind: FetchErrorKind, url: str, *, status: Optional[int] = None) -> None:
        self.kind = kind
        self.url = url
        self.status = status
        detail = f" status={status}" if status is not None else ""
        super().__init__(f"Remote fetch failed. kind={kind} url={url}{detail}")


class StorageError(MirrorError):
    """Cache storage I/O failed; callers treat the cache as unavailable."""

    def __init__(self, key: str, path: Path) -> None:
        self.key = key
        self.path = path
        super().__init__(f"Cache storage failed. key={key} path={path}")


class RenderError(MirrorError):
    def __init__(self, kind: RenderErrorKind, url: str) -> None:
        self.kind = kind
        self.url = url
        super().__init__(f"Rendering failed. kind={kind} url={url}")


class ConfigError(MirrorError):
    """Invalid refresh token. Recovered by falling back to the default interval."""

    def __init__(self, token: str) -> None:
        self.token = token
        super().__init__(f"Invalid refresh token: {token!r}")


__all__ = [
    "ConfigError",
    "FetchError",
    "FetchErrorKind",
    "MirrorError",
    "RenderError",
    "RenderErrorKind",
    "StorageError",
]
