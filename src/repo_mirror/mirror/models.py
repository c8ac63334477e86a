from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Mapping, Optional

MIN_REFRESH_SECONDS = 600
DEFAULT_REFRESH_SECONDS = 14400


@dataclass(frozen=True, slots=True)
class RepositorySpec:
    base_url: str
    refresh_seconds: int = DEFAULT_REFRESH_SECONDS
    title: str = ""

    def __post_init__(self) -> None:
        if self.refresh_seconds < MIN_REFRESH_SECONDS:
            raise ValueError(
                f"refresh_seconds must be at least {MIN_REFRESH_SECONDS}, got: {self.refresh_seconds}"
            )

    @property
    def display_title(self) -> str:
        return self.title or self.base_url


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: str
    payload: bytes
    written_at: datetime


class NodeKind(str, Enum):
    FILE = "f"
    DIRECTORY = "d"


@dataclass(frozen=True, slots=True)
class TreeNode:
    relative_path: str
    kind: NodeKind
    depth: int
    expanded: bool = False

    @property
    def is_directory(self) -> bool:
        return self.kind is NodeKind.DIRECTORY

    @property
    def name(self) -> str:
        """Last path segment, without the trailing separator for directories."""
        path = self.relative_path[:-1] if self.is_directory else self.relative_path
        name = path.rsplit("/", 1)[-1]
        return name or path


@dataclass(frozen=True, slots=True)
class HighlightRequest:
    url: str
    language_hint: str


@dataclass(frozen=True, slots=True)
class Breadcrumb:
    label: str
    prefix: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ViewRequest:
    path: str = ""
    purge: bool = False

    @classmethod
    def from_query(cls, params: Mapping[str, str]) -> ViewRequest:
        """Build a request from query parameters; any `purge` value forces a refresh."""
        return cls(path=(params.get("path") or "").strip(), purge="purge" in params)
