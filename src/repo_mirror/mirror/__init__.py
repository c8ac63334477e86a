"""Cache-coherent mirroring of remote directory listings and highlighted source files."""

from __future__ import annotations

from typing import TYPE_CHECKING

from repo_mirror.mirror.errors import ConfigError, FetchError, MirrorError, RenderError, StorageError
from repo_mirror.mirror.models import (
    Breadcrumb,
    CacheEntry,
    HighlightRequest,
    NodeKind,
    RepositorySpec,
    TreeNode,
    ViewRequest,
)

if TYPE_CHECKING:
    from repo_mirror.mirror.fetcher import RemoteFetcher
    from repo_mirror.mirror.view import RepositoryView

__all__ = [
    "Breadcrumb",
    "CacheEntry",
    "ConfigError",
    "FetchError",
    "HighlightRequest",
    "MirrorError",
    "NodeKind",
    "RemoteFetcher",
    "RenderError",
    "RepositorySpec",
    "RepositoryView",
    "StorageError",
    "TreeNode",
    "ViewRequest",
]


def __getattr__(name: str):
    if name == "RemoteFetcher":
        from repo_mirror.mirror.fetcher import RemoteFetcher as _RemoteFetcher

        return _RemoteFetcher
    if name == "RepositoryView":
        from repo_mirror.mirror.view import RepositoryView as _RepositoryView

        return _RepositoryView
    raise AttributeError(name)
