from __future__ import annotations

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Protocol

from repo_mirror.mirror.cache_io import atomic_write_bytes
from repo_mirror.mirror.errors import StorageError
from repo_mirror.mirror.models import CacheEntry
from repo_mirror.mirror.utils import from_timestamp, hash_key, utc_now

logger = logging.getLogger(__name__)

LISTING_NAMESPACE = "listing"
CODE_NAMESPACE = "code"

NAMESPACE_SUFFIXES = {
    LISTING_NAMESPACE: ".repo",
    CODE_NAMESPACE: ".code",
}


def is_fresh(
    written_at: datetime,
    refresh_seconds: int,
    *,
    now: Optional[datetime] = None,
    invalidated_at: Optional[datetime] = None,
    force_purge: bool = False,
) -> bool:
    """
    Decide whether a cached artifact can be served without refetching.

    An entry is fresh when it was written within the refresh window and, if an
    invalidation timestamp is given, after that timestamp. A purge request makes
    every entry stale.
    """
    if force_purge:
        return False
    current = now or utc_now()
    if written_at <= current - timedelta(seconds=refresh_seconds):
        return False
    if invalidated_at is not None and written_at <= invalidated_at:
        return False
    return True


class CacheStore(Protocol):
    def get(self, key: str) -> CacheEntry | None:
        ...

    def put(self, key: str, payload: bytes) -> CacheEntry:
        ...

    def invalidate(self, key: str) -> bool:
        ...


class FileSystemCacheStore:
    """
    Whole-file blobs under `<root>/<namespace>/`, one file per key.

    File names are the SHA-256 of the key plus the namespace suffix; the file's
    modification time is the entry's write timestamp.
    """

    def __init__(self, *, root_dir: str | Path, namespace: str) -> None:
        if namespace not in NAMESPACE_SUFFIXES:
            raise ValueError(f"Unknown cache namespace: {namespace}")
        self._namespace = namespace
        self._dir = Path(root_dir) / namespace
        self._suffix = NAMESPACE_SUFFIXES[namespace]

    @property
    def namespace(self) -> str:
        return self._namespace

    def path_for(self, key: str) -> Path:
        return self._dir / f"{hash_key(key)}{self._suffix}"

    def get(self, key: str) -> CacheEntry | None:
        path = self.path_for(key)
        try:
            stat = path.stat()
            payload = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(key, path) from e
        return CacheEntry(key=key, payload=payload, written_at=from_timestamp(stat.st_mtime))

    def put(self, key: str, payload: bytes) -> CacheEntry:
        path = self.path_for(key)
        try:
            atomic_write_bytes(path, payload)
            written_at = from_timestamp(path.stat().st_mtime)
        except OSError as e:
            raise StorageError(key, path) from e
        logger.debug("Cache entry written. namespace=%s key=%s size=%d", self._namespace, key, len(payload))
        return CacheEntry(key=key, payload=payload, written_at=written_at)

    def invalidate(self, key: str) -> bool:
        path = self.path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(key, path) from e
        logger.debug("Cache entry invalidated. namespace=%s key=%s", self._namespace, key)
        return True


def read_entry(store: CacheStore, key: str) -> CacheEntry | None:
    """Read an entry, degrading storage failures to a miss."""
    try:
        return store.get(key)
    except StorageError as e:
        logger.warning("Cache read failed, treating as miss. key=%s error=%s", key, e.__cause__ or e)
        return None


def write_entry(store: CacheStore, key: str, payload: bytes) -> None:
    """Write an entry, logging and skipping storage failures."""
    try:
        store.put(key, payload)
    except StorageError as e:
        logger.warning("Cache write failed, result not cached. key=%s error=%s", key, e.__cause__ or e)
