from __future__ import annotations

import logging
from dataclasses import dataclass, field

from bs4 import BeautifulSoup

from repo_mirror.mirror.cache_io import decode_listing, encode_listing
from repo_mirror.mirror.cache_store import CacheStore, is_fresh, read_entry, write_entry
from repo_mirror.mirror.errors import FetchError
from repo_mirror.mirror.fetcher import Fetcher
from repo_mirror.mirror.models import NodeKind, RepositorySpec, TreeNode
from repo_mirror.mirror.paths import PATH_SEPARATOR, listing_cache_key

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 64
PARENT_ENTRY = "../"
SELF_ENTRY = "./"


def _is_listing_entry(href: str) -> bool:
    if not href or href in (PARENT_ENTRY, SELF_ENTRY):
        return False
    # Sort links, fragments, absolute paths and off-site links are not directory contents.
    if href.startswith(("?", "#", PATH_SEPARATOR)):
        return False
    return "://" not in href


def parse_listing(html: bytes | str) -> list[str]:
    """
    Extract directory entries from an index page.

    Entries are the hrefs of anchors that open a list item (`<li><a href=...>`),
    returned in document order.
    """
    soup = BeautifulSoup(html, "html.parser")
    entries: list[str] = []
    for item in soup.find_all("li"):
        anchor = item.find(True, recursive=False)
        if anchor is None or anchor.name != "a":
            continue
        href = anchor.get("href")
        if not isinstance(href, str) or not _is_listing_entry(href):
            continue
        entries.append(href)
    return entries


@dataclass(slots=True)
class _CrawlOutcome:
    nodes: list[TreeNode] = field(default_factory=list)
    failed_urls: list[str] = field(default_factory=list)
    root_failed: bool = False


class TreeCrawler:
    def __init__(self, *, fetcher: Fetcher, store: CacheStore, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self._fetcher = fetcher
        self._store = store
        self._max_depth = max_depth

    async def crawl(self, base_url: str, target_path: str) -> list[TreeNode]:
        """Expand the listing at `base_url`, descending only into ancestors of `target_path`."""
        outcome = _CrawlOutcome()
        await self._expand(outcome, base_url=base_url, target_path=target_path, prefix="", depth=1)
        return outcome.nodes

    async def load(self, repo: RepositorySpec, path: str, *, force_purge: bool = False) -> list[TreeNode]:
        """Return the tree for `path`, served from the listing cache while fresh."""
        key = listing_cache_key(repo.base_url, path)
        entry = read_entry(self._store, key)
        cached = decode_listing(entry.payload) if entry is not None else None

        if entry is not None and cached is not None:
            if is_fresh(entry.written_at, repo.refresh_seconds, force_purge=force_purge):
                logger.debug("Listing cache hit. key=%s", key)
                return cached

        outcome = _CrawlOutcome()
        await self._expand(outcome, base_url=repo.base_url, target_path=path, prefix="", depth=1)

        if outcome.root_failed:
            if cached is not None:
                logger.warning("Listing refresh failed, serving stale listing. key=%s", key)
                return cached
            return []

        if outcome.failed_urls:
            # Partial trees are shown but never replace a complete cached listing.
            logger.warning(
                "Listing incomplete, not caching. key=%s failed_urls=%s",
                key,
                outcome.failed_urls,
            )
            return outcome.nodes

        write_entry(self._store, key, encode_listing(outcome.nodes))
        logger.debug("Listing cached. key=%s node_count=%d", key, len(outcome.nodes))
        return outcome.nodes

    async def _expand(
        self,
        outcome: _CrawlOutcome,
        *,
        base_url: str,
        target_path: str,
        prefix: str,
        depth: int,
    ) -> None:
        url = base_url + prefix
        try:
            raw = await self._fetcher.fetch(url)
        except FetchError as e:
            logger.warning("Directory listing unavailable, skipping subtree. url=%s kind=%s", url, e.kind)
            outcome.failed_urls.append(url)
            if depth == 1:
                outcome.root_failed = True
            return

        for entry in parse_listing(raw):
            relative_path = prefix + entry
            kind = NodeKind.DIRECTORY if entry.endswith(PATH_SEPARATOR) else NodeKind.FILE
            expanded = kind is NodeKind.DIRECTORY and target_path.startswith(relative_path)
            if expanded and depth >= self._max_depth:
                logger.warning(
                    "Listing depth cap reached, not expanding. path=%s max_depth=%d",
                    relative_path,
                    self._max_depth,
                )
                expanded = False

            outcome.nodes.append(
                TreeNode(relative_path=relative_path, kind=kind, depth=depth, expanded=expanded)
            )
            if expanded:
                await self._expand(
                    outcome,
                    base_url=base_url,
                    target_path=target_path,
                    prefix=relative_path,
                    depth=depth + 1,
                )
