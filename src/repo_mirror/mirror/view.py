from __future__ import annotations

import logging
from typing import Optional

from repo_mirror.config.models import AppConfig
from repo_mirror.mirror.cache_store import CODE_NAMESPACE, LISTING_NAMESPACE, FileSystemCacheStore
from repo_mirror.mirror.crawler import TreeCrawler
from repo_mirror.mirror.errors import RenderError
from repo_mirror.mirror.fetcher import Fetcher
from repo_mirror.mirror.highlight import Highlighter, HighlightCache, PygmentsHighlighter
from repo_mirror.mirror.models import RepositorySpec, ViewRequest
from repo_mirror.mirror.paths import breadcrumbs, is_directory_url, is_image_url
from repo_mirror.mirror.rendering import HtmlPageRenderer, PageRenderer, render_tree_html

logger = logging.getLogger(__name__)

HEADER_LEVEL = 5


class RepositoryView:
    """Renders one embedded repository view: a directory tree, an image or a highlighted file."""

    def __init__(self, *, crawler: TreeCrawler, highlight_cache: HighlightCache) -> None:
        self._crawler = crawler
        self._highlight_cache = highlight_cache

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        fetcher: Fetcher,
        highlighter: Optional[Highlighter] = None,
    ) -> RepositoryView:
        crawler = TreeCrawler(
            fetcher=fetcher,
            store=FileSystemCacheStore(root_dir=config.cache.dir, namespace=LISTING_NAMESPACE),
            max_depth=config.crawl.max_depth,
        )
        highlight_cache = HighlightCache(
            fetcher=fetcher,
            store=FileSystemCacheStore(root_dir=config.cache.dir, namespace=CODE_NAMESPACE),
            highlighter=highlighter or PygmentsHighlighter(config.highlight),
        )
        return cls(crawler=crawler, highlight_cache=highlight_cache)

    @property
    def crawler(self) -> TreeCrawler:
        return self._crawler

    async def render(
        self,
        repo: RepositorySpec,
        request: ViewRequest,
        renderer: Optional[PageRenderer] = None,
    ) -> str:
        page = renderer or HtmlPageRenderer()
        url = repo.base_url + request.path
        logger.info("Rendering repository view. url=%s purge=%s", url, request.purge)

        page.header(repo.display_title + request.path, HEADER_LEVEL)
        page.section_open(HEADER_LEVEL)
        if is_directory_url(url):
            await self._directory(repo, request, page)
        elif is_image_url(url):
            self._image(url, page)
        else:
            await self._code_file(url, repo, request, page)
        if request.path:
            self._location(repo, request.path, page)
        page.section_close()
        return page.output()

    async def _directory(self, repo: RepositorySpec, request: ViewRequest, page: PageRenderer) -> None:
        nodes = await self._crawler.load(repo, request.path, force_purge=request.purge)
        page.raw(render_tree_html(nodes, page.link_for))

    def _image(self, url: str, page: PageRenderer) -> None:
        page.p_open()
        page.external_media(url)
        page.p_close()

    async def _code_file(self, url: str, repo: RepositorySpec, request: ViewRequest, page: PageRenderer) -> None:
        try:
            html = await self._highlight_cache.render(url, repo.refresh_seconds, force_purge=request.purge)
        except RenderError as e:
            logger.warning("Source file could not be rendered. url=%s kind=%s", url, e.kind)
            action = "retrieve" if e.kind == "fetch_failed" else "highlight"
            page.raw('<p class="error">')
            page.text(f"Failed to {action} code from {url}")
            page.raw("</p>\n")
        else:
            page.raw(html)

        page.p_open()
        page.external_link(url)
        page.p_close()

    def _location(self, repo: RepositorySpec, path: str, page: PageRenderer) -> None:
        """Show where we are, with a link back to the repository root."""
        page.p_open()
        page.internal_link("", repo.display_title)
        for crumb in breadcrumbs(path):
            if crumb.prefix is None:
                page.text(crumb.label)
            else:
                page.internal_link(crumb.prefix, crumb.label, css_class="idx_dir")
        page.p_close()
