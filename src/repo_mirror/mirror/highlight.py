from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import urlsplit

import pygments.lexers
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

from repo_mirror.config.models import HighlightSettings
from repo_mirror.mirror.cache_store import CacheStore, is_fresh, read_entry, write_entry
from repo_mirror.mirror.errors import FetchError, RenderError
from repo_mirror.mirror.fetcher import Fetcher
from repo_mirror.mirror.models import HighlightRequest
from repo_mirror.mirror.paths import code_cache_key
from repo_mirror.mirror.utils import from_timestamp

logger = logging.getLogger(__name__)

HTML_LANGUAGE_HINT = "html4strict"
JAVASCRIPT_LANGUAGE_HINT = "javascript"

# Hints that name a highlighting mode rather than a Pygments lexer alias.
PYGMENTS_LEXER_ALIASES = {
    HTML_LANGUAGE_HINT: "html",
}

DEFAULT_STYLE = "default"


class Highlighter(Protocol):
    def render(self, source: bytes, language_hint: str) -> str:
        ...

    def rules_last_modified(self) -> datetime:
        ...


def language_hint_for_url(url: str) -> str:
    """
    Derive the highlighting mode from the file extension of a URL.

    `htm*` extensions map to the HTML mode and `js` to JavaScript; any other
    extension is passed through lowercased.
    """
    name = urlsplit(url).path.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    extension = name.rsplit(".", 1)[1].lower()
    if extension.startswith("htm"):
        return HTML_LANGUAGE_HINT
    if extension == "js":
        return JAVASCRIPT_LANGUAGE_HINT
    return extension


def build_highlight_request(url: str) -> HighlightRequest:
    return HighlightRequest(url=url, language_hint=language_hint_for_url(url))


def decode_source(source: bytes) -> str:
    """Decode as UTF-8 (BOM tolerated), falling back to latin-1 which accepts any byte."""
    try:
        return source.decode("utf-8-sig")
    except UnicodeDecodeError:
        return source.decode("latin-1")


class PygmentsHighlighter:
    def __init__(self, settings: HighlightSettings = HighlightSettings()) -> None:
        self.settings = settings
        self._style = self._normalize_style(settings.style)

    @staticmethod
    def _normalize_style(style: str) -> str:
        try:
            get_style_by_name(style)
            return style
        except ClassNotFound:
            logger.warning("Unknown highlight style, using default. style=%s", style)
            return DEFAULT_STYLE

    def _lexer_for(self, language_hint: str):
        name = PYGMENTS_LEXER_ALIASES.get(language_hint, language_hint)
        if not name:
            return TextLexer()
        try:
            return get_lexer_by_name(name)
        except ClassNotFound:
            logger.debug("No lexer for language hint, using plain text. hint=%s", language_hint)
            return TextLexer()

    def render(self, source: bytes, language_hint: str) -> str:
        formatter = HtmlFormatter(
            cssclass=f"code {language_hint}".strip(),
            style=self._style,
            linenos="table" if self.settings.line_numbers else False,
        )
        return highlight(decode_source(source), self._lexer_for(language_hint), formatter)

    def rules_last_modified(self) -> datetime:
        """Install time of the lexer definitions; upgrading Pygments moves it forward."""
        return from_timestamp(Path(pygments.lexers.__file__).stat().st_mtime)


class HighlightCache:
    def __init__(self, *, fetcher: Fetcher, store: CacheStore, highlighter: Highlighter) -> None:
        self._fetcher = fetcher
        self._store = store
        self._highlighter = highlighter

    def _rules_modified_at(self) -> Optional[datetime]:
        try:
            return self._highlighter.rules_last_modified()
        except OSError as e:
            logger.warning("Highlighter rules timestamp unavailable. error=%s", e)
            return None

    def _cached_html(self, url: str, refresh_seconds: int, *, force_purge: bool) -> Optional[str]:
        entry = read_entry(self._store, code_cache_key(url))
        if entry is None:
            return None
        if not is_fresh(
            entry.written_at,
            refresh_seconds,
            invalidated_at=self._rules_modified_at(),
            force_purge=force_purge,
        ):
            return None
        try:
            return entry.payload.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Cached highlight is not valid UTF-8, ignoring it. url=%s", url)
            return None

    async def render(self, url: str, refresh_seconds: int, force_purge: bool = False) -> str:
        """Return highlighted HTML for a remote source file."""
        cached = self._cached_html(url, refresh_seconds, force_purge=force_purge)
        if cached is not None:
            logger.debug("Highlight cache hit. url=%s", url)
            return cached

        request = build_highlight_request(url)
        try:
            source = await self._fetcher.fetch(request.url)
        except FetchError as e:
            raise RenderError("fetch_failed", url) from e

        try:
            html = self._highlighter.render(source, request.language_hint)
        except Exception as e:
            logger.exception("Highlighter failed. url=%s hint=%s", url, request.language_hint)
            raise RenderError("highlighter_failure", url) from e

        write_entry(self._store, code_cache_key(url), html.encode("utf-8"))
        logger.debug("Highlight cached. url=%s hint=%s size=%d", url, request.language_hint, len(html))
        return html
