from __future__ import annotations

from html import escape
from typing import Callable, Optional, Protocol, Sequence
from urllib.parse import quote

from repo_mirror.mirror.models import TreeNode

LinkBuilder = Callable[[str], str]


def default_link_for(path: str) -> str:
    """Link to this page with the `path` query parameter set."""
    if not path:
        return "?"
    return f"?path={quote(path, safe='/')}"


class PageRenderer(Protocol):
    def header(self, text: str, level: int) -> None:
        ...

    def section_open(self, level: int) -> None:
        ...

    def section_close(self) -> None:
        ...

    def p_open(self) -> None:
        ...

    def p_close(self) -> None:
        ...

    def internal_link(self, path: str, label: str, css_class: Optional[str] = None) -> None:
        ...

    def external_link(self, url: str, label: Optional[str] = None) -> None:
        ...

    def external_media(self, url: str, alt: str = "") -> None:
        ...

    def text(self, text: str) -> None:
        ...

    def raw(self, html: str) -> None:
        ...

    def link_for(self, path: str) -> str:
        ...

    def output(self) -> str:
        ...


class HtmlPageRenderer:
    """Collects a plain HTML fragment; text and attribute values are escaped here."""

    def __init__(self, link_for: LinkBuilder = default_link_for) -> None:
        self._link_for = link_for
        self._parts: list[str] = []

    def link_for(self, path: str) -> str:
        return self._link_for(path)

    def header(self, text: str, level: int) -> None:
        self._parts.append(f"<h{level}>{escape(text)}</h{level}>\n")

    def section_open(self, level: int) -> None:
        self._parts.append(f'<div class="level{level}">\n')

    def section_close(self) -> None:
        self._parts.append("</div>\n")

    def p_open(self) -> None:
        self._parts.append("<p>")

    def p_close(self) -> None:
        self._parts.append("</p>\n")

    def internal_link(self, path: str, label: str, css_class: Optional[str] = None) -> None:
        class_attr = f' class="{escape(css_class)}"' if css_class else ""
        self._parts.append(f'<a href="{escape(self._link_for(path))}"{class_attr}>{escape(label)}</a>')

    def external_link(self, url: str, label: Optional[str] = None) -> None:
        self._parts.append(
            f'<a href="{escape(url)}" class="urlextern" rel="nofollow">{escape(label or url)}</a>'
        )

    def external_media(self, url: str, alt: str = "") -> None:
        self._parts.append(f'<img src="{escape(url)}" class="media" alt="{escape(alt)}" />')

    def text(self, text: str) -> None:
        self._parts.append(escape(text))

    def raw(self, html: str) -> None:
        self._parts.append(html)

    def output(self) -> str:
        return "".join(self._parts)


def _render_tree_item(node: TreeNode, link_for: LinkBuilder) -> str:
    if node.is_directory:
        item_class = "open" if node.expanded else "closed"
        link_class = "idx_dir"
    else:
        item_class = f"level{node.depth}"
        link_class = "wikilink1"
    href = escape(link_for(node.relative_path))
    anchor = f'<a href="{href}" class="{link_class}">{escape(node.name)}</a>'
    return f'<li class="{item_class}"><div class="li">{anchor}</div>'


def render_tree_html(nodes: Sequence[TreeNode], link_for: LinkBuilder = default_link_for) -> str:
    """
    Render a depth-annotated node sequence as nested `<ul class="idx">` lists.

    Nodes must be in depth-first order, as produced by the crawler.
    """
    parts: list[str] = []
    level = 0
    for node in nodes:
        if node.depth > level:
            parts.extend('\n<ul class="idx">\n' for _ in range(node.depth - level))
        else:
            parts.extend("</li>\n</ul>\n" for _ in range(level - node.depth))
            parts.append("</li>\n")
        level = node.depth
        parts.append(_render_tree_item(node, link_for))
    parts.extend("</li>\n</ul>\n" for _ in range(level))
    return "".join(parts)
