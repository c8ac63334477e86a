from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from repo_mirror.config import YamlConfigLoader
from repo_mirror.config.models import AppConfig, ConfigLoadRequest
from repo_mirror.logging import init_logging
from repo_mirror.mirror.fetcher import RemoteFetcher
from repo_mirror.mirror.models import NodeKind, ViewRequest
from repo_mirror.mirror.paths import parse_directive
from repo_mirror.mirror.view import RepositoryView

logger = logging.getLogger(__name__)


def _add_view_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "directive",
        help="Repository directive, e.g. '{{repo>https://example.org/src/ 1h|Sources}}' or its inner text",
    )
    parser.add_argument("--path", default="", help="Relative path within the repository (default: root)")
    parser.add_argument("--purge", action="store_true", help="Bypass cached listings and highlighted files")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="repo-mirror", description="Remote repository mirror")
    parser.add_argument(
        "--config",
        default="data/config/config.yaml",
        help="Path to config.yaml (default: data/config/config.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to run")

    # Command: render
    render_parser = subparsers.add_parser("render", help="Print the HTML view of a repository path")
    _add_view_arguments(render_parser)

    # Command: tree
    tree_parser = subparsers.add_parser("tree", help="Print the directory tree of a repository path")
    _add_view_arguments(tree_parser)

    return parser


async def _load_config(args: argparse.Namespace) -> AppConfig:
    loader = YamlConfigLoader()
    request = ConfigLoadRequest(
        yaml_path=args.config,
    )
    return await loader.load(request)


def _directory_of(path: str) -> str:
    if not path or path.endswith("/"):
        return path
    head, sep, _ = path.rpartition("/")
    return head + sep


def _format_tree_line(depth: int, name: str, kind: NodeKind, expanded: bool) -> str:
    marker = ("- " if expanded else "+ ") if kind is NodeKind.DIRECTORY else "  "
    return f"{'  ' * (depth - 1)}{marker}{name}"


async def _render(args: argparse.Namespace) -> None:
    config = await _load_config(args)
    init_logging(config.logging)
    repo = parse_directive(args.directive)
    request = ViewRequest(path=args.path, purge=args.purge)

    async with RemoteFetcher(config.fetch) as fetcher:
        view = RepositoryView.from_config(config, fetcher=fetcher)
        html = await view.render(repo, request)
    sys.stdout.write(html)


async def _tree(args: argparse.Namespace) -> None:
    config = await _load_config(args)
    init_logging(config.logging)
    repo = parse_directive(args.directive)
    path = _directory_of(args.path)

    async with RemoteFetcher(config.fetch) as fetcher:
        view = RepositoryView.from_config(config, fetcher=fetcher)
        nodes = await view.crawler.load(repo, path, force_purge=args.purge)

    logger.info("Loaded repository tree. base_url=%s path=%s node_count=%d", repo.base_url, path, len(nodes))
    for node in nodes:
        sys.stdout.write(_format_tree_line(node.depth, node.name, node.kind, node.expanded) + "\n")


async def _main_async() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    if args.command == "render":
        await _render(args)
    elif args.command == "tree":
        await _tree(args)


def main() -> None:
    try:
        asyncio.run(_main_async())
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")


if __name__ == "__main__":
    main()
