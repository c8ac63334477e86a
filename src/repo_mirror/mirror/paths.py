from __future__ import annotations

import logging
import re

from repo_mirror.mirror.errors import ConfigError
from repo_mirror.mirror.models import (
    DEFAULT_REFRESH_SECONDS,
    MIN_REFRESH_SECONDS,
    Breadcrumb,
    RepositorySpec,
)

logger = logging.getLogger(__name__)

PATH_SEPARATOR = "/"
DIRECTIVE_PREFIX = "{{repo>"
DIRECTIVE_SUFFIX = "}}"

_DIRECTIVE_RE = re.compile(r"\{\{repo>(.+?)\}\}")
_REFRESH_RE = re.compile(r"(\d+)([dhm])")
_IMAGE_RE = re.compile(r"(jpe?g|gif|png)$", re.IGNORECASE)

REFRESH_UNIT_SECONDS = {"d": 86400, "h": 3600, "m": 60}


def is_directory_url(url: str) -> bool:
    return url.endswith(PATH_SEPARATOR)


def is_image_url(url: str) -> bool:
    return _IMAGE_RE.search(url) is not None


def listing_cache_key(base_url: str, path: str) -> str:
    return base_url + path


def code_cache_key(url: str) -> str:
    return url


def breadcrumbs(path: str) -> list[Breadcrumb]:
    """
    Split a relative path into location breadcrumbs.

    Every segment except the last links to its cumulative prefix. The last segment
    is the current location and carries no link; it is omitted when the path ends
    with a separator.
    """
    if not path:
        return []
    segments = path.split(PATH_SEPARATOR)
    crumbs: list[Breadcrumb] = []
    prefix = ""
    for segment in segments[:-1]:
        prefix += segment + PATH_SEPARATOR
        crumbs.append(Breadcrumb(label=segment + PATH_SEPARATOR, prefix=prefix))
    if segments[-1]:
        crumbs.append(Breadcrumb(label=segments[-1]))
    return crumbs


def _parse_refresh_token(token: str) -> int:
    match = _REFRESH_RE.search(token)
    if match is None:
        raise ConfigError(token)
    seconds = int(match.group(1)) * REFRESH_UNIT_SECONDS[match.group(2)]
    return max(MIN_REFRESH_SECONDS, seconds)


def parse_refresh(token: str) -> int:
    """Map a `<n>d|h|m` token to seconds, defaulting to four hours."""
    try:
        return _parse_refresh_token(token or "")
    except ConfigError as e:
        logger.debug("Using default refresh interval. token=%r error=%s", e.token, e)
        return DEFAULT_REFRESH_SECONDS


def parse_directive(text: str) -> RepositorySpec:
    """
    Parse a `{{repo>URL [refresh]|[title]}}` directive.

    The surrounding braces are optional, so the bare inner text is accepted too.
    """
    raw = text.strip()
    if raw.startswith(DIRECTIVE_PREFIX) and raw.endswith(DIRECTIVE_SUFFIX):
        raw = raw[len(DIRECTIVE_PREFIX) : -len(DIRECTIVE_SUFFIX)]

    base_and_refresh, _, title = raw.partition("|")
    base, _, refresh_token = base_and_refresh.partition(" ")
    base = base.strip()
    if not base:
        raise ValueError(f"Repository directive is missing a base URL: {text}")

    return RepositorySpec(
        base_url=base,
        refresh_seconds=parse_refresh(refresh_token),
        title=title.strip(),
    )


def find_directives(document: str) -> list[RepositorySpec]:
    specs: list[RepositorySpec] = []
    for match in _DIRECTIVE_RE.finditer(document):
        try:
            specs.append(parse_directive(match.group(1)))
        except ValueError as e:
            logger.warning("Skipping invalid repository directive. directive=%s error=%s", match.group(0), e)
    return specs
