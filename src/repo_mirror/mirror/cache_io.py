from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Sequence

from repo_mirror.mirror.models import NodeKind, TreeNode
from repo_mirror.mirror.utils import format_rfc3339, utc_now

logger = logging.getLogger(__name__)

ListingSchemaVersion = 1


def atomic_write_bytes(path: Path, payload: bytes) -> None:
    """Write through a unique temp file in the target directory, then rename over the target."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=path.name + ".", suffix=".tmp")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
        tmp_path.replace(path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def _encode_node(node: TreeNode) -> dict:
    return {
        "path": node.relative_path,
        "type": node.kind.value,
        "level": node.depth,
        "open": node.expanded,
    }


def _decode_node(payload: dict) -> TreeNode:
    return TreeNode(
        relative_path=payload["path"],
        kind=NodeKind(payload["type"]),
        depth=int(payload["level"]),
        expanded=bool(payload.get("open", False)),
    )


def encode_listing(nodes: Sequence[TreeNode]) -> bytes:
    payload = {
        "schema_version": ListingSchemaVersion,
        "generated_at": format_rfc3339(utc_now()),
        "items": [_encode_node(node) for node in nodes],
    }
    return json.dumps(payload, indent=2).encode("utf-8")


def decode_listing(raw: bytes) -> Optional[list[TreeNode]]:
    """Decode a cached listing; returns None when the payload is unusable."""
    try:
        payload = json.loads(raw.decode("utf-8"))
        schema_version = int(payload.get("schema_version", 0))
        if schema_version != ListingSchemaVersion:
            logger.warning(
                "Listing schema version mismatch, ignoring cached listing. expected=%s actual=%s",
                ListingSchemaVersion,
                schema_version,
            )
            return None
        return [_decode_node(item) for item in payload.get("items", [])]
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        logger.warning("Failed to decode cached listing, ignoring it. error=%s", e)
        return None
