from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Any, MutableMapping

import yaml
from dotenv import load_dotenv

from repo_mirror.config.models import (
    AppConfig,
    ConfigLoadRequest,
)
from repo_mirror.mirror.cache_store import NAMESPACE_SUFFIXES

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_TEMPLATE = Path("examples/config.yaml")

ENV_PATH_SEPARATOR = "__"


def _read_yaml_config(path: Path) -> dict[str, Any]:
    if not path.exists() and DEFAULT_CONFIG_TEMPLATE.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(DEFAULT_CONFIG_TEMPLATE, path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Top-level YAML must be a mapping, got: {type(data).__name__}")
    return data


def _ensure_data_root(yaml_path: Path) -> None:
    """Create the sibling config/ and logs/ directories of a data root laid out as data/config/config.yaml."""
    if yaml_path.parent.name != "config":
        return
    data_root = yaml_path.parent.parent
    for name in ("config", "logs"):
        (data_root / name).mkdir(parents=True, exist_ok=True)


def prepare_cache_dirs(cache_dir: str | Path) -> list[Path]:
    """Create one directory per cache namespace under the configured cache root."""
    root = Path(cache_dir)
    created = []
    for namespace in NAMESPACE_SUFFIXES:
        namespace_dir = root / namespace
        try:
            namespace_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            # Storage errors surface later as cache misses.
            logger.warning("Cache namespace directory is not writable. path=%s error=%s", namespace_dir, e)
            continue
        created.append(namespace_dir)
    return created


def _override_target(config: MutableMapping[str, Any], env_var_name: str, prefix: str) -> tuple[MutableMapping[str, Any], str]:
    segments = [p.lower() for p in env_var_name[len(prefix) :].split(ENV_PATH_SEPARATOR) if p]
    if not segments:
        raise ValueError(f"Invalid environment variable override name: {env_var_name}")

    dotted = ".".join(segments)
    parent: MutableMapping[str, Any] = config
    for segment in segments[:-1]:
        child = parent.get(segment)
        if child is None:
            raise KeyError(f"Unknown configuration key path: {dotted}")
        if not isinstance(child, dict):
            raise TypeError(f"Configuration key path does not point to a mapping: {dotted}")
        parent = child

    if segments[-1] not in parent:
        raise KeyError(f"Unknown configuration key path: {dotted}")
    return parent, segments[-1]


def _apply_env_overrides(config: MutableMapping[str, Any], env_prefix: str) -> None:
    for name, value in os.environ.items():
        if not name.startswith(env_prefix):
            continue
        parent, leaf = _override_target(config, name, env_prefix)
        # Values stay strings here; pydantic coerces them during validation.
        parent[leaf] = value


class YamlConfigLoader:
    async def load(self, request: ConfigLoadRequest = ConfigLoadRequest()) -> AppConfig:
        yaml_path = Path(request.yaml_path)
        _ensure_data_root(yaml_path)
        config = _read_yaml_config(yaml_path)

        if request.dotenv_path is not None and Path(request.dotenv_path).exists():
            load_dotenv(dotenv_path=request.dotenv_path, override=False)

        _apply_env_overrides(config, request.env_prefix)
        app_config = AppConfig.model_validate(config)
        prepare_cache_dirs(app_config.cache.dir)
        return app_config
