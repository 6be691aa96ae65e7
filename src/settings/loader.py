"""
Settings loader shared by the aggregate and retrieval configs.

Each config module owns an env map of dotted YAML key → (env var, cast):

    {"retrieval.freshness_sec": ("DASHBOARD_CACHE_FRESHNESS_SEC", float)}

Set env vars replace the YAML value after the cast is applied.
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Tuple

import yaml

logger = logging.getLogger(__name__)

DEFAULT_PATH = Path("config/dashboard.defaults.yml")

EnvMap = Mapping[str, Tuple[str, Callable[[str], Any]]]


def load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def merge_env_overrides(config_data: Dict[str, Any], env_map: EnvMap) -> Dict[str, Any]:
    merged = copy.deepcopy(config_data)

    for dotted_key, (env_name, cast) in env_map.items():
        raw = os.environ.get(env_name)
        if raw is None:
            continue
        try:
            value = cast(raw)
        except ValueError as e:
            raise ValueError(f"Invalid value for {env_name}: {raw!r}") from e

        target = merged
        *parents, last = dotted_key.split(".")
        for part in parents:
            target = target.setdefault(part, {})
        target[last] = value
        logger.debug(f"{dotted_key} overridden by {env_name}")

    return merged


def load_settings(config_path: str | Path, env_map: EnvMap) -> Dict[str, Any]:
    """Read the YAML file and apply env overrides. Missing file raises FileNotFoundError."""
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    return merge_env_overrides(load_yaml(path), env_map)
