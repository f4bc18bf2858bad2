"""Deterministic settings loading for processes and tests.

Precedence, highest first:

1. ``cli_params`` passed by the caller
2. ``PBX_``-prefixed environment variables (``__`` separates nesting levels,
   e.g. ``PBX_COMPONENTS__SUBSTRATE__POSTGRES__POOL_SIZE=9``)
3. the YAML config file (``~/.config/pbx/pbx.yaml`` unless overridden)
4. model defaults

Unlike constructing ``PbxSettings()`` directly, every source here can be
injected, which keeps tests independent of the host environment.
"""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .models import DEFAULT_CONFIG_PATH, ENV_PREFIX, PbxSettings


def load_settings(
    *,
    cli_params: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
    config_path: str | Path | None = None,
) -> PbxSettings:
    """Merge all sources and validate them into ``PbxSettings``."""
    merged = _read_yaml(Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH)
    merged = _merge(merged, _read_env(os.environ if environ is None else environ))
    merged = _merge(merged, dict(cli_params or {}))
    return PbxSettings.model_validate(merged)


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        parsed = yaml.safe_load(handle)
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError(f"config file must contain a top-level mapping: {path}")
    return parsed


def _read_env(environ: Mapping[str, str]) -> dict[str, Any]:
    output: dict[str, Any] = {}
    for key, raw in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        path = [
            segment.strip().lower()
            for segment in key[len(ENV_PREFIX) :].split("__")
            if segment.strip()
        ]
        if not path:
            continue
        cursor = output
        for segment in path[:-1]:
            child = cursor.get(segment)
            if not isinstance(child, dict):
                child = {}
                cursor[segment] = child
            cursor = child
        cursor[path[-1]] = _decode(raw)
    return output


def _decode(raw: str) -> Any:
    """Decode JSON objects/arrays; leave scalars for pydantic to coerce."""
    value = raw.strip()
    if value.startswith(("{", "[")):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return raw
    return raw


def _merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    result = copy.deepcopy(dict(base))
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            result[key] = _merge(current, value)
        else:
            result[key] = copy.deepcopy(value)
    return result
