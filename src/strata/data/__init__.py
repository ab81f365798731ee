"""Bundled configuration defaults and the JSON schema that validates them."""

from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from typing import Any

import yaml

CONFIG_DIR = "config"
DEFAULTS_FILE = "defaults.yaml"


def _resource_text(*parts: str) -> str:
    node = resources.files(__name__)
    for part in parts:
        node = node / part
    return node.read_text(encoding="utf-8")


@lru_cache(maxsize=1)
def load_defaults() -> dict[str, Any]:
    """Parsed ``config/defaults.yaml`` (cached; callers copy before mutating)."""
    return yaml.safe_load(_resource_text(CONFIG_DIR, DEFAULTS_FILE)) or {}


@lru_cache(maxsize=8)
def load_schema(schema_name: str) -> dict[str, Any]:
    return json.loads(_resource_text(CONFIG_DIR, "schemas", schema_name))


__all__ = ["load_defaults", "load_schema"]
