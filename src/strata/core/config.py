"""
strata configuration management (YAML only).

Precedence (in increasing order):
  1) Packaged defaults (``strata/data/config/defaults.yaml``)
  2) Overlay file (``ConfigManager(config_path=...)`` or ``$STRATA_CONFIG``)
  3) Environment overrides (``STRATA_<section>__<key>``)

Environment overrides:
- Path separator: double underscore ``__`` (e.g. ``STRATA_composer__delegation_mode=chain``).
- Keys are matched case-insensitively against existing keys.
- Type coercion: bool/int/float strings are coerced.

The merged result is validated against ``config.schema.json``.
"""
from __future__ import annotations

import copy
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import jsonschema
import yaml

from strata.data import load_defaults, load_schema

from .exceptions import ConfigurationError

ENV_PREFIX = "STRATA_"
CONFIG_PATH_ENV = "STRATA_CONFIG"
DELEGATION_MODES = ("original", "chain")


class ConfigManager:
    """Load, merge, and validate strata configuration.

    Typical usage:

    ```python
    mgr = ConfigManager()
    cfg = mgr.load_config()
    ```
    """

    def __init__(self, config_path: Optional[Path] = None) -> None:
        if config_path is None and os.environ.get(CONFIG_PATH_ENV):
            config_path = Path(os.environ[CONFIG_PATH_ENV])
        self.config_path = Path(config_path).expanduser() if config_path else None

    # ---------- Merge helpers ----------
    def deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge ``override`` into ``base`` returning a copy."""
        result: Dict[str, Any] = dict(base)
        for key, value in (override or {}).items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self.deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    # ---------- IO helpers ----------
    def load_yaml(self, path: Path) -> Dict[str, Any]:
        """Load a YAML file into a dict.

        Raises:
            ConfigurationError: If the file is missing, unparsable, or not a mapping.
        """
        if not path.exists():
            raise ConfigurationError(
                f"Config file not found: {path}",
                context={"path": str(path)},
            )
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigurationError(
                f"Invalid YAML in {path}: {exc}",
                context={"path": str(path)},
            ) from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Config file {path} must contain a mapping",
                context={"path": str(path)},
            )
        return data

    # ---------- Validation ----------
    def validate_schema(self, config: Dict[str, Any], schema_name: str = "config.schema.json") -> None:
        schema = load_schema(schema_name)
        try:
            jsonschema.validate(instance=config, schema=schema)
        except jsonschema.ValidationError as exc:
            location = ".".join(str(p) for p in exc.absolute_path) or "<root>"
            raise ConfigurationError(
                f"Invalid configuration at {location}: {exc.message}",
                context={"path": location},
            ) from exc

    # ---------- Type coercion helpers ----------
    def _as_bool(self, v: str) -> Optional[bool]:
        low = v.strip().lower()
        if low in {"true", "false"}:
            return low == "true"
        return None

    def _as_int(self, v: str) -> Optional[int]:
        if re.fullmatch(r"[-+]?\d+", v.strip() or " "):
            return int(v)
        return None

    def _as_float(self, v: str) -> Optional[float]:
        s = v.strip()
        if re.fullmatch(r"[-+]?\d*\.\d+", s) or re.fullmatch(r"[-+]?\d+\.\d*", s):
            return float(s)
        return None

    def _coerce_type(self, value: str) -> Any:
        for caster in (self._as_bool, self._as_int, self._as_float):
            result = caster(value)
            if result is not None:
                return result
        return value.strip()

    # ---------- Environment overrides ----------
    def _iter_env_overrides(self) -> Iterator[Tuple[List[str], Any]]:
        for key in sorted(os.environ.keys()):
            if not key.startswith(ENV_PREFIX) or key == CONFIG_PATH_ENV:
                continue
            raw = key[len(ENV_PREFIX):]
            segs = raw.split("__")
            if not raw or any(seg == "" for seg in segs):
                raise ConfigurationError(
                    f"Malformed {ENV_PREFIX}* key: '{key}'. Use double underscores between parts.",
                    context={"key": key},
                )
            yield segs, self._coerce_type(os.environ[key])

    def _set_nested(self, root: Dict[str, Any], path: List[str], value: Any) -> None:
        container = root
        for seg in path[:-1]:
            lower_map = {k.lower(): k for k in container if isinstance(k, str)}
            use_key = lower_map.get(seg.lower(), seg.lower())
            child = container.get(use_key)
            if not isinstance(child, dict):
                child = {}
                container[use_key] = child
            container = child
        leaf = path[-1]
        lower_map = {k.lower(): k for k in container if isinstance(k, str)}
        container[lower_map.get(leaf.lower(), leaf.lower())] = value

    def apply_env_overrides(self, cfg: Dict[str, Any]) -> None:
        for path, value in self._iter_env_overrides():
            self._set_nested(cfg, path, value)

    # ---------- Loading ----------
    def _normalize(self, cfg: Dict[str, Any]) -> None:
        logging_cfg = cfg.get("logging")
        if isinstance(logging_cfg, dict) and isinstance(logging_cfg.get("level"), str):
            logging_cfg["level"] = logging_cfg["level"].upper()

    def load_config(self, *, validate: bool = True) -> Dict[str, Any]:
        cfg: Dict[str, Any] = copy.deepcopy(load_defaults())
        if self.config_path is not None:
            cfg = self.deep_merge(cfg, self.load_yaml(self.config_path))
        self.apply_env_overrides(cfg)
        self._normalize(cfg)
        if validate:
            self.validate_schema(cfg)
        return cfg


@dataclass(frozen=True)
class ComposerConfig:
    """Typed view of the ``composer`` and ``logging`` sections."""

    delegation_mode: str = "original"
    object_scope: bool = False
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        if self.delegation_mode not in DELEGATION_MODES:
            raise ConfigurationError(
                "delegation_mode must be 'original' or 'chain'",
                context={"delegation_mode": self.delegation_mode},
            )

    @classmethod
    def from_mapping(cls, cfg: Mapping[str, Any]) -> "ComposerConfig":
        composer = cfg.get("composer") or {}
        logging_cfg = cfg.get("logging") or {}
        return cls(
            delegation_mode=str(composer.get("delegation_mode", "original")),
            object_scope=bool(composer.get("object_scope", False)),
            log_level=str(logging_cfg.get("level", "WARNING")).upper(),
        )

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "ComposerConfig":
        return cls.from_mapping(ConfigManager(config_path).load_config())


__all__ = ["ConfigManager", "ComposerConfig", "DELEGATION_MODES", "ENV_PREFIX"]
