from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from .constants import ENV_PREFIX, MAX_FILE_SIZE_DEFAULT, ROOT_DIRECTORY_DEFAULT
from .io import load_yaml_mapping
from .models import Strictness

logger = logging.getLogger(__name__)

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Config:
    root_directory: str = ROOT_DIRECTORY_DEFAULT
    validation_level: Strictness = Strictness.STAGING
    backup_enabled: bool = False
    max_file_size: int = MAX_FILE_SIZE_DEFAULT
    debug_logging: bool = False

    def merge_env(self, env: Optional[Mapping[str, str]] = None) -> "Config":
        """Return a copy with PUML_REGISTRY_* overrides applied.

        Values that cannot be parsed are ignored and the current value kept.
        """
        env = os.environ if env is None else env
        updates: dict[str, Any] = {}

        for f in fields(self):
            raw = env.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            try:
                updates[f.name] = _coerce(f.name, raw)
            except ValueError as exc:
                logger.warning("ignoring %s%s: %s", ENV_PREFIX, f.name.upper(), exc)

        return replace(self, **updates)


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _parse_size(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"not a size: {value!r}")
    size = int(str(value).strip())
    if size <= 0:
        raise ValueError(f"size must be positive: {value!r}")
    return size


def _coerce(name: str, value: Any) -> Any:
    if name == "root_directory":
        text = str(value).strip()
        if not text:
            raise ValueError("root directory cannot be empty")
        return text
    if name == "validation_level":
        if isinstance(value, Strictness):
            return value
        return Strictness.parse(str(value))
    if name in ("backup_enabled", "debug_logging"):
        return _parse_bool(value)
    if name == "max_file_size":
        return _parse_size(value)
    raise ValueError(f"unknown config key: {name!r}")


def config_from_mapping(data: Mapping[str, Any], *, source: str = "<mapping>") -> Config:
    """Build a Config from a mapping; unknown keys and bad values raise ValueError."""
    known = {f.name for f in fields(Config)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown config key(s) in {source}: {', '.join(unknown)}")

    values: dict[str, Any] = {}
    for key, value in data.items():
        try:
            values[key] = _coerce(key, value)
        except ValueError as exc:
            raise ValueError(f"Invalid value for {key!r} in {source}: {exc}") from exc
    return Config(**values)


def load_config(
    path: Optional[Path] = None, env: Optional[Mapping[str, str]] = None
) -> Config:
    """Defaults, then an optional YAML file, then environment overrides."""
    config = Config()
    if path is not None:
        if not path.exists():
            raise FileNotFoundError(str(path))
        config = config_from_mapping(load_yaml_mapping(path), source=str(path))
    return config.merge_env(env)
