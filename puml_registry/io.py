# puml_registry/io.py
from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml


def load_yaml_mapping(path: Path) -> dict[str, Any]:
    """Load a YAML file whose top level must be a mapping (empty file -> {})."""
    raw = path.read_text(encoding="utf-8")

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse YAML {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise TypeError(
            f"Top-level YAML must be a mapping in {path}, got {type(data).__name__}"
        )
    return data


def read_text(path: Path, max_size: int) -> str:
    """Read a diagram file, refusing anything larger than `max_size` bytes."""
    size = path.stat().st_size
    if size > max_size:
        raise ValueError(f"{path} is {size} bytes, exceeding the {max_size} byte limit")
    return path.read_text(encoding="utf-8")


def write_text(path: Path, content: str) -> None:
    """Write `content` so readers never observe a partially written file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def render(data: dict[str, Any], fmt: str) -> str:
    """Serialise a report mapping as YAML or JSON."""
    if fmt == "yaml":
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    if fmt == "json":
        return json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    raise ValueError(f"unsupported output format: {fmt!r}")
