from __future__ import annotations

import re
from pathlib import Path
from typing import NamedTuple, Optional, Union

from .constants import (
    MAX_NAME_LENGTH,
    NESTED_DIRECTORY,
    PUML_EXTENSION,
    RESERVED_NAMES,
    ROOT_DIRECTORY_DEFAULT,
)
from .errors import ErrorKind, InvalidInputError
from .models import DiagramKey, DiagramType, Location
from .puml_fmt import SEMVER_RE

# Storage names are stricter than state names: they may start with a digit but
# never with a separator character.
DIAGRAM_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")

_RESERVED = {name.lower() for name in RESERVED_NAMES}


class PathInfo(NamedTuple):
    name: str
    version: str


def validate_name(name: str) -> None:
    if not name:
        raise InvalidInputError("name cannot be empty")
    if not DIAGRAM_NAME_RE.match(name):
        raise InvalidInputError(
            "name contains invalid characters",
            context={
                "name": name,
                "valid_format": "alphanumeric first, then alphanumeric, underscore or hyphen",
            },
        )
    if name.lower() in _RESERVED:
        raise InvalidInputError("name is reserved", context={"name": name})
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidInputError(
            "name is too long", context={"name": name, "max_length": MAX_NAME_LENGTH}
        )


def validate_version(version: str) -> None:
    if not version:
        raise InvalidInputError("version cannot be empty", kind=ErrorKind.VERSION_PARSING)
    if not SEMVER_RE.match(version):
        raise InvalidInputError(
            "version must follow major.minor.patch[-prerelease]",
            kind=ErrorKind.VERSION_PARSING,
            context={"version": version},
        )


def split_name_version(stem: str) -> PathInfo:
    """Split `name-version` where both parts may contain hyphens.

    Candidate split points are tried from the right so the shortest valid
    version wins, e.g. `a-b-1.0.0-beta` -> (`a-b`, `1.0.0-beta`).
    """
    parts = stem.split("-")
    if len(parts) < 2:
        raise InvalidInputError(
            "invalid name format", context={"value": stem, "expected": "name-version"}
        )
    for i in range(len(parts) - 1, 0, -1):
        name = "-".join(parts[:i])
        version = "-".join(parts[i:])
        if SEMVER_RE.match(version):
            validate_name(name)
            return PathInfo(name, version)
    raise InvalidInputError(
        "invalid name format", context={"value": stem, "expected": "name-version"}
    )


class PathManager:
    """Maps diagram identities onto the on-disk layout.

    {root}/{location}/{name}-{version}/{name}-{version}.puml
    {parent dir}/nested/{name}/{name}.puml
    """

    def __init__(self, root: Union[str, Path, None] = None) -> None:
        self.root = Path(root or ROOT_DIRECTORY_DEFAULT)

    def location_dir(self, location: Location) -> Path:
        if location is Location.NESTED:
            return self.root
        return self.root / location.value

    def diagram_dir(
        self,
        name: str,
        version: str,
        location: Location,
        parent: Optional[DiagramKey] = None,
    ) -> Path:
        if location is Location.NESTED:
            if parent is None:
                raise InvalidInputError(
                    "nested diagrams require a parent", context={"name": name}
                )
            parent_dir = self.diagram_dir(parent.name, parent.version, parent.location)
            return parent_dir / NESTED_DIRECTORY / name
        return self.location_dir(location) / f"{name}-{version}"

    def diagram_file(
        self,
        name: str,
        version: str,
        location: Location,
        diagram_type: DiagramType = DiagramType.PUML,
        parent: Optional[DiagramKey] = None,
    ) -> Path:
        directory = self.diagram_dir(name, version, location, parent)
        stem = name if location is Location.NESTED else f"{name}-{version}"
        return directory / f"{stem}{diagram_type.extension}"

    def validate_path(self, path: Union[str, Path]) -> Path:
        """Reject traversal and anything that escapes the root directory."""
        text = str(path)
        if ".." in Path(text).parts:
            raise InvalidInputError(
                "path contains directory traversal", context={"path": text}
            )
        candidate = Path(text)
        if not candidate.is_absolute() and not _is_within(candidate, self.root):
            candidate = self.root / candidate
        if not _is_within(candidate.resolve(), self.root.resolve()):
            raise InvalidInputError(
                "path is outside root directory",
                context={"path": text, "root": str(self.root)},
            )
        return candidate

    def parse_directory_name(self, dir_name: str) -> PathInfo:
        if not dir_name:
            raise InvalidInputError("directory name cannot be empty")
        return split_name_version(dir_name)

    def parse_file_name(self, file_name: str) -> PathInfo:
        if not file_name:
            raise InvalidInputError("file name cannot be empty")
        if not file_name.endswith(PUML_EXTENSION):
            raise InvalidInputError(
                f"file must have {PUML_EXTENSION} extension",
                context={"file_name": file_name},
            )
        return split_name_version(file_name[: -len(PUML_EXTENSION)])

    def parse_full_path(self, full_path: Union[str, Path]) -> tuple[PathInfo, Location]:
        path = self.validate_path(full_path)
        try:
            rel = path.resolve().relative_to(self.root.resolve())
        except ValueError as exc:
            raise InvalidInputError(
                "path is outside root directory", context={"path": str(full_path)}
            ) from exc
        parts = rel.parts
        if len(parts) < 3:
            raise InvalidInputError("path is too short", context={"path": str(full_path)})
        try:
            location = Location(parts[0])
        except ValueError as exc:
            raise InvalidInputError(
                "invalid location in path",
                context={"path": str(full_path), "location": parts[0]},
            ) from exc
        if location is Location.NESTED:
            raise InvalidInputError(
                "nested diagrams are addressed through their parent",
                context={"path": str(full_path)},
            )
        return self.parse_file_name(parts[-1]), location


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True
