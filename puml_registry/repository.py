# puml_registry/repository.py
from __future__ import annotations

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol, Union

from .config import Config
from .constants import BACKUP_SUFFIX
from .errors import (
    DiagramConflictError,
    DiagramNotFoundError,
    InvalidInputError,
    StorageError,
)
from .io import read_text, write_text
from .models import Diagram, DiagramKey, DiagramType, Location
from .paths import PathManager, validate_name

logger = logging.getLogger(__name__)


class Repository(Protocol):
    """Storage contract used by the resolver and the service.

    Failures are raised as RegistryError subclasses.
    """

    def exists(
        self,
        diagram_type: DiagramType,
        name: str,
        version: str,
        location: Location,
        parent: Optional[DiagramKey] = None,
    ) -> bool: ...

    def read(
        self,
        diagram_type: DiagramType,
        name: str,
        version: str,
        location: Location,
        parent: Optional[DiagramKey] = None,
    ) -> Diagram: ...

    def write(self, diagram: Diagram) -> None: ...

    def move(
        self,
        diagram_type: DiagramType,
        name: str,
        version: str,
        src: Location,
        dst: Location,
    ) -> None: ...

    def delete(
        self,
        diagram_type: DiagramType,
        name: str,
        version: str,
        location: Location,
        parent: Optional[DiagramKey] = None,
    ) -> None: ...

    def list(self, diagram_type: DiagramType, location: Location) -> list[Diagram]: ...

    def directory_exists(self, path: Union[str, Path]) -> bool: ...

    def create_directory(self, path: Union[str, Path]) -> None: ...


def _mtime(path: Path) -> datetime:
    return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)


class FileSystemRepository:
    """Diagram store laid out under `config.root_directory`."""

    def __init__(self, config: Optional[Config] = None) -> None:
        self.config = config or Config()
        self.paths = PathManager(self.config.root_directory)
        logger.debug("filesystem repository rooted at %s", self.paths.root)

    def _check_identity(self, name: str, version: str, location: Location) -> None:
        validate_name(name)
        if location is not Location.NESTED and not version:
            raise InvalidInputError(
                "version is required for non-nested diagrams",
                context={"name": name, "location": location.value},
            )

    def exists(
        self,
        diagram_type: DiagramType,
        name: str,
        version: str,
        location: Location,
        parent: Optional[DiagramKey] = None,
    ) -> bool:
        self._check_identity(name, version, location)
        path = self.paths.diagram_file(name, version, location, diagram_type, parent)
        try:
            return path.is_file()
        except OSError as exc:
            raise StorageError(
                "failed to check file existence", context={"path": str(path)}
            ) from exc

    def read(
        self,
        diagram_type: DiagramType,
        name: str,
        version: str,
        location: Location,
        parent: Optional[DiagramKey] = None,
    ) -> Diagram:
        self._check_identity(name, version, location)
        path = self.paths.diagram_file(name, version, location, diagram_type, parent)
        if not path.is_file():
            raise DiagramNotFoundError(
                "diagram file not found",
                context={
                    "name": name,
                    "version": version,
                    "location": location.value,
                    "path": str(path),
                },
            )
        try:
            content = read_text(path, self.config.max_file_size)
            modified = _mtime(path)
        except ValueError as exc:
            raise StorageError(
                "file size exceeds maximum allowed",
                context={"path": str(path), "max_size": self.config.max_file_size},
            ) from exc
        except OSError as exc:
            raise StorageError(
                "failed to read diagram file", context={"path": str(path)}
            ) from exc

        logger.debug("read %s (%d bytes)", path, len(content))
        return Diagram(
            name=name,
            version=version,
            content=content,
            location=location,
            diagram_type=diagram_type,
            created_at=modified,
            updated_at=modified,
            parent=parent,
        )

    def write(self, diagram: Diagram) -> None:
        self._check_identity(diagram.name, diagram.version, diagram.location)
        size = len(diagram.content.encode("utf-8"))
        if size > self.config.max_file_size:
            raise StorageError(
                "content size exceeds maximum allowed",
                context={"size": size, "max_size": self.config.max_file_size},
            )

        path = self.paths.diagram_file(
            diagram.name,
            diagram.version,
            diagram.location,
            diagram.diagram_type,
            diagram.parent,
        )
        try:
            if self.config.backup_enabled and path.is_file():
                backup = path.with_name(path.name + BACKUP_SUFFIX)
                shutil.copy2(path, backup)
                logger.debug("backed up %s to %s", path, backup)
            write_text(path, diagram.content)
        except OSError as exc:
            raise StorageError(
                "failed to write diagram file", context={"path": str(path)}
            ) from exc
        logger.debug("wrote %s (%d bytes)", path, size)

    def move(
        self,
        diagram_type: DiagramType,
        name: str,
        version: str,
        src: Location,
        dst: Location,
    ) -> None:
        validate_name(name)
        if not version:
            raise InvalidInputError(
                "version is required for move operation", context={"name": name}
            )
        if src is dst:
            raise InvalidInputError(
                "source and destination locations cannot be the same",
                context={"location": src.value},
            )
        if Location.NESTED in (src, dst):
            raise InvalidInputError("nested diagrams move with their parent")

        source = self.paths.diagram_dir(name, version, src)
        dest = self.paths.diagram_dir(name, version, dst)
        if not source.is_dir():
            raise DiagramNotFoundError(
                "source diagram directory not found",
                context={"name": name, "version": version, "location": src.value},
            )
        if dest.exists():
            raise DiagramConflictError(
                "destination directory already exists",
                context={"name": name, "version": version, "location": dst.value},
            )

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(source), str(dest))
        except OSError as exc:
            raise StorageError(
                "failed to move diagram directory",
                context={"source": str(source), "dest": str(dest)},
            ) from exc
        logger.debug("moved %s to %s", source, dest)

    def delete(
        self,
        diagram_type: DiagramType,
        name: str,
        version: str,
        location: Location,
        parent: Optional[DiagramKey] = None,
    ) -> None:
        self._check_identity(name, version, location)
        directory = self.paths.diagram_dir(name, version, location, parent)
        if not directory.is_dir():
            raise DiagramNotFoundError(
                "diagram directory not found",
                context={"name": name, "version": version, "location": location.value},
            )
        try:
            shutil.rmtree(directory)
        except OSError as exc:
            raise StorageError(
                "failed to delete diagram directory", context={"path": str(directory)}
            ) from exc
        logger.debug("deleted %s", directory)

    def list(self, diagram_type: DiagramType, location: Location) -> list[Diagram]:
        """Every readable diagram directly under `location`, sorted by directory name.

        Directories that do not follow `{name}-{version}` are skipped.
        """
        if location is Location.NESTED:
            raise InvalidInputError("nested diagrams are listed through their parent")
        base = self.paths.location_dir(location)
        if not base.is_dir():
            return []

        diagrams: list[Diagram] = []
        for entry in sorted(base.iterdir()):
            if not entry.is_dir():
                continue
            try:
                info = self.paths.parse_directory_name(entry.name)
                diagrams.append(self.read(diagram_type, info.name, info.version, location))
            except (InvalidInputError, DiagramNotFoundError, StorageError) as exc:
                logger.debug("skipping %s: %s", entry, exc)
                continue
        return diagrams

    def directory_exists(self, path: Union[str, Path]) -> bool:
        checked = self.paths.validate_path(path)
        try:
            return checked.is_dir()
        except OSError as exc:
            raise StorageError(
                "failed to check directory existence", context={"path": str(path)}
            ) from exc

    def create_directory(self, path: Union[str, Path]) -> None:
        checked = self.paths.validate_path(path)
        try:
            checked.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(
                "failed to create directory", context={"path": str(path)}
            ) from exc
