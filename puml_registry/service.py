from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Optional

from .config import Config
from .errors import (
    DiagramConflictError,
    DiagramNotFoundError,
    InvalidInputError,
    PromotionError,
    RegistryError,
    StorageError,
)
from .models import Diagram, DiagramType, Location, Strictness, ValidationResult
from .paths import validate_name, validate_version
from .repository import FileSystemRepository, Repository
from .validate import Validator

logger = logging.getLogger(__name__)


class DiagramService:
    """Create, read, update, delete, validate and promote diagrams.

    Operations are serialised with a re-entrant lock; validation itself holds
    no shared state.
    """

    def __init__(
        self,
        repository: Repository,
        validator: Optional[Validator] = None,
        config: Optional[Config] = None,
    ) -> None:
        self.repository = repository
        self.validator = validator or Validator(repository)
        self.config = config or Config()
        self._lock = threading.RLock()

    def create(
        self,
        name: str,
        version: str,
        content: str,
        location: Location = Location.STAGING,
        diagram_type: DiagramType = DiagramType.PUML,
    ) -> Diagram:
        validate_name(name)
        validate_version(version)
        if not content:
            raise InvalidInputError("content cannot be empty")
        if location is Location.NESTED:
            raise InvalidInputError("nested diagrams are created with their parent")

        with self._lock:
            if self.repository.exists(diagram_type, name, version, location):
                raise DiagramConflictError(
                    "diagram already exists",
                    context={"name": name, "version": version, "location": location.value},
                )
            if location is Location.STAGING and self.repository.exists(
                diagram_type, name, version, Location.PRODUCTION
            ):
                raise DiagramConflictError(
                    "cannot create staging diagram: same name and version exists in products",
                    context={"name": name, "version": version},
                )

            diagram = Diagram(
                name=name,
                version=version,
                content=content,
                location=location,
                diagram_type=diagram_type,
            )
            self.repository.write(diagram)

        logger.info("created %s-%s in %s", name, version, location.value)
        return diagram

    def read(
        self,
        name: str,
        version: str,
        location: Location,
        diagram_type: DiagramType = DiagramType.PUML,
    ) -> Diagram:
        validate_name(name)
        validate_version(version)
        with self._lock:
            return self.repository.read(diagram_type, name, version, location)

    def update(self, diagram: Diagram) -> Diagram:
        """Rewrite an existing staging diagram; products are immutable."""
        if diagram is None:
            raise InvalidInputError("diagram cannot be None")
        validate_name(diagram.name)
        validate_version(diagram.version)
        if not diagram.content:
            raise InvalidInputError("content cannot be empty")
        if diagram.location is not Location.STAGING:
            raise InvalidInputError(
                "only staging diagrams can be updated",
                context={"name": diagram.name, "location": diagram.location.value},
            )

        with self._lock:
            if not self.repository.exists(
                diagram.diagram_type, diagram.name, diagram.version, diagram.location
            ):
                raise DiagramNotFoundError(
                    "diagram does not exist",
                    context={"name": diagram.name, "version": diagram.version},
                )
            diagram.updated_at = datetime.now(timezone.utc)
            self.repository.write(diagram)

        logger.info("updated %s-%s", diagram.name, diagram.version)
        return diagram

    def delete(
        self,
        name: str,
        version: str,
        location: Location,
        diagram_type: DiagramType = DiagramType.PUML,
    ) -> None:
        validate_name(name)
        validate_version(version)
        with self._lock:
            if not self.repository.exists(diagram_type, name, version, location):
                raise DiagramNotFoundError(
                    "diagram does not exist",
                    context={"name": name, "version": version, "location": location.value},
                )
            self.repository.delete(diagram_type, name, version, location)
        logger.info("deleted %s-%s from %s", name, version, location.value)

    def list_all(
        self, location: Location, diagram_type: DiagramType = DiagramType.PUML
    ) -> list[Diagram]:
        with self._lock:
            return self.repository.list(diagram_type, location)

    def validate(
        self,
        name: str,
        version: str,
        location: Location,
        diagram_type: DiagramType = DiagramType.PUML,
    ) -> ValidationResult:
        """Validate a stored diagram; products are judged with production strictness."""
        diagram = self.read(name, version, location, diagram_type)
        strictness = Strictness.for_location(location)
        return self.validator.validate(diagram, strictness)

    def resolve_references(self, diagram: Diagram) -> ValidationResult:
        if diagram is None:
            raise InvalidInputError("diagram cannot be None")
        with self._lock:
            return self.validator.resolve_references(diagram)

    def promote(
        self, name: str, version: str, diagram_type: DiagramType = DiagramType.PUML
    ) -> ValidationResult:
        """Move a staging diagram to products once it validates cleanly.

        Validation runs with staging strictness, so every error blocks. The
        returned result carries any remaining warnings.
        """
        validate_name(name)
        validate_version(version)

        with self._lock:
            if not self.repository.exists(diagram_type, name, version, Location.STAGING):
                raise DiagramNotFoundError(
                    "diagram does not exist in staging",
                    context={"name": name, "version": version},
                )
            if self.repository.exists(diagram_type, name, version, Location.PRODUCTION):
                raise DiagramConflictError(
                    "cannot promote: same name and version already exists in products",
                    context={"name": name, "version": version},
                )

            diagram = self.repository.read(diagram_type, name, version, Location.STAGING)
            result = self.validator.validate(diagram, Strictness.STAGING)
            if not result.is_valid:
                logger.info(
                    "promotion of %s-%s blocked by %d error(s)",
                    name,
                    version,
                    len(result.errors),
                )
                raise PromotionError(
                    f"cannot promote {name}-{version} with validation errors",
                    result,
                    context={
                        "name": name,
                        "version": version,
                        "errors": len(result.errors),
                        "warnings": len(result.warnings),
                    },
                )

            self._move_and_verify(diagram_type, name, version)

        logger.info("promoted %s-%s to products", name, version)
        return result

    def _move_and_verify(self, diagram_type: DiagramType, name: str, version: str) -> None:
        self.repository.move(
            diagram_type, name, version, Location.STAGING, Location.PRODUCTION
        )

        try:
            in_products = self.repository.exists(
                diagram_type, name, version, Location.PRODUCTION
            )
            still_staged = self.repository.exists(
                diagram_type, name, version, Location.STAGING
            )
        except RegistryError as exc:
            self._rollback(diagram_type, name, version)
            raise StorageError(
                "failed to verify promotion", context={"name": name, "version": version}
            ) from exc

        if not in_products:
            self._rollback(diagram_type, name, version)
            raise StorageError(
                "promotion verification failed: diagram not found in products after move",
                context={"name": name, "version": version},
            )
        if still_staged:
            raise StorageError(
                "promotion verification failed: diagram still present in staging after move",
                context={"name": name, "version": version},
            )

    def _rollback(self, diagram_type: DiagramType, name: str, version: str) -> None:
        try:
            self.repository.move(
                diagram_type, name, version, Location.PRODUCTION, Location.STAGING
            )
        except RegistryError:
            logger.exception("rollback of %s-%s promotion failed", name, version)


def create_service(config: Optional[Config] = None) -> DiagramService:
    """Wire a filesystem repository, a resolving validator and the service."""
    config = config or Config()
    repository = FileSystemRepository(config)
    return DiagramService(repository, Validator(repository), config)
