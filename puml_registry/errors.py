from __future__ import annotations

from enum import Enum
from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ValidationResult


class ErrorKind(str, Enum):
    FILE_NOT_FOUND = "file_not_found"
    VALIDATION = "validation"
    DIRECTORY_CONFLICT = "directory_conflict"
    REFERENCE_RESOLUTION = "reference_resolution"
    FILE_SYSTEM = "file_system"
    VERSION_PARSING = "version_parsing"


class RegistryError(Exception):
    """Base failure raised by the repository and the service.

    Validation findings are never raised; they are returned in a
    ValidationResult. This hierarchy covers bad inputs, missing or conflicting
    diagrams and storage failures.
    """

    kind: ErrorKind = ErrorKind.FILE_SYSTEM

    def __init__(
        self,
        message: str,
        *,
        kind: Optional[ErrorKind] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind
        self.context: dict[str, Any] = dict(context or {})

    def __str__(self) -> str:
        out = f"{self.kind.value}: {self.message}"
        if self.__cause__ is not None:
            out += f" (caused by: {self.__cause__})"
        return out


class InvalidInputError(RegistryError, ValueError):
    kind = ErrorKind.VALIDATION


class DiagramNotFoundError(RegistryError):
    kind = ErrorKind.FILE_NOT_FOUND


class DiagramConflictError(RegistryError):
    kind = ErrorKind.DIRECTORY_CONFLICT


class StorageError(RegistryError):
    kind = ErrorKind.FILE_SYSTEM


class ReferenceParseError(RegistryError, ValueError):
    kind = ErrorKind.REFERENCE_RESOLUTION


class PromotionError(RegistryError):
    """Promotion refused because validation produced blocking findings."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, result: "ValidationResult", **kwargs: Any) -> None:
        self.result = result
        codes = ", ".join(iss.code.value for iss in result.errors)
        super().__init__(f"{message}: {codes}" if codes else message, **kwargs)

    @property
    def blocking_codes(self) -> list[str]:
        return [iss.code.value for iss in self.result.errors]
