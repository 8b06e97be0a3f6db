from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, NamedTuple, Optional

from .constants import PUML_EXTENSION

Severity = Literal["error", "warning"]


class DiagramType(str, Enum):
    PUML = "puml"

    @property
    def extension(self) -> str:
        return PUML_EXTENSION


class Location(str, Enum):
    """Storage stage of a diagram; the value is its directory name."""

    STAGING = "in-progress"
    PRODUCTION = "products"
    NESTED = "nested"

    @classmethod
    def parse(cls, text: str) -> "Location":
        value = text.strip().lower()
        for loc in cls:
            if value in (loc.value, loc.name.lower()):
                return loc
        raise ValueError(f"unknown location: {text!r}")


class Strictness(str, Enum):
    STAGING = "in-progress"
    PRODUCTION = "products"

    @classmethod
    def parse(cls, text: str) -> "Strictness":
        value = text.strip().lower()
        if value in ("products", "production"):
            return cls.PRODUCTION
        if value in ("in-progress", "staging"):
            return cls.STAGING
        raise ValueError(f"unknown validation level: {text!r}")

    @classmethod
    def for_location(cls, location: Location) -> "Strictness":
        if location is Location.PRODUCTION:
            return cls.PRODUCTION
        return cls.STAGING


class ReferenceKind(str, Enum):
    PRODUCT = "product"
    NESTED = "nested"
    UNKNOWN = "unknown"


class DiagramKey(NamedTuple):
    name: str
    version: str
    location: Location


@dataclass(frozen=True)
class Reference:
    name: str
    version: str
    kind: ReferenceKind
    path: str
    line: int = field(default=1, compare=False)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Diagram:
    name: str
    version: str
    content: str
    location: Location = Location.STAGING
    diagram_type: DiagramType = DiagramType.PUML
    references: list[Reference] = field(default_factory=list)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    # Owning diagram of a nested diagram.
    parent: Optional[DiagramKey] = None

    @property
    def key(self) -> DiagramKey:
        return DiagramKey(self.name, self.version, self.location)


class Code(str, Enum):
    """Closed catalogue of validation finding codes."""

    # Envelope
    MISSING_START = "MISSING_START"
    MISSING_END = "MISSING_END"
    DUPLICATE_START = "DUPLICATE_START"
    DUPLICATE_END = "DUPLICATE_END"
    INVALID_ORDER = "INVALID_ORDER"
    # Syntax
    NO_STATES = "NO_STATES"
    NO_INITIAL_STATE = "NO_INITIAL_STATE"
    INVALID_STATE_NAME = "INVALID_STATE_NAME"
    UNKNOWN_SYNTAX = "UNKNOWN_SYNTAX"
    # References
    REFERENCE_PARSE_ERROR = "REFERENCE_PARSE_ERROR"
    INVALID_REFERENCE_NAME = "INVALID_REFERENCE_NAME"
    MISSING_REFERENCE_VERSION = "MISSING_REFERENCE_VERSION"
    INVALID_REFERENCE_VERSION = "INVALID_REFERENCE_VERSION"
    SELF_REFERENCE = "SELF_REFERENCE"
    INCORRECT_REFERENCE_PATH = "INCORRECT_REFERENCE_PATH"
    UNEXPECTED_NESTED_VERSION = "UNEXPECTED_NESTED_VERSION"
    NESTED_SELF_REFERENCE = "NESTED_SELF_REFERENCE"
    INCORRECT_NESTED_PATH = "INCORRECT_NESTED_PATH"
    UNKNOWN_REFERENCE_TYPE = "UNKNOWN_REFERENCE_TYPE"
    # Resolution
    NO_REPOSITORY = "NO_REPOSITORY"
    REFERENCE_CHECK_ERROR = "REFERENCE_CHECK_ERROR"
    REFERENCE_READ_ERROR = "REFERENCE_READ_ERROR"
    PRODUCT_REFERENCE_NOT_FOUND = "PRODUCT_REFERENCE_NOT_FOUND"
    NESTED_REFERENCE_NOT_FOUND = "NESTED_REFERENCE_NOT_FOUND"
    CIRCULAR_REFERENCE = "CIRCULAR_REFERENCE"
    DIRECT_CIRCULAR_REFERENCE = "DIRECT_CIRCULAR_REFERENCE"

    @property
    def critical(self) -> bool:
        """Critical errors stay errors under every strictness level."""
        return self in CRITICAL_CODES


CRITICAL_CODES: frozenset[Code] = frozenset(
    {
        Code.MISSING_START,
        Code.MISSING_END,
        Code.DUPLICATE_START,
        Code.DUPLICATE_END,
        Code.INVALID_ORDER,
        Code.NO_STATES,
        Code.SELF_REFERENCE,
        Code.NESTED_SELF_REFERENCE,
        Code.DIRECT_CIRCULAR_REFERENCE,
        Code.CIRCULAR_REFERENCE,
        Code.REFERENCE_PARSE_ERROR,
        Code.UNKNOWN_REFERENCE_TYPE,
    }
)


@dataclass(frozen=True)
class ValidationIssue:
    """A single finding; `line` and `column` are 1-based."""

    severity: Severity
    code: Code
    message: str
    line: int = 1
    column: int = 1
    context: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "severity": self.severity,
            "code": self.code.value,
            "message": self.message,
            "line": self.line,
            "column": self.column,
        }
        if self.context:
            out["context"] = self.context
        return out


@dataclass
class ValidationResult:
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add_error(
        self,
        code: Code,
        message: str,
        line: int = 1,
        column: int = 1,
        context: Optional[str] = None,
    ) -> None:
        self.errors.append(ValidationIssue("error", code, message, line, column, context))

    def add_warning(
        self,
        code: Code,
        message: str,
        line: int = 1,
        column: int = 1,
        context: Optional[str] = None,
    ) -> None:
        self.warnings.append(ValidationIssue("warning", code, message, line, column, context))

    def extend(self, other: "ValidationResult") -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def codes(self) -> list[Code]:
        return [iss.code for iss in self.errors + self.warnings]

    def as_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": [iss.as_dict() for iss in self.errors],
            "warnings": [iss.as_dict() for iss in self.warnings],
        }
