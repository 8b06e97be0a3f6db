# puml_registry/validate.py
from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Any, Optional, TYPE_CHECKING

from .constants import (
    COMMENT_PREFIX,
    CONVERTED_PREFIX,
    END_MARKER,
    KNOWN_DIRECTIVES,
    START_MARKER,
)
from .models import Code, Diagram, Strictness, ValidationResult
from .puml_fmt import extract_state_name, is_valid_state_name
from .references import check_references
from .resolve import ReferenceResolver

if TYPE_CHECKING:
    from .repository import Repository

logger = logging.getLogger(__name__)

INITIAL_TRANSITION_RE = re.compile(r"^\[\*\]\s*-->\s*(.+)$")
FINAL_TRANSITION_RE = re.compile(r"^(.+)\s*-->\s*\[\*\]$")
TRANSITION_RE = re.compile(r"^(.+)\s*-->\s*(.+)$")


def validate_structure(content: str, result: ValidationResult) -> None:
    """Check the @startuml/@enduml envelope.

    Every problem is recorded; nothing short-circuits.
    """
    lines = content.split("\n")
    start_line: Optional[int] = None
    end_line: Optional[int] = None

    for line_no, line in enumerate(lines, start=1):
        stripped = line.strip()

        if stripped.startswith(START_MARKER):
            if start_line is not None:
                result.add_error(
                    Code.DUPLICATE_START,
                    f"Multiple {START_MARKER} tags found (first on line {start_line})",
                    line_no,
                )
            else:
                start_line = line_no

        if stripped.startswith(END_MARKER):
            if end_line is not None:
                result.add_error(
                    Code.DUPLICATE_END,
                    f"Multiple {END_MARKER} tags found (first on line {end_line})",
                    line_no,
                )
            else:
                end_line = line_no

    if start_line is None:
        result.add_error(Code.MISSING_START, f"Missing {START_MARKER} tag", 1)
    if end_line is None:
        result.add_error(Code.MISSING_END, f"Missing {END_MARKER} tag", len(lines))
    if start_line is not None and end_line is not None and start_line >= end_line:
        result.add_error(
            Code.INVALID_ORDER,
            f"{START_MARKER} must come before {END_MARKER}",
            start_line,
        )


def _is_known_construct(line: str) -> bool:
    lowered = line.lower()
    if any(directive in lowered for directive in KNOWN_DIRECTIVES):
        return True
    # `State : description` style declarations.
    return ":" in line


def validate_syntax(content: str, result: ValidationResult) -> None:
    """Collect states and transitions inside the envelope.

    Unrecognised lines only produce warnings; the only syntax error is a
    diagram without any state.
    """
    lines = content.split("\n")
    in_envelope = False
    found_start = False
    has_initial = False
    states: set[str] = set()

    def record(state_expr: str, line_no: int) -> None:
        name = extract_state_name(state_expr)
        states.add(name)
        if not is_valid_state_name(name):
            result.add_warning(
                Code.INVALID_STATE_NAME,
                f"State name {name!r} should follow naming conventions",
                line_no,
                context=name,
            )

    for line_no, line in enumerate(lines, start=1):
        stripped = line.strip()

        if not stripped or stripped.startswith(COMMENT_PREFIX):
            continue

        if stripped.startswith(START_MARKER):
            in_envelope = True
            found_start = True
            continue
        if stripped.startswith(END_MARKER):
            in_envelope = False
            continue

        if not in_envelope:
            continue

        match = INITIAL_TRANSITION_RE.match(stripped)
        if match:
            has_initial = True
            record(match.group(1), line_no)
            continue

        match = FINAL_TRANSITION_RE.match(stripped)
        if match:
            record(match.group(1), line_no)
            continue

        match = TRANSITION_RE.match(stripped)
        if match:
            record(match.group(1), line_no)
            record(match.group(2), line_no)
            continue

        bare = extract_state_name(stripped)
        if is_valid_state_name(bare):
            states.add(bare)
            continue

        if _is_known_construct(stripped):
            continue

        result.add_warning(
            Code.UNKNOWN_SYNTAX,
            "Line contains unrecognized PlantUML syntax",
            line_no,
            context=stripped,
        )

    if found_start and not has_initial:
        result.add_warning(
            Code.NO_INITIAL_STATE,
            "State-machine diagram should have an initial state transition",
        )
    if found_start and not states:
        result.add_error(
            Code.NO_STATES, "State-machine diagram must contain at least one state"
        )


def _coerce_strictness(value: Any) -> Strictness:
    if isinstance(value, Strictness):
        return value
    try:
        return Strictness.parse(str(value))
    except ValueError:
        # Ambiguous policy: fall back to the strict level.
        return Strictness.STAGING


def apply_strictness(result: ValidationResult, strictness: Any) -> ValidationResult:
    """Reclassify findings for the given strictness level.

    Under production strictness every non-critical error becomes a warning
    prefixed with CONVERTED_PREFIX; critical errors stay errors. Staging (and
    any unrecognised level) leaves the result untouched.
    """
    if _coerce_strictness(strictness) is not Strictness.PRODUCTION:
        return result

    kept = []
    for issue in result.errors:
        if issue.code.critical:
            kept.append(issue)
        else:
            result.warnings.append(
                replace(
                    issue,
                    severity="warning",
                    message=CONVERTED_PREFIX + issue.message,
                )
            )
    result.errors = kept
    return result


class Validator:
    """PlantUML state-machine validator.

    The repository is optional. Without one, `validate()` skips reference
    resolution and `resolve_references()` reports NO_REPOSITORY.
    """

    def __init__(self, repository: Optional["Repository"] = None) -> None:
        self.repository = repository
        self.resolver = ReferenceResolver(repository)

    def validate(
        self, diagram: Diagram, strictness: Any = Strictness.STAGING
    ) -> ValidationResult:
        result = ValidationResult()
        content = diagram.content if isinstance(diagram.content, str) else ""
        validate_structure(content, result)
        validate_syntax(content, result)
        references = self.validate_references(diagram)
        result.extend(references)
        parsed = Code.REFERENCE_PARSE_ERROR not in references.codes()
        if self.repository is not None and parsed:
            result.extend(self.resolver.resolve(diagram))
        apply_strictness(result, strictness)
        logger.debug(
            "validated %s-%s (%s): %d error(s), %d warning(s)",
            diagram.name,
            diagram.version,
            _coerce_strictness(strictness).value,
            len(result.errors),
            len(result.warnings),
        )
        return result

    def validate_references(self, diagram: Diagram) -> ValidationResult:
        return check_references(diagram)

    def resolve_references(self, diagram: Diagram) -> ValidationResult:
        return self.resolver.resolve(diagram)


def validate_content(
    content: str,
    strictness: Any = Strictness.STAGING,
    *,
    name: str = "",
    version: str = "",
) -> ValidationResult:
    """Validate loose PlantUML text without a repository."""
    diagram = Diagram(name=name, version=version, content=content)
    return Validator().validate(diagram, strictness)
