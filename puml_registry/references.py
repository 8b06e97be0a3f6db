from __future__ import annotations

import re
from typing import Any

from .errors import ReferenceParseError
from .models import Code, Diagram, Reference, ReferenceKind, ValidationResult
from .puml_fmt import (
    is_valid_state_name,
    is_valid_version,
    nested_reference_path,
    normalize_separators,
    product_reference_path,
)

_NAME = r"[A-Za-z_][A-Za-z0-9_-]*"
_VERSION = r"[A-Za-z0-9_.-]+"

# !include products/{name}-{version}/{name}-{version}.puml
PRODUCT_INCLUDE_RE = re.compile(
    rf"!include\s+products/(?P<dir_name>{_NAME})-(?P<dir_version>{_VERSION})"
    rf"/(?P<file_name>{_NAME})-(?P<file_version>{_VERSION})\.puml"
)

# !include nested/{name}/{name}.puml
NESTED_INCLUDE_RE = re.compile(
    rf"!include\s+nested/(?P<dir_name>{_NAME})/(?P<file_name>{_NAME})\.puml"
)


def parse_references(content: Any) -> list[Reference]:
    """Extract include directives, in order of appearance.

    Directives whose directory and file parts disagree, and include lines that
    match neither pattern, are skipped without a finding. Reporting malformed
    references is the job of `check_references`, not the parser.
    """
    if not isinstance(content, str):
        raise ReferenceParseError(
            f"diagram content must be text, got {type(content).__name__}"
        )

    refs: list[Reference] = []
    for line_no, line in enumerate(content.split("\n"), start=1):
        stripped = normalize_separators(line.strip())

        match = PRODUCT_INCLUDE_RE.search(stripped)
        if match:
            name, version = match.group("dir_name"), match.group("dir_version")
            if name == match.group("file_name") and version == match.group("file_version"):
                refs.append(
                    Reference(
                        name=name,
                        version=version,
                        kind=ReferenceKind.PRODUCT,
                        path=product_reference_path(name, version),
                        line=line_no,
                    )
                )
            continue

        match = NESTED_INCLUDE_RE.search(stripped)
        if match and match.group("dir_name") == match.group("file_name"):
            name = match.group("dir_name")
            refs.append(
                Reference(
                    name=name,
                    version="",
                    kind=ReferenceKind.NESTED,
                    path=nested_reference_path(name),
                    line=line_no,
                )
            )

    return refs


def _check_product(ref: Reference, owner: Diagram, result: ValidationResult) -> None:
    if not ref.version:
        result.add_error(
            Code.MISSING_REFERENCE_VERSION,
            f"Product reference {ref.name!r} must have a version",
            ref.line,
            context=ref.path,
        )
        return

    if not is_valid_version(ref.version):
        result.add_error(
            Code.INVALID_REFERENCE_VERSION,
            f"Product reference {ref.name!r} has invalid version {ref.version!r}",
            ref.line,
            context=ref.path,
        )
        return

    if ref.name == owner.name and ref.version == owner.version:
        result.add_error(
            Code.SELF_REFERENCE,
            "State-machine diagram cannot reference itself",
            ref.line,
            context=ref.path,
        )
        return

    expected = product_reference_path(ref.name, ref.version)
    if normalize_separators(ref.path) != expected:
        result.add_warning(
            Code.INCORRECT_REFERENCE_PATH,
            f"Reference path {ref.path!r} should be {expected!r}",
            ref.line,
            context=ref.path,
        )


def _check_nested(ref: Reference, owner: Diagram, result: ValidationResult) -> None:
    if ref.version:
        result.add_warning(
            Code.UNEXPECTED_NESTED_VERSION,
            f"Nested reference {ref.name!r} should not have a version (got {ref.version!r})",
            ref.line,
            context=ref.path,
        )

    if ref.name == owner.name:
        result.add_error(
            Code.NESTED_SELF_REFERENCE,
            f"Nested reference {ref.name!r} cannot point at its own parent",
            ref.line,
            context=ref.path,
        )
        return

    expected = nested_reference_path(ref.name)
    if normalize_separators(ref.path) != expected:
        result.add_warning(
            Code.INCORRECT_NESTED_PATH,
            f"Nested reference path {ref.path!r} should be {expected!r}",
            ref.line,
            context=ref.path,
        )


def check_reference(ref: Reference, owner: Diagram, result: ValidationResult) -> None:
    if not is_valid_state_name(ref.name):
        result.add_error(
            Code.INVALID_REFERENCE_NAME,
            f"Reference name {ref.name!r} is invalid",
            ref.line,
            context=ref.path,
        )
        return

    if ref.kind is ReferenceKind.PRODUCT:
        _check_product(ref, owner, result)
    elif ref.kind is ReferenceKind.NESTED:
        _check_nested(ref, owner, result)
    else:
        result.add_error(
            Code.UNKNOWN_REFERENCE_TYPE,
            f"Unknown reference type for {ref.name!r}",
            ref.line,
            context=ref.path,
        )


def check_references(diagram: Diagram) -> ValidationResult:
    """Parse `diagram.content`, store the references on it and check each one."""
    result = ValidationResult()
    try:
        diagram.references = parse_references(diagram.content)
    except ReferenceParseError as exc:
        result.add_error(
            Code.REFERENCE_PARSE_ERROR,
            "Failed to parse references from content",
            context=exc.message,
        )
        return result

    for ref in diagram.references:
        check_reference(ref, diagram, result)
    return result
