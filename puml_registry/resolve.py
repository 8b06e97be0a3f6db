# puml_registry/resolve.py
from __future__ import annotations

import logging
from typing import Optional, TYPE_CHECKING

from .errors import ReferenceParseError, RegistryError
from .models import (
    Code,
    Diagram,
    DiagramKey,
    Location,
    Reference,
    ReferenceKind,
    ValidationResult,
)
from .references import parse_references

if TYPE_CHECKING:
    from .repository import Repository

logger = logging.getLogger(__name__)

Target = tuple[Location, str, Optional[DiagramKey]]

# Nested diagrams are only unique together with their owner.
WalkKey = tuple[DiagramKey, Optional[DiagramKey]]


def reference_target(ref: Reference, owner: Diagram) -> Optional[Target]:
    """Map a reference to (location, version, parent) for repository lookups.

    Nested diagrams carry no version and are scoped under their owner.
    Returns None for kinds that cannot be resolved.
    """
    if ref.kind is ReferenceKind.PRODUCT:
        return Location.PRODUCTION, ref.version, None
    if ref.kind is ReferenceKind.NESTED:
        return Location.NESTED, "", owner.key
    return None


def walk_key(diagram: Diagram) -> WalkKey:
    return diagram.key, diagram.parent


class ReferenceResolver:
    """Checks that referenced diagrams exist and that no reference cycle exists."""

    def __init__(self, repository: Optional["Repository"] = None) -> None:
        self.repository = repository

    def resolve(self, diagram: Diagram) -> ValidationResult:
        result = ValidationResult()
        if self.repository is None:
            result.add_warning(
                Code.NO_REPOSITORY, "Cannot resolve references without repository"
            )
            return result

        if not diagram.references:
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
            self._resolve_one(self.repository, ref, diagram, result)
        return result

    def _resolve_one(
        self,
        repository: "Repository",
        ref: Reference,
        owner: Diagram,
        result: ValidationResult,
    ) -> None:
        target = reference_target(ref, owner)
        if target is None:
            result.add_error(
                Code.UNKNOWN_REFERENCE_TYPE,
                f"Cannot resolve unknown reference type for {ref.name!r}",
                ref.line,
                context=ref.path,
            )
            return
        location, version, parent = target

        try:
            found = repository.exists(
                owner.diagram_type, ref.name, version, location, parent=parent
            )
        except (RegistryError, OSError) as exc:
            result.add_warning(
                Code.REFERENCE_CHECK_ERROR,
                f"Failed to check existence of reference {ref.name!r}: {exc}",
                ref.line,
                context=ref.path,
            )
            return

        if not found:
            if ref.kind is ReferenceKind.NESTED:
                result.add_error(
                    Code.NESTED_REFERENCE_NOT_FOUND,
                    f"Nested reference {ref.name!r} not found under {owner.name!r}",
                    ref.line,
                    context=ref.path,
                )
            else:
                result.add_error(
                    Code.PRODUCT_REFERENCE_NOT_FOUND,
                    f"Product reference '{ref.name}-{ref.version}' not found",
                    ref.line,
                    context=ref.path,
                )
            return

        try:
            referenced = repository.read(
                owner.diagram_type, ref.name, version, location, parent=parent
            )
        except (RegistryError, OSError) as exc:
            result.add_warning(
                Code.REFERENCE_READ_ERROR,
                f"Referenced diagram {ref.name!r} exists but cannot be read: {exc}",
                ref.line,
                context=ref.path,
            )
            return

        self._walk(repository, ref, referenced, owner, set(), result, ref.line)

    def _walk(
        self,
        repository: "Repository",
        ref: Reference,
        node: Diagram,
        root: Diagram,
        on_path: set[WalkKey],
        result: ValidationResult,
        line: int,
    ) -> None:
        """Depth-first search for a path leading back to `root` or onto itself.

        `on_path` only holds the nodes of the current branch, so two branches
        sharing a descendant are not reported. Nested nodes are keyed together
        with their owner, so same-named children of different diagrams stay
        distinct. Findings are reported on `line`,
        the line of the top-level reference in the root diagram.
        """
        key = walk_key(node)

        if key in on_path:
            result.add_error(
                Code.CIRCULAR_REFERENCE,
                f"Circular reference detected: {root.name!r} references {ref.name!r}",
                line,
                context=ref.path,
            )
            return

        if key == walk_key(root):
            result.add_error(
                Code.DIRECT_CIRCULAR_REFERENCE,
                f"Direct circular reference: {ref.name!r} references itself",
                line,
                context=ref.path,
            )
            return

        on_path.add(key)
        try:
            if not node.references:
                try:
                    node.references = parse_references(node.content)
                except ReferenceParseError:
                    logger.debug("skipping unparsable diagram %s", key)
                    return

            for child in node.references:
                target = reference_target(child, node)
                if target is None:
                    continue
                location, version, parent = target
                try:
                    child_node = repository.read(
                        root.diagram_type, child.name, version, location, parent=parent
                    )
                except (RegistryError, OSError) as exc:
                    logger.debug("skipping unreadable reference %s: %s", child.path, exc)
                    continue
                self._walk(repository, child, child_node, root, on_path, result, line)
        finally:
            on_path.discard(key)
