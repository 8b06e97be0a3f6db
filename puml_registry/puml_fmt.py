from __future__ import annotations

import re
from dataclasses import dataclass

from .constants import NESTED_DIRECTORY, PUML_EXTENSION

# PlantUML state identifiers: letter or underscore first, then letters, digits,
# underscores or hyphens.
STATE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")

SEMVER_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)(?:-([A-Za-z0-9_.-]+))?$")

PSEUDO_STATE = "[*]"


def is_valid_state_name(name: str) -> bool:
    """Return True for `[*]` and for identifiers matching STATE_NAME_RE."""
    if name == PSEUDO_STATE:
        return True
    return bool(STATE_NAME_RE.match(name))


def is_valid_version(version: str) -> bool:
    return bool(SEMVER_RE.match(version))


def extract_state_name(text: str) -> str:
    """Strip a trailing `: label` from a state expression."""
    state = text.strip()
    if state == PSEUDO_STATE:
        return state
    head, sep, _ = state.partition(":")
    if sep:
        return head.strip()
    return state


def normalize_separators(path: str) -> str:
    return path.replace("\\", "/")


def product_reference_path(name: str, version: str) -> str:
    """Canonical include path of a promoted diagram."""
    return f"products/{name}-{version}/{name}-{version}{PUML_EXTENSION}"


def nested_reference_path(name: str) -> str:
    return f"{NESTED_DIRECTORY}/{name}/{name}{PUML_EXTENSION}"


@dataclass(frozen=True)
class Version:
    major: int
    minor: int
    patch: int
    pre: str = ""

    def __str__(self) -> str:
        out = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            out += f"-{self.pre}"
        return out

    def compare(self, other: "Version") -> int:
        """Return -1, 0 or 1. A release sorts after any of its prereleases."""
        mine = (self.major, self.minor, self.patch)
        theirs = (other.major, other.minor, other.patch)
        if mine != theirs:
            return -1 if mine < theirs else 1
        if self.pre == other.pre:
            return 0
        if not self.pre:
            return 1
        if not other.pre:
            return -1
        return -1 if self.pre < other.pre else 1

    def __lt__(self, other: "Version") -> bool:
        return self.compare(other) < 0


def parse_version(text: str) -> Version:
    match = SEMVER_RE.match(text)
    if not match:
        raise ValueError(f"invalid version format: {text!r}")
    major, minor, patch, pre = match.groups()
    return Version(int(major), int(minor), int(patch), pre or "")
