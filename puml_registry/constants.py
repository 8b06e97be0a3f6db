# puml_registry/constants.py
from __future__ import annotations

# Envelope markers delimiting a PlantUML diagram body.
START_MARKER = "@startuml"
END_MARKER = "@enduml"

PUML_EXTENSION = ".puml"
COMMENT_PREFIX = "'"

ROOT_DIRECTORY_DEFAULT = ".puml-registry"
NESTED_DIRECTORY = "nested"
BACKUP_SUFFIX = ".bak"
MAX_FILE_SIZE_DEFAULT = 1024 * 1024
MAX_NAME_LENGTH = 100

# Lines containing any of these (case-insensitive) are accepted without a
# syntax warning.
KNOWN_DIRECTIVES: tuple[str, ...] = (
    "note",
    "title",
    "skinparam",
    "!define",
    "!include",
    "scale",
    "left to right direction",
    "top to bottom direction",
)

RESERVED_NAMES: tuple[str, ...] = (
    "nested",
    "in-progress",
    "products",
    ".",
    "..",
    "CON",
    "PRN",
    "AUX",
    "NUL",
)

CONVERTED_PREFIX = "(Converted from error) "

ENV_PREFIX = "PUML_REGISTRY_"
