from __future__ import annotations

from pathlib import Path

import pytest

from puml_registry.config import Config
from puml_registry.models import Diagram, Location
from puml_registry.repository import FileSystemRepository


FIXTURE_DIR = Path(__file__).resolve().parent / "fixtures" / "diagrams"


def puml(*body: str) -> str:
    """Wrap state lines in an envelope that starts with an initial transition."""
    return "\n".join(["@startuml", "[*] --> Idle", *body, "@enduml"])


def store(
    repo: FileSystemRepository,
    name: str,
    version: str,
    content: str,
    location: Location = Location.PRODUCTION,
) -> Diagram:
    diagram = Diagram(name=name, version=version, content=content, location=location)
    repo.write(diagram)
    return diagram


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(root_directory=str(tmp_path / "registry"))


@pytest.fixture
def repo(config: Config) -> FileSystemRepository:
    return FileSystemRepository(config)
