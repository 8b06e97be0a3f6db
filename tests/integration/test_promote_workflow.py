from __future__ import annotations

import pytest

from puml_registry.config import Config
from puml_registry.errors import DiagramConflictError, PromotionError
from puml_registry.models import Code, Diagram, DiagramKey, DiagramType, Location
from puml_registry.service import create_service


def body(*lines: str) -> str:
    return "\n".join(["@startuml", "[*] --> Ready", *lines, "Ready --> [*]", "@enduml"])


def include(name: str, version: str) -> str:
    return f"!include products/{name}-{version}/{name}-{version}.puml"


@pytest.fixture
def svc(tmp_path):
    return create_service(Config(root_directory=str(tmp_path / "registry"), backup_enabled=True))


@pytest.mark.integration
def test_release_chain_with_nested_child(svc):
    svc.create("payment", "1.0.0", body("Ready --> Charged"))
    svc.promote("payment", "1.0.0")

    checkout = svc.create(
        "checkout",
        "1.0.0",
        body(include("payment", "1.0.0"), "!include nested/retry/retry.puml"),
    )
    svc.repository.write(
        Diagram(
            name="retry",
            version="",
            content=body("Ready --> Waiting"),
            location=Location.NESTED,
            parent=checkout.key,
        )
    )

    result = svc.promote("checkout", "1.0.0")
    assert result.codes() == []

    released = svc.validate("checkout", "1.0.0", Location.PRODUCTION)
    assert released.codes() == []
    assert svc.repository.exists(
        DiagramType.PUML,
        "retry",
        "",
        Location.NESTED,
        parent=DiagramKey("checkout", "1.0.0", Location.PRODUCTION),
    )
    assert [d.name for d in svc.list_all(Location.PRODUCTION)] == ["checkout", "payment"]
    assert svc.list_all(Location.STAGING) == []


@pytest.mark.integration
def test_promotion_waits_for_dependencies(svc):
    svc.create("checkout", "1.0.0", body(include("payment", "1.0.0")))

    with pytest.raises(PromotionError) as excinfo:
        svc.promote("checkout", "1.0.0")
    assert excinfo.value.blocking_codes == [Code.PRODUCT_REFERENCE_NOT_FOUND.value]

    svc.create("payment", "1.0.0", body())
    svc.promote("payment", "1.0.0")
    assert svc.promote("checkout", "1.0.0").is_valid


@pytest.mark.integration
def test_staged_edits_fix_a_blocked_promotion(svc):
    draft = svc.create("checkout", "1.0.0", "@startuml\n@enduml")
    with pytest.raises(PromotionError) as excinfo:
        svc.promote("checkout", "1.0.0")
    assert Code.NO_STATES.value in excinfo.value.blocking_codes

    draft.content = body()
    svc.update(draft)
    assert svc.promote("checkout", "1.0.0").is_valid


@pytest.mark.integration
def test_reference_cycle_in_released_diagrams_blocks_promotion(svc):
    svc.create("ledger", "1.0.0", body(include("audit", "1.0.0")), Location.PRODUCTION)
    svc.create("audit", "1.0.0", body(include("ledger", "1.0.0")), Location.PRODUCTION)
    svc.create("checkout", "1.0.0", body(include("ledger", "1.0.0")))

    with pytest.raises(PromotionError) as excinfo:
        svc.promote("checkout", "1.0.0")
    assert excinfo.value.blocking_codes == [Code.CIRCULAR_REFERENCE.value]

    ledger = svc.validate("ledger", "1.0.0", Location.PRODUCTION)
    assert [e.code for e in ledger.errors] == [Code.DIRECT_CIRCULAR_REFERENCE]


@pytest.mark.integration
def test_released_versions_cannot_be_restaged(svc):
    svc.create("payment", "1.0.0", body())
    svc.promote("payment", "1.0.0")
    with pytest.raises(DiagramConflictError, match="exists in products"):
        svc.create("payment", "1.0.0", body())
