from __future__ import annotations

import pytest

from conftest import FIXTURE_DIR, puml
from puml_registry.models import Code, Diagram, Strictness, ValidationResult
from puml_registry.validate import (
    Validator,
    validate_content,
    validate_structure,
    validate_syntax,
)


def load(name: str) -> str:
    return (FIXTURE_DIR / name).read_text(encoding="utf-8")


def structure_codes(content: str) -> list[Code]:
    result = ValidationResult()
    validate_structure(content, result)
    return result.codes()


def test_basic_state_machine_is_clean():
    result = validate_content("@startuml\n[*] --> Idle\nIdle --> Active\nActive --> [*]\n@enduml")
    assert result.errors == []
    assert result.warnings == []
    assert result.is_valid


def test_fixture_with_directives_comments_and_labels_is_clean():
    result = validate_content(load("order_directives.puml"))
    assert result.codes() == []


def test_missing_initial_state_is_only_a_warning():
    result = validate_content(load("no_initial.puml"))
    assert result.errors == []
    assert [w.code for w in result.warnings] == [Code.NO_INITIAL_STATE]
    assert result.is_valid


@pytest.mark.parametrize("strictness", [Strictness.STAGING, Strictness.PRODUCTION])
def test_missing_markers_fail_under_both_levels(strictness):
    result = validate_content(load("no_markers.puml"), strictness)
    codes = [e.code for e in result.errors]
    assert Code.MISSING_START in codes
    assert Code.MISSING_END in codes
    assert not result.is_valid


def test_missing_markers_are_reported_on_first_and_last_line():
    result = ValidationResult()
    validate_structure("A --> B\nB --> C\nC --> D", result)
    lines = {e.code: e.line for e in result.errors}
    assert lines == {Code.MISSING_START: 1, Code.MISSING_END: 3}


def test_only_start_marker_missing():
    assert structure_codes("[*] --> A\n@enduml") == [Code.MISSING_START]


def test_only_end_marker_missing():
    result = validate_content("@startuml\n[*] --> A")
    assert [e.code for e in result.errors] == [Code.MISSING_END]


def test_duplicate_markers_are_reported_on_the_repeat_line():
    result = ValidationResult()
    validate_structure("@startuml\n[*] --> A\n@startuml\n@enduml\n@enduml", result)
    found = {(e.code, e.line) for e in result.errors}
    assert found == {(Code.DUPLICATE_START, 3), (Code.DUPLICATE_END, 5)}


def test_reversed_markers_are_an_ordering_error():
    codes = structure_codes("@enduml\n[*] --> A\n@startuml")
    assert codes == [Code.INVALID_ORDER]


def test_markers_are_matched_after_stripping_whitespace():
    assert structure_codes("   @startuml  \n[*] --> A\n\t@enduml") == []


def test_structure_of_well_formed_content_has_no_findings():
    assert structure_codes(load("door_basic.puml")) == []


def test_envelope_without_states_is_an_error():
    result = validate_content("@startuml\n@enduml")
    codes = [e.code for e in result.errors]
    assert codes == [Code.NO_STATES]
    assert Code.NO_INITIAL_STATE in [w.code for w in result.warnings]


def test_syntax_checks_are_skipped_without_a_start_marker():
    result = ValidationResult()
    validate_syntax("A --> B", result)
    assert result.codes() == []


def test_lines_outside_the_envelope_are_ignored():
    result = validate_content("garbage ???\n@startuml\n[*] --> A\n@enduml\nmore ???")
    assert result.codes() == []


def test_unconventional_state_names_warn_with_the_name_as_context():
    result = validate_content(puml("Idle --> 9lives"))
    assert result.is_valid
    warning = result.warnings[0]
    assert warning.code is Code.INVALID_STATE_NAME
    assert warning.context == "9lives"
    assert warning.line == 3


def test_transition_labels_are_not_part_of_the_state_name():
    result = validate_content(puml("Idle --> Busy : start job", "Busy --> [*] : done"))
    assert result.codes() == []


def test_chained_arrows_split_at_the_last_arrow():
    result = validate_content(puml("Idle --> Busy --> Done"))
    assert result.is_valid
    assert [(w.code, w.context) for w in result.warnings] == [
        (Code.INVALID_STATE_NAME, "Idle --> Busy")
    ]


def test_unrecognised_lines_warn():
    result = validate_content(puml("this is not plantuml"))
    assert [w.code for w in result.warnings] == [Code.UNKNOWN_SYNTAX]
    assert result.warnings[0].line == 3
    assert result.is_valid


def test_state_descriptions_are_accepted_but_composite_blocks_warn():
    result = validate_content(puml("Idle : waiting for input", "state Busy {", "}"))
    codes = result.codes()
    assert Code.UNKNOWN_SYNTAX in codes
    assert all(c is not Code.INVALID_STATE_NAME for c in codes)


def test_known_directives_are_accepted():
    result = validate_content(
        puml(
            "left to right direction",
            "scale 2",
            "!define COLOR blue",
            "note left of Idle : hello there",
        )
    )
    assert result.codes() == []


def test_comment_lines_are_skipped():
    result = validate_content(puml("' anything ?? goes here", "Idle --> [*]"))
    assert result.codes() == []


def test_bare_state_declarations_count_as_states():
    result = validate_content("@startuml\nIdle\n@enduml")
    assert [e.code for e in result.errors] == []
    assert [w.code for w in result.warnings] == [Code.NO_INITIAL_STATE]


def test_validator_never_raises_on_non_text_content():
    diagram = Diagram(name="x", version="1.0.0", content=None)  # type: ignore[arg-type]
    result = Validator().validate(diagram)
    assert Code.REFERENCE_PARSE_ERROR in result.codes()
    assert not result.is_valid


def test_validator_without_repository_does_not_resolve():
    result = validate_content(puml("!include products/billing-1.0.0/billing-1.0.0.puml"))
    assert Code.NO_REPOSITORY not in result.codes()
    assert Code.PRODUCT_REFERENCE_NOT_FOUND not in result.codes()
    assert result.is_valid


def test_self_reference_scenario():
    content = puml("!include products/x-1.0.0/x-1.0.0.puml")
    result = validate_content(content, name="x", version="1.0.0")
    assert [e.code for e in result.errors] == [Code.SELF_REFERENCE]
    assert result.errors[0].line == 3


def test_findings_serialise_to_plain_mappings():
    result = validate_content(load("no_markers.puml"))
    data = result.as_dict()
    assert data["is_valid"] is False
    assert {e["code"] for e in data["errors"]} == {"MISSING_START", "MISSING_END"}
    assert data["errors"][0]["severity"] == "error"
