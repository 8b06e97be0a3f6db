from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from conftest import FIXTURE_DIR, puml
from puml_registry.cli import main


def run(*argv: str) -> int:
    return main(list(argv))


@pytest.fixture
def root(tmp_path: Path) -> str:
    return str(tmp_path / "registry")


def write(tmp_path: Path, content: str, name: str = "diagram.puml") -> str:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return str(path)


def test_check_clean_file(capsys):
    assert run("check", str(FIXTURE_DIR / "door_basic.puml")) == 0
    assert capsys.readouterr().err == ""


def test_check_reports_errors_on_stderr(capsys):
    assert run("check", str(FIXTURE_DIR / "no_markers.puml")) == 2
    err = capsys.readouterr().err
    assert "error: MISSING_START line 1" in err
    assert "error: MISSING_END" in err


def test_check_warnings_pass_unless_requested(capsys):
    path = str(FIXTURE_DIR / "no_initial.puml")
    assert run("check", path) == 0
    assert "warning: NO_INITIAL_STATE" in capsys.readouterr().err
    assert run("check", "--fail-on-warnings", path) == 2


def test_check_json_report(capsys):
    assert run("check", "--format", "json", str(FIXTURE_DIR / "no_markers.puml")) == 2
    report = json.loads(capsys.readouterr().out)
    assert report["is_valid"] is False
    assert [e["code"] for e in report["errors"]] == ["MISSING_START", "MISSING_END"]


def test_check_yaml_report(capsys):
    assert run("check", "--format", "yaml", str(FIXTURE_DIR / "no_initial.puml")) == 0
    report = yaml.safe_load(capsys.readouterr().out)
    assert report["warnings"][0]["code"] == "NO_INITIAL_STATE"


def test_check_strictness_and_self_reference(tmp_path: Path):
    path = write(tmp_path, puml("!include products/payment-latest/payment-latest.puml"))
    assert run("check", path) == 2
    assert run("check", "--strictness", "production", path) == 0

    own = write(tmp_path, puml("!include products/x-1.0.0/x-1.0.0.puml"), "x.puml")
    assert run("check", "--strictness", "production", "--name", "x", "--version", "1.0.0", own) == 2


def test_check_uses_configured_level(tmp_path: Path, monkeypatch):
    path = write(tmp_path, puml("!include products/payment-latest/payment-latest.puml"))
    monkeypatch.setenv("PUML_REGISTRY_VALIDATION_LEVEL", "production")
    assert run("check", path) == 0


def test_check_missing_file(tmp_path: Path, capsys):
    assert run("check", str(tmp_path / "absent.puml")) == 2
    assert capsys.readouterr().err.startswith("error:")


def test_missing_config_file(tmp_path: Path, capsys):
    assert run("--config", str(tmp_path / "absent.yaml"), "list") == 2
    assert "error:" in capsys.readouterr().err


def test_lifecycle(tmp_path: Path, root: str, capsys):
    clean = write(tmp_path, puml("Idle --> [*]"))

    assert run("--root", root, "create", "checkout", "1.0.0", clean) == 0
    assert run("--root", root, "validate", "checkout", "1.0.0") == 0
    assert run("--root", root, "update", "checkout", "1.0.0", clean) == 0
    capsys.readouterr()

    assert run("--root", root, "list") == 0
    assert capsys.readouterr().out.startswith("checkout\t1.0.0\t")

    assert run("--root", root, "promote", "checkout", "1.0.0") == 0
    assert "promoted checkout-1.0.0" in capsys.readouterr().out

    assert run("--root", root, "list", "--location", "products") == 0
    assert "checkout" in capsys.readouterr().out

    assert run("--root", root, "delete", "checkout", "1.0.0", "--location", "products") == 0
    assert not (Path(root) / "products" / "checkout-1.0.0").exists()


def test_create_conflict(tmp_path: Path, root: str, capsys):
    clean = write(tmp_path, puml())
    assert run("--root", root, "create", "checkout", "1.0.0", clean) == 0
    assert run("--root", root, "create", "checkout", "1.0.0", clean) == 2
    assert "directory_conflict" in capsys.readouterr().err


def test_promote_blocked(tmp_path: Path, root: str, capsys):
    broken = write(tmp_path, puml("!include products/payment-1.0.0/payment-1.0.0.puml"))
    assert run("--root", root, "create", "checkout", "1.0.0", broken) == 0
    capsys.readouterr()
    assert run("--root", root, "promote", "checkout", "1.0.0") == 2
    err = capsys.readouterr().err
    assert "error: PRODUCT_REFERENCE_NOT_FOUND" in err
    assert "cannot promote checkout-1.0.0" in err
    assert (Path(root) / "in-progress" / "checkout-1.0.0").is_dir()


def test_invalid_location(root: str, capsys):
    assert run("--root", root, "list", "--location", "archive") == 2
    assert "unknown location" in capsys.readouterr().err
