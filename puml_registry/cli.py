# puml_registry/cli.py
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

from .config import Config, load_config
from .errors import PromotionError, RegistryError
from .io import render
from .models import Location, Strictness, ValidationResult
from .service import DiagramService, create_service
from .validate import validate_content

EXIT_FAILURE = 2


def _configure_logging(config: Config, verbose: bool) -> None:
    level = logging.DEBUG if (verbose or config.debug_logging) else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _report(result: ValidationResult, fmt: str) -> None:
    if fmt != "text":
        sys.stdout.write(render(result.as_dict(), fmt))
        return
    for warning in result.warnings:
        print(
            f"warning: {warning.code.value} line {warning.line}: {warning.message}",
            file=sys.stderr,
        )
    for error in result.errors:
        print(
            f"error: {error.code.value} line {error.line}: {error.message}",
            file=sys.stderr,
        )


def _finish(result: ValidationResult, args: argparse.Namespace) -> int:
    _report(result, args.format)
    if not result.is_valid or (args.fail_on_warnings and result.warnings):
        return EXIT_FAILURE
    return 0


def _cmd_check(args: argparse.Namespace, config: Config) -> int:
    content = args.file.read_text(encoding="utf-8")
    strictness = (
        Strictness.parse(args.strictness) if args.strictness else config.validation_level
    )
    result = validate_content(content, strictness, name=args.name, version=args.version)
    return _finish(result, args)


def _cmd_validate(args: argparse.Namespace, svc: DiagramService) -> int:
    result = svc.validate(args.name, args.version, Location.parse(args.location))
    return _finish(result, args)


def _cmd_create(args: argparse.Namespace, svc: DiagramService) -> int:
    content = args.file.read_text(encoding="utf-8")
    diagram = svc.create(args.name, args.version, content, Location.parse(args.location))
    print(f"created {diagram.name}-{diagram.version} in {diagram.location.value}")
    return 0


def _cmd_update(args: argparse.Namespace, svc: DiagramService) -> int:
    diagram = svc.read(args.name, args.version, Location.STAGING)
    diagram.content = args.file.read_text(encoding="utf-8")
    svc.update(diagram)
    print(f"updated {diagram.name}-{diagram.version}")
    return 0


def _cmd_promote(args: argparse.Namespace, svc: DiagramService) -> int:
    try:
        result = svc.promote(args.name, args.version)
    except PromotionError as exc:
        _report(exc.result, args.format)
        print(f"error: {exc.message}", file=sys.stderr)
        return EXIT_FAILURE
    _report(result, args.format)
    print(f"promoted {args.name}-{args.version}")
    return 0


def _cmd_list(args: argparse.Namespace, svc: DiagramService) -> int:
    for diagram in svc.list_all(Location.parse(args.location)):
        print(f"{diagram.name}\t{diagram.version}\t{diagram.updated_at.isoformat()}")
    return 0


def _cmd_delete(args: argparse.Namespace, svc: DiagramService) -> int:
    svc.delete(args.name, args.version, Location.parse(args.location))
    print(f"deleted {args.name}-{args.version} from {args.location}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="puml-registry",
        description="Validate, store and promote PlantUML state-machine diagrams.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML configuration file (environment variables override it).",
    )
    parser.add_argument(
        "--root",
        type=str,
        default=None,
        help="Registry root directory (overrides configuration).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    report = argparse.ArgumentParser(add_help=False)
    report.add_argument(
        "--format",
        choices=("text", "yaml", "json"),
        default="text",
        help="Findings output format (text goes to stderr).",
    )
    report.add_argument(
        "--fail-on-warnings",
        action="store_true",
        help="Exit non-zero on warnings too. Errors always fail.",
    )

    identity = argparse.ArgumentParser(add_help=False)
    identity.add_argument("name")
    identity.add_argument("version")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("check", parents=[report], help="Validate a loose .puml file")
    p.add_argument("file", type=Path)
    p.add_argument(
        "--strictness",
        choices=("staging", "in-progress", "production", "products"),
        default=None,
        help="Defaults to the configured validation level.",
    )
    p.add_argument("--name", default="", help="Diagram name, for self-reference checks")
    p.add_argument("--version", default="", help="Diagram version, for self-reference checks")

    p = sub.add_parser("validate", parents=[identity, report], help="Validate a stored diagram")
    p.add_argument("--location", default="in-progress")

    p = sub.add_parser("create", parents=[identity], help="Store a new diagram")
    p.add_argument("file", type=Path)
    p.add_argument("--location", default="in-progress")

    p = sub.add_parser("update", parents=[identity], help="Replace a staging diagram's content")
    p.add_argument("file", type=Path)

    sub.add_parser(
        "promote", parents=[identity, report], help="Promote a staging diagram to products"
    )

    p = sub.add_parser("list", help="List diagrams in a location")
    p.add_argument("--location", default="in-progress")

    p = sub.add_parser("delete", parents=[identity], help="Delete a stored diagram")
    p.add_argument("--location", default="in-progress")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entrypoint."""
    args = _build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except (OSError, ValueError, TypeError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    if args.root:
        config = replace(config, root_directory=args.root)
    _configure_logging(config, args.verbose)

    handlers = {
        "validate": _cmd_validate,
        "create": _cmd_create,
        "update": _cmd_update,
        "promote": _cmd_promote,
        "list": _cmd_list,
        "delete": _cmd_delete,
    }
    try:
        if args.command == "check":
            return _cmd_check(args, config)
        return handlers[args.command](args, create_service(config))
    except (RegistryError, OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
