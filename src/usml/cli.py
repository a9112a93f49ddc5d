"""Command line interface: ``usml validate`` and ``usml parse``."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from usml import __version__
from usml.models.document import ResponseMapping, UsmlDocument
from usml.models.errors import Diagnostic, ValidationResult
from usml.parser.loader import DocumentParseError, SourceMap, load_document
from usml.parser.validator import SemanticValidator
from usml.settings import Settings

logger = logging.getLogger("usml.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="usml",
        description="Usecase Markup Language: declare how API responses map to database tables.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", help="Override LOG_LEVEL (e.g. DEBUG)")
    sub = parser.add_subparsers(dest="command")

    validate_parser = sub.add_parser("validate", help="Validate a .usml.yaml file")
    validate_parser.add_argument("file", help="Path of the .usml.yaml file to validate")
    validate_parser.add_argument(
        "--json", action="store_true", help="Print the result as JSON"
    )
    validate_parser.add_argument(
        "--no-resolve",
        action="store_true",
        help="Skip reading the imported DBML/OpenAPI files",
    )

    parse_parser = sub.add_parser("parse", help="Parse a .usml.yaml file and print its structure")
    parse_parser.add_argument("file", help="Path of the .usml.yaml file to parse")
    return parser


def cmd_validate(file_path: str, *, json_output: bool, resolve: bool) -> int:
    path = Path(file_path)
    try:
        doc, source_map = load_document(path)
    except (OSError, DocumentParseError) as exc:
        logger.debug("Could not load %s", path, exc_info=True)
        if json_output:
            result = ValidationResult.from_diagnostics(
                [Diagnostic.error("parse", str(exc))], file=file_path
            )
            print(json.dumps(result.to_wire(), ensure_ascii=False))
        else:
            print(f"parse error: {exc}", file=sys.stderr)
        return 1

    validator = SemanticValidator()
    if resolve:
        diagnostics = validator.validate_with_resolve(doc, path.parent)
    else:
        diagnostics = validator.validate(doc)
    result = ValidationResult.from_diagnostics(diagnostics, file=file_path)

    if json_output:
        print(json.dumps(result.to_wire(), ensure_ascii=False))
    elif not diagnostics:
        print(f"✓ validation passed: '{file_path}'")
    else:
        marker = "✗" if result.errors else "!"
        print(
            f"{marker} '{file_path}': {len(result.errors)} error(s), "
            f"{len(result.warnings)} warning(s)",
            file=sys.stderr,
        )
        for i, diagnostic in enumerate(diagnostics, start=1):
            location = _format_location(diagnostic, source_map)
            print(f"  [{i}] {location}{diagnostic}", file=sys.stderr)

    return 0 if result.valid else 1


def _format_location(diagnostic: Diagnostic, source_map: SourceMap) -> str:
    if diagnostic.path is None:
        return ""
    span = source_map.nearest(diagnostic.path)
    if span is None:
        return ""
    return f"{span.file}:{span.line}:{span.column}: "


def cmd_parse(file_path: str) -> int:
    try:
        doc, _ = load_document(Path(file_path))
    except (OSError, DocumentParseError) as exc:
        print(f"parse error: {exc}", file=sys.stderr)
        return 1
    print(describe_document(doc))
    return 0


def describe_document(doc: UsmlDocument) -> str:
    """Human-readable summary of a document and its mapping tree."""
    usecase = doc.usecase
    lines = [
        f"Usecase: {usecase.name}",
        f"Version: {doc.version}",
    ]
    if usecase.summary:
        lines.append(f"Summary: {usecase.summary}")
    lines.append(f"Response mapping: {len(usecase.response_mapping)} field(s)")
    lines.append(f"Filters: {len(usecase.filters)}")
    lines.append(f"Transforms: {len(usecase.transforms)}")
    lines.append("")
    lines.append("--- response mapping ---")
    _describe_mappings(usecase.response_mapping, 0, lines)
    return "\n".join(lines)


def _describe_mappings(mappings: list[ResponseMapping], indent: int, lines: list[str]) -> None:
    prefix = "  " * indent
    for mapping in mappings:
        kind = f" [{mapping.kind}]" if mapping.kind else ""
        lines.append(f"{prefix}{mapping.field}: {mapping.source or '-'}{kind}")
        if mapping.join is not None:
            alias = f" (alias: {mapping.join.alias})" if mapping.join.alias else ""
            lines.append(f"{prefix}  └─ JOIN {mapping.join.table} ON {mapping.join.on}{alias}")
        for entry in mapping.join_chain or []:
            lines.append(f"{prefix}  └─ JOIN {entry.table} ON {entry.on}")
        if mapping.aggregate is not None:
            lines.append(f"{prefix}  └─ {mapping.aggregate.kind}")
        if mapping.children:
            _describe_mappings(mapping.children, indent + 2, lines)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = Settings()
    logging.basicConfig(level=(args.log_level or settings.log_level).upper())

    if args.command == "validate":
        return cmd_validate(args.file, json_output=args.json, resolve=not args.no_resolve)
    if args.command == "parse":
        return cmd_parse(args.file)
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
