"""
Doc Facade command line.

    docfacade keygen
    docfacade validate myapp.entities:Car myapp.entities:Company
"""

import argparse
import importlib
import logging
import os
import sys

from .config import DocFacadeConfig
from .encryption.keys import generate_key
from .errors import ConflictingFieldMarkers, InvalidMarkerTarget
from .metadata import MetadataRegistry


logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        prog="docfacade",
        description="Field encryption and lookup reference tooling",
    )

    parser.add_argument(
        "--config",
        help="Path to configuration file"
    )

    parser.add_argument(
        "--mode",
        choices=["DEV", "PROD"],
        help="Override operation mode (DEV or PROD)"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser(
        "keygen",
        help="Print a new base64 AES-256 key"
    )

    validate = commands.add_parser(
        "validate",
        help="Check the field markers of entity types"
    )
    validate.add_argument(
        "types",
        nargs="+",
        metavar="MODULE:CLASS",
        help="Entity types to check"
    )

    return parser.parse_args(argv)


def import_type(path: str) -> type:
    """Import a class given as ``package.module:ClassName``."""
    module_name, _, class_name = path.partition(":")
    if not module_name or not class_name:
        raise ValueError(f"Expected MODULE:CLASS, got {path!r}")
    module = importlib.import_module(module_name)
    entity_type = getattr(module, class_name)
    if not isinstance(entity_type, type):
        raise ValueError(f"{path} is not a class")
    return entity_type


def run_validate(type_paths: list[str]) -> int:
    """Describe every named type and report its marked fields."""
    try:
        entity_types = [import_type(path) for path in type_paths]
    except (ImportError, AttributeError, ValueError) as e:
        print(f"Cannot load entity type: {e}", file=sys.stderr)
        return 2

    registry = MetadataRegistry()
    failed = False
    for entity_type in entity_types:
        try:
            descriptor = registry.describe(entity_type)
        except (ConflictingFieldMarkers, InvalidMarkerTarget) as e:
            print(f"ERROR {e}", file=sys.stderr)
            failed = True
            continue

        print(f"{descriptor.type_name}:")
        if not descriptor.has_markers:
            print("  (no marked fields)")
        for spec in descriptor.fields:
            target = f" -> {spec.lookup_target_type}" if spec.lookup_target_type else ""
            print(f"  {spec.field_name}: {spec.kind.value}{target}")

    return 1 if failed else 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the command line."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.mode:
        os.environ["DOCFACADE_MODE"] = args.mode
    DocFacadeConfig.initialize(args.config)

    if args.command == "keygen":
        print(generate_key())
        return 0

    return run_validate(args.types)


if __name__ == "__main__":
    sys.exit(main())
