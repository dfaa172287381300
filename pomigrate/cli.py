"""Command line interface for importing Project Online projects into Smartsheet."""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from .exceptions import ConfigurationError, MigrationError, describe_error
from .models.migration import ImportConfig
from .orchestrator import ImportOrchestrator

logger = logging.getLogger(__name__)


def load_config(args: argparse.Namespace) -> ImportConfig:
    """
    Build the run configuration.

    Environment variables come first, then the --config file, then
    command line flags.

    Args:
        args: Parsed arguments

    Returns:
        ImportConfig
    """
    overrides: Dict[str, Any] = {}
    if getattr(args, "config", None):
        try:
            with open(args.config) as f:
                overrides.update(json.load(f))
        except FileNotFoundError:
            raise ConfigurationError(
                f"Config file not found: {args.config}",
                actionable="Check the --config path",
            )
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Config file {args.config} is not valid JSON: {e}")
    if getattr(args, "dry_run", False):
        overrides["dry_run"] = True
    if getattr(args, "output_dir", None):
        overrides["output_dir"] = args.output_dir
    return ImportConfig.from_env(overrides=overrides)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pomigrate",
        description="Import Project Online projects into Smartsheet",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Import a project
    import_parser = subparsers.add_parser("import", help="Import a project")
    import_parser.add_argument(
        "--source", required=True, help="Project GUID or path to a JSON export"
    )
    import_parser.add_argument(
        "--destination", type=int, help="Existing workspace id to import into"
    )
    import_parser.add_argument("--dry-run", action="store_true", help="Simulate without changes")
    import_parser.add_argument("--config", help="Path to a JSON config file")
    import_parser.add_argument("--output-dir", help="Directory for the run report")
    import_parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    # Validate a source
    validate_parser = subparsers.add_parser("validate", help="Check a source before importing")
    validate_parser.add_argument(
        "--source", required=True, help="Project GUID or path to a JSON export"
    )
    validate_parser.add_argument("--config", help="Path to a JSON config file")
    validate_parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return

    try:
        config = load_config(args)
    except ConfigurationError as e:
        print(f"Configuration error: {describe_error(e)}", file=sys.stderr)
        sys.exit(1)

    # Set up logging
    log_level = logging.DEBUG if args.verbose else getattr(logging, config.log_level, logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if args.command == "import":
        run_import(args, config)
    elif args.command == "validate":
        run_validation(args, config)


def run_import(args: argparse.Namespace, config: ImportConfig):
    """Run an import and print its summary."""
    orchestrator = ImportOrchestrator(config)
    try:
        result = orchestrator.run_import(
            args.source,
            destination_ref=args.destination,
            dry_run=config.dry_run,
        )
    except MigrationError as e:
        logger.error(f"Import aborted: {describe_error(e)}")
        print(f"\nImport aborted: {describe_error(e)}", file=sys.stderr)
        sys.exit(1)

    print("\n" + "=" * 60)
    print("IMPORT COMPLETE" if result.success else "IMPORT FAILED")
    print("=" * 60)
    print(f"Project: {result.project_name}")
    if result.container_name:
        print(f"Workspace: {result.container_name} ({result.container_id})")
    if result.dry_run:
        print("Dry run: nothing was written to Smartsheet")
    print(f"Tasks imported: {result.tasks_imported}")
    print(f"Resources imported: {result.resources_imported}")
    print(f"Assignments mapped: {result.assignments_imported}")
    if result.duration_seconds is not None:
        print(f"Duration: {result.duration_seconds:.2f} seconds")

    if result.warnings:
        print(f"\nWarnings ({len(result.warnings)}):")
        for warning in result.warnings:
            print(f"  - {warning}")
    if result.errors:
        print(f"\nErrors ({len(result.errors)}):")
        for error in result.errors:
            print(f"  - {error}")

    if not result.success:
        sys.exit(1)


def run_validation(args: argparse.Namespace, config: ImportConfig):
    """Check a source and print any problems."""
    orchestrator = ImportOrchestrator(config)
    try:
        validation = orchestrator.validate_source(args.source)
    except MigrationError as e:
        print(f"Validation aborted: {describe_error(e)}", file=sys.stderr)
        sys.exit(1)

    print("\n=== Validating Source ===")
    if validation.valid:
        print(f"\n{args.source} is ready to import")
        return

    for error in validation.errors:
        print(f"  - {error}")
    print(f"\nFound {len(validation.errors)} problems")
    sys.exit(1)


if __name__ == "__main__":
    main()
