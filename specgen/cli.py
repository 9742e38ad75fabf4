#!/usr/bin/env python3
"""CLI for generating API description files from a target application.

This is the build-tool entry point: it gathers settings (environment
variables prefixed with SPECGEN_, overridden by flags), loads the target
project's metadata from its pyproject.toml and runs one generation.

Usage:
    # Start the project's app, fetch /v3/api-docs and write build/openapi.yaml
    specgen generate --project-dir path/to/app

    # Write both openapi.json and openapi.yaml
    specgen generate --project-dir path/to/app --output-format both

    # Convert an existing JSON description to YAML
    specgen convert build/openapi.json build/openapi.yaml
"""

import argparse
import sys
from pathlib import Path

from specgen.core.config import OutputFormat, Settings, config_values_from_settings, resolve_fail_fast, settings
from specgen.core.exceptions import GenerationError, SpecGenError
from specgen.core.logging import configure_logging
from specgen.core.telemetry import set_tracer_provider, shutdown_tracer_provider
from specgen.helpers.project_metadata import load_project_metadata
from specgen.services import converter
from specgen.services.generator import DescriptionGenerator
from specgen.services.http_probe import HttpProbe


def cmd_generate(args: argparse.Namespace, source: Settings | None = None) -> int:
    """
    Run one description generation.

    Args:
        args: Parsed command-line arguments
        source: Settings supplying defaults for flags not given (defaults to environment)

    Returns:
        Exit code (0 for success or a non-fatal failure, 1 when the build must abort)
    """
    source = source or settings
    config = config_values_from_settings(
        source,
        output_directory=args.output_directory,
        description_path=args.description_path,
        output_format=args.output_format,
        activation_profile=args.profile,
        listen_port=args.port,
        startup_timeout_seconds=args.startup_timeout,
        entry_point=args.entry_point,
        fail_fast=args.fail_fast,
        runtime_executable=args.runtime,
    )
    try:
        project = load_project_metadata(Path(args.project_dir))
        generator = DescriptionGenerator(probe=HttpProbe(timeout=source.HTTP_TIMEOUT_SECONDS))
        result = generator.run(config, project)
    except GenerationError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    except SpecGenError as e:
        # Project metadata errors happen before the run and follow the same fail-fast switch
        if not resolve_fail_fast(config):
            print(f"⚠️  Failed to generate description: {e} (continuing, fail-fast disabled)", file=sys.stderr)
            return 0
        print(f"❌ Failed to generate description: {e}", file=sys.stderr)
        return 1

    if not result.succeeded:
        print(f"⚠️  {result.message} (continuing, fail-fast disabled)", file=sys.stderr)
        return 0

    print("✅ Generated API description")
    for artifact in result.artifacts:
        print(f"   {artifact.format.value:<5} {artifact.path} ({artifact.size} bytes)")
    return 0


def cmd_convert(args: argparse.Namespace) -> int:
    """
    Convert a JSON description file to YAML.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    json_path = Path(args.source)
    yaml_path = Path(args.destination) if args.destination else json_path.with_suffix(".yaml")
    try:
        converter.convert_file(json_path, yaml_path)
    except SpecGenError as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1

    print(f"✅ Converted: {yaml_path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all sub-commands."""
    parser = argparse.ArgumentParser(
        prog="specgen",
        description="Generate API description files from a running application",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Generate build/openapi.yaml
  specgen generate --project-dir examples/app

  # Generate both formats on another port, without failing the build
  specgen generate --project-dir examples/app --output-format both --port 9090 --no-fail-fast

  # Convert an existing JSON file
  specgen convert build/openapi.json
        """,
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Log level (default: SPECGEN_LOG_LEVEL or INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    generate_parser = subparsers.add_parser(
        "generate",
        help="Start the target application and write its API description",
        description="Start the target application under the generation profile, wait for its description "
        "endpoint, fetch the document, write it in the requested format(s) and stop the application.",
    )
    generate_parser.add_argument(
        "--project-dir",
        type=str,
        default=".",
        help="Directory containing the target project's pyproject.toml (default: current directory)",
    )
    generate_parser.add_argument("--output-directory", "-o", type=str, help="Directory for generated files")
    generate_parser.add_argument("--description-path", type=str, help="Description endpoint path on the target")
    generate_parser.add_argument(
        "--output-format",
        type=str,
        choices=[member.value for member in OutputFormat],
        help="Which file(s) to write (default: yaml)",
    )
    generate_parser.add_argument("--profile", type=str, help="Activation profile passed to the target")
    generate_parser.add_argument("--port", type=int, help="Port the target listens on")
    generate_parser.add_argument("--startup-timeout", type=int, help="Seconds to wait for the target to be ready")
    generate_parser.add_argument("--entry-point", type=str, help="Module to run with 'python -m'")
    generate_parser.add_argument("--runtime", type=str, help="Python interpreter used to start the target")
    generate_parser.add_argument(
        "--fail-fast",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Abort with a non-zero exit code on failure (default: SPECGEN_FAIL_FAST or true)",
    )

    convert_parser = subparsers.add_parser(
        "convert",
        help="Convert a JSON description file to YAML",
        description="Convert a JSON description file to YAML, keeping key order.",
    )
    convert_parser.add_argument("source", type=str, help="JSON file to read")
    convert_parser.add_argument(
        "destination",
        type=str,
        nargs="?",
        help="YAML file to write (default: source with a .yaml suffix)",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    configure_logging(log_level=args.log_level or settings.LOG_LEVEL)
    set_tracer_provider()

    try:
        if args.command == "generate":
            return cmd_generate(args)
        if args.command == "convert":
            return cmd_convert(args)
    finally:
        shutdown_tracer_provider()

    print(f"❌ Unknown command: {args.command}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
